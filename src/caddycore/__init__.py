"""caddycore - intent decision core for a golf caddy assistant."""

__version__ = "0.1.0"
