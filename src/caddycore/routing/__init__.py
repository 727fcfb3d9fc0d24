"""Routing: targets, prerequisites and the orchestrator.

Only the dependency-free target types are re-exported here; import the
orchestrator from :mod:`caddycore.routing.orchestrator`.
"""

from caddycore.routing.target import Module, RoutingTarget, build_route, format_scalar

__all__ = ["Module", "RoutingTarget", "build_route", "format_scalar"]
