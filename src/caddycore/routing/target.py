"""Routing targets and deterministic route strings.

A :class:`RoutingTarget` names a destination module, a screen inside it,
and scalar parameters.  Parameters are canonicalized (sorted by key) on
construction, so two targets built from the same parameters in a different
insertion order are equal and serialize to the same route string::

    >>> build_route(RoutingTarget(Module.CADDY, "score_entry", {"hole": 5}))
    'caddy/score_entry?hole=5'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import quote

from caddycore.errors import ContractViolationError

__all__ = ["Module", "Scalar", "RoutingTarget", "build_route", "format_scalar"]

Scalar = Union[str, int, float, bool]


class Module(str, Enum):
    """Top-level destination areas of the app."""

    CADDY = "caddy"
    COACH = "coach"
    RECOVERY = "recovery"
    SETTINGS = "settings"


def format_scalar(value: Scalar) -> str:
    """Stable text form of a parameter value."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _canonical(parameters: Optional[Mapping[str, Any]]) -> Tuple[Tuple[str, Scalar], ...]:
    items = []
    for key, value in (parameters or {}).items():
        if not isinstance(key, str) or not key:
            raise ContractViolationError(f"parameter keys must be non-empty strings, got {key!r}")
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        if not isinstance(value, (str, int, float, bool)):
            raise ContractViolationError(
                f"parameter {key!r} must be a scalar, got {type(value).__name__}"
            )
        items.append((key, value))
    return tuple(sorted(items, key=lambda kv: kv[0]))


@dataclass(frozen=True)
class RoutingTarget:
    """Destination for a classified intent.

    Attributes:
        module: Destination module
        screen: Screen identifier inside the module (non-blank)
        parameters: Canonical ``(key, value)`` pairs, sorted by key;
            ``None`` values are dropped
    """

    module: Module
    screen: str
    parameters: Tuple[Tuple[str, Scalar], ...] = field(default=())

    def __init__(self, module: Module, screen: str, parameters: Optional[Mapping[str, Any]] = None):
        if not screen or not screen.strip():
            raise ContractViolationError("RoutingTarget must have a non-blank screen name")
        object.__setattr__(self, "module", Module(module))
        object.__setattr__(self, "screen", screen.strip())
        object.__setattr__(self, "parameters", _canonical(parameters))

    @property
    def params(self) -> Dict[str, Scalar]:
        return dict(self.parameters)

    def with_parameters(self, extra: Mapping[str, Any]) -> "RoutingTarget":
        """Return a copy with *extra* merged over the existing parameters."""
        merged = dict(self.parameters)
        merged.update(extra)
        return RoutingTarget(self.module, self.screen, merged)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module.value,
            "screen": self.screen,
            "parameters": dict(self.parameters),
            "route": build_route(self),
        }


def build_route(target: RoutingTarget) -> str:
    """Serialize *target* to ``module/screen?k=v&...`` with sorted keys."""
    path = f"{target.module.value}/{quote(target.screen, safe='_-')}"
    if not target.parameters:
        return path
    query = "&".join(
        f"{quote(k, safe='_-')}={quote(format_scalar(v), safe='_-.')}"
        for k, v in target.parameters
    )
    return f"{path}?{query}"
