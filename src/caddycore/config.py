"""
Settings for the caddy decision core.

Values come from three layers, later ones winning:

1. Dataclass defaults (the numbers below)
2. ``config/caddy-settings.yaml`` (or an explicit path)
3. Environment variables for deployment-specific values:
   ``CADDY_LLM_BASE_URL``, ``CADDY_LLM_MODEL``, ``CADDY_LLM_API_KEY``,
   ``CADDY_DB_PATH``, ``CADDY_DECISION_LOG``

The online (0.75 / 0.50) and offline (0.7 / 0.4) tiers are separate
settings that play the same role.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from caddycore.errors import ContractViolationError

logger = logging.getLogger(__name__)

__all__ = [
    "ClassifierSettings",
    "OfflineSettings",
    "MemorySettings",
    "SessionSettings",
    "CaddySettings",
    "load_settings",
]

# ─────────────────────────────────────────────────────────────────
# Defaults
# ─────────────────────────────────────────────────────────────────

_DEFAULT_YAML_PATH = Path(__file__).resolve().parents[2] / "config" / "caddy-settings.yaml"


def _check_unit(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ContractViolationError(f"{name} must be within [0, 1], got {value}")


@dataclass(frozen=True)
class ClassifierSettings:
    """Online classifier gate and backend call parameters."""
    route_threshold: float = 0.75
    confirm_threshold: float = 0.50
    text_timeout_seconds: float = 3.0
    voice_timeout_seconds: float = 4.5
    base_url: str = ""
    model: str = ""
    api_key: str = ""
    temperature: float = 0.0
    max_tokens: int = 256
    history_turns: int = 4

    def __post_init__(self) -> None:
        _check_unit("route_threshold", self.route_threshold)
        _check_unit("confirm_threshold", self.confirm_threshold)
        if self.confirm_threshold > self.route_threshold:
            raise ContractViolationError("confirm_threshold must not exceed route_threshold")
        if self.text_timeout_seconds <= 0 or self.voice_timeout_seconds <= 0:
            raise ContractViolationError("classifier timeouts must be positive")


@dataclass(frozen=True)
class OfflineSettings:
    """Keyword matcher tiers."""
    strong_threshold: float = 0.7
    weak_threshold: float = 0.4
    max_suggestions: int = 3

    def __post_init__(self) -> None:
        _check_unit("strong_threshold", self.strong_threshold)
        _check_unit("weak_threshold", self.weak_threshold)
        if self.weak_threshold > self.strong_threshold:
            raise ContractViolationError("weak_threshold must not exceed strong_threshold")


@dataclass(frozen=True)
class MemorySettings:
    """Decay, retention, and aggregation parameters for miss patterns."""
    half_life_days: float = 14.0
    max_age_days: float = 84.0
    retention_days: int = 90
    window_days: int = 30
    window_shots: int = 50
    min_samples: int = 3
    min_share: float = 0.30
    db_path: Optional[str] = None

    def __post_init__(self) -> None:
        if self.half_life_days <= 0:
            raise ContractViolationError("half_life_days must be positive")
        if self.min_samples < 1:
            raise ContractViolationError("min_samples must be at least 1")
        _check_unit("min_share", self.min_share)


@dataclass(frozen=True)
class SessionSettings:
    history_capacity: int = 10

    def __post_init__(self) -> None:
        if self.history_capacity < 1:
            raise ContractViolationError("history_capacity must be at least 1")


@dataclass(frozen=True)
class CaddySettings:
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    offline: OfflineSettings = field(default_factory=OfflineSettings)
    memory: MemorySettings = field(default_factory=MemorySettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    decision_log: Optional[str] = None


# ─────────────────────────────────────────────────────────────────
# Loading
# ─────────────────────────────────────────────────────────────────


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        logger.warning("[config] section %r is not a mapping, ignoring", name)
        return {}
    return value


def _pick(cls: type, values: Dict[str, Any]) -> Dict[str, Any]:
    known = cls.__dataclass_fields__.keys()
    unknown = sorted(set(values) - set(known))
    if unknown:
        logger.warning("[config] unknown %s keys ignored: %s", cls.__name__, ", ".join(unknown))
    return {k: v for k, v in values.items() if k in known}


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.debug("[config] %s not found, using defaults", path)
        return {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load caddy settings from %s: %s, using defaults", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("[config] %s does not contain a mapping, using defaults", path)
        return {}
    return data


def load_settings(path: Optional[Path] = None, *, env: Optional[Dict[str, str]] = None) -> CaddySettings:
    """Load settings from YAML, then apply environment overrides.

    Invalid threshold combinations raise :class:`ContractViolationError`;
    a missing or unreadable file only logs and falls back to defaults.
    """
    env = dict(os.environ) if env is None else env
    data = _read_yaml(Path(path) if path else _DEFAULT_YAML_PATH)

    classifier = _pick(ClassifierSettings, _section(data, "classifier"))
    for key, var in (("base_url", "CADDY_LLM_BASE_URL"), ("model", "CADDY_LLM_MODEL"), ("api_key", "CADDY_LLM_API_KEY")):
        if env.get(var):
            classifier[key] = env[var]

    memory = _pick(MemorySettings, _section(data, "memory"))
    if env.get("CADDY_DB_PATH"):
        memory["db_path"] = env["CADDY_DB_PATH"]

    decision_log = env.get("CADDY_DECISION_LOG") or data.get("decision_log")

    return CaddySettings(
        classifier=ClassifierSettings(**classifier),
        offline=OfflineSettings(**_pick(OfflineSettings, _section(data, "offline"))),
        memory=MemorySettings(**memory),
        session=SessionSettings(**_pick(SessionSettings, _section(data, "session"))),
        decision_log=decision_log,
    )
