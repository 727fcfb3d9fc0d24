"""Exponential time decay for miss-pattern confidence.

All functions are pure: every input, including ``now``, is explicit.

    decay(age) = 0.5 ** (age_days / half_life_days)

* exactly ``1.0`` at age 0
* ``0.5`` after one half-life (14 days by default)
* exactly ``0.0`` beyond the hard cutoff (84 days, six half-lives)

Future timestamps and confidences outside ``[0, 1]`` are caller bugs and
raise :class:`~caddycore.errors.ContractViolationError`; nothing is clamped.
"""

from __future__ import annotations

from datetime import datetime

from caddycore.errors import ContractViolationError

__all__ = [
    "DEFAULT_HALF_LIFE_DAYS",
    "MAX_AGE_DAYS",
    "DEFAULT_RETENTION_DAYS",
    "age_days",
    "decay",
    "decayed_confidence",
    "is_within_retention_window",
]

DEFAULT_HALF_LIFE_DAYS: float = 14.0
MAX_AGE_DAYS: float = 84.0
DEFAULT_RETENTION_DAYS: int = 90

_SECONDS_PER_DAY = 86_400.0


def age_days(timestamp: datetime, now: datetime) -> float:
    """Age of *timestamp* in fractional days relative to *now*.

    Raises:
        ContractViolationError: *timestamp* is after *now*.
    """
    delta = (now - timestamp).total_seconds()
    if delta < 0:
        raise ContractViolationError(
            f"timestamp {timestamp.isoformat()} is in the future relative to {now.isoformat()}"
        )
    return delta / _SECONDS_PER_DAY


def decay(
    event_timestamp: datetime,
    now: datetime,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
    max_age_days: float = MAX_AGE_DAYS,
) -> float:
    """Decay weight in ``[0, 1]`` for an event at *event_timestamp*."""
    if half_life_days <= 0:
        raise ContractViolationError("half_life_days must be positive")
    age = age_days(event_timestamp, now)
    if age == 0.0:
        return 1.0
    if age > max_age_days:
        return 0.0
    return 0.5 ** (age / half_life_days)


def decayed_confidence(
    base_confidence: float,
    last_occurrence: datetime,
    now: datetime,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
) -> float:
    """*base_confidence* scaled by the decay of *last_occurrence*."""
    if not 0.0 <= base_confidence <= 1.0:
        raise ContractViolationError(
            f"base_confidence must be within [0, 1], got {base_confidence}"
        )
    return base_confidence * decay(last_occurrence, now, half_life_days)


def is_within_retention_window(
    timestamp: datetime,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    *,
    now: datetime,
) -> bool:
    """Whether *timestamp* is no older than *retention_days* (inclusive)."""
    return age_days(timestamp, now) <= retention_days
