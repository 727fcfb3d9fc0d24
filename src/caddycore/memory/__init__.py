"""
Shot memory: miss events, decay math, and aggregated miss patterns.
"""

from caddycore.memory.aggregator import AggregationConfig, MissPatternAggregator, filter_key
from caddycore.memory.decay import (
    age_days,
    decay,
    decayed_confidence,
    is_within_retention_window,
)
from caddycore.memory.models import (
    ClubType,
    Lie,
    MissDirection,
    MissEvent,
    MissPattern,
    PressureContext,
    infer_club_type,
)
from caddycore.memory.persistent import MissRepository, SQLiteMissRepository
from caddycore.memory.store import MissPatternStore

__all__ = [
    "AggregationConfig",
    "MissPatternAggregator",
    "filter_key",
    "age_days",
    "decay",
    "decayed_confidence",
    "is_within_retention_window",
    "ClubType",
    "Lie",
    "MissDirection",
    "MissEvent",
    "MissPattern",
    "PressureContext",
    "infer_club_type",
    "MissRepository",
    "SQLiteMissRepository",
    "MissPatternStore",
]
