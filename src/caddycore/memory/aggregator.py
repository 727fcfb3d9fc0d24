"""Miss-pattern aggregation.

Turns raw :class:`~caddycore.memory.models.MissEvent` rows into decayed,
confidence-scored :class:`~caddycore.memory.models.MissPattern` objects.

Algorithm:

1. Keep the events matching the caller's filter (club and/or pressure).
2. Group the non-straight events by direction.
3. Drop groups with fewer than ``min_samples`` events or whose share of the
   filtered shots is below ``min_share``.
4. Weight every event by its own decay, then
   ``confidence = sum(event decay) / filtered shot count``.
   A fresh group therefore scores its share; old groups fade toward 0.
5. Drop groups whose confidence fell below ``min_confidence``.
6. Order by confidence desc, then frequency desc, then most recent
   ``last_occurrence``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from caddycore.memory.decay import DEFAULT_HALF_LIFE_DAYS, MAX_AGE_DAYS, decay
from caddycore.memory.models import MissDirection, MissEvent, MissPattern

logger = logging.getLogger(__name__)

__all__ = [
    "AggregationConfig",
    "MissPatternAggregator",
    "filter_key",
]


@dataclass(frozen=True)
class AggregationConfig:
    """Floors and decay parameters for aggregation."""

    min_samples: int = 3
    min_share: float = 0.30
    min_confidence: float = 0.10
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS
    max_age_days: float = MAX_AGE_DAYS


def filter_key(club_id: Optional[str] = None, pressure: Optional[bool] = None) -> str:
    """Stable key naming a filter combination, used to store patterns."""
    parts = []
    if club_id:
        parts.append(f"club={club_id.strip().lower()}")
    if pressure is not None:
        parts.append(f"pressure={'true' if pressure else 'false'}")
    return "|".join(parts) or "all"


class MissPatternAggregator:
    """Aggregates miss events into ranked patterns."""

    def __init__(self, config: Optional[AggregationConfig] = None):
        self.config = config or AggregationConfig()

    def aggregate(
        self,
        events: Iterable[MissEvent],
        now: datetime,
        *,
        club_id: Optional[str] = None,
        pressure: Optional[bool] = None,
    ) -> List[MissPattern]:
        """Aggregate *events* into patterns ordered by confidence.

        Args:
            events: Candidate events (already windowed by the caller)
            now: Reference time for decay
            club_id: Only consider this club
            pressure: Only consider pressured (True) or calm (False) shots

        Returns:
            Patterns that pass the sample, share, and confidence floors
        """
        cfg = self.config
        selected = [e for e in events if self._matches(e, club_id, pressure)]
        total = len(selected)
        if total == 0:
            return []

        groups: Dict[MissDirection, List[MissEvent]] = defaultdict(list)
        for event in selected:
            if event.direction is MissDirection.STRAIGHT:
                continue
            groups[event.direction].append(event)

        patterns: List[MissPattern] = []
        for direction, group in groups.items():
            count = len(group)
            share = count / total
            if count < cfg.min_samples:
                logger.debug("[aggregate] %s skipped: %d < %d samples", direction.value, count, cfg.min_samples)
                continue
            if share < cfg.min_share:
                logger.debug("[aggregate] %s skipped: share %.2f < %.2f", direction.value, share, cfg.min_share)
                continue

            weight = sum(
                decay(e.timestamp, now, cfg.half_life_days, cfg.max_age_days) for e in group
            )
            confidence = min(1.0, weight / total)
            if confidence < cfg.min_confidence:
                logger.debug("[aggregate] %s skipped: confidence %.3f decayed below floor", direction.value, confidence)
                continue

            patterns.append(
                MissPattern(
                    direction=direction,
                    frequency=count,
                    confidence=confidence,
                    last_occurrence=max(e.timestamp for e in group),
                    club_id=club_id,
                    pressure=pressure,
                    share=share,
                )
            )

        patterns.sort(
            key=lambda p: (-p.confidence, -p.frequency, -p.last_occurrence.timestamp(), p.direction.value)
        )
        return patterns

    @staticmethod
    def _matches(event: MissEvent, club_id: Optional[str], pressure: Optional[bool]) -> bool:
        if club_id and event.club_id.strip().lower() != club_id.strip().lower():
            return False
        if pressure is not None and event.pressure.has_pressure != pressure:
            return False
        return True
