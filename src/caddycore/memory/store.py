"""Miss-pattern store.

Records miss events and serves aggregated patterns for the caddy.  Patterns
are a materialised view: :meth:`MissPatternStore.refresh_patterns`
recomputes them from events and replaces whatever was stored under the same
filter key.

Reads use a sliding window (last 30 days, at most the 50 most recent shots)
before aggregation.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from caddycore.config import MemorySettings
from caddycore.memory.aggregator import AggregationConfig, MissPatternAggregator, filter_key
from caddycore.memory.decay import decayed_confidence, is_within_retention_window
from caddycore.memory.models import ClubType, MissEvent, MissPattern, infer_club_type, utcnow
from caddycore.memory.persistent import MissRepository

logger = logging.getLogger(__name__)

__all__ = ["MissPatternStore", "STORED_PATTERN_FLOOR"]

STORED_PATTERN_FLOOR = 0.01


class MissPatternStore:
    """Records misses and serves decayed patterns.

    Parameters
    ----------
    repository:
        Event/pattern persistence (see :class:`~caddycore.memory.persistent.MissRepository`).
    settings:
        Window, retention, and aggregation floors.
    clock:
        Returns "now"; injectable for tests.
    """

    def __init__(
        self,
        repository: MissRepository,
        settings: Optional[MemorySettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self.settings = settings or MemorySettings()
        self._clock = clock
        self._aggregator = MissPatternAggregator(
            AggregationConfig(
                min_samples=self.settings.min_samples,
                min_share=self.settings.min_share,
                half_life_days=self.settings.half_life_days,
                max_age_days=self.settings.max_age_days,
            )
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_miss(self, event: MissEvent) -> str:
        """Append a miss event.  Events are never edited afterwards."""
        event_id = self._repo.append_event(event)
        logger.debug("[store] recorded %s with %s", event.direction.value, event.club_id)
        return event_id

    def enforce_retention_policy(self, now: Optional[datetime] = None) -> int:
        """Delete events older than the retention window.  Returns the count."""
        now = now or self._clock()
        cutoff = now - timedelta(days=self.settings.retention_days)
        deleted = self._repo.delete_events_before(cutoff)
        if deleted:
            logger.info("[store] retention removed %d events older than %d days", deleted, self.settings.retention_days)
        return deleted

    def clear_history(self) -> int:
        """Delete every event and stored pattern."""
        removed = self._repo.clear_events()
        logger.info("[store] cleared %d events", removed)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def recent_events(
        self,
        *,
        club_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[MissEvent]:
        """Events inside the analysis window, newest first."""
        now = now or self._clock()
        since = now - timedelta(days=self.settings.window_days)
        events = self._repo.read_events(since=since, club_id=club_id, limit=self.settings.window_shots)
        return [
            e for e in events
            if e.timestamp <= now
            and is_within_retention_window(e.timestamp, self.settings.retention_days, now=now)
        ]

    def get_patterns(
        self,
        club_id: Optional[str] = None,
        pressure: Optional[bool] = None,
        *,
        now: Optional[datetime] = None,
    ) -> List[MissPattern]:
        """Aggregate patterns for the filter from the current window."""
        now = now or self._clock()
        events = self.recent_events(club_id=club_id, now=now)
        return self._aggregator.aggregate(events, now, club_id=club_id, pressure=pressure)

    def get_dominant_pattern(
        self,
        club_id: Optional[str] = None,
        pressure: Optional[bool] = None,
        *,
        now: Optional[datetime] = None,
    ) -> Optional[MissPattern]:
        patterns = self.get_patterns(club_id, pressure, now=now)
        return patterns[0] if patterns else None

    def refresh_patterns(
        self,
        club_id: Optional[str] = None,
        pressure: Optional[bool] = None,
        *,
        now: Optional[datetime] = None,
    ) -> List[MissPattern]:
        """Recompute and replace the stored patterns for the filter."""
        now = now or self._clock()
        patterns = self.get_patterns(club_id, pressure, now=now)
        key = filter_key(club_id, pressure)
        self._repo.replace_patterns(key, patterns, computed_at=now)
        logger.info("[store] refreshed %d patterns for %s", len(patterns), key)
        return patterns

    def stored_patterns(
        self,
        club_id: Optional[str] = None,
        pressure: Optional[bool] = None,
        *,
        now: Optional[datetime] = None,
    ) -> List[MissPattern]:
        """Patterns saved by the last :meth:`refresh_patterns` for the filter.

        Confidence is decayed again from each pattern's last occurrence at
        read time; patterns that fade to ``STORED_PATTERN_FLOOR`` or below
        are left out.  Stored order is kept.
        """
        now = now or self._clock()
        patterns = []
        for pattern in self._repo.read_patterns(filter_key(club_id, pressure)):
            confidence = decayed_confidence(
                pattern.confidence, pattern.last_occurrence, now, self.settings.half_life_days
            )
            if confidence > STORED_PATTERN_FLOOR:
                patterns.append(replace(pattern, confidence=confidence))
        return patterns

    @staticmethod
    def infer_club_type(club_id: str) -> Optional[ClubType]:
        return infer_club_type(club_id)
