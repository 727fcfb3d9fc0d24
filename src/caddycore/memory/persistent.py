"""SQLite persistence for miss events and patterns.

Provides :class:`SQLiteMissRepository`, the append / bulk-read /
bulk-replace layer under :class:`~caddycore.memory.store.MissPatternStore`.
The default database lives at ``$XDG_DATA_HOME/caddycore/shots.db`` (or
``~/.caddycore/shots.db``); pass ``":memory:"`` for tests.

Thread-safe via ``threading.RLock`` around every database operation.

Usage::

    repo = SQLiteMissRepository(":memory:")
    repo.append_event(event)
    events = repo.read_events(since=cutoff, club_id="7-iron")
    repo.replace_patterns("club=7-iron", patterns, computed_at=now)
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from caddycore.errors import PersistenceError
from caddycore.memory.migrations import migrate
from caddycore.memory.models import (
    Lie,
    MissDirection,
    MissEvent,
    MissPattern,
    PressureContext,
)

logger = logging.getLogger(__name__)

__all__ = ["MissRepository", "SQLiteMissRepository"]


def _default_db_path() -> str:
    """Return the default database file path."""
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        base = Path(xdg) / "caddycore"
    else:
        base = Path.home() / ".caddycore"
    base.mkdir(parents=True, exist_ok=True)
    return str(base / "shots.db")


def _ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class MissRepository(Protocol):
    """Storage contract the pattern store depends on."""

    def append_event(self, event: MissEvent) -> str: ...

    def read_events(
        self,
        *,
        since: Optional[datetime] = None,
        club_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[MissEvent]: ...

    def delete_events_before(self, cutoff: datetime) -> int: ...

    def clear_events(self) -> int: ...

    def replace_patterns(
        self, key: str, patterns: Sequence[MissPattern], *, computed_at: datetime
    ) -> None: ...

    def read_patterns(self, key: str) -> List[MissPattern]: ...


class SQLiteMissRepository:
    """SQLite-backed miss event and pattern storage.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Use ``":memory:"`` for tests.
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        self._db_path = db_path or _default_db_path()
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        try:
            self._conn = sqlite3.connect(
                self._db_path,
                check_same_thread=False,
                isolation_level=None,  # autocommit
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.row_factory = sqlite3.Row
            migrate(self._conn)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open shot database {self._db_path}: {e}") from e

    def close(self) -> None:
        """Close the underlying database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        if self._conn is None:
            raise PersistenceError("repository is closed")
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def append_event(self, event: MissEvent) -> str:
        """Persist a :class:`MissEvent` and return its id."""
        with self._lock:
            self._execute(
                """
                INSERT INTO miss_event
                    (id, occurred_at, club_id, direction, lie, is_user_tagged,
                     is_inferred, scoring_context, hole_number, notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.id,
                    _ts(event.timestamp),
                    event.club_id,
                    event.direction.value,
                    event.lie.value,
                    int(event.pressure.is_user_tagged),
                    int(event.pressure.is_inferred),
                    event.pressure.scoring_context,
                    event.hole_number,
                    event.notes,
                ),
            )
        return event.id

    def read_events(
        self,
        *,
        since: Optional[datetime] = None,
        club_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[MissEvent]:
        """Read events newest first, optionally filtered."""
        conditions = []
        params: list[Any] = []

        if since is not None:
            conditions.append("occurred_at >= ?")
            params.append(_ts(since))
        if club_id:
            conditions.append("LOWER(club_id) = ?")
            params.append(club_id.strip().lower())

        where = "WHERE " + " AND ".join(conditions) if conditions else ""
        sql = f"SELECT * FROM miss_event {where} ORDER BY occurred_at DESC, id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        with self._lock:
            rows = self._execute(sql, params).fetchall()
        return [self._row_to_event(r) for r in rows]

    def delete_events_before(self, cutoff: datetime) -> int:
        """Delete events strictly older than *cutoff*.  Returns the count."""
        with self._lock:
            cur = self._execute("DELETE FROM miss_event WHERE occurred_at < ?", (_ts(cutoff),))
            return cur.rowcount

    def clear_events(self) -> int:
        with self._lock:
            events = self._execute("DELETE FROM miss_event").rowcount
            self._execute("DELETE FROM miss_pattern")
        return events

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def replace_patterns(
        self, key: str, patterns: Sequence[MissPattern], *, computed_at: datetime
    ) -> None:
        """Atomically replace every pattern stored under *key*."""
        with self._lock:
            self._execute("BEGIN")
            try:
                self._execute("DELETE FROM miss_pattern WHERE filter_key = ?", (key,))
                for position, p in enumerate(patterns):
                    self._execute(
                        """
                        INSERT INTO miss_pattern
                            (id, filter_key, direction, frequency, confidence, share,
                             last_occurrence, club_id, pressure, computed_at, sort_order)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            p.id,
                            key,
                            p.direction.value,
                            p.frequency,
                            p.confidence,
                            p.share,
                            _ts(p.last_occurrence),
                            p.club_id,
                            None if p.pressure is None else int(p.pressure),
                            _ts(computed_at),
                            position,
                        ),
                    )
            except PersistenceError:
                self._execute("ROLLBACK")
                raise
            self._execute("COMMIT")

    def read_patterns(self, key: str) -> List[MissPattern]:
        with self._lock:
            rows = self._execute(
                "SELECT * FROM miss_pattern WHERE filter_key = ? ORDER BY sort_order",
                (key,),
            ).fetchall()
        return [self._row_to_pattern(r) for r in rows]

    def stats(self) -> Dict[str, Any]:
        """Return a summary of the store contents."""
        with self._lock:
            events = self._execute("SELECT COUNT(*) AS cnt FROM miss_event").fetchone()["cnt"]
            patterns = self._execute("SELECT COUNT(*) AS cnt FROM miss_pattern").fetchone()["cnt"]
            keys = self._execute("SELECT COUNT(DISTINCT filter_key) AS cnt FROM miss_pattern").fetchone()["cnt"]
        return {"miss_events": events, "miss_patterns": patterns, "pattern_keys": keys}

    # ------------------------------------------------------------------
    # Row → model helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> MissEvent:
        return MissEvent(
            id=row["id"],
            timestamp=datetime.fromisoformat(row["occurred_at"]),
            club_id=row["club_id"],
            direction=MissDirection(row["direction"]),
            lie=Lie(row["lie"]),
            pressure=PressureContext(
                is_user_tagged=bool(row["is_user_tagged"]),
                is_inferred=bool(row["is_inferred"]),
                scoring_context=row["scoring_context"],
            ),
            hole_number=row["hole_number"],
            notes=row["notes"],
        )

    @staticmethod
    def _row_to_pattern(row: sqlite3.Row) -> MissPattern:
        pressure = row["pressure"]
        return MissPattern(
            id=row["id"],
            direction=MissDirection(row["direction"]),
            frequency=row["frequency"],
            confidence=row["confidence"],
            share=row["share"],
            last_occurrence=datetime.fromisoformat(row["last_occurrence"]),
            club_id=row["club_id"],
            pressure=None if pressure is None else bool(pressure),
        )
