"""Schema migrations for the shot-memory database.

Simple version-based migration system.  Each migration is a plain SQL
string keyed by its target version number.  :func:`migrate` applies any
outstanding migrations in order.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Dict

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------
# Migration registry: version → SQL
# -----------------------------------------------------------------------

MIGRATIONS: Dict[int, str] = {
    1: """
    -- v1: miss events and materialised patterns
    CREATE TABLE IF NOT EXISTS schema_version (
        version    INTEGER PRIMARY KEY,
        applied_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS miss_event (
        id              TEXT PRIMARY KEY,
        occurred_at     TEXT NOT NULL,
        club_id         TEXT NOT NULL,
        direction       TEXT NOT NULL,
        lie             TEXT NOT NULL DEFAULT 'fairway',
        is_user_tagged  INTEGER NOT NULL DEFAULT 0,
        is_inferred     INTEGER NOT NULL DEFAULT 0,
        scoring_context TEXT,
        hole_number     INTEGER,
        notes           TEXT
    );

    CREATE TABLE IF NOT EXISTS miss_pattern (
        id              TEXT PRIMARY KEY,
        filter_key      TEXT NOT NULL,
        direction       TEXT NOT NULL,
        frequency       INTEGER NOT NULL,
        confidence      REAL NOT NULL,
        share           REAL NOT NULL DEFAULT 0.0,
        last_occurrence TEXT NOT NULL,
        club_id         TEXT,
        pressure        INTEGER,
        computed_at     TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_miss_event_time  ON miss_event(occurred_at);
    CREATE INDEX IF NOT EXISTS idx_miss_event_club  ON miss_event(club_id);
    CREATE INDEX IF NOT EXISTS idx_miss_pattern_key ON miss_pattern(filter_key);
    """,
    2: """
    -- v2: sort_order column so stored patterns keep their aggregation order
    ALTER TABLE miss_pattern ADD COLUMN sort_order INTEGER NOT NULL DEFAULT 0;
    """,
}

LATEST_VERSION = max(MIGRATIONS.keys())


def _current_version(conn: sqlite3.Connection) -> int:
    """Return the current schema version (0 if fresh database)."""
    try:
        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row and row[0] is not None else 0
    except sqlite3.OperationalError:
        # schema_version table doesn't exist yet
        return 0


def migrate(conn: sqlite3.Connection) -> int:
    """Apply all outstanding migrations and return the new version."""
    current = _current_version(conn)
    if current >= LATEST_VERSION:
        logger.debug("[migrate] Schema already at v%d, nothing to do.", current)
        return current

    for version in sorted(MIGRATIONS.keys()):
        if version <= current:
            continue
        logger.info("[migrate] Applying migration v%d", version)
        conn.executescript(MIGRATIONS[version])
        conn.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
            (version, datetime.now(timezone.utc).isoformat()),
        )
        conn.commit()
        logger.info("[migrate] Migration v%d applied.", version)

    return _current_version(conn)
