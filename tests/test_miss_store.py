"""Tests for the SQLite miss history and the pattern store.

Covers:
- Migration system (fresh DB, idempotent re-run)
- Event append / read with filters
- Sliding analysis window (days and shot count)
- Retention policy and clearing history
- Materialised patterns replaced per filter key
- Thread safety (concurrent writes)
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import timedelta

import pytest

from caddycore.config import MemorySettings
from caddycore.errors import PersistenceError
from caddycore.memory.migrations import LATEST_VERSION, _current_version, migrate
from caddycore.memory.models import ClubType, MissDirection
from caddycore.memory.persistent import SQLiteMissRepository
from caddycore.memory.store import MissPatternStore

SLICE = MissDirection.SLICE
HOOK = MissDirection.HOOK
STRAIGHT = MissDirection.STRAIGHT


@pytest.fixture()
def repo():
    """In-memory repository for each test."""
    r = SQLiteMissRepository(":memory:")
    yield r
    r.close()


@pytest.fixture()
def store(repo, now):
    return MissPatternStore(repo, MemorySettings(), clock=lambda: now)


# ===================================================================
# 1. Migrations
# ===================================================================

class TestMigrations:
    def test_fresh_db_reaches_latest(self):
        conn = sqlite3.connect(":memory:")
        assert _current_version(conn) == 0
        assert migrate(conn) == LATEST_VERSION
        conn.close()

    def test_idempotent(self):
        conn = sqlite3.connect(":memory:")
        migrate(conn)
        assert migrate(conn) == LATEST_VERSION
        conn.close()

    def test_repository_runs_migrations(self, repo):
        assert repo.stats() == {"miss_events": 0, "miss_patterns": 0, "pattern_keys": 0}


# ===================================================================
# 2. Events
# ===================================================================

class TestEvents:
    def test_append_and_read_roundtrip(self, repo, make_event):
        event = make_event(SLICE, pressure=True)
        repo.append_event(event)
        (got,) = repo.read_events()
        assert got == event

    def test_read_newest_first(self, repo, make_event):
        old, new = make_event(SLICE, days_ago=5), make_event(HOOK, days_ago=1)
        repo.append_event(old)
        repo.append_event(new)
        assert [e.id for e in repo.read_events()] == [new.id, old.id]

    def test_club_filter_case_insensitive(self, repo, make_event):
        repo.append_event(make_event(SLICE, club_id="Driver"))
        repo.append_event(make_event(HOOK, club_id="7-iron"))
        events = repo.read_events(club_id="driver")
        assert [e.club_id for e in events] == ["Driver"]

    def test_duplicate_id_raises_persistence_error(self, repo, make_event):
        event = make_event()
        repo.append_event(event)
        with pytest.raises(PersistenceError):
            repo.append_event(event)

    def test_closed_repository_raises(self, make_event):
        r = SQLiteMissRepository(":memory:")
        r.close()
        with pytest.raises(PersistenceError):
            r.append_event(make_event())

    def test_concurrent_writes(self, repo, make_event):
        def writer():
            for _ in range(20):
                repo.append_event(make_event())

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert repo.stats()["miss_events"] == 80


# ===================================================================
# 3. Store reads
# ===================================================================

class TestStoreWindow:
    def test_window_excludes_older_than_30_days(self, store, make_event, now):
        store.record_miss(make_event(SLICE, days_ago=31))
        store.record_miss(make_event(SLICE, days_ago=2))
        assert len(store.recent_events()) == 1

    def test_window_caps_shot_count(self, repo, make_event, now):
        small = MissPatternStore(repo, MemorySettings(window_shots=5), clock=lambda: now)
        for i in range(8):
            small.record_miss(make_event(SLICE, days_ago=i + 1))
        recent = small.recent_events()
        assert len(recent) == 5
        assert recent[0].timestamp == now - timedelta(days=1)

    def test_get_patterns_from_window(self, store, make_event):
        for _ in range(7):
            store.record_miss(make_event(SLICE))
        for _ in range(3):
            store.record_miss(make_event(STRAIGHT))
        (p,) = store.get_patterns()
        assert p.direction is SLICE
        assert p.frequency == 7

    def test_get_patterns_by_club(self, store, make_event):
        for _ in range(4):
            store.record_miss(make_event(HOOK, club_id="driver"))
            store.record_miss(make_event(SLICE, club_id="7-iron"))
        patterns = store.get_patterns(club_id="driver")
        assert [p.direction for p in patterns] == [HOOK]

    def test_dominant_pattern(self, store, make_event):
        assert store.get_dominant_pattern() is None
        for _ in range(3):
            store.record_miss(make_event(HOOK, days_ago=10))
        for _ in range(4):
            store.record_miss(make_event(SLICE, days_ago=1))
        assert store.get_dominant_pattern().direction is SLICE


# ===================================================================
# 4. Retention and clearing
# ===================================================================

class TestRetention:
    def test_enforce_retention_policy(self, store, repo, make_event):
        store.record_miss(make_event(SLICE, days_ago=91))
        store.record_miss(make_event(SLICE, days_ago=90))
        store.record_miss(make_event(SLICE, days_ago=10))
        assert store.enforce_retention_policy() == 1
        assert repo.stats()["miss_events"] == 2

    def test_clear_history(self, store, repo, make_event):
        for _ in range(5):
            store.record_miss(make_event(SLICE))
        store.refresh_patterns()
        assert store.clear_history() == 5
        assert repo.stats() == {"miss_events": 0, "miss_patterns": 0, "pattern_keys": 0}


# ===================================================================
# 5. Materialised patterns
# ===================================================================

class TestRefresh:
    def test_refresh_stores_patterns(self, store, make_event):
        for _ in range(5):
            store.record_miss(make_event(SLICE))
        refreshed = store.refresh_patterns()
        stored = store.stored_patterns()
        assert [p.id for p in stored] == [p.id for p in refreshed]
        assert stored[0].direction is SLICE

    def test_refresh_replaces_previous(self, store, make_event):
        for _ in range(5):
            store.record_miss(make_event(SLICE))
        store.refresh_patterns()
        store.clear_history()
        for _ in range(5):
            store.record_miss(make_event(HOOK))
        store.refresh_patterns()
        assert [p.direction for p in store.stored_patterns()] == [HOOK]

    def test_keys_are_independent(self, store, make_event):
        for _ in range(5):
            store.record_miss(make_event(SLICE, club_id="driver"))
        store.refresh_patterns(club_id="driver")
        assert store.stored_patterns() == []
        assert len(store.stored_patterns(club_id="driver")) == 1

    def test_stored_order_kept(self, store, make_event):
        for _ in range(4):
            store.record_miss(make_event(HOOK, days_ago=20))
            store.record_miss(make_event(SLICE, days_ago=1))
        store.refresh_patterns()
        assert [p.direction for p in store.stored_patterns()] == [SLICE, HOOK]

    def test_stored_confidence_decays_on_read(self, store, make_event, now):
        for _ in range(5):
            store.record_miss(make_event(SLICE))
        (refreshed,) = store.refresh_patterns()

        # last miss was one day before the refresh; 13 days later it is one half-life old
        (later,) = store.stored_patterns(now=now + timedelta(days=13))
        assert later.id == refreshed.id
        assert later.confidence == pytest.approx(refreshed.confidence * 0.5)

    def test_faded_stored_patterns_dropped(self, store, make_event, now):
        for _ in range(5):
            store.record_miss(make_event(SLICE))
        store.refresh_patterns()
        assert store.stored_patterns(now=now + timedelta(days=100)) == []


def test_infer_club_type():
    assert MissPatternStore.infer_club_type("7-iron") is ClubType.IRON
    assert MissPatternStore.infer_club_type("sw") is ClubType.WEDGE
    assert MissPatternStore.infer_club_type("Driver") is ClubType.DRIVER
    assert MissPatternStore.infer_club_type("3w") is ClubType.WOOD
    assert MissPatternStore.infer_club_type("") is None
