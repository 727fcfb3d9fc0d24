"""Tests for session context.

Covers:
- Bounded FIFO history and capacity validation
- Round state transitions and validation
- Context prompt, summary and hints
- Thread safety under concurrent appends
"""

from __future__ import annotations

import threading

import pytest

from caddycore.conversation.context import (
    ConversationTurn,
    Role,
    RoundState,
    SessionContext,
)
from caddycore.errors import ContractViolationError
from caddycore.memory.models import MissDirection


# =============================================================================
# History
# =============================================================================

class TestHistory:
    def test_default_capacity(self):
        assert SessionContext().capacity == 10

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_invalid_capacity(self, capacity):
        with pytest.raises(ContractViolationError):
            SessionContext(capacity=capacity)

    def test_oldest_evicted_first(self):
        ctx = SessionContext(capacity=3)
        for i in range(5):
            ctx.add_user_turn(f"turn {i}")
        assert [t.content for t in ctx.turns()] == ["turn 2", "turn 3", "turn 4"]
        assert len(ctx) == 3

    def test_recent(self):
        ctx = SessionContext()
        for i in range(4):
            ctx.add_user_turn(str(i))
        assert [t.content for t in ctx.recent(2)] == ["2", "3"]
        assert ctx.recent(0) == []

    def test_last_user_input(self):
        ctx = SessionContext()
        assert ctx.last_user_input() is None
        ctx.add_user_turn("what's in my bag")
        ctx.add_assistant_turn("Opening Equipment Info.")
        assert ctx.last_user_input() == "what's in my bag"

    def test_turn_roles(self):
        assert ConversationTurn.user("hi").role is Role.USER
        assert ConversationTurn.assistant("hello").role is Role.ASSISTANT

    def test_clear_history_keeps_round(self):
        ctx = SessionContext()
        ctx.start_round(RoundState(course_name="Pebble Beach"))
        ctx.add_user_turn("hi")
        ctx.clear_history()
        assert len(ctx) == 0
        assert ctx.round is not None

    def test_concurrent_appends(self):
        ctx = SessionContext(capacity=10)

        def writer(n):
            for i in range(200):
                ctx.add_user_turn(f"{n}-{i}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(ctx) == 10
        assert len(ctx.turns()) == 10

    def test_add_exchange(self):
        ctx = SessionContext()
        ctx.add_exchange("  what's in my bag  ", "Opening Equipment Info.")
        ctx.add_exchange("   ", "Please say or type something.")
        assert [(t.role, t.content) for t in ctx.turns()] == [
            (Role.USER, "what's in my bag"),
            (Role.ASSISTANT, "Opening Equipment Info."),
            (Role.ASSISTANT, "Please say or type something."),
        ]

    def test_concurrent_exchanges_stay_paired(self):
        ctx = SessionContext(capacity=10)

        def writer(n):
            for i in range(200):
                ctx.add_exchange(f"{n}-{i}", f"reply {n}-{i}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        turns = ctx.turns()
        assert len(turns) == 10
        for user, assistant in zip(turns[::2], turns[1::2]):
            assert user.role is Role.USER
            assert assistant.role is Role.ASSISTANT
            assert assistant.content == f"reply {user.content}"


# =============================================================================
# Round state
# =============================================================================

class TestRound:
    def test_start_and_update(self):
        ctx = SessionContext()
        ctx.start_round(RoundState(course_name="Pebble Beach", current_hole=6))
        updated = ctx.update_hole(7, par=3)
        assert ctx.current_hole == 7
        assert updated.current_par == 3
        assert updated.course_name == "Pebble Beach"

    def test_update_without_round(self):
        with pytest.raises(ContractViolationError):
            SessionContext().update_hole(3)

    def test_end_round(self):
        ctx = SessionContext()
        ctx.start_round(RoundState(course_name="Pebble Beach"))
        finished = ctx.end_round()
        assert finished.course_name == "Pebble Beach"
        assert ctx.round is None
        assert ctx.end_round() is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"current_hole": 0},
            {"current_hole": 19},
            {"current_par": 6},
            {"holes_completed": 19},
            {"total_score": -1},
        ],
    )
    def test_invalid_round_state(self, kwargs):
        with pytest.raises(ContractViolationError):
            RoundState(course_name="X", **kwargs)

    def test_clear_resets_everything(self, make_event):
        ctx = SessionContext()
        ctx.start_round(RoundState(course_name="Pebble Beach"))
        ctx.record_shot(make_event())
        ctx.set_recommendation("Aim left edge")
        ctx.add_user_turn("hi")
        ctx.clear()
        assert ctx.is_empty()


# =============================================================================
# Views
# =============================================================================

class TestViews:
    def test_empty_prompt(self):
        assert SessionContext().build_context_prompt() == ""

    def test_prompt_sections(self, make_event):
        ctx = SessionContext()
        ctx.start_round(RoundState(course_name="Pebble Beach", current_hole=7, current_par=3))
        ctx.record_shot(make_event(MissDirection.PUSH, club_id="7-iron", pressure=True))
        ctx.set_recommendation("Club up, aim at the center")
        ctx.add_user_turn("what's the play")
        ctx.add_assistant_turn("Opening Shot Recommendation.")

        prompt = ctx.build_context_prompt()
        assert prompt.startswith("## Current Context\n\n")
        assert "- Course: Pebble Beach" in prompt
        assert "- Hole: 7 (par 3)" in prompt
        assert "- Club: 7-iron" in prompt
        assert "- Miss: push" in prompt
        assert "- Under pressure" in prompt
        assert "Club up, aim at the center" in prompt
        assert "- User: what's the play" in prompt
        assert "- Assistant: Opening Shot Recommendation." in prompt

    def test_prompt_max_turns(self):
        ctx = SessionContext()
        for i in range(5):
            ctx.add_user_turn(f"message {i}")
        prompt = ctx.build_context_prompt(max_turns=2)
        assert "message 4" in prompt
        assert "message 2" not in prompt
        assert ctx.build_context_prompt(max_turns=0) == ""

    def test_summary(self, make_event):
        ctx = SessionContext()
        assert ctx.summary() == "No active session"
        ctx.start_round(RoundState(course_name="Pebble Beach", current_hole=7))
        ctx.record_shot(make_event(club_id="7-iron"))
        assert ctx.summary() == "Pebble Beach • Hole 7 • Last: 7-iron"

    def test_context_hints(self, make_event):
        ctx = SessionContext()
        ctx.start_round(RoundState(course_name="Pebble Beach", current_hole=4))
        ctx.record_shot(make_event(MissDirection.HOOK, club_id="driver"))
        hints = ctx.context_hints()
        assert hints == {
            "last_club": "driver",
            "last_miss": "hook",
            "last_lie": "fairway",
            "current_hole": "4",
            "course": "Pebble Beach",
        }

    def test_to_dict(self):
        ctx = SessionContext(capacity=4, session_id="s-1")
        ctx.add_user_turn("hi")
        d = ctx.to_dict()
        assert d["session_id"] == "s-1"
        assert d["capacity"] == 4
        assert d["turns"][0]["role"] == "user"
        assert d["round"] is None
