"""
Session context for the caddy pipeline.

Maintains per-session conversation history and round state:
- ConversationTurn for each utterance
- Bounded FIFO history (oldest evicted first)
- Current round, hole, last shot and last recommendation
- Prompt/summary/hints builders for the classifier and the CLI

All mutation goes through one ``threading.Lock`` so rapid successive inputs
(e.g. two voice utterances) cannot corrupt the buffer.
"""

from __future__ import annotations

import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from caddycore.errors import ContractViolationError
from caddycore.memory.models import MissEvent, utcnow

__all__ = [
    "Role",
    "ConversationTurn",
    "RoundState",
    "SessionContext",
    "DEFAULT_HISTORY_CAPACITY",
]

DEFAULT_HISTORY_CAPACITY = 10


# =============================================================================
# Turns
# =============================================================================


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationTurn:
    """One utterance in the session."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def user(cls, content: str, timestamp: Optional[datetime] = None) -> "ConversationTurn":
        return cls(Role.USER, content, timestamp or utcnow())

    @classmethod
    def assistant(cls, content: str, timestamp: Optional[datetime] = None) -> "ConversationTurn":
        return cls(Role.ASSISTANT, content, timestamp or utcnow())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


# =============================================================================
# Round state
# =============================================================================


@dataclass(frozen=True)
class RoundState:
    """The round currently being played.

    Attributes:
        round_id: Unique round id
        course_name: Course being played
        current_hole: Hole 1-18
        current_par: Par 3-5
        total_score: Strokes over completed holes
        holes_completed: 0-18
    """

    course_name: str
    current_hole: int = 1
    current_par: int = 4
    total_score: int = 0
    holes_completed: int = 0
    round_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if not 1 <= self.current_hole <= 18:
            raise ContractViolationError("current_hole must be between 1 and 18")
        if not 3 <= self.current_par <= 5:
            raise ContractViolationError("current_par must be between 3 and 5")
        if not 0 <= self.holes_completed <= 18:
            raise ContractViolationError("holes_completed must be between 0 and 18")
        if self.total_score < 0:
            raise ContractViolationError("total_score must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_id": self.round_id,
            "course_name": self.course_name,
            "current_hole": self.current_hole,
            "current_par": self.current_par,
            "total_score": self.total_score,
            "holes_completed": self.holes_completed,
        }


# =============================================================================
# Session Context
# =============================================================================


class SessionContext:
    """
    Bounded conversation history plus round pointers for one user session.

    Features:
    - Ring buffer of turns, capacity fixed at construction
    - Round/hole/last-shot tracking
    - Context prompt for the classifier
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY, session_id: Optional[str] = None):
        if capacity < 1:
            raise ContractViolationError("capacity must be at least 1")
        self._capacity = capacity
        self._session_id = session_id or str(uuid.uuid4())
        self._turns: Deque[ConversationTurn] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._round: Optional[RoundState] = None
        self._last_shot: Optional[MissEvent] = None
        self._last_recommendation: Optional[str] = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._turns)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def add_turn(self, turn: ConversationTurn) -> None:
        """Append *turn*, evicting the oldest when full."""
        with self._lock:
            self._turns.append(turn)

    def add_user_turn(self, content: str) -> ConversationTurn:
        turn = ConversationTurn.user(content)
        self.add_turn(turn)
        return turn

    def add_assistant_turn(self, content: str) -> ConversationTurn:
        turn = ConversationTurn.assistant(content)
        self.add_turn(turn)
        return turn

    def add_exchange(self, user_content: Optional[str], assistant_content: str) -> None:
        """Append a user turn and the reply to it under one lock.

        The pair stays adjacent even when several callers share the session.
        A blank *user_content* records the reply alone.
        """
        batch = []
        if user_content and user_content.strip():
            batch.append(ConversationTurn.user(user_content.strip()))
        batch.append(ConversationTurn.assistant(assistant_content))
        with self._lock:
            self._turns.extend(batch)

    def turns(self) -> List[ConversationTurn]:
        """Snapshot of the history, oldest first."""
        with self._lock:
            return list(self._turns)

    def recent(self, n: int) -> List[ConversationTurn]:
        """The *n* most recent turns, oldest first."""
        if n <= 0:
            return []
        with self._lock:
            return list(self._turns)[-n:]

    def last_user_input(self) -> Optional[str]:
        with self._lock:
            for turn in reversed(self._turns):
                if turn.role is Role.USER:
                    return turn.content
        return None

    def clear_history(self) -> None:
        with self._lock:
            self._turns.clear()

    # -------------------------------------------------------------------------
    # Round
    # -------------------------------------------------------------------------

    @property
    def round(self) -> Optional[RoundState]:
        with self._lock:
            return self._round

    @property
    def current_hole(self) -> Optional[int]:
        with self._lock:
            return self._round.current_hole if self._round else None

    @property
    def last_shot(self) -> Optional[MissEvent]:
        with self._lock:
            return self._last_shot

    @property
    def last_recommendation(self) -> Optional[str]:
        with self._lock:
            return self._last_recommendation

    def start_round(self, round_state: RoundState) -> None:
        with self._lock:
            self._round = round_state
            self._last_shot = None
            self._last_recommendation = None

    def update_hole(self, hole: int, par: Optional[int] = None) -> RoundState:
        """Move the active round to *hole*; raises if no round is active."""
        with self._lock:
            if self._round is None:
                raise ContractViolationError("no active round")
            current = self._round
            self._round = RoundState(
                course_name=current.course_name,
                current_hole=hole,
                current_par=par if par is not None else current.current_par,
                total_score=current.total_score,
                holes_completed=current.holes_completed,
                round_id=current.round_id,
            )
            return self._round

    def end_round(self) -> Optional[RoundState]:
        with self._lock:
            finished, self._round = self._round, None
            return finished

    def record_shot(self, shot: MissEvent) -> None:
        with self._lock:
            self._last_shot = shot

    def set_recommendation(self, text: Optional[str]) -> None:
        with self._lock:
            self._last_recommendation = text

    def clear(self) -> None:
        """Reset history and round state."""
        with self._lock:
            self._turns.clear()
            self._round = None
            self._last_shot = None
            self._last_recommendation = None

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def is_empty(self) -> bool:
        with self._lock:
            return (
                not self._turns
                and self._round is None
                and self._last_shot is None
                and self._last_recommendation is None
            )

    def build_context_prompt(self, max_turns: Optional[int] = None) -> str:
        """Markdown-ish context block for the classifier prompt; "" when empty."""
        with self._lock:
            round_state = self._round
            shot = self._last_shot
            recommendation = self._last_recommendation
            turns = list(self._turns)
        if max_turns is not None:
            turns = turns[-max_turns:] if max_turns > 0 else []

        sections: List[str] = []
        if round_state is not None:
            sections.append(
                "Round:\n"
                f"- Course: {round_state.course_name}\n"
                f"- Hole: {round_state.current_hole} (par {round_state.current_par})\n"
                f"- Holes completed: {round_state.holes_completed}"
            )
        if shot is not None:
            lines = [
                "Last shot:",
                f"- Club: {shot.club_id}",
                f"- Miss: {shot.direction.value}",
                f"- Lie: {shot.lie.value}",
            ]
            if shot.pressure.has_pressure:
                lines.append("- Under pressure")
            if shot.notes:
                lines.append(f"- Notes: {shot.notes}")
            sections.append("\n".join(lines))
        if recommendation:
            sections.append(f"Last recommendation:\n{recommendation}")
        if turns:
            history = "\n".join(
                f"- {'User' if t.role is Role.USER else 'Assistant'}: {t.content}" for t in turns
            )
            sections.append(f"Recent conversation:\n{history}")

        if not sections:
            return ""
        return "## Current Context\n\n" + "\n\n".join(sections)

    def summary(self) -> str:
        """One-line summary, e.g. "Pebble Beach • Hole 7 • Last: 7-iron"."""
        with self._lock:
            round_state = self._round
            shot = self._last_shot
        parts = []
        if round_state is not None:
            parts.append(round_state.course_name)
            parts.append(f"Hole {round_state.current_hole}")
        if shot is not None:
            parts.append(f"Last: {shot.club_id}")
        return " • ".join(parts) if parts else "No active session"

    def context_hints(self) -> Dict[str, str]:
        """Flat key/value hints for entity defaults."""
        with self._lock:
            round_state = self._round
            shot = self._last_shot
            recommendation = self._last_recommendation
        hints: Dict[str, str] = {}
        if shot is not None:
            hints["last_club"] = shot.club_id
            hints["last_miss"] = shot.direction.value
            hints["last_lie"] = shot.lie.value
        if round_state is not None:
            hints["current_hole"] = str(round_state.current_hole)
            hints["course"] = round_state.course_name
        if recommendation:
            hints["last_recommendation"] = recommendation
        return hints

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "session_id": self._session_id,
                "capacity": self._capacity,
                "turns": [t.to_dict() for t in self._turns],
                "round": self._round.to_dict() if self._round else None,
            }
