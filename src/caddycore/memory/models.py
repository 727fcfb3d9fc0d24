"""Shot-memory data models.

Defines the structures behind the miss-pattern store:

- :class:`MissEvent`: one recorded miss (append-only)
- :class:`MissPattern`: aggregated, decayed tendency derived from events
- :class:`PressureContext`: whether a shot was played under pressure
- enums for miss direction, lie, and club type
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from caddycore.errors import ContractViolationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MissDirection(str, Enum):
    """Where a shot finished relative to the target line."""

    PUSH = "push"
    PULL = "pull"
    SLICE = "slice"
    HOOK = "hook"
    FAT = "fat"
    THIN = "thin"
    STRAIGHT = "straight"


class Lie(str, Enum):
    TEE = "tee"
    FAIRWAY = "fairway"
    ROUGH = "rough"
    BUNKER = "bunker"
    GREEN = "green"
    FRINGE = "fringe"
    HAZARD = "hazard"


class ClubType(str, Enum):
    DRIVER = "driver"
    WOOD = "wood"
    HYBRID = "hybrid"
    IRON = "iron"
    WEDGE = "wedge"
    PUTTER = "putter"


_WEDGE_RE = re.compile(r"\b(wedge|pw|gw|aw|sw|lw)\b")


def infer_club_type(club_id: str) -> Optional[ClubType]:
    """Best-effort club type from a club id such as ``"7-iron"`` or ``"sw"``."""
    name = (club_id or "").strip().lower()
    if not name:
        return None
    if "driver" in name or name == "d":
        return ClubType.DRIVER
    if "putter" in name:
        return ClubType.PUTTER
    if _WEDGE_RE.search(name):
        return ClubType.WEDGE
    if "hybrid" in name or re.fullmatch(r"\d+h", name):
        return ClubType.HYBRID
    if "wood" in name or re.fullmatch(r"\d+w", name):
        return ClubType.WOOD
    if "iron" in name or re.fullmatch(r"\d+i", name):
        return ClubType.IRON
    return None


@dataclass(frozen=True)
class PressureContext:
    """Pressure tagging for a shot.

    A shot counts as pressured when the user tagged it or the app inferred
    it (e.g. from the scoring situation).
    """

    is_user_tagged: bool = False
    is_inferred: bool = False
    scoring_context: Optional[str] = None

    @property
    def has_pressure(self) -> bool:
        return self.is_user_tagged or self.is_inferred

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_user_tagged": self.is_user_tagged,
            "is_inferred": self.is_inferred,
            "scoring_context": self.scoring_context,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PressureContext":
        data = data or {}
        return cls(
            is_user_tagged=bool(data.get("is_user_tagged", False)),
            is_inferred=bool(data.get("is_inferred", False)),
            scoring_context=data.get("scoring_context"),
        )


@dataclass(frozen=True)
class MissEvent:
    """A single recorded miss.

    Attributes
    ----------
    id:
        Unique identifier (UUID).
    timestamp:
        When the shot was played (timezone-aware).
    club_id:
        Club identifier, e.g. ``"7-iron"``.
    direction:
        Miss direction; ``STRAIGHT`` is stored but never forms a pattern.
    lie:
        Lie the shot was played from.
    pressure:
        Pressure tagging.
    hole_number:
        Optional hole 1–18.
    notes:
        Free-form notes.
    """

    timestamp: datetime
    club_id: str
    direction: MissDirection
    lie: Lie = Lie.FAIRWAY
    pressure: PressureContext = field(default_factory=PressureContext)
    hole_number: Optional[int] = None
    notes: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if self.timestamp.tzinfo is None:
            raise ContractViolationError("MissEvent.timestamp must be timezone-aware")
        if self.hole_number is not None and not 1 <= self.hole_number <= 18:
            raise ContractViolationError(f"hole_number must be 1-18, got {self.hole_number}")
        if isinstance(self.direction, str):
            object.__setattr__(self, "direction", MissDirection(self.direction))
        if isinstance(self.lie, str):
            object.__setattr__(self, "lie", Lie(self.lie))

    @property
    def club_type(self) -> Optional[ClubType]:
        return infer_club_type(self.club_id)


@dataclass(frozen=True)
class MissPattern:
    """An aggregated miss tendency.

    Derived from :class:`MissEvent` rows and only ever replaced by a fresh
    aggregation, never edited.

    Attributes
    ----------
    direction:
        The recurring miss direction.
    frequency:
        Number of qualifying events behind the pattern.
    confidence:
        Decayed confidence in ``[0, 1]``.
    last_occurrence:
        Timestamp of the most recent contributing event.
    club_id:
        Set when the pattern was aggregated for a single club.
    pressure:
        Set when the pattern was aggregated for a pressure filter.
    share:
        Fraction of the filtered shots that went this direction.
    """

    direction: MissDirection
    frequency: int
    confidence: float
    last_occurrence: datetime
    club_id: Optional[str] = None
    pressure: Optional[bool] = None
    share: float = 0.0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ContractViolationError(f"confidence must be within [0, 1], got {self.confidence}")
        if self.frequency < 0:
            raise ContractViolationError("frequency must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "direction": self.direction.value,
            "frequency": self.frequency,
            "confidence": round(self.confidence, 6),
            "share": round(self.share, 6),
            "last_occurrence": self.last_occurrence.isoformat(),
            "club_id": self.club_id,
            "pressure": self.pressure,
        }
