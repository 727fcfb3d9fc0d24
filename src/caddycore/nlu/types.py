# SPDX-License-Identifier: MIT
"""
NLU type definitions.

This module contains the data structures shared by the classifier, the
offline matcher, and the routing orchestrator:
- IntentType: The closed set of caddy intents
- ExtractedEntities: Sparse, sanitized entities pulled from user input
- Intent: The immutable output of classification
- ClassificationVerdict: Route / Confirm / Clarify / ClassificationError
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from caddycore.errors import ContractViolationError
from caddycore.memory.models import Lie
from caddycore.routing.target import RoutingTarget


# ============================================================================
# Enums
# ============================================================================


class IntentType(str, Enum):
    """Everything the caddy knows how to do."""

    CLUB_ADJUSTMENT = "club_adjustment"
    RECOVERY_CHECK = "recovery_check"
    SHOT_RECOMMENDATION = "shot_recommendation"
    SCORE_ENTRY = "score_entry"
    PATTERN_QUERY = "pattern_query"
    DRILL_REQUEST = "drill_request"
    WEATHER_CHECK = "weather_check"
    STATS_LOOKUP = "stats_lookup"
    ROUND_START = "round_start"
    ROUND_END = "round_end"
    EQUIPMENT_INFO = "equipment_info"
    COURSE_INFO = "course_info"
    SETTINGS_CHANGE = "settings_change"
    HELP_REQUEST = "help_request"
    FEEDBACK = "feedback"
    BAILOUT_QUERY = "bailout_query"
    READINESS_CHECK = "readiness_check"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> Optional["IntentType"]:
        """Lenient lookup by value or name; ``None`` if unknown."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            return None


class EntityType(str, Enum):
    """Entity slots the caddy extracts."""

    CLUB = "club"
    YARDAGE = "yardage"
    LIE = "lie"
    WIND = "wind"
    FATIGUE = "fatigue"
    PAIN = "pain"
    SCORE_CONTEXT = "score_context"
    HOLE_NUMBER = "hole_number"
    SCORE = "score"
    PRESSURE = "pressure"


# ============================================================================
# Entities
# ============================================================================


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_flag(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _to_lie(value: Any) -> Optional[Lie]:
    if value is None:
        return None
    if isinstance(value, Lie):
        return value
    try:
        return Lie(str(value).strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class ExtractedEntities:
    """Sparse entities pulled from an utterance.

    Extraction is best-effort; absent values are simply ``None``.  Values are
    sanitized on construction:

    - ``yardage`` must be positive, otherwise dropped
    - ``fatigue`` is clamped to 1–10
    - ``hole_number`` must be 1–18, otherwise dropped
    - ``score`` (strokes) must be positive, otherwise dropped

    Attributes:
        club: Canonical club name, e.g. "7-iron"
        yardage: Distance to target in yards
        lie: Lie of the ball
        wind: Free-text wind description
        fatigue: Self-reported fatigue 1–10
        pain: Free-text pain description
        score_context: Scoring situation, e.g. "birdie putt"
        hole_number: Hole 1–18
        score: Strokes on a hole
        pressure: True when the golfer asks about pressure shots
    """

    club: Optional[str] = None
    yardage: Optional[int] = None
    lie: Optional[Lie] = None
    wind: Optional[str] = None
    fatigue: Optional[int] = None
    pain: Optional[str] = None
    score_context: Optional[str] = None
    hole_number: Optional[int] = None
    score: Optional[int] = None
    pressure: Optional[bool] = None

    def __post_init__(self) -> None:
        yardage = _to_int(self.yardage)
        fatigue = _to_int(self.fatigue)
        hole = _to_int(self.hole_number)
        score = _to_int(self.score)
        object.__setattr__(self, "club", _to_text(self.club))
        object.__setattr__(self, "yardage", yardage if yardage and yardage > 0 else None)
        object.__setattr__(self, "lie", _to_lie(self.lie))
        object.__setattr__(self, "wind", _to_text(self.wind))
        object.__setattr__(self, "fatigue", None if fatigue is None else max(1, min(10, fatigue)))
        object.__setattr__(self, "pain", _to_text(self.pain))
        object.__setattr__(self, "score_context", _to_text(self.score_context))
        object.__setattr__(self, "hole_number", hole if hole is not None and 1 <= hole <= 18 else None)
        object.__setattr__(self, "score", score if score and score > 0 else None)
        object.__setattr__(self, "pressure", _to_flag(self.pressure))

    def get(self, entity: EntityType) -> Any:
        return getattr(self, entity.value)

    def has(self, entity: EntityType) -> bool:
        return self.get(entity) is not None

    @property
    def is_empty(self) -> bool:
        return not self.to_dict()

    def merged_with(self, fallback: "ExtractedEntities") -> "ExtractedEntities":
        """Fill this instance's gaps from *fallback*."""
        values = {e.value: self.get(e) if self.has(e) else fallback.get(e) for e in EntityType}
        return ExtractedEntities(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Present values only, keys sorted, enums as values."""
        out: Dict[str, Any] = {}
        for entity in sorted(EntityType, key=lambda e: e.value):
            value = self.get(entity)
            if value is None:
                continue
            out[entity.value] = value.value if isinstance(value, Enum) else value
        return out


# ============================================================================
# Intent
# ============================================================================


@dataclass(frozen=True)
class Intent:
    """A classified user goal.

    Immutable once produced by the classifier or the offline matcher.

    Attributes:
        intent_type: The recognised intent
        confidence: Classification certainty in [0, 1]
        entities: Extracted entities
        raw_input: Text exactly as the user gave it
        normalized_input: Text after normalization
        source: "llm", "offline", or "placeholder"
        id: Unique id
    """

    intent_type: IntentType
    confidence: float
    entities: ExtractedEntities = field(default_factory=ExtractedEntities)
    raw_input: str = ""
    normalized_input: str = ""
    source: str = "llm"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ContractViolationError(f"confidence must be within [0, 1], got {self.confidence}")

    @classmethod
    def placeholder(cls, raw_input: str) -> "Intent":
        """Stand-in intent for verdicts that carry no classified intent.

        The id is derived from the input so repeated calls are identical.
        """
        return cls(
            intent_type=IntentType.HELP_REQUEST,
            confidence=0.0,
            raw_input=raw_input,
            normalized_input=raw_input,
            source="placeholder",
            id=f"placeholder-{uuid.uuid5(uuid.NAMESPACE_URL, raw_input)}",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "intent": self.intent_type.value,
            "confidence": round(self.confidence, 6),
            "entities": self.entities.to_dict(),
            "raw_input": self.raw_input,
            "normalized_input": self.normalized_input,
            "source": self.source,
        }


# ============================================================================
# Classification verdicts
# ============================================================================


@dataclass(frozen=True)
class Route:
    """Confident enough to act.  ``target`` is None for no-navigation intents."""
    intent: Intent
    target: Optional[RoutingTarget] = None

    kind = "route"


@dataclass(frozen=True)
class Confirm:
    """Mid confidence: ask a yes/no question before acting."""
    intent: Intent
    message: str
    target: Optional[RoutingTarget] = None

    kind = "confirm"


@dataclass(frozen=True)
class Clarify:
    """Low confidence: offer up to three alternatives."""
    message: str
    suggestions: Tuple[IntentType, ...]
    original_input: str
    parsed_intent: Optional[Intent] = None

    kind = "clarify"


@dataclass(frozen=True)
class ClassificationError:
    """Input could not be classified at all (e.g. blank)."""
    message: str
    original_input: str

    kind = "error"


ClassificationVerdict = Union[Route, Confirm, Clarify, ClassificationError]


def verdict_to_dict(verdict: ClassificationVerdict) -> Dict[str, Any]:
    """Stable dict form used by the CLI and the decision log."""
    if isinstance(verdict, Route):
        return {
            "verdict": verdict.kind,
            "intent": verdict.intent.to_dict(),
            "target": verdict.target.to_dict() if verdict.target else None,
        }
    if isinstance(verdict, Confirm):
        return {"verdict": verdict.kind, "intent": verdict.intent.to_dict(), "message": verdict.message}
    if isinstance(verdict, Clarify):
        return {
            "verdict": verdict.kind,
            "message": verdict.message,
            "suggestions": [s.value for s in verdict.suggestions],
        }
    return {"verdict": verdict.kind, "message": verdict.message}
