# SPDX-License-Identifier: MIT
"""
Clarification generation.

When confidence is too low to act, the caddy asks the user to pick from at
most three alternative intents.  Wording is fixed per tier and suggestion
order is fully deterministic:

1. The parsed intent, if its confidence is at least 0.30
2. Candidates scored by whichever matcher ran, best first
3. Intents whose example phrases share words with the input
4. Keyword-group fallbacks ("tired" suggests recovery, "bag" equipment, ...)
5. Fixed defaults
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from caddycore.nlu.offline import CLARIFY_MESSAGE as OFFLINE_CLARIFY_MESSAGE
from caddycore.nlu.registry import INTENT_SCHEMAS, get_schema
from caddycore.nlu.types import Intent, IntentType

__all__ = [
    "ClarificationTier",
    "IntentSuggestion",
    "ClarificationResponse",
    "ClarificationGenerator",
    "TIER_MESSAGES",
]


# ============================================================================
# Types
# ============================================================================


class ClarificationTier(str, Enum):
    """Why clarification is being asked for."""

    LOW_CONFIDENCE = "low_confidence"
    OFFLINE = "offline"


TIER_MESSAGES: Dict[ClarificationTier, str] = {
    ClarificationTier.LOW_CONFIDENCE: "I'm not quite sure what you need. Did you mean:",
    ClarificationTier.OFFLINE: OFFLINE_CLARIFY_MESSAGE,
}


@dataclass(frozen=True)
class IntentSuggestion:
    """A selectable chip."""

    intent_type: IntentType
    label: str
    description: str

    @classmethod
    def for_intent(cls, intent_type: IntentType) -> "IntentSuggestion":
        schema = get_schema(intent_type)
        return cls(intent_type, schema.chip_label, schema.description)

    def to_dict(self) -> dict:
        return {
            "intent": self.intent_type.value,
            "label": self.label,
            "description": self.description,
        }


@dataclass(frozen=True)
class ClarificationResponse:
    message: str
    suggestions: Tuple[IntentSuggestion, ...]
    original_input: str

    @property
    def intent_types(self) -> Tuple[IntentType, ...]:
        return tuple(s.intent_type for s in self.suggestions)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "suggestions": [s.to_dict() for s in self.suggestions],
        }


# ============================================================================
# Fallback tables
# ============================================================================

DEFAULT_SUGGESTIONS: Tuple[IntentType, ...] = (
    IntentType.SHOT_RECOMMENDATION,
    IntentType.HELP_REQUEST,
    IntentType.CLUB_ADJUSTMENT,
)

# First group with a hit wins.
_FALLBACK_GROUPS: Tuple[Tuple[Tuple[str, ...], Tuple[IntentType, ...]], ...] = (
    (("feel", "pain", "sore", "tired", "ready"),
     (IntentType.RECOVERY_CHECK, IntentType.PATTERN_QUERY, IntentType.STATS_LOOKUP)),
    (("off", "wrong", "bad", "problem", "issue", "fix"),
     (IntentType.CLUB_ADJUSTMENT, IntentType.PATTERN_QUERY, IntentType.DRILL_REQUEST)),
    (("what", "should", "help", "advice", "recommend"),
     (IntentType.SHOT_RECOMMENDATION, IntentType.HELP_REQUEST, IntentType.DRILL_REQUEST)),
    (("club", "bag", "equipment", "distance", "yardage"),
     (IntentType.CLUB_ADJUSTMENT, IntentType.EQUIPMENT_INFO, IntentType.STATS_LOOKUP)),
    (("score", "round", "play", "game", "hole"),
     (IntentType.SCORE_ENTRY, IntentType.ROUND_START, IntentType.STATS_LOOKUP)),
)
_GENERAL_FALLBACK = (IntentType.SHOT_RECOMMENDATION, IntentType.HELP_REQUEST, IntentType.STATS_LOOKUP)

_MIN_PARSED_CONFIDENCE = 0.30
_MIN_WORD_LENGTH = 4


def _example_words(intent_type: IntentType) -> Tuple[str, ...]:
    words = []
    for phrase in INTENT_SCHEMAS[intent_type].example_phrases:
        for word in phrase.lower().split():
            word = word.strip("?,.!\"")
            if len(word) >= _MIN_WORD_LENGTH and word not in words:
                words.append(word)
    return tuple(words)


_EXAMPLE_WORDS: Dict[IntentType, Tuple[str, ...]] = {t: _example_words(t) for t in IntentType}


# ============================================================================
# Generator
# ============================================================================


class ClarificationGenerator:
    """Builds ``{message, suggestions}`` for low-confidence input.

    Args:
        max_suggestions: Upper bound on chips (default 3)
    """

    def __init__(self, max_suggestions: int = 3):
        self.max_suggestions = max_suggestions

    def generate(
        self,
        normalized_input: str,
        *,
        tier: ClarificationTier = ClarificationTier.LOW_CONFIDENCE,
        parsed_intent: Optional[Intent] = None,
        scored: Sequence[Tuple[IntentType, float]] = (),
    ) -> ClarificationResponse:
        """Produce a clarification for *normalized_input*.

        Args:
            normalized_input: Text after normalization
            tier: Selects the fixed message
            parsed_intent: Low-confidence classifier output, if any
            scored: ``(intent, score)`` candidates from the matcher that ran

        Returns:
            ClarificationResponse with 1 to ``max_suggestions`` distinct chips
        """
        picks = self.suggest(normalized_input, parsed_intent=parsed_intent, scored=scored)
        return ClarificationResponse(
            message=TIER_MESSAGES[tier],
            suggestions=tuple(IntentSuggestion.for_intent(t) for t in picks),
            original_input=normalized_input,
        )

    def suggest(
        self,
        normalized_input: str,
        *,
        parsed_intent: Optional[Intent] = None,
        scored: Sequence[Tuple[IntentType, float]] = (),
    ) -> List[IntentType]:
        text = (normalized_input or "").lower()
        picks: List[IntentType] = []

        def take(candidates) -> None:
            for intent_type in candidates:
                if len(picks) >= self.max_suggestions:
                    return
                if intent_type not in picks:
                    picks.append(intent_type)

        if parsed_intent is not None and parsed_intent.confidence >= _MIN_PARSED_CONFIDENCE:
            take([parsed_intent.intent_type])
        take(t for t, s in sorted(scored, key=lambda ts: -ts[1]) if s > 0.0)
        take(self._example_matches(text))
        take(self._fallbacks(text))
        take(DEFAULT_SUGGESTIONS)
        return picks

    @staticmethod
    def _example_matches(text: str) -> List[IntentType]:
        if not text:
            return []
        hits = []
        for intent_type in IntentType:
            count = sum(1 for word in _EXAMPLE_WORDS[intent_type] if word in text)
            if count:
                hits.append((intent_type, count))
        # stable: ties keep declaration order
        hits.sort(key=lambda ic: -ic[1])
        return [t for t, _ in hits]

    @staticmethod
    def _fallbacks(text: str) -> Tuple[IntentType, ...]:
        for keywords, intents in _FALLBACK_GROUPS:
            if any(k in text for k in keywords):
                return intents
        return _GENERAL_FALLBACK
