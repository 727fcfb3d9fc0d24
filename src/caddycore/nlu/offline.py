# SPDX-License-Identifier: MIT
"""
Offline intent matching.

Deterministic keyword scoring used when the remote classifier is
unreachable.  Each intent owns a small keyword table; an entry is a group of
interchangeable surface forms plus a weight.  An entry counts once if any of
its forms appears in the text (whole-word match), and

    score = matched weight / total weight of the intent's entries

so intents with a large vocabulary are not favoured.

Resolution tiers mirror the online Route / Confirm / Clarify gate:

- exactly one offline-capable intent ≥ strong (0.7)  → :class:`OfflineMatch`
- an online-only intent explains the text better     → :class:`OfflineRequiresOnline`
- best offline-capable intent ≥ weak (0.4)           → :class:`OfflineClarify`
- otherwise                                          → :class:`OfflineNoMatch`
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Union

from caddycore.config import OfflineSettings
from caddycore.nlu.entities import extract_entities
from caddycore.nlu.types import Intent, IntentType

logger = logging.getLogger(__name__)

__all__ = [
    "KeywordEntry",
    "DEFAULT_KEYWORDS",
    "OFFLINE_INTENTS",
    "ONLINE_ONLY_INTENTS",
    "OFFLINE_MODE_MESSAGE",
    "OfflineMatch",
    "OfflineClarify",
    "OfflineRequiresOnline",
    "OfflineNoMatch",
    "OfflineResult",
    "OfflineIntentMatcher",
    "limitation_message",
]

KeywordEntry = Tuple[Tuple[str, ...], float]

# ============================================================================
# Capability
# ============================================================================

OFFLINE_INTENTS: FrozenSet[IntentType] = frozenset({
    IntentType.SCORE_ENTRY,
    IntentType.STATS_LOOKUP,
    IntentType.EQUIPMENT_INFO,
    IntentType.ROUND_START,
    IntentType.ROUND_END,
    IntentType.SETTINGS_CHANGE,
    IntentType.HELP_REQUEST,
    IntentType.CLUB_ADJUSTMENT,
    IntentType.PATTERN_QUERY,
})

ONLINE_ONLY_INTENTS: FrozenSet[IntentType] = frozenset(IntentType) - OFFLINE_INTENTS

OFFLINE_MODE_MESSAGE = (
    "You're offline. I can help with scores, stats, equipment, and settings. "
    "Full features will be back when you reconnect."
)

_LIMITATIONS: Dict[IntentType, str] = {
    IntentType.SHOT_RECOMMENDATION: "Shot recommendations need an internet connection. Try checking your stats or equipment instead.",
    IntentType.RECOVERY_CHECK: "Recovery insights need an internet connection. Check back when you're online.",
    IntentType.READINESS_CHECK: "Readiness insights need an internet connection. Check back when you're online.",
    IntentType.DRILL_REQUEST: "Personalized drills need an internet connection. Check your patterns in the meantime.",
    IntentType.WEATHER_CHECK: "Weather data needs an internet connection. I can't check conditions offline.",
    IntentType.COURSE_INFO: "Course information needs an internet connection. Try looking at your saved rounds instead.",
    IntentType.FEEDBACK: "Feedback submission needs an internet connection. Please send it again when you're back online.",
}
_DEFAULT_LIMITATION = (
    "This feature needs an internet connection. "
    "You can still enter scores, check stats, or view your equipment."
)


def limitation_message(intent_type: IntentType) -> str:
    """Fixed explanation of why *intent_type* is unavailable offline."""
    return _LIMITATIONS.get(intent_type, _DEFAULT_LIMITATION)


# ============================================================================
# Keyword tables
# ============================================================================
#
# Three tiers per intent: distinctive terms (12), supporting context (5),
# phrasing cues (3).  One distinctive hit plus either support tier clears
# the strong threshold; a distinctive hit alone lands in clarify.

_CORE, _CONTEXT, _CUE = 12.0, 5.0, 3.0


def _kw(core: Sequence[str], context: Sequence[str] = (), cue: Sequence[str] = ()) -> Tuple[KeywordEntry, ...]:
    entries = [(tuple(core), _CORE)]
    if context:
        entries.append((tuple(context), _CONTEXT))
    if cue:
        entries.append((tuple(cue), _CUE))
    return tuple(entries)


DEFAULT_KEYWORDS: Dict[IntentType, Tuple[KeywordEntry, ...]] = {
    IntentType.CLUB_ADJUSTMENT: _kw(
        ["adjust", "adjustment", "recalibrate", "feels long", "feels short",
         "flying long", "flying short", "going long", "going short", "yardage"],
        ["iron", "wood", "hybrid", "wedge", "driver", "club"],
        ["update", "change", "today"],
    ),
    IntentType.RECOVERY_CHECK: _kw(
        ["recovery", "recovered", "hrv", "sleep"],
        ["how's my", "check my", "status", "feeling"],
        ["today", "looking"],
    ),
    IntentType.SHOT_RECOMMENDATION: _kw(
        ["what club", "which club", "what should i hit", "what's the play",
         "shot advice", "recommend a shot", "approach shot", "what to hit"],
        ["yards", "into the wind", "rough", "tee shot", "from the"],
        ["should i", "play"],
    ),
    IntentType.SCORE_ENTRY: _kw(
        ["score", "birdie", "par", "bogey", "double bogey", "eagle", "strokes"],
        ["hole", "this hole", "last hole"],
        ["enter", "mark", "record", "update", "put down", "got", "made", "log"],
    ),
    IntentType.PATTERN_QUERY: _kw(
        ["miss pattern", "miss patterns", "pattern", "patterns", "tendency",
         "tendencies", "common miss", "do i slice", "do i hook"],
        ["slice", "hook", "push", "pull", "miss", "under pressure"],
        ["lately", "usually", "always"],
    ),
    IntentType.DRILL_REQUEST: _kw(
        ["drill", "drills", "practice", "exercise"],
        ["fix", "putting", "chipping", "slice", "for my"],
        ["give me", "recommend", "show me"],
    ),
    IntentType.WEATHER_CHECK: _kw(
        ["weather", "forecast", "rain", "temperature", "wind", "windy"],
        ["today", "looking like", "conditions"],
        ["check", "how's", "is it"],
    ),
    IntentType.STATS_LOOKUP: _kw(
        ["stats", "statistics", "average", "percentage", "handicap",
         "fairways hit", "greens in regulation"],
        ["how am i doing", "performance", "fairways", "putts"],
        ["show", "what's"],
    ),
    IntentType.ROUND_START: _kw(
        ["start a round", "start a new round", "new round", "begin round",
         "start round", "tee off", "starting a round"],
        ["playing at", "course"],
        ["let's", "start", "begin"],
    ),
    IntentType.ROUND_END: _kw(
        ["end round", "end the round", "end my round", "finish this round",
         "finish the round", "done playing", "round summary", "complete this round"],
        ["round", "summary"],
        ["finish", "end", "done", "complete"],
    ),
    IntentType.EQUIPMENT_INFO: _kw(
        ["bag", "equipment", "gear", "specs", "club specs"],
        ["in my bag", "my clubs", "club distances", "what's in", "using"],
        ["show", "tell me about", "what's"],
    ),
    IntentType.COURSE_INFO: _kw(
        ["course", "layout", "course information", "hole details"],
        ["this hole", "hole"],
        ["tell me about", "show", "what's"],
    ),
    IntentType.SETTINGS_CHANGE: _kw(
        ["settings", "setting", "preferences", "notifications", "units", "metric"],
        ["change", "update", "turn on", "turn off", "open"],
        ["app"],
    ),
    IntentType.HELP_REQUEST: _kw(
        ["help", "what can you do", "how do i use", "instructions"],
        ["help me", "i need help", "can you", "how do i"],
        ["please"],
    ),
    IntentType.FEEDBACK: _kw(
        ["feedback", "bug", "report a problem", "suggestion"],
        ["send", "report", "i have", "i found"],
        ["app"],
    ),
    IntentType.BAILOUT_QUERY: _kw(
        ["bailout", "bail out", "safe miss", "safe side", "safe area", "where should i miss"],
        ["miss", "this hole", "this shot"],
        ["where", "where's"],
    ),
    IntentType.READINESS_CHECK: _kw(
        ["readiness", "ready to play", "how ready", "take it easy"],
        ["today", "score"],
        ["am i", "should i"],
    ),
}


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class OfflineMatch:
    intent: Intent

    kind = "match"


@dataclass(frozen=True)
class OfflineClarify:
    message: str
    candidates: Tuple[Tuple[IntentType, float], ...]

    kind = "clarify"

    @property
    def suggestions(self) -> Tuple[IntentType, ...]:
        return tuple(t for t, _ in self.candidates)


@dataclass(frozen=True)
class OfflineRequiresOnline:
    intent_type: IntentType
    score: float
    message: str

    kind = "requires_online"


@dataclass(frozen=True)
class OfflineNoMatch:
    message: str

    kind = "no_match"


OfflineResult = Union[OfflineMatch, OfflineClarify, OfflineRequiresOnline, OfflineNoMatch]

CLARIFY_MESSAGE = "I'm offline and need a bit more clarity. Did you mean:"
NO_MATCH_MESSAGE = "I'm offline and didn't understand that. " + OFFLINE_MODE_MESSAGE


# ============================================================================
# Matcher
# ============================================================================


def _compile(term: str) -> re.Pattern:
    return re.compile(r"(?<![\w'])" + re.escape(term.lower()) + r"(?![\w'])")


class OfflineIntentMatcher:
    """Keyword-scoring intent matcher.

    Args:
        settings: Strong / weak tiers
        keywords: Keyword table; defaults to :data:`DEFAULT_KEYWORDS`
        offline_intents: Intents that can run without a network
    """

    def __init__(
        self,
        settings: Optional[OfflineSettings] = None,
        keywords: Optional[Mapping[IntentType, Sequence[KeywordEntry]]] = None,
        offline_intents: FrozenSet[IntentType] = OFFLINE_INTENTS,
    ):
        self.settings = settings or OfflineSettings()
        self.offline_intents = offline_intents
        table = DEFAULT_KEYWORDS if keywords is None else keywords
        self._table: List[Tuple[IntentType, List[Tuple[List[re.Pattern], float]], float]] = []
        for intent_type, entries in table.items():
            compiled = [([_compile(t) for t in terms], float(w)) for terms, w in entries if w > 0]
            total = sum(w for _, w in compiled)
            if total > 0:
                self._table.append((intent_type, compiled, total))

    def score(self, intent_type: IntentType, text: str) -> float:
        for candidate, entries, total in self._table:
            if candidate is intent_type:
                return self._score(entries, total, text.lower())
        return 0.0

    @staticmethod
    def _score(entries: List[Tuple[List[re.Pattern], float]], total: float, text: str) -> float:
        matched = sum(w for patterns, w in entries if any(p.search(text) for p in patterns))
        return matched / total

    def match(self, normalized_text: str) -> List[Tuple[IntentType, float]]:
        """Score every intent; non-zero results sorted by score desc.

        Ties keep intent declaration order, so output is deterministic.
        """
        text = (normalized_text or "").lower()
        if not text.strip():
            return []
        scored = [
            (intent_type, self._score(entries, total, text))
            for intent_type, entries, total in self._table
        ]
        ranked = [(t, s) for t, s in scored if s > 0.0]
        ranked.sort(key=lambda ts: -ts[1])
        return ranked

    def resolve(self, normalized_text: str, *, raw_input: Optional[str] = None) -> OfflineResult:
        """Turn keyword scores into an offline verdict."""
        cfg = self.settings
        ranked = self.match(normalized_text)
        offline = [(t, s) for t, s in ranked if t in self.offline_intents]
        online = [(t, s) for t, s in ranked if t not in self.offline_intents]

        strong = [(t, s) for t, s in offline if s >= cfg.strong_threshold]
        best_offline = offline[0][1] if offline else 0.0

        if len(strong) == 1:
            intent_type, score = strong[0]
            logger.debug("[offline] strong match %s (%.2f)", intent_type.value, score)
            return OfflineMatch(
                Intent(
                    intent_type=intent_type,
                    confidence=score,
                    entities=extract_entities(normalized_text),
                    raw_input=raw_input if raw_input is not None else normalized_text,
                    normalized_input=normalized_text,
                    source="offline",
                )
            )

        if online and online[0][1] >= cfg.weak_threshold and online[0][1] > best_offline:
            intent_type, score = online[0]
            logger.debug("[offline] %s needs network (%.2f)", intent_type.value, score)
            return OfflineRequiresOnline(intent_type, score, limitation_message(intent_type))

        if best_offline >= cfg.weak_threshold:
            top = tuple(offline[: cfg.max_suggestions])
            logger.debug("[offline] clarify among %s", [t.value for t, _ in top])
            return OfflineClarify(CLARIFY_MESSAGE, top)

        logger.debug("[offline] no match for %r", normalized_text)
        return OfflineNoMatch(NO_MATCH_MESSAGE)
