"""Input normalization for caddy requests.

Raw typed or transcribed text is canonicalized before classification so the
LLM prompt and the offline keyword matcher both see the same vocabulary.

Steps, always in this order:
- Case folding and whitespace collapse
- Golf slang expansion ("7i" → "7-iron", "flat stick" → "putter")
- Spelled-out numbers to digits ("one fifty" → "150", "hole five" → "hole 5")
- Profanity masking ("damn" → "****")

Every step is a pure function returning ``(text, modifications)``.
:func:`normalize_text` never raises; empty input gives an empty result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

__all__ = [
    "ModificationType",
    "Modification",
    "NormalizeResult",
    "CLUB_ABBREVIATIONS",
    "COMMON_TERMS",
    "NUMBER_WORDS",
    "PROFANITY",
    "normalize_text",
]


class ModificationType(str, Enum):
    """Kinds of change the normalizer can make."""
    SLANG = "slang"
    NUMBER = "number"
    PROFANITY = "profanity"
    OTHER = "other"


@dataclass(frozen=True)
class Modification:
    """A single applied change."""
    kind: ModificationType
    before: str
    after: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.before!r} -> {self.after!r}"


@dataclass(frozen=True)
class NormalizeResult:
    """Result of input normalization."""
    original: str
    normalized: str
    modifications: Tuple[Modification, ...] = ()

    @property
    def applied_modifications(self) -> List[str]:
        """Modifications as display strings, in application order."""
        return [str(m) for m in self.modifications]

    @property
    def was_changed(self) -> bool:
        return bool(self.modifications)

    def has(self, kind: ModificationType) -> bool:
        return any(m.kind is kind for m in self.modifications)

    def to_dict(self) -> dict:
        return {
            "original": self.original,
            "normalized": self.normalized,
            "modifications": self.applied_modifications,
        }


# ─────────────────────────────────────────────────────────────────
# Dictionaries
# ─────────────────────────────────────────────────────────────────

CLUB_ABBREVIATIONS: Dict[str, str] = {
    **{f"{n}i": f"{n}-iron" for n in range(3, 10)},
    **{f"{n}w": f"{n}-wood" for n in (3, 5, 7)},
    **{f"{n}h": f"{n}-hybrid" for n in range(2, 6)},
    "pw": "pitching wedge",
    "gw": "gap wedge",
    "aw": "approach wedge",
    "sw": "sand wedge",
    "lw": "lob wedge",
    "d": "driver",
}

COMMON_TERMS: Dict[str, str] = {
    "the dance floor": "the green",
    "dance floor": "green",
    "putting surface": "green",
    "tin cup": "hole",
    "fairway metal": "fairway wood",
    "big stick": "driver",
    "big dog": "driver",
    "flat stick": "putter",
    "sand trap": "bunker",
    "sticks": "clubs",
    "stick": "club",
}

NUMBER_WORDS: Dict[str, int] = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19,
}

TENS_WORDS: Dict[str, int] = {
    "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50,
    "sixty": 60, "seventy": 70, "eighty": 80, "ninety": 90,
}

PROFANITY = frozenset({
    "fuck", "shit", "damn", "hell", "ass", "bitch",
    "crap", "piss", "bastard", "cock", "dick",
})

_WS = re.compile(r"\s+")

# Tokens bounded by anything that is not a word char or apostrophe, so "i'd"
# keeps its "d" and "7i" is matched as a whole token.
_TOKEN_EDGE_L = r"(?<![\w'])"
_TOKEN_EDGE_R = r"(?![\w'])"


def _alternation(words) -> str:
    # Longest first so "the dance floor" wins over "dance floor".
    return "|".join(re.escape(w) for w in sorted(words, key=lambda w: (-len(w), w)))


_SLANG_RE = re.compile(
    _TOKEN_EDGE_L + "(" + _alternation(list(CLUB_ABBREVIATIONS) + list(COMMON_TERMS)) + ")" + _TOKEN_EDGE_R
)

_UNIT = _alternation([w for w in NUMBER_WORDS if w != "zero"])
_TEN = _alternation(TENS_WORDS)
_TEEN = _alternation([w for w, n in NUMBER_WORDS.items() if 10 <= n <= 19])
_ANY = _alternation(list(NUMBER_WORDS) + list(TENS_WORDS))

# "one hundred (and) fifty (five)", "two hundred"
_HUNDREDS_RE = re.compile(
    rf"\b({_UNIT})\s+hundred(?:\s+and)?(?:\s+({_TEN})(?:\s+({_UNIT}))?|\s+({_UNIT}))?\b"
)
# "one fifty", "one twenty five", "one ten": golfer shorthand for 150 / 125 / 110
_SHORT_HUNDREDS_RE = re.compile(rf"\b(one|two)\s+(?:({_TEN})(?:\s+({_UNIT}))?|({_TEEN}))\b")
# "twenty five"
_TENS_UNITS_RE = re.compile(rf"\b({_TEN})\s+({_UNIT})\b")
# "seven iron", "three wood", "four hybrid"
_CLUB_NUMBER_RE = re.compile(rf"\b({_UNIT})[\s-]+(iron|wood|hybrid)s?\b")
_SINGLE_RE = re.compile(rf"\b({_ANY})\b")


# ─────────────────────────────────────────────────────────────────
# Steps
# ─────────────────────────────────────────────────────────────────


def _fold(text: str) -> Tuple[str, List[Modification]]:
    """Lower-case, straighten apostrophes, and collapse whitespace."""
    result = _WS.sub(" ", text.strip().lower()).replace("\u2019", "'")
    if result != text:
        return result, [Modification(ModificationType.OTHER, text, result)]
    return result, []


def _expand_slang(text: str) -> Tuple[str, List[Modification]]:
    """Replace club abbreviations and golf slang with canonical terms."""
    changes: List[Modification] = []

    def repl(m: re.Match) -> str:
        token = m.group(1)
        expanded = CLUB_ABBREVIATIONS.get(token) or COMMON_TERMS[token]
        changes.append(Modification(ModificationType.SLANG, token, expanded))
        return expanded

    return _SLANG_RE.sub(repl, text), changes


def _words_to_int(*words: str) -> int:
    total = 0
    for w in words:
        if w:
            total += NUMBER_WORDS.get(w) or TENS_WORDS.get(w, 0)
    return total


def _convert_numbers(text: str) -> Tuple[str, List[Modification]]:
    """Convert spelled-out numbers to digits, compound forms first."""
    changes: List[Modification] = []

    def record(m: re.Match, value: str) -> str:
        changes.append(Modification(ModificationType.NUMBER, m.group(0), value))
        return value

    def hundreds(m: re.Match) -> str:
        value = NUMBER_WORDS[m.group(1)] * 100 + _words_to_int(m.group(2), m.group(3), m.group(4))
        return record(m, str(value))

    def short_hundreds(m: re.Match) -> str:
        value = NUMBER_WORDS[m.group(1)] * 100 + _words_to_int(m.group(2), m.group(3), m.group(4))
        return record(m, str(value))

    def tens_units(m: re.Match) -> str:
        return record(m, str(_words_to_int(m.group(1), m.group(2))))

    def club_number(m: re.Match) -> str:
        return record(m, f"{NUMBER_WORDS[m.group(1)]}-{m.group(2)}")

    def single(m: re.Match) -> str:
        return record(m, str(_words_to_int(m.group(1))))

    result = _HUNDREDS_RE.sub(hundreds, text)
    result = _CLUB_NUMBER_RE.sub(club_number, result)
    result = _SHORT_HUNDREDS_RE.sub(short_hundreds, result)
    result = _TENS_UNITS_RE.sub(tens_units, result)
    result = _SINGLE_RE.sub(single, result)
    return result, changes


_PROFANITY_RE = re.compile(r"\b(" + _alternation(PROFANITY) + r")\b")


def _mask_profanity(text: str) -> Tuple[str, List[Modification]]:
    """Replace profane words with asterisks of the same length."""
    changes: List[Modification] = []

    def repl(m: re.Match) -> str:
        masked = "*" * len(m.group(1))
        changes.append(Modification(ModificationType.PROFANITY, m.group(1), masked))
        return masked

    return _PROFANITY_RE.sub(repl, text), changes


# ─────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────


def normalize_text(text: str) -> NormalizeResult:
    """Canonicalize raw caddy input.

    Args:
        text: Raw typed or transcribed text (``None`` is treated as empty)

    Returns:
        NormalizeResult with the normalized text and every applied change

    Example:
        >>> normalize_text("Damn, one fifty with my 7i").normalized
        '****, 150 with my 7-iron'
    """
    if not text or not text.strip():
        return NormalizeResult(original=text or "", normalized="")

    modifications: List[Modification] = []
    result = text
    for step in (_fold, _expand_slang, _convert_numbers, _mask_profanity):
        result, changes = step(result)
        modifications.extend(changes)

    return NormalizeResult(
        original=text,
        normalized=result,
        modifications=tuple(modifications),
    )
