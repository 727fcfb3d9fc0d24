# SPDX-License-Identifier: MIT
"""
Deterministic entity extraction.

Runs on *normalized* text (see :mod:`caddycore.text.normalize`), so clubs
are already canonical ("7-iron", "pitching wedge") and numbers are digits.
Used by the offline matcher and to fill gaps the LLM left.
"""

from __future__ import annotations

import re
from typing import Optional

from caddycore.memory.models import Lie
from caddycore.nlu.types import ExtractedEntities

__all__ = ["extract_entities"]

_HOLE = re.compile(r"\bhole\s*(?:#|number\s+|no\.?\s*)?(\d{1,2})\b")
_YARDAGE_UNIT = re.compile(r"\b(\d{1,3})\s*(?:yards?|yds?)\b")
_YARDAGE_BARE = re.compile(r"(?<![\w-])(\d{3})(?![\w-])")
_CLUB = re.compile(
    r"\b(\d-(?:iron|wood|hybrid)|(?:pitching|gap|approach|sand|lob) wedge|driver|putter)\b"
)
_SCORE = re.compile(r"\b(?:made|got|scored|shot|had|took|carded)\s+(?:a\s+)?(\d{1,2})\b(?!\s*(?:yards?|yds?|-))")
_SCORE_CONTEXT = re.compile(r"\b(double bogey|triple bogey|bogey|par|birdie|eagle|albatross)\b")
_FATIGUE = re.compile(r"\b(?:fatigue|tired(?:ness)?|energy)\s*(?:is|at|of|level)?\s*(\d{1,2})\b")
_PAIN = re.compile(r"\b(?:my\s+)?(back|knee|wrist|elbow|shoulder|hip|neck)\s+(?:hurts|is sore|is stiff|aches)\b")
_PRESSURE = re.compile(r"\b(?:pressure|clutch|when it counts)\b")

_LIE_PATTERNS = (
    (re.compile(r"\b(?:bunker|sand)\b"), Lie.BUNKER),
    (re.compile(r"\brough\b"), Lie.ROUGH),
    (re.compile(r"\bfringe\b"), Lie.FRINGE),
    (re.compile(r"\bhazard\b"), Lie.HAZARD),
    (re.compile(r"\b(?:from|in|on) the fairway\b"), Lie.FAIRWAY),
    (re.compile(r"\b(?:off|from) the tee\b"), Lie.TEE),
    (re.compile(r"\bon the green\b"), Lie.GREEN),
)

_WIND_PATTERNS = (
    (re.compile(r"\b(?:into the wind|headwind)\b"), "headwind"),
    (re.compile(r"\b(?:downwind|with the wind|tailwind|wind at my back)\b"), "tailwind"),
    (re.compile(r"\b(?:crosswind|cross wind)\b"), "crosswind"),
)


def _first_int(pattern: re.Pattern, text: str) -> Optional[int]:
    m = pattern.search(text)
    return int(m.group(1)) if m else None


def _lie(text: str) -> Optional[Lie]:
    # "sand wedge" is a club, not a lie
    scrubbed = text.replace("sand wedge", "")
    for pattern, lie in _LIE_PATTERNS:
        if pattern.search(scrubbed):
            return lie
    return None


def _wind(text: str) -> Optional[str]:
    for pattern, label in _WIND_PATTERNS:
        if pattern.search(text):
            return label
    return None


def extract_entities(normalized_text: str) -> ExtractedEntities:
    """Best-effort entity extraction from normalized text."""
    text = (normalized_text or "").lower()
    if not text.strip():
        return ExtractedEntities()

    hole = _first_int(_HOLE, text)
    without_hole = _HOLE.sub(" ", text)

    yardage = _first_int(_YARDAGE_UNIT, without_hole)
    if yardage is None:
        yardage = _first_int(_YARDAGE_BARE, without_hole)

    club = _CLUB.search(text)
    score_context = _SCORE_CONTEXT.search(text)
    pain = _PAIN.search(text)

    return ExtractedEntities(
        club=club.group(1) if club else None,
        yardage=yardage,
        lie=_lie(text),
        wind=_wind(text),
        fatigue=_first_int(_FATIGUE, text),
        pain=pain.group(1) if pain else None,
        score_context=score_context.group(1) if score_context else None,
        hole_number=hole,
        score=_first_int(_SCORE, without_hole),
        pressure=True if _PRESSURE.search(text) else None,
    )
