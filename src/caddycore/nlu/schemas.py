# SPDX-License-Identifier: MIT
"""Pydantic schemas for classifier output.

The model is asked for one JSON object:

    {"intent": "score_entry", "confidence": 0.9, "entities": {"hole_number": 5}}

Key features:
- Intent enum enforcement (lenient on case and separators)
- Confidence bounded to [0, 1], non-finite values rejected
- Entity values coerced to their slot types; non-finite numbers rejected
- Unknown fields ignored
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from caddycore.memory.models import Lie
from caddycore.nlu.types import ExtractedEntities, IntentType

logger = logging.getLogger(__name__)

__all__ = [
    "ClassifierEntities",
    "ClassifierOutput",
    "extract_json_object",
    "validate_classifier_output",
]


class ClassifierEntities(BaseModel):
    """Entity slots as the model reports them.

    Unparseable values become ``None``; a non-finite number fails validation.
    Range checks (hole 1-18, positive yardage) stay with
    :class:`~caddycore.nlu.types.ExtractedEntities`.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

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

    @model_validator(mode="before")
    @classmethod
    def accept_hole_alias(cls, data: Any) -> Any:
        """Models often answer ``"hole"`` instead of ``"hole_number"``."""
        if isinstance(data, dict) and "hole" in data and "hole_number" not in data:
            data = {**data, "hole_number": data["hole"]}
        return data

    @field_validator("yardage", "fatigue", "hole_number", "score", mode="before")
    @classmethod
    def coerce_number(cls, v: Any) -> Optional[int]:
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, str):
            try:
                v = float(v.strip())
            except ValueError:
                return None
        if isinstance(v, float):
            if not math.isfinite(v):
                raise ValueError("number must be finite")
            return int(v)
        if isinstance(v, int):
            return v
        return None

    @field_validator("club", "wind", "pain", "score_context", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        if v is None or isinstance(v, (dict, list, bool)):
            return None
        return str(v).strip() or None

    @field_validator("lie", mode="before")
    @classmethod
    def coerce_lie(cls, v: Any) -> Optional[Lie]:
        if v is None or isinstance(v, Lie):
            return v
        try:
            return Lie(str(v).strip().lower())
        except ValueError:
            return None

    @field_validator("pressure", mode="before")
    @classmethod
    def coerce_pressure(cls, v: Any) -> Optional[bool]:
        if isinstance(v, bool):
            return v
        if isinstance(v, str) and v.strip().lower() in ("true", "yes"):
            return True
        if isinstance(v, str) and v.strip().lower() in ("false", "no"):
            return False
        return None

    def to_entities(self) -> ExtractedEntities:
        return ExtractedEntities(**self.model_dump())


class ClassifierOutput(BaseModel):
    """Strict schema for one classifier answer."""

    model_config = ConfigDict(extra="ignore")

    intent: IntentType = Field(..., description="One of the caddy intents")
    confidence: float = Field(..., ge=0.0, le=1.0, allow_inf_nan=False, description="Confidence (0.0-1.0)")
    entities: ClassifierEntities = Field(default_factory=ClassifierEntities)

    @field_validator("intent", mode="before")
    @classmethod
    def parse_intent(cls, v: Any) -> IntentType:
        intent_type = IntentType.parse(v)
        if intent_type is None:
            raise ValueError(f"unknown intent {v!r}")
        return intent_type

    @field_validator("entities", mode="before")
    @classmethod
    def entities_object(cls, v: Any) -> Any:
        """Anything but an object means "no entities"."""
        return v if isinstance(v, (dict, ClassifierEntities)) else {}


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Pull the first JSON object out of LLM output (handles markdown, extra text)."""
    text = (text or "").strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*|\s*```$", "", text)
    try:
        data = json.loads(text)
        return data if isinstance(data, dict) else None
    except json.JSONDecodeError:
        pass

    patterns = [
        r"\{[^{}]*\{[^{}]*\}[^{}]*\}",  # one nested object ("entities")
        r"\{[^{}]*\}",
    ]
    for pattern in patterns:
        for match in re.findall(pattern, text, re.DOTALL):
            try:
                data = json.loads(match)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                logger.debug("[schemas] extracted JSON object from surrounding text")
                return data
    return None


def validate_classifier_output(data: Dict[str, Any]) -> ClassifierOutput:
    """Validate a decoded classifier answer.

    Raises:
        ValidationError: If validation fails
    """
    return ClassifierOutput.model_validate(data)
