"""
Routing orchestrator.

Turns a classification verdict into exactly one :data:`RoutingResult`:

- ``Route``               → prerequisites → :class:`Navigate` / :class:`PrerequisiteMissing`,
                            or :class:`NoNavigation` for inline-answer intents
- ``Confirm``             → prerequisites → :class:`ConfirmationRequired` / :class:`PrerequisiteMissing`
- ``Clarify``             → :class:`ConfirmationRequired` carrying the suggestions
- ``ClassificationError`` → :class:`NoNavigation` with the error message

Results depend only on the verdict and the prerequisite checker's answer;
:func:`serialize` gives byte-identical output for identical inputs.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from caddycore.nlu.types import (
    Clarify,
    ClassificationError,
    ClassificationVerdict,
    Confirm,
    Intent,
    IntentType,
    Route,
)
from caddycore.routing.prerequisites import (
    Prerequisite,
    PrerequisiteChecker,
    StaticPrerequisiteChecker,
    prerequisite_message,
    required_prerequisites,
)
from caddycore.routing.target import RoutingTarget, build_route

logger = logging.getLogger(__name__)

__all__ = [
    "Navigate",
    "NoNavigation",
    "ConfirmationRequired",
    "PrerequisiteMissing",
    "RoutingResult",
    "RoutingOrchestrator",
    "NO_NAVIGATION_RESPONSES",
    "serialize",
]


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class Navigate:
    target: RoutingTarget
    intent: Intent

    kind = "navigate"

    @property
    def route(self) -> str:
        return build_route(self.target)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "intent": self.intent.to_dict(), "target": self.target.to_dict()}


@dataclass(frozen=True)
class NoNavigation:
    intent: Intent
    response: str

    kind = "no_navigation"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "intent": self.intent.to_dict(), "response": self.response}


@dataclass(frozen=True)
class ConfirmationRequired:
    """Ask before acting.

    ``suggestions`` is non-empty when this comes from a clarification; then
    the user picks one of them instead of answering yes/no.
    """

    intent: Intent
    message: str
    target: Optional[RoutingTarget] = None
    suggestions: Tuple[IntentType, ...] = ()

    kind = "confirmation_required"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "intent": self.intent.to_dict(),
            "message": self.message,
            "target": self.target.to_dict() if self.target else None,
            "suggestions": [s.value for s in self.suggestions],
        }


@dataclass(frozen=True)
class PrerequisiteMissing:
    intent: Intent
    missing: Tuple[Prerequisite, ...]
    message: str

    kind = "prerequisite_missing"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "intent": self.intent.to_dict(),
            "missing": [p.value for p in self.missing],
            "message": self.message,
        }


RoutingResult = Union[Navigate, NoNavigation, ConfirmationRequired, PrerequisiteMissing]


def serialize(result: RoutingResult) -> str:
    """Canonical JSON form: sorted keys, no whitespace variance."""
    return json.dumps(result.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# ============================================================================
# Inline responses
# ============================================================================

NO_NAVIGATION_RESPONSES: Dict[IntentType, str] = {
    IntentType.PATTERN_QUERY: (
        "Let me check your miss patterns. Based on your recent shots, I'll give you insights."
    ),
    IntentType.HELP_REQUEST: (
        "I'm Bones, your digital caddy. Ask me about club selection, check your recovery, "
        "enter scores, or get coaching tips. What can I help you with?"
    ),
    IntentType.FEEDBACK: "Thanks for the feedback! I'm always learning to serve you better.",
}
_DEFAULT_RESPONSE = "I understand. Let me help you with that."


# ============================================================================
# Orchestrator
# ============================================================================


class RoutingOrchestrator:
    """Converts classification verdicts into routing decisions.

    Args:
        checker: Answers prerequisite questions; defaults to "everything
            satisfied"
    """

    def __init__(self, checker: Optional[PrerequisiteChecker] = None):
        self.checker = checker if checker is not None else StaticPrerequisiteChecker()

    def route(self, verdict: ClassificationVerdict) -> RoutingResult:
        if isinstance(verdict, Route):
            result = self._route(verdict.intent, verdict.target)
        elif isinstance(verdict, Confirm):
            result = self._confirm(verdict)
        elif isinstance(verdict, Clarify):
            result = ConfirmationRequired(
                intent=verdict.parsed_intent or Intent.placeholder(verdict.original_input),
                message=verdict.message,
                suggestions=tuple(verdict.suggestions),
            )
        elif isinstance(verdict, ClassificationError):
            result = NoNavigation(Intent.placeholder(verdict.original_input), verdict.message)
        else:
            raise TypeError(f"unsupported verdict: {type(verdict).__name__}")

        logger.debug("[router] %s -> %s", getattr(verdict, "kind", "?"), result.kind)
        return result

    def _route(self, intent: Intent, target: Optional[RoutingTarget]) -> RoutingResult:
        if target is None:
            return NoNavigation(intent, self.no_navigation_response(intent.intent_type))

        missing = self._missing(intent.intent_type)
        if missing:
            return PrerequisiteMissing(intent, missing, prerequisite_message(missing))
        return Navigate(target, intent)

    def _confirm(self, verdict: Confirm) -> RoutingResult:
        missing = self._missing(verdict.intent.intent_type)
        if missing:
            return PrerequisiteMissing(verdict.intent, missing, prerequisite_message(missing))
        return ConfirmationRequired(verdict.intent, verdict.message, target=verdict.target)

    def _missing(self, intent_type: IntentType) -> Tuple[Prerequisite, ...]:
        required = required_prerequisites(intent_type)
        if not required:
            return ()
        unmet = self.checker.check_all(list(required))
        # only report what was asked about, in declaration order
        return tuple(p for p in required if p in unmet)

    @staticmethod
    def no_navigation_response(intent_type: IntentType) -> str:
        return NO_NAVIGATION_RESPONSES.get(intent_type, _DEFAULT_RESPONSE)
