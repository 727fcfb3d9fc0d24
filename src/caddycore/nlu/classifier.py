# SPDX-License-Identifier: MIT
"""
Intent classification.

Two layers:

1. :class:`LLMIntentClassifier` sends normalized text plus session context
   to an OpenAI-compatible chat model and parses its JSON answer into an
   :class:`~caddycore.nlu.types.Intent`, validated by
   :class:`~caddycore.nlu.schemas.ClassifierOutput`.  Any transport or parse
   problem is raised as :class:`~caddycore.errors.ClassifierUnavailableError`.
2. :class:`IntentClassifier` applies the confidence gate

       confidence ≥ 0.75        → Route
       0.50 ≤ confidence < 0.75 → Confirm
       confidence < 0.50        → Clarify

   and, when the model is unreachable, slow, or unusable, falls back to the
   offline matcher exactly once.  The remote call is never retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from pydantic import ValidationError

from caddycore.config import ClassifierSettings
from caddycore.errors import (
    ClassifierResponseError,
    ClassifierTimeoutError,
    ClassifierUnavailableError,
)
from caddycore.llm.base import LLMClient, LLMClientError, LLMMessage, LLMTimeoutError
from caddycore.nlu.clarification import ClarificationGenerator, ClarificationTier
from caddycore.nlu.entities import extract_entities
from caddycore.nlu.offline import (
    OfflineClarify,
    OfflineIntentMatcher,
    OfflineMatch,
)
from caddycore.nlu.registry import (
    INTENT_SCHEMAS,
    get_schema,
    missing_required_entities,
    resolve_target,
)
from caddycore.nlu.schemas import extract_json_object, validate_classifier_output
from caddycore.nlu.types import (
    Clarify,
    ClassificationError,
    ClassificationVerdict,
    Confirm,
    EntityType,
    Intent,
    IntentType,
    Route,
)

if TYPE_CHECKING:
    from caddycore.conversation.context import SessionContext

logger = logging.getLogger(__name__)

__all__ = [
    "InputMode",
    "LLMIntentClassifier",
    "IntentClassifier",
    "ClassifierOutcome",
    "BLANK_INPUT_MESSAGE",
    "build_system_prompt",
]

BLANK_INPUT_MESSAGE = "Please say or type something."


class InputMode(str, Enum):
    TEXT = "text"
    VOICE = "voice"


# ============================================================================
# Prompt
# ============================================================================


def build_system_prompt() -> str:
    """System prompt listing every intent and entity slot."""
    intents = "\n".join(
        f"- {t.value}: {s.description}. Example: \"{s.example_phrases[0]}\""
        for t, s in INTENT_SCHEMAS.items()
    )
    entities = ", ".join(e.value for e in EntityType)
    return (
        "You classify golfers' requests for an on-course caddy app.\n"
        "\n"
        "Reply with ONLY a JSON object, nothing else:\n"
        '{"intent": "<intent>", "confidence": <0.0-1.0>, "entities": {"<entity>": <value>}}\n'
        "\n"
        "Use a low confidence when you are unsure. Omit entities you cannot find.\n"
        "\n"
        f"Intents:\n{intents}\n"
        "\n"
        f"Entities: {entities}\n"
        "- club: canonical name such as \"7-iron\", \"pitching wedge\", \"driver\"\n"
        "- yardage, hole_number (1-18), score, fatigue (1-10): integers\n"
        "- lie: one of tee, fairway, rough, bunker, green, fringe, hazard\n"
        "- pressure: true when the golfer asks about shots under pressure\n"
    )


SYSTEM_PROMPT = build_system_prompt()


# ============================================================================
# LLM layer
# ============================================================================


class LLMIntentClassifier:
    """Remote classification through an :class:`~caddycore.llm.base.LLMClient`.

    Example:
        classifier = LLMIntentClassifier(OpenAICompatibleClient())
        intent = classifier.classify("enter score for hole 5")
    """

    def __init__(self, client: LLMClient, settings: Optional[ClassifierSettings] = None):
        self.client = client
        self.settings = settings or ClassifierSettings()

    def build_messages(self, normalized_text: str, context_prompt: str = "") -> List[LLMMessage]:
        messages = [LLMMessage(role="system", content=SYSTEM_PROMPT)]
        if context_prompt:
            messages.append(LLMMessage(role="system", content=context_prompt))
        messages.append(LLMMessage(role="user", content=normalized_text))
        return messages

    def classify(
        self,
        normalized_text: str,
        raw_input: Optional[str] = None,
        context_prompt: str = "",
    ) -> Intent:
        """Blocking call to the model.

        Raises:
            ClassifierTimeoutError: The transport timed out
            ClassifierUnavailableError: The backend could not be reached
            ClassifierResponseError: The answer was not a usable intent
        """
        messages = self.build_messages(normalized_text, context_prompt)
        try:
            response = self.client.chat_detailed(
                messages,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
                response_format={"type": "json_object"},
            )
        except LLMTimeoutError as e:
            raise ClassifierTimeoutError(str(e)) from e
        except LLMClientError as e:
            raise ClassifierUnavailableError(str(e)) from e

        return self.parse_response(
            response.content,
            raw_input=raw_input if raw_input is not None else normalized_text,
            normalized_text=normalized_text,
        )

    @staticmethod
    def parse_response(content: str, *, raw_input: str, normalized_text: str) -> Intent:
        """Validate the model's answer into an :class:`Intent`.

        Raises:
            ClassifierResponseError: No JSON object, or it failed validation
        """
        data = extract_json_object(content)
        if data is None:
            raise ClassifierResponseError("classifier returned no JSON object")

        try:
            output = validate_classifier_output(data)
            entities = output.entities.to_entities()
        except ValidationError as e:
            raise ClassifierResponseError(f"invalid classifier output ({e.error_count()} errors)") from e
        except (TypeError, ValueError, OverflowError) as e:
            raise ClassifierResponseError(f"unusable entities: {e}") from e

        return Intent(
            intent_type=output.intent,
            confidence=output.confidence,
            entities=entities,
            raw_input=raw_input,
            normalized_input=normalized_text,
            source="llm",
        )

# ============================================================================
# Gate
# ============================================================================


@dataclass(frozen=True)
class ClassifierOutcome:
    """A verdict plus how it was reached.

    Attributes:
        verdict: Route / Confirm / Clarify / ClassificationError
        used_fallback: True when the offline matcher produced the verdict
        fallback_reason: "offline", "timeout", "unavailable", "bad_response"
    """

    verdict: ClassificationVerdict
    used_fallback: bool = False
    fallback_reason: Optional[str] = None


def _confirmation_message(intent: Intent) -> str:
    schema = get_schema(intent.intent_type)
    message = f"Did you want to {schema.display_name.lower()}?"
    details = []
    entities = intent.entities
    if entities.club:
        details.append(f"with {entities.club}")
    if entities.yardage:
        details.append(f"at {entities.yardage} yards")
    if entities.lie:
        details.append(f"from {entities.lie.value}")
    if details:
        message += f" ({', '.join(details)})"
    return message


def _missing_entities_message(intent_type: IntentType, missing: List[EntityType]) -> str:
    schema = get_schema(intent_type)
    names = ", ".join(e.value.replace("_", " ") for e in missing)
    return f"To {schema.description}, I need more information about: {names}"


class IntentClassifier:
    """Confidence gate with a single offline fallback.

    Args:
        llm: Remote classifier; ``None`` means always offline
        settings: Thresholds and per-mode timeouts
        offline_matcher: Keyword matcher used on fallback
        clarifier: Builds low-confidence suggestions
    """

    def __init__(
        self,
        llm: Optional[LLMIntentClassifier] = None,
        settings: Optional[ClassifierSettings] = None,
        offline_matcher: Optional[OfflineIntentMatcher] = None,
        clarifier: Optional[ClarificationGenerator] = None,
    ):
        self.llm = llm
        self.settings = settings or ClassifierSettings()
        self.offline_matcher = offline_matcher if offline_matcher is not None else OfflineIntentMatcher()
        self.clarifier = clarifier if clarifier is not None else ClarificationGenerator()

    def timeout_for(self, input_mode: InputMode) -> float:
        if InputMode(input_mode) is InputMode.VOICE:
            return self.settings.voice_timeout_seconds
        return self.settings.text_timeout_seconds

    async def classify(
        self,
        normalized_text: str,
        *,
        raw_input: Optional[str] = None,
        session: Optional["SessionContext"] = None,
        input_mode: InputMode = InputMode.TEXT,
        online: bool = True,
    ) -> ClassificationVerdict:
        outcome = await self.classify_detailed(
            normalized_text,
            raw_input=raw_input,
            session=session,
            input_mode=input_mode,
            online=online,
        )
        return outcome.verdict

    async def classify_detailed(
        self,
        normalized_text: str,
        *,
        raw_input: Optional[str] = None,
        session: Optional["SessionContext"] = None,
        input_mode: InputMode = InputMode.TEXT,
        online: bool = True,
    ) -> ClassifierOutcome:
        """Classify *normalized_text*.

        Args:
            normalized_text: Output of :func:`~caddycore.text.normalize.normalize_text`
            raw_input: Text as the user gave it (defaults to *normalized_text*)
            session: Optional :class:`~caddycore.conversation.context.SessionContext`
            input_mode: Selects the latency budget
            online: False skips the remote call entirely

        Returns:
            ClassifierOutcome; never raises for capability failures
        """
        raw = raw_input if raw_input is not None else normalized_text
        if not (normalized_text or "").strip():
            return ClassifierOutcome(ClassificationError(BLANK_INPUT_MESSAGE, raw))

        if not online or self.llm is None:
            return ClassifierOutcome(self.offline_verdict(normalized_text, raw), True, "offline")

        timeout = self.timeout_for(input_mode)
        context_prompt = ""
        if session is not None:
            context_prompt = session.build_context_prompt(max_turns=self.settings.history_turns)

        try:
            intent = await asyncio.wait_for(
                asyncio.to_thread(self.llm.classify, normalized_text, raw, context_prompt),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[classifier] no answer within %.1fs, using offline matcher", timeout)
            reason = "timeout"
        except ClassifierTimeoutError as e:
            logger.warning("[classifier] backend timed out (%s), using offline matcher", e)
            reason = "timeout"
        except ClassifierResponseError as e:
            logger.warning("[classifier] unusable answer (%s), using offline matcher", e)
            reason = "bad_response"
        except ClassifierUnavailableError as e:
            logger.warning("[classifier] backend unavailable (%s), using offline matcher", e)
            reason = "unavailable"
        else:
            return ClassifierOutcome(self.gate(intent))

        return ClassifierOutcome(self.offline_verdict(normalized_text, raw), True, reason)

    # ------------------------------------------------------------------------
    # Online
    # ------------------------------------------------------------------------

    def gate(self, intent: Intent) -> ClassificationVerdict:
        """Apply entity checks and the confidence tiers to an LLM intent."""
        intent = self._with_local_entities(intent)
        cfg = self.settings

        missing = missing_required_entities(intent.intent_type, intent.entities)
        if missing:
            logger.debug("[classifier] %s missing %s", intent.intent_type.value, [m.value for m in missing])
            return Clarify(
                message=_missing_entities_message(intent.intent_type, missing),
                suggestions=(intent.intent_type,),
                original_input=intent.raw_input,
                parsed_intent=intent,
            )

        target = resolve_target(intent.intent_type, intent.entities)
        if intent.confidence >= cfg.route_threshold:
            return Route(intent, target)
        if intent.confidence >= cfg.confirm_threshold:
            return Confirm(intent, _confirmation_message(intent), target)

        clarification = self.clarifier.generate(
            intent.normalized_input,
            tier=ClarificationTier.LOW_CONFIDENCE,
            parsed_intent=intent,
        )
        return Clarify(
            message=clarification.message,
            suggestions=clarification.intent_types,
            original_input=intent.raw_input,
            parsed_intent=intent,
        )

    @staticmethod
    def _with_local_entities(intent: Intent) -> Intent:
        local = extract_entities(intent.normalized_input)
        merged = intent.entities.merged_with(local)
        if merged == intent.entities:
            return intent
        return replace(intent, entities=merged)

    # ------------------------------------------------------------------------
    # Offline
    # ------------------------------------------------------------------------

    def offline_verdict(self, normalized_text: str, raw_input: str) -> ClassificationVerdict:
        """Map the offline matcher's result onto the verdict shapes."""
        result = self.offline_matcher.resolve(normalized_text, raw_input=raw_input)

        if isinstance(result, OfflineMatch):
            intent = result.intent
            missing = missing_required_entities(intent.intent_type, intent.entities)
            if missing:
                return Clarify(
                    message=_missing_entities_message(intent.intent_type, missing),
                    suggestions=(intent.intent_type,),
                    original_input=raw_input,
                    parsed_intent=intent,
                )
            return Route(intent, resolve_target(intent.intent_type, intent.entities))

        if isinstance(result, OfflineClarify):
            clarification = self.clarifier.generate(
                normalized_text,
                tier=ClarificationTier.OFFLINE,
                scored=result.candidates,
            )
            return Clarify(
                message=clarification.message,
                suggestions=clarification.intent_types,
                original_input=raw_input,
            )

        # OfflineRequiresOnline and OfflineNoMatch both carry a fixed explanation
        return ClassificationError(result.message, raw_input)
