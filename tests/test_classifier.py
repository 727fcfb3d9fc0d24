"""Tests for the intent classifier and its confidence gate.

Covers:
- Route / Confirm / Clarify tier boundaries (0.75 / 0.50)
- Required entities and local entity merging
- Per-mode latency budgets and the single offline fallback
- Backend errors and unusable answers
- LLM response parsing
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from caddycore.config import ClassifierSettings, OfflineSettings
from caddycore.conversation.context import RoundState, SessionContext
from caddycore.errors import ClassifierResponseError, ClassifierTimeoutError, ClassifierUnavailableError
from caddycore.llm.base import LLMConnectionError, LLMTimeoutError
from caddycore.nlu.classifier import (
    BLANK_INPUT_MESSAGE,
    SYSTEM_PROMPT,
    InputMode,
    IntentClassifier,
    LLMIntentClassifier,
)
from caddycore.nlu.clarification import TIER_MESSAGES, ClarificationTier
from caddycore.nlu.offline import CLARIFY_MESSAGE, OfflineIntentMatcher, limitation_message
from caddycore.nlu.types import Clarify, ClassificationError, Confirm, EntityType, IntentType, Route
from caddycore.routing.target import build_route

FAST = ClassifierSettings(text_timeout_seconds=0.05, voice_timeout_seconds=1.0)


def _answer(intent, confidence, **entities):
    return {"intent": intent, "confidence": confidence, "entities": entities}


def _classifier(client, settings=FAST, **kwargs):
    return IntentClassifier(LLMIntentClassifier(client, settings), settings, **kwargs)


# ============================================================================
# Confidence tiers
# ============================================================================

class TestConfidenceGate:
    async def test_route_at_threshold(self, fake_llm):
        c = _classifier(fake_llm(_answer("equipment_info", 0.75)))
        verdict = await c.classify("what's in my bag")
        assert isinstance(verdict, Route)
        assert verdict.intent.intent_type is IntentType.EQUIPMENT_INFO
        assert build_route(verdict.target) == "settings/equipment"

    async def test_just_below_route_confirms(self, fake_llm):
        c = _classifier(fake_llm(_answer("equipment_info", 0.74)))
        verdict = await c.classify("what's in my bag")
        assert isinstance(verdict, Confirm)
        assert verdict.message == "Did you want to equipment info?"

    async def test_confirm_at_threshold(self, fake_llm):
        c = _classifier(fake_llm(_answer("equipment_info", 0.50)))
        assert isinstance(await c.classify("what's in my bag"), Confirm)

    async def test_below_confirm_clarifies(self, fake_llm):
        c = _classifier(fake_llm(_answer("equipment_info", 0.49)))
        verdict = await c.classify("what's in my bag")
        assert isinstance(verdict, Clarify)
        assert verdict.message == TIER_MESSAGES[ClarificationTier.LOW_CONFIDENCE]
        assert verdict.suggestions[0] is IntentType.EQUIPMENT_INFO
        assert 1 <= len(verdict.suggestions) <= 3
        assert verdict.parsed_intent.confidence == pytest.approx(0.49)

    async def test_custom_thresholds(self, fake_llm):
        settings = ClassifierSettings(route_threshold=0.9, confirm_threshold=0.6)
        c = _classifier(fake_llm(_answer("equipment_info", 0.8)), settings)
        assert isinstance(await c.classify("what's in my bag"), Confirm)

    async def test_confirmation_lists_entities(self, fake_llm):
        c = _classifier(fake_llm(_answer("club_adjustment", 0.6, club="7-iron")))
        verdict = await c.classify("my 7-iron feels long")
        assert isinstance(verdict, Confirm)
        assert verdict.message == "Did you want to club adjustment? (with 7-iron)"
        assert build_route(verdict.target) == "caddy/club_adjustment?club=7-iron"


# ============================================================================
# Entities
# ============================================================================

class TestEntities:
    async def test_local_entities_fill_gaps(self, fake_llm):
        c = _classifier(fake_llm(_answer("score_entry", 0.9)))
        verdict = await c.classify("enter score for hole 5")
        assert isinstance(verdict, Route)
        assert verdict.intent.entities.hole_number == 5
        assert build_route(verdict.target) == "caddy/score_entry?hole=5"

    async def test_model_entities_win(self, fake_llm):
        c = _classifier(fake_llm(_answer("score_entry", 0.9, hole_number=7)))
        verdict = await c.classify("enter score for hole 5")
        assert verdict.intent.entities.hole_number == 7

    async def test_missing_required_entity_clarifies(self, fake_llm):
        c = _classifier(fake_llm(_answer("club_adjustment", 0.95)))
        verdict = await c.classify("adjust my yardage")
        assert isinstance(verdict, Clarify)
        assert verdict.suggestions == (IntentType.CLUB_ADJUSTMENT,)
        assert verdict.message == (
            "To adjust club distances or yardage expectations, I need more information about: club"
        )

    async def test_invalid_model_entities_dropped(self, fake_llm):
        c = _classifier(fake_llm(_answer("score_entry", 0.9, hole_number=42, yardage=-10)))
        verdict = await c.classify("enter my score")
        assert not verdict.intent.entities.has(EntityType.HOLE_NUMBER)
        assert not verdict.intent.entities.has(EntityType.YARDAGE)


# ============================================================================
# Fallback
# ============================================================================

class TestFallback:
    async def test_timeout_falls_back_once(self, fake_llm):
        client = fake_llm(_answer("equipment_info", 0.9), delay=0.3)
        outcome = await _classifier(client).classify_detailed("what's in my bag")
        assert outcome.used_fallback is True
        assert outcome.fallback_reason == "timeout"
        assert isinstance(outcome.verdict, Route)
        assert outcome.verdict.intent.source == "offline"
        assert len(client.calls) == 1

    async def test_voice_gets_longer_budget(self, fake_llm):
        client = fake_llm(_answer("equipment_info", 0.9), delay=0.3)
        outcome = await _classifier(client).classify_detailed(
            "what's in my bag", input_mode=InputMode.VOICE
        )
        assert outcome.used_fallback is False
        assert outcome.verdict.intent.source == "llm"

    def test_default_budgets(self):
        c = IntentClassifier()
        assert c.timeout_for(InputMode.TEXT) == 3.0
        assert c.timeout_for(InputMode.VOICE) == 4.5
        assert c.timeout_for("voice") == 4.5

    @pytest.mark.parametrize(
        "error, reason",
        [
            (LLMConnectionError("refused"), "unavailable"),
            (LLMTimeoutError("timed out"), "timeout"),
        ],
    )
    async def test_backend_errors(self, fake_llm, error, reason):
        client = fake_llm(error=error)
        outcome = await _classifier(client).classify_detailed("what's in my bag")
        assert outcome.fallback_reason == reason
        assert isinstance(outcome.verdict, Route)
        assert len(client.calls) == 1

    @pytest.mark.parametrize(
        "content",
        [
            "I think they want their bag",
            _answer("order_pizza", 0.9),
            _answer("equipment_info", 1.5),
            {"intent": "equipment_info"},
        ],
    )
    async def test_unusable_answer(self, fake_llm, content):
        outcome = await _classifier(fake_llm(content)).classify_detailed("what's in my bag")
        assert outcome.used_fallback is True
        assert outcome.fallback_reason == "bad_response"

    @pytest.mark.parametrize(
        "content",
        [
            '{"intent": "score_entry", "confidence": 0.9, "entities": {"hole_number": 1e400}}',
            '{"intent": "score_entry", "confidence": 0.9, "entities": {"yardage": "inf"}}',
            '{"intent": "score_entry", "confidence": "nan"}',
        ],
    )
    async def test_non_finite_numbers_fall_back(self, fake_llm, content):
        client = fake_llm(content)
        outcome = await _classifier(client).classify_detailed("enter score for hole 5")
        assert outcome.fallback_reason == "bad_response"
        assert isinstance(outcome.verdict, Route)
        assert outcome.verdict.intent.entities.hole_number == 5
        assert len(client.calls) == 1

    async def test_offline_flag_skips_model(self, fake_llm):
        client = fake_llm(_answer("equipment_info", 0.9))
        outcome = await _classifier(client).classify_detailed("what's in my bag", online=False)
        assert outcome.fallback_reason == "offline"
        assert client.calls == []

    async def test_no_model_is_offline(self):
        outcome = await IntentClassifier().classify_detailed("what's in my bag")
        assert outcome.used_fallback is True
        assert isinstance(outcome.verdict, Route)

    async def test_offline_online_only_intent(self):
        verdict = await IntentClassifier().classify("how's my recovery")
        assert isinstance(verdict, ClassificationError)
        assert verdict.message == limitation_message(IntentType.RECOVERY_CHECK)

    async def test_offline_clarify(self):
        matcher = OfflineIntentMatcher(
            OfflineSettings(),
            keywords={IntentType.STATS_LOOKUP: ((("alpha",), 9.0), (("beta",), 11.0))},
        )
        verdict = await IntentClassifier(offline_matcher=matcher).classify("alpha")
        assert isinstance(verdict, Clarify)
        assert verdict.message == CLARIFY_MESSAGE
        assert verdict.suggestions[0] is IntentType.STATS_LOOKUP
        assert verdict.parsed_intent is None

    @pytest.mark.parametrize("text", ["", "   "])
    async def test_blank_input(self, fake_llm, text):
        client = fake_llm(_answer("equipment_info", 0.9))
        verdict = await _classifier(client).classify(text)
        assert isinstance(verdict, ClassificationError)
        assert verdict.message == BLANK_INPUT_MESSAGE
        assert client.calls == []


# ============================================================================
# LLM layer
# ============================================================================

class TestLLMIntentClassifier:
    def test_messages_include_session_context(self, fake_llm):
        session = SessionContext()
        session.start_round(RoundState(course_name="Pebble Beach", current_hole=7))
        session.add_user_turn("what's the play")

        client = fake_llm(_answer("shot_recommendation", 0.9))
        llm = LLMIntentClassifier(client)
        llm.classify("150 yards into the wind", context_prompt=session.build_context_prompt())

        messages = client.calls[0]
        assert messages[0].content == SYSTEM_PROMPT
        assert messages[1].content.startswith("## Current Context")
        assert "Pebble Beach" in messages[1].content
        assert messages[-1].role == "user"
        assert messages[-1].content == "150 yards into the wind"
        assert client.kwargs[0]["response_format"] == {"type": "json_object"}

    def test_no_context_message_when_empty(self, fake_llm):
        client = fake_llm(_answer("help_request", 0.9))
        LLMIntentClassifier(client).classify("help")
        assert len(client.calls[0]) == 2

    def test_transport_errors_mapped(self, fake_llm):
        with pytest.raises(ClassifierTimeoutError):
            LLMIntentClassifier(fake_llm(error=LLMTimeoutError("slow"))).classify("help")
        with pytest.raises(ClassifierUnavailableError):
            LLMIntentClassifier(fake_llm(error=LLMConnectionError("down"))).classify("help")

    @pytest.mark.parametrize(
        "content",
        [
            '```json\n{"intent": "stats_lookup", "confidence": 0.8}\n```',
            'Sure: {"intent": "stats_lookup", "confidence": 0.8, "entities": {"club": "driver"}} done',
            '{"intent": "STATS_LOOKUP", "confidence": "0.8"}',
        ],
    )
    def test_parse_lenient(self, content):
        intent = LLMIntentClassifier.parse_response(content, raw_input="Stats", normalized_text="stats")
        assert intent.intent_type is IntentType.STATS_LOOKUP
        assert intent.confidence == pytest.approx(0.8)
        assert intent.raw_input == "Stats"
        assert intent.normalized_input == "stats"

    @pytest.mark.parametrize(
        "content",
        [
            "",
            "no json here",
            '{"intent": "stats_lookup", "confidence": "high"}',
            "[1, 2]",
            '{"intent": "stats_lookup", "confidence": 0.8, "entities": {"score": 1e400}}',
        ],
    )
    def test_parse_rejects(self, content):
        with pytest.raises(ClassifierResponseError):
            LLMIntentClassifier.parse_response(content, raw_input="x", normalized_text="x")

    def test_parse_validation_error_chained(self):
        with pytest.raises(ClassifierResponseError) as exc_info:
            LLMIntentClassifier.parse_response(
                '{"intent": "stats_lookup", "confidence": 2}', raw_input="x", normalized_text="x"
            )
        assert isinstance(exc_info.value.__cause__, ValidationError)

    def test_system_prompt_lists_every_intent(self):
        for intent_type in IntentType:
            assert intent_type.value in SYSTEM_PROMPT
