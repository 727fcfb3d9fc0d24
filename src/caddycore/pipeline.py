"""
End-to-end handling of one caddy utterance.

    raw text → normalize → classify (online, offline fallback) → route

Stages run sequentially; the session context is the only shared state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from caddycore.config import CaddySettings, load_settings
from caddycore.conversation.context import SessionContext
from caddycore.errors import PersistenceError
from caddycore.llm.base import LLMClient
from caddycore.logs.decision_log import DecisionLog
from caddycore.memory.models import MissPattern
from caddycore.memory.store import MissPatternStore
from caddycore.nlu.classifier import InputMode, IntentClassifier, LLMIntentClassifier
from caddycore.nlu.offline import OfflineIntentMatcher
from caddycore.nlu.registry import get_schema
from caddycore.nlu.types import ClassificationVerdict, IntentType, verdict_to_dict
from caddycore.routing.orchestrator import (
    ConfirmationRequired,
    Navigate,
    NoNavigation,
    PrerequisiteMissing,
    RoutingOrchestrator,
    RoutingResult,
)
from caddycore.routing.prerequisites import PrerequisiteChecker, SessionPrerequisiteChecker
from caddycore.text.normalize import NormalizeResult, normalize_text

logger = logging.getLogger(__name__)

__all__ = ["PipelineOutcome", "CaddyPipeline", "reply_text"]


@dataclass(frozen=True)
class PipelineOutcome:
    """Everything the caller needs to act on one utterance.

    Attributes:
        normalized: Normalizer output
        verdict: Classifier verdict
        result: Routing decision (exactly one variant)
        used_fallback: True when the offline matcher decided
        patterns: Miss patterns for inline pattern queries
    """

    normalized: NormalizeResult
    verdict: ClassificationVerdict
    result: RoutingResult
    used_fallback: bool = False
    patterns: List[MissPattern] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "normalized": self.normalized.to_dict(),
            "verdict": verdict_to_dict(self.verdict),
            "result": self.result.to_dict(),
            "used_fallback": self.used_fallback,
            "patterns": [p.to_dict() for p in self.patterns],
        }


def reply_text(result: RoutingResult) -> str:
    """What the assistant says back for *result*."""
    if isinstance(result, Navigate):
        return f"Opening {get_schema(result.intent.intent_type).display_name}."
    if isinstance(result, NoNavigation):
        return result.response
    if isinstance(result, (ConfirmationRequired, PrerequisiteMissing)):
        return result.message
    raise TypeError(f"unsupported result: {type(result).__name__}")


class CaddyPipeline:
    """Facade over normalizer, classifier, orchestrator and session.

    Args:
        classifier: Confidence gate (with or without an LLM)
        orchestrator: Routing decisions
        session: Conversation history; one per user session
        store: Optional miss-pattern store answering pattern queries
        decision_log: Optional JSONL audit trail
    """

    def __init__(
        self,
        classifier: IntentClassifier,
        orchestrator: RoutingOrchestrator,
        session: SessionContext,
        *,
        store: Optional[MissPatternStore] = None,
        decision_log: Optional[DecisionLog] = None,
    ):
        self.classifier = classifier
        self.orchestrator = orchestrator
        self.session = session
        self.store = store
        self.decision_log = decision_log

    @classmethod
    def from_settings(
        cls,
        settings: Optional[CaddySettings] = None,
        *,
        llm_client: Optional[LLMClient] = None,
        checker: Optional[PrerequisiteChecker] = None,
        session: Optional[SessionContext] = None,
        store: Optional[MissPatternStore] = None,
    ) -> "CaddyPipeline":
        """Wire a pipeline from settings.

        Without *llm_client* the pipeline runs offline only.
        """
        settings = settings if settings is not None else load_settings()
        if session is None:
            session = SessionContext(capacity=settings.session.history_capacity)
        llm = LLMIntentClassifier(llm_client, settings.classifier) if llm_client is not None else None
        classifier = IntentClassifier(
            llm,
            settings.classifier,
            offline_matcher=OfflineIntentMatcher(settings.offline),
        )
        if checker is None:
            checker = SessionPrerequisiteChecker(session)
        orchestrator = RoutingOrchestrator(checker)
        decision_log = DecisionLog(settings.decision_log) if settings.decision_log else None
        return cls(classifier, orchestrator, session, store=store, decision_log=decision_log)

    async def handle(
        self,
        text: str,
        input_mode: InputMode = InputMode.TEXT,
        online: bool = True,
    ) -> PipelineOutcome:
        """Process one utterance; never raises for classifier failures."""
        normalized = normalize_text(text)
        outcome = await self.classifier.classify_detailed(
            normalized.normalized,
            raw_input=text,
            session=self.session,
            input_mode=input_mode,
            online=online,
        )
        result = self.orchestrator.route(outcome.verdict)

        patterns: List[MissPattern] = []
        if (
            self.store is not None
            and isinstance(result, NoNavigation)
            and result.intent.intent_type is IntentType.PATTERN_QUERY
        ):
            try:
                entities = result.intent.entities
                patterns = self.store.get_patterns(club_id=entities.club, pressure=entities.pressure)
            except PersistenceError as e:
                logger.warning("[pipeline] miss history unavailable: %s", e)

        self.session.add_exchange(text, reply_text(result))

        pipeline_outcome = PipelineOutcome(
            normalized=normalized,
            verdict=outcome.verdict,
            result=result,
            used_fallback=outcome.used_fallback,
            patterns=patterns,
        )
        logger.info(
            "[pipeline] %s -> %s%s",
            outcome.verdict.kind,
            result.kind,
            f" (fallback: {outcome.fallback_reason})" if outcome.used_fallback else "",
        )
        if self.decision_log is not None:
            self.decision_log.log(
                normalized.normalized,
                verdict_to_dict(outcome.verdict),
                result.to_dict(),
                input_mode=InputMode(input_mode).value,
                used_fallback=outcome.used_fallback,
            )
        return pipeline_outcome

    def handle_sync(
        self,
        text: str,
        input_mode: InputMode = InputMode.TEXT,
        online: bool = True,
    ) -> PipelineOutcome:
        """Blocking wrapper around :meth:`handle` for scripts and the CLI."""
        return asyncio.run(self.handle(text, input_mode=input_mode, online=online))
