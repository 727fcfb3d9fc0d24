# SPDX-License-Identifier: MIT
"""
Natural language understanding for the caddy.

1. LLM classification with a Route / Confirm / Clarify confidence gate
2. Deterministic offline keyword matching when the model is unreachable
3. Local entity extraction (club, yardage, hole, lie, ...)
4. Clarification suggestions for low-confidence input

Usage:
    from caddycore.nlu import IntentClassifier

    classifier = IntentClassifier()          # no LLM: offline only
    verdict = await classifier.classify("what's in my bag")
"""

from caddycore.nlu.types import (
    Clarify,
    ClassificationError,
    ClassificationVerdict,
    Confirm,
    EntityType,
    ExtractedEntities,
    Intent,
    IntentType,
    Route,
    verdict_to_dict,
)
from caddycore.nlu.registry import (
    INTENT_SCHEMAS,
    NO_NAVIGATION_INTENTS,
    IntentSchema,
    get_schema,
    resolve_target,
)
from caddycore.nlu.entities import extract_entities
from caddycore.nlu.offline import (
    OFFLINE_INTENTS,
    ONLINE_ONLY_INTENTS,
    OfflineClarify,
    OfflineIntentMatcher,
    OfflineMatch,
    OfflineNoMatch,
    OfflineRequiresOnline,
    OfflineResult,
)
from caddycore.nlu.clarification import (
    ClarificationGenerator,
    ClarificationResponse,
    ClarificationTier,
    IntentSuggestion,
)
from caddycore.nlu.schemas import ClassifierEntities, ClassifierOutput
from caddycore.nlu.classifier import (
    ClassifierOutcome,
    InputMode,
    IntentClassifier,
    LLMIntentClassifier,
)

__all__ = [
    # Types
    "Clarify",
    "ClassificationError",
    "ClassificationVerdict",
    "Confirm",
    "EntityType",
    "ExtractedEntities",
    "Intent",
    "IntentType",
    "Route",
    "verdict_to_dict",
    # Registry
    "INTENT_SCHEMAS",
    "NO_NAVIGATION_INTENTS",
    "IntentSchema",
    "get_schema",
    "resolve_target",
    "extract_entities",
    # Offline
    "OFFLINE_INTENTS",
    "ONLINE_ONLY_INTENTS",
    "OfflineClarify",
    "OfflineIntentMatcher",
    "OfflineMatch",
    "OfflineNoMatch",
    "OfflineRequiresOnline",
    "OfflineResult",
    # Clarification
    "ClarificationGenerator",
    "ClarificationResponse",
    "ClarificationTier",
    "IntentSuggestion",
    # Schemas
    "ClassifierEntities",
    "ClassifierOutput",
    # Classifier
    "ClassifierOutcome",
    "InputMode",
    "IntentClassifier",
    "LLMIntentClassifier",
]
