# SPDX-License-Identifier: MIT
"""
Intent catalogue.

One :class:`IntentSchema` per :class:`IntentType`: display strings, example
phrases (used for clarification and the LLM prompt), entity requirements,
and the static routing target.  Intents without a target are answered
inline (no navigation).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from caddycore.nlu.types import EntityType, ExtractedEntities, IntentType
from caddycore.routing.target import Module, RoutingTarget

__all__ = [
    "IntentSchema",
    "INTENT_SCHEMAS",
    "NO_NAVIGATION_INTENTS",
    "get_schema",
    "schemas_for_module",
    "missing_required_entities",
    "resolve_target",
]


@dataclass(frozen=True)
class IntentSchema:
    """Static description of one intent.

    Attributes:
        intent_type: The intent this schema describes
        display_name: Title-case name, e.g. "Score Entry"
        description: Lower-case verb phrase, e.g. "enter or update score for a hole"
        chip_label: Short button label for clarification chips
        example_phrases: Representative user phrasings
        required_entities: Entities that must be present to act
        optional_entities: Entities used when present
        default_target: Static destination; None for inline answers
        route_parameters: Entity → route parameter name
    """

    intent_type: IntentType
    display_name: str
    description: str
    chip_label: str
    example_phrases: Tuple[str, ...]
    required_entities: Tuple[EntityType, ...] = ()
    optional_entities: Tuple[EntityType, ...] = ()
    default_target: Optional[RoutingTarget] = None
    route_parameters: Mapping[EntityType, str] = field(default_factory=dict)

    @property
    def navigates(self) -> bool:
        return self.default_target is not None


def _schema(
    intent_type: IntentType,
    display_name: str,
    description: str,
    chip_label: str,
    examples: List[str],
    *,
    required: Tuple[EntityType, ...] = (),
    optional: Tuple[EntityType, ...] = (),
    target: Optional[RoutingTarget] = None,
    params: Optional[Dict[EntityType, str]] = None,
) -> IntentSchema:
    return IntentSchema(
        intent_type=intent_type,
        display_name=display_name,
        description=description,
        chip_label=chip_label,
        example_phrases=tuple(examples),
        required_entities=required,
        optional_entities=optional,
        default_target=target,
        route_parameters=params or {},
    )


E = EntityType

_SCHEMAS: List[IntentSchema] = [
    _schema(
        IntentType.CLUB_ADJUSTMENT, "Club Adjustment",
        "adjust club distances or yardage expectations", "Adjust Club",
        ["My 7-iron feels long today", "I need to adjust my driver distance",
         "Update my pitching wedge to 120 yards", "Change 5-iron yardage"],
        required=(E.CLUB,), optional=(E.YARDAGE,),
        target=RoutingTarget(Module.CADDY, "club_adjustment"),
        params={E.CLUB: "club", E.YARDAGE: "yardage"},
    ),
    _schema(
        IntentType.RECOVERY_CHECK, "Recovery Check",
        "check recovery status and readiness", "Check Recovery",
        ["How's my recovery looking?", "Check my recovery status",
         "What's my recovery score?", "How am I feeling today?"],
        optional=(E.FATIGUE, E.PAIN),
        target=RoutingTarget(Module.RECOVERY, "overview"),
        params={E.FATIGUE: "fatigue"},
    ),
    _schema(
        IntentType.SHOT_RECOMMENDATION, "Shot Recommendation",
        "get shot advice based on the current situation", "Get Shot Advice",
        ["What club should I hit?", "150 yards into the wind, what's the play?",
         "Recommend a shot from the rough", "Help me with this approach shot"],
        optional=(E.CLUB, E.YARDAGE, E.LIE, E.WIND),
        target=RoutingTarget(Module.CADDY, "live_caddy", {"expandStrategy": True}),
        params={E.CLUB: "club", E.YARDAGE: "yardage", E.LIE: "lie", E.WIND: "wind"},
    ),
    _schema(
        IntentType.SCORE_ENTRY, "Score Entry",
        "enter or update the score for a hole", "Enter Score",
        ["I got a birdie on this hole", "Mark down a par",
         "Enter score for hole 7", "I made a 5 on the last hole"],
        optional=(E.HOLE_NUMBER, E.SCORE, E.SCORE_CONTEXT),
        target=RoutingTarget(Module.CADDY, "score_entry"),
        params={E.HOLE_NUMBER: "hole", E.SCORE: "score"},
    ),
    _schema(
        IntentType.PATTERN_QUERY, "Pattern Query",
        "ask about historical miss patterns or tendencies", "View Patterns",
        ["What are my miss patterns with 7-iron?", "Do I slice when I'm under pressure?",
         "Show my tendencies off the tee", "What's my common miss with wedges?"],
        optional=(E.CLUB, E.LIE, E.PRESSURE),
    ),
    _schema(
        IntentType.DRILL_REQUEST, "Drill Request",
        "request a practice drill or training exercise", "Get Drill",
        ["Give me a drill for my slice", "I need putting practice",
         "What drill can fix my push?", "Recommend a chipping drill"],
        optional=(E.CLUB,),
        target=RoutingTarget(Module.COACH, "drill"),
        params={E.CLUB: "club"},
    ),
    _schema(
        IntentType.WEATHER_CHECK, "Weather Check",
        "check current or forecast weather conditions", "Check Weather",
        ["What's the weather looking like?", "How's the wind today?",
         "Check the forecast", "Is it going to rain?"],
        target=RoutingTarget(Module.CADDY, "live_caddy", {"expandWeather": True}),
    ),
    _schema(
        IntentType.STATS_LOOKUP, "Stats Lookup",
        "look up statistics and performance data", "View Stats",
        ["Show my stats", "What's my average score?",
         "Show my fairways hit percentage", "What are my putting stats?"],
        optional=(E.CLUB,),
        target=RoutingTarget(Module.CADDY, "stats"),
        params={E.CLUB: "club"},
    ),
    _schema(
        IntentType.ROUND_START, "Round Start",
        "start a new round of golf", "Start Round",
        ["Start a new round", "I'm playing at Pebble Beach today",
         "Begin round", "Let's tee off"],
        target=RoutingTarget(Module.CADDY, "round_start"),
    ),
    _schema(
        IntentType.ROUND_END, "Round End",
        "end the current round and view the summary", "End Round",
        ["Finish this round", "End round", "I'm done playing", "Show me the round summary"],
        target=RoutingTarget(Module.CADDY, "round_end"),
    ),
    _schema(
        IntentType.EQUIPMENT_INFO, "Equipment Info",
        "get information about equipment and bag contents", "View Equipment",
        ["What's in my bag?", "Show my club specs",
         "What equipment am I using?", "Show my club distances"],
        optional=(E.CLUB,),
        target=RoutingTarget(Module.SETTINGS, "equipment"),
        params={E.CLUB: "club"},
    ),
    _schema(
        IntentType.COURSE_INFO, "Course Info",
        "get course information and hole details", "Course Info",
        ["Tell me about this hole", "What's the yardage on hole 7?",
         "Show the course layout", "What's the layout of this hole?"],
        optional=(E.HOLE_NUMBER,),
        target=RoutingTarget(Module.CADDY, "course_info"),
        params={E.HOLE_NUMBER: "hole"},
    ),
    _schema(
        IntentType.SETTINGS_CHANGE, "Settings Change",
        "change app settings or preferences", "Settings",
        ["Change my settings", "Update my preferences",
         "Turn on notifications", "Change units to metric"],
        target=RoutingTarget(Module.SETTINGS, "settings"),
    ),
    _schema(
        IntentType.HELP_REQUEST, "Help Request",
        "get help or instructions about the app", "Get Help",
        ["Help me", "How do I use this?", "What can you do?", "I need help"],
    ),
    _schema(
        IntentType.FEEDBACK, "Feedback",
        "provide feedback about the app", "Send Feedback",
        ["I have feedback", "Report a problem", "Send feedback", "I found a bug"],
    ),
    _schema(
        IntentType.BAILOUT_QUERY, "Bailout Query",
        "find the safe bailout area for this shot", "Find Bailout",
        ["Where's the bailout?", "Where's the safe miss here?",
         "What's the safe side on this hole?", "Where should I miss it?"],
        target=RoutingTarget(Module.CADDY, "live_caddy", {"expandStrategy": True, "highlightBailout": True}),
    ),
    _schema(
        IntentType.READINESS_CHECK, "Readiness Check",
        "check today's readiness to play", "Check Readiness",
        ["Am I ready to play today?", "What's my readiness score?",
         "How ready am I?", "Should I take it easy today?"],
        target=RoutingTarget(Module.CADDY, "live_caddy", {"expandReadiness": True}),
    ),
]

del E

INTENT_SCHEMAS: Dict[IntentType, IntentSchema] = {s.intent_type: s for s in _SCHEMAS}

NO_NAVIGATION_INTENTS = frozenset(
    s.intent_type for s in _SCHEMAS if not s.navigates
)


def get_schema(intent_type: IntentType) -> IntentSchema:
    """Schema for *intent_type*.  Every :class:`IntentType` has one."""
    return INTENT_SCHEMAS[intent_type]


def schemas_for_module(module: Module) -> List[IntentSchema]:
    return [
        s for s in _SCHEMAS
        if s.default_target is not None and s.default_target.module is module
    ]


def missing_required_entities(intent_type: IntentType, entities: ExtractedEntities) -> List[EntityType]:
    """Required entities of *intent_type* that *entities* lacks, in schema order."""
    return [e for e in get_schema(intent_type).required_entities if not entities.has(e)]


def resolve_target(intent_type: IntentType, entities: ExtractedEntities) -> Optional[RoutingTarget]:
    """Static target for the intent with entity-derived parameters merged in.

    Returns None for no-navigation intents.
    """
    schema = get_schema(intent_type)
    if schema.default_target is None:
        return None
    extra = {
        param: entities.get(entity)
        for entity, param in schema.route_parameters.items()
        if entities.has(entity)
    }
    return schema.default_target.with_parameters(extra) if extra else schema.default_target
