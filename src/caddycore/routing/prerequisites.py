"""Prerequisites that must hold before an intent can navigate.

The orchestrator asks a :class:`PrerequisiteChecker` about exactly the
prerequisites declared for an intent in :data:`PREREQUISITES_BY_INTENT`,
and nothing else.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from caddycore.nlu.types import IntentType

if TYPE_CHECKING:
    from caddycore.conversation.context import SessionContext

__all__ = [
    "Prerequisite",
    "PREREQUISITES_BY_INTENT",
    "PREREQUISITE_MESSAGES",
    "PrerequisiteChecker",
    "BasePrerequisiteChecker",
    "StaticPrerequisiteChecker",
    "SessionPrerequisiteChecker",
    "required_prerequisites",
    "prerequisite_message",
]


class Prerequisite(str, Enum):
    RECOVERY_DATA = "recovery_data"      # at least one sleep / HRV / readiness datapoint
    ROUND_ACTIVE = "round_active"        # an in-progress round
    BAG_CONFIGURED = "bag_configured"    # club distances set up
    COURSE_SELECTED = "course_selected"  # the course being played is known


PREREQUISITES_BY_INTENT: Dict[IntentType, Tuple[Prerequisite, ...]] = {
    IntentType.RECOVERY_CHECK: (Prerequisite.RECOVERY_DATA,),
    IntentType.SCORE_ENTRY: (Prerequisite.ROUND_ACTIVE,),
    IntentType.ROUND_END: (Prerequisite.ROUND_ACTIVE,),
    IntentType.CLUB_ADJUSTMENT: (Prerequisite.BAG_CONFIGURED,),
    IntentType.SHOT_RECOMMENDATION: (Prerequisite.BAG_CONFIGURED,),
    IntentType.COURSE_INFO: (Prerequisite.COURSE_SELECTED,),
}

PREREQUISITE_MESSAGES: Dict[Prerequisite, str] = {
    Prerequisite.RECOVERY_DATA: (
        "I don't have any recovery data yet. Log your sleep, HRV, or readiness score "
        "first, and I'll give you insights."
    ),
    Prerequisite.ROUND_ACTIVE: "You need to start a round first. Would you like to start a new round now?",
    Prerequisite.BAG_CONFIGURED: (
        "Your bag isn't configured yet. Set up your clubs and distances so I can give you "
        "better recommendations."
    ),
    Prerequisite.COURSE_SELECTED: "Which course are you playing? Select a course to get specific information.",
}


def required_prerequisites(intent_type: IntentType) -> Tuple[Prerequisite, ...]:
    return PREREQUISITES_BY_INTENT.get(intent_type, ())


def prerequisite_message(missing: Sequence[Prerequisite]) -> str:
    """Guidance for *missing*; messages are joined in declaration order."""
    ordered = [p for p in Prerequisite if p in missing]
    if not ordered:
        return "Some required information is missing. Please complete your profile first."
    return " ".join(PREREQUISITE_MESSAGES[p] for p in ordered)


# ============================================================================
# Checkers
# ============================================================================


class PrerequisiteChecker(Protocol):
    def check_all(self, prerequisites: Sequence[Prerequisite]) -> List[Prerequisite]:
        """Return the unmet subset of *prerequisites*, in input order."""
        ...


class BasePrerequisiteChecker:
    """Implements ``check_all`` on top of a per-item ``check``."""

    def check(self, prerequisite: Prerequisite) -> bool:
        raise NotImplementedError

    def check_all(self, prerequisites: Sequence[Prerequisite]) -> List[Prerequisite]:
        return [p for p in prerequisites if not self.check(p)]


class StaticPrerequisiteChecker(BasePrerequisiteChecker):
    """Fixed set of satisfied prerequisites.

    Records every ``check_all`` call in :attr:`calls`.
    """

    def __init__(self, satisfied: Iterable[Prerequisite] = tuple(Prerequisite)):
        self.satisfied = frozenset(satisfied)
        self.calls: List[Tuple[Prerequisite, ...]] = []

    def check(self, prerequisite: Prerequisite) -> bool:
        return prerequisite in self.satisfied

    def check_all(self, prerequisites: Sequence[Prerequisite]) -> List[Prerequisite]:
        self.calls.append(tuple(prerequisites))
        return super().check_all(prerequisites)


class SessionPrerequisiteChecker(BasePrerequisiteChecker):
    """Answers round/course questions from a session.

    Recovery data and bag configuration live outside the decision core and are
    supplied as callables.

    Args:
        session: A :class:`~caddycore.conversation.context.SessionContext`
        has_recovery_data: Returns True when a recovery datapoint exists
        bag_configured: Returns True when club distances are set up
    """

    def __init__(
        self,
        session: "SessionContext",
        *,
        has_recovery_data: Optional[Callable[[], bool]] = None,
        bag_configured: Optional[Callable[[], bool]] = None,
    ):
        self.session = session
        self._has_recovery_data = has_recovery_data or (lambda: False)
        self._bag_configured = bag_configured or (lambda: True)

    def check(self, prerequisite: Prerequisite) -> bool:
        if prerequisite is Prerequisite.ROUND_ACTIVE:
            return self.session.round is not None
        if prerequisite is Prerequisite.COURSE_SELECTED:
            current = self.session.round
            return current is not None and bool(current.course_name)
        if prerequisite is Prerequisite.RECOVERY_DATA:
            return bool(self._has_recovery_data())
        if prerequisite is Prerequisite.BAG_CONFIGURED:
            return bool(self._bag_configured())
        return False
