"""Per-session conversation history and round state."""

from caddycore.conversation.context import (
    DEFAULT_HISTORY_CAPACITY,
    ConversationTurn,
    Role,
    RoundState,
    SessionContext,
)

__all__ = [
    "DEFAULT_HISTORY_CAPACITY",
    "ConversationTurn",
    "Role",
    "RoundState",
    "SessionContext",
]
