"""Conversation contexts and dialogue state machine."""

from baruc.core.conversation.store import (
    ContextMessage,
    ConversationContext,
    ConversationState,
    ConversationStore,
)

__all__ = [
    "ContextMessage",
    "ConversationContext",
    "ConversationState",
    "ConversationStore",
]
