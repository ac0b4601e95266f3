"""Retrieval-augmented chat assistant."""

from .conversations import (
    ChatMessage,
    Conversation,
    ConversationStore,
    InMemoryConversationStore,
    MessageRole,
)
from .orchestrator import ChatEvent, ChatOrchestrator, build_context
from .providers import (
    ChatCompletionProvider,
    ClaudeChatProvider,
    OpenAIChatProvider,
    select_provider,
)

__all__ = [
    "ChatMessage",
    "Conversation",
    "ConversationStore",
    "InMemoryConversationStore",
    "MessageRole",
    "ChatEvent",
    "ChatOrchestrator",
    "build_context",
    "ChatCompletionProvider",
    "ClaudeChatProvider",
    "OpenAIChatProvider",
    "select_provider",
]
