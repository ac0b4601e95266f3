"""Conversation persistence for the chat assistant."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from funding_assistant.core.models import utcnow


class MessageRole(str, Enum):
    USER = "USER"
    ASSISTANT = "ASSISTANT"


@dataclass
class ChatMessage:
    role: MessageRole
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    def to_prompt(self) -> dict:
        """Role-tagged message for a completion request."""
        return {"role": self.role.value.lower(), "content": self.content}


@dataclass
class Conversation:
    session_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)


class ConversationStore(ABC):
    """Conversations grouped by browser session."""

    @abstractmethod
    async def get(self, conversation_id: str) -> Optional[Conversation]:
        """Conversation with its messages in creation order, or None."""

    @abstractmethod
    async def create(self, session_id: str) -> Conversation:
        pass

    @abstractmethod
    async def add_message(self, conversation_id: str, role: MessageRole, content: str) -> ChatMessage:
        pass

    @abstractmethod
    async def list_for_session(self, session_id: str) -> list[Conversation]:
        pass

    async def get_or_create(self, session_id: str, conversation_id: Optional[str] = None) -> Conversation:
        if conversation_id:
            conversation = await self.get(conversation_id)
            if conversation is not None:
                return conversation
        return await self.create(session_id)


class InMemoryConversationStore(ConversationStore):
    def __init__(self):
        self._conversations: dict[str, Conversation] = {}

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None
        return Conversation(
            session_id=conversation.session_id,
            id=conversation.id,
            messages=list(conversation.messages),
            created_at=conversation.created_at,
        )

    async def create(self, session_id: str) -> Conversation:
        conversation = Conversation(session_id=session_id)
        self._conversations[conversation.id] = conversation
        return await self.get(conversation.id)

    async def add_message(self, conversation_id: str, role: MessageRole, content: str) -> ChatMessage:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise KeyError(f"No conversation with id {conversation_id}")
        message = ChatMessage(role=role, content=content)
        conversation.messages.append(message)
        return message

    async def list_for_session(self, session_id: str) -> list[Conversation]:
        return [
            await self.get(c.id)
            for c in sorted(self._conversations.values(), key=lambda c: c.created_at)
            if c.session_id == session_id
        ]
