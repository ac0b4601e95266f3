"""
Chat orchestrator.

Builds the prompt from the system template plus retrieved funding calls
and knowledge, streams the model reply and records both turns.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

import structlog

from funding_assistant.config.loader import Settings
from funding_assistant.core.models import FundingCall, KnowledgeEntry
from funding_assistant.core.normalizer import format_amount, format_date_da
from funding_assistant.retrieval import RetrievalService

from .conversations import ConversationStore, MessageRole
from .providers import ChatCompletionProvider

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT_PATH = Path(__file__).parent / "system_prompt.md"

APOLOGY = "Beklager, der opstod en fejl. Prøv venligst igen."

DESCRIPTION_PREVIEW_CHARS = 200


def load_system_prompt(path: Optional[Path] = None) -> str:
    return (path or SYSTEM_PROMPT_PATH).read_text(encoding="utf-8")


def format_call(call: FundingCall) -> str:
    low = f"{format_amount(call.min_amount)}-" if call.min_amount else ""
    high = f"{format_amount(call.max_amount)} DKK" if call.max_amount else "Ikke angivet"
    return (
        f"- {call.title} ({call.source.value})\n"
        f"  Deadline: {format_date_da(call.deadline)}\n"
        f"  Beløb: {low}{high}\n"
        f"  {call.description[:DESCRIPTION_PREVIEW_CHARS]}..."
    )


def build_context(calls: list[FundingCall], knowledge: list[KnowledgeEntry]) -> str:
    """Context appended to the system prompt; empty sections are omitted."""
    context = ""
    if calls:
        context += "\n\nRelevante funding calls:\n" + "\n\n".join(format_call(c) for c in calls)
    if knowledge:
        context += "\n\nRelevant viden:\n" + "\n\n".join(k.content for k in knowledge)
    return context


@dataclass
class ChatEvent:
    """One item of a streamed reply: the conversation id, a fragment, or an error."""

    conversation_id: Optional[str] = None
    content: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}


class ChatOrchestrator:
    """
    Retrieval-augmented chat.

    Usage:
        chat = ChatOrchestrator(retrieval, conversations, provider, settings)
        async for event in chat.stream_reply("Hvilke tilskud findes til medtech?", session_id):
            ...
    """

    def __init__(
        self,
        retrieval: RetrievalService,
        conversations: ConversationStore,
        provider: ChatCompletionProvider,
        settings: Optional[Settings] = None,
        system_prompt: Optional[str] = None,
    ):
        self.retrieval = retrieval
        self.conversations = conversations
        self.provider = provider
        self.settings = settings or Settings()
        self.system_prompt = system_prompt if system_prompt is not None else load_system_prompt()

    async def build_messages(self, message: str, history: list[dict]) -> list[dict]:
        calls = await self.retrieval.search_calls(message, self.settings.chat_call_limit)
        knowledge = await self.retrieval.search_knowledge(message, self.settings.chat_knowledge_limit)

        logger.debug("chat_context_retrieved", calls=len(calls), knowledge=len(knowledge))

        return [
            {"role": "system", "content": self.system_prompt + build_context(calls, knowledge)},
            *history,
            {"role": "user", "content": message},
        ]

    async def stream_reply(
        self,
        message: str,
        session_id: str,
        conversation_id: Optional[str] = None,
    ) -> AsyncIterator[ChatEvent]:
        """
        Stream a reply to message.

        Yields the conversation id first, then content fragments. The
        assistant turn is stored only after the stream completes.
        """
        if not message or not session_id:
            raise ValueError("message and session_id are required")

        conversation = await self.conversations.get_or_create(session_id, conversation_id)
        log = logger.bind(conversation_id=conversation.id)

        # History is the conversation before this turn
        history = [m.to_prompt() for m in conversation.messages]
        await self.conversations.add_message(conversation.id, MessageRole.USER, message)

        yield ChatEvent(conversation_id=conversation.id)

        try:
            messages = await self.build_messages(message, history)

            parts = []
            async for fragment in self.provider.stream(
                messages,
                temperature=self.settings.chat_temperature,
                max_tokens=self.settings.chat_max_tokens,
            ):
                parts.append(fragment)
                yield ChatEvent(content=fragment)

            await self.conversations.add_message(conversation.id, MessageRole.ASSISTANT, "".join(parts))
            log.info("chat_reply_complete", fragments=len(parts))

        except Exception as e:
            log.error("chat_reply_failed", error=str(e))
            yield ChatEvent(content=APOLOGY, error=str(e))
