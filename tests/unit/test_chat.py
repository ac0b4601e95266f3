"""Tests for the chat assistant."""

import pytest
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

from funding_assistant.chat import (
    ChatEvent,
    ChatOrchestrator,
    ClaudeChatProvider,
    InMemoryConversationStore,
    MessageRole,
    OpenAIChatProvider,
    build_context,
    select_provider,
)
from funding_assistant.chat.orchestrator import APOLOGY, format_call, load_system_prompt
from funding_assistant.chat.providers import ChatCompletionProvider
from funding_assistant.config.loader import Settings
from funding_assistant.core.exceptions import ConfigError
from funding_assistant.core.models import FundingCall, KnowledgeEntry, Source
from funding_assistant.retrieval import RetrievalService


class ScriptedProvider(ChatCompletionProvider):
    """Streams fixed fragments and records the messages it was given."""

    name = "scripted"

    def __init__(self, fragments, fail_after=None):
        self.fragments = fragments
        self.fail_after = fail_after
        self.requests = []

    def is_available(self):
        return True

    async def stream(self, messages, temperature=0.7, max_tokens=1500):
        self.requests.append(messages)
        for index, fragment in enumerate(self.fragments):
            if self.fail_after is not None and index == self.fail_after:
                raise RuntimeError("connection reset")
            yield fragment


@pytest.fixture
def conversations():
    return InMemoryConversationStore()


@pytest.fixture
def chat_factory(store, embedder, conversations):
    def build(provider):
        return ChatOrchestrator(
            RetrievalService(store, embedder),
            conversations,
            provider,
            settings=Settings(),
            system_prompt="SYSTEM",
        )
    return build


def funding_call(**overrides):
    data = dict(
        title="InnoBooster",
        description="Tilskud til startups",
        url="https://innovationsfonden.dk/innobooster",
        source=Source.INNOVATIONSFONDEN,
        deadline=datetime(2025, 3, 15),
        min_amount=100000,
        max_amount=5000000,
    )
    data.update(overrides)
    return FundingCall(**data)


class TestContext:
    """Tests for prompt context formatting."""

    def test_format_call(self):
        """Test Danish amount and date formatting."""
        assert format_call(funding_call()) == (
            "- InnoBooster (INNOVATIONSFONDEN)\n"
            "  Deadline: 15.3.2025\n"
            "  Beløb: 100.000-5.000.000 DKK\n"
            "  Tilskud til startups..."
        )

    def test_format_call_without_amounts(self):
        """Test unknown maximum reads 'Ikke angivet'."""
        text = format_call(funding_call(min_amount=None, max_amount=None))
        assert "  Beløb: Ikke angivet\n" in text

    def test_description_truncated(self):
        """Test long descriptions are cut in the preview."""
        text = format_call(funding_call(description="x" * 500))
        assert text.endswith("x" * 200 + "...")

    def test_build_context_sections(self):
        """Test both sections and their headers."""
        context = build_context(
            [funding_call(), funding_call(title="Eurostars")],
            [KnowledgeEntry(title="A", content="Viden A"), KnowledgeEntry(title="B", content="Viden B")],
        )
        assert context.startswith("\n\nRelevante funding calls:\n- InnoBooster")
        assert "...\n\n- Eurostars" in context
        assert context.endswith("\n\nRelevant viden:\nViden A\n\nViden B")

    def test_build_context_empty(self):
        """Test no retrieved records gives no context."""
        assert build_context([], []) == ""

    def test_packaged_prompt(self):
        """Test the system prompt ships with the package."""
        assert "DLSC" in load_system_prompt()


class TestStreamReply:
    """Tests for ChatOrchestrator.stream_reply."""

    @pytest.mark.asyncio
    async def test_event_order_and_persistence(self, chat_factory, conversations):
        """Test id first, then fragments, then both turns stored."""
        chat = chat_factory(ScriptedProvider(["Hej", " med", " dig"]))

        events = [e async for e in chat.stream_reply("Hvilke tilskud findes?", "session-1")]

        assert events[0].conversation_id is not None
        assert [e.content for e in events[1:]] == ["Hej", " med", " dig"]

        conversation = await conversations.get(events[0].conversation_id)
        assert [(m.role, m.content) for m in conversation.messages] == [
            (MessageRole.USER, "Hvilke tilskud findes?"),
            (MessageRole.ASSISTANT, "Hej med dig"),
        ]

    @pytest.mark.asyncio
    async def test_prompt_includes_context_and_history(self, chat_factory, store, embedder, call_factory):
        """Test the system prompt carries retrieved calls and prior turns follow it."""
        call = call_factory()
        await store.upsert_by_url(call, embedding=await embedder.embed_call(call))
        provider = ScriptedProvider(["Svar"])
        chat = chat_factory(provider)

        first = [e async for e in chat.stream_reply("InnoBooster", "s")]
        conversation_id = first[0].conversation_id
        [e async for e in chat.stream_reply("Og deadline?", "s", conversation_id)]

        messages = provider.requests[1]
        assert messages[0]["role"] == "system"
        assert messages[0]["content"].startswith("SYSTEM\n\nRelevante funding calls:\n- InnoBooster")
        assert messages[1:] == [
            {"role": "user", "content": "InnoBooster"},
            {"role": "assistant", "content": "Svar"},
            {"role": "user", "content": "Og deadline?"},
        ]

    @pytest.mark.asyncio
    async def test_unknown_conversation_creates_new(self, chat_factory):
        """Test a stale conversation id starts a fresh conversation."""
        chat = chat_factory(ScriptedProvider(["ok"]))
        events = [e async for e in chat.stream_reply("Hej", "s", "missing-id")]
        assert events[0].conversation_id != "missing-id"

    @pytest.mark.asyncio
    async def test_provider_failure_apologizes(self, chat_factory, conversations):
        """Test a mid-stream failure yields the apology and stores no assistant turn."""
        chat = chat_factory(ScriptedProvider(["Del", "mere"], fail_after=1))

        events = [e async for e in chat.stream_reply("Hej", "s")]

        assert events[1].content == "Del"
        assert events[-1].content == APOLOGY
        assert events[-1].error == "connection reset"
        conversation = await conversations.get(events[0].conversation_id)
        assert [m.role for m in conversation.messages] == [MessageRole.USER]

    @pytest.mark.asyncio
    async def test_requires_message_and_session(self, chat_factory):
        """Test missing inputs are rejected."""
        chat = chat_factory(ScriptedProvider([]))
        with pytest.raises(ValueError):
            [e async for e in chat.stream_reply("", "s")]
        with pytest.raises(ValueError):
            [e async for e in chat.stream_reply("Hej", "")]

    def test_event_to_dict(self):
        """Test unset event fields are omitted."""
        assert ChatEvent(content="x").to_dict() == {"content": "x"}


class TestConversationStore:
    """Tests for InMemoryConversationStore."""

    @pytest.mark.asyncio
    async def test_list_for_session(self, conversations):
        """Test conversations are grouped by session."""
        a = await conversations.create("s1")
        await conversations.create("s2")
        b = await conversations.create("s1")
        assert [c.id for c in await conversations.list_for_session("s1")] == [a.id, b.id]

    @pytest.mark.asyncio
    async def test_add_message_unknown(self, conversations):
        """Test adding to a missing conversation raises."""
        with pytest.raises(KeyError):
            await conversations.add_message("nope", MessageRole.USER, "x")


class TestProviders:
    """Tests for provider selection and request shaping."""

    def test_auto_prefers_openai(self):
        """Test auto picks OpenAI when both keys are set."""
        settings = Settings(openai_api_key="sk", anthropic_api_key="ak")
        assert isinstance(select_provider(settings), OpenAIChatProvider)

    def test_auto_falls_back_to_claude(self):
        """Test auto picks Claude when only its key is set."""
        settings = Settings(openai_api_key=None, anthropic_api_key="ak")
        assert isinstance(select_provider(settings), ClaudeChatProvider)

    def test_no_keys(self):
        """Test auto without any key raises ConfigError."""
        with pytest.raises(ConfigError):
            select_provider(Settings(openai_api_key=None, anthropic_api_key=None))

    def test_forced_provider(self):
        """Test an explicit provider is returned even without a key."""
        settings = Settings(chat_provider="claude", openai_api_key="sk", anthropic_api_key=None)
        assert isinstance(select_provider(settings), ClaudeChatProvider)

    def test_unknown_provider(self):
        """Test an unknown provider name raises ConfigError."""
        with pytest.raises(ConfigError):
            select_provider(Settings(chat_provider="gemini"))

    def test_split_system(self):
        """Test system messages are lifted out for Claude."""
        system, rest = ClaudeChatProvider.split_system([
            {"role": "system", "content": "S"},
            {"role": "user", "content": "U"},
        ])
        assert system == "S"
        assert rest == [{"role": "user", "content": "U"}]

    @pytest.mark.asyncio
    async def test_openai_stream(self):
        """Test delta content is yielded and empty chunks skipped."""

        async def chunks():
            for content in ["Hej", None, " der"]:
                yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])
            yield SimpleNamespace(choices=[])

        async def create(**kwargs):
            return chunks()

        provider = OpenAIChatProvider(api_key="sk")
        provider._client = MagicMock()
        provider._client.chat.completions.create = create

        assert [f async for f in provider.stream([{"role": "user", "content": "x"}])] == ["Hej", " der"]
