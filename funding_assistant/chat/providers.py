"""
Chat-completion providers.

Each provider turns role-tagged messages into a lazy stream of text
fragments. Supports:
- OpenAI chat completions (default, gpt-4o)
- Anthropic Claude messages API
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

import structlog

from funding_assistant.core.exceptions import ConfigError

logger = structlog.get_logger(__name__)


class ChatCompletionProvider(ABC):
    """Abstract base class for chat-completion providers."""

    name: str = ""

    @abstractmethod
    def stream(
        self,
        messages: list[dict],
        temperature: float = 0.7,
        max_tokens: int = 1500,
    ) -> AsyncIterator[str]:
        """Yield response text fragments in order; not restartable."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured and available."""


class OpenAIChatProvider(ChatCompletionProvider):
    """OpenAI chat completions with stream=True."""

    name = "openai"

    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4o"):
        self.api_key = api_key
        self.model = model
        self._client = None

    def is_available(self) -> bool:
        """Check if OpenAI API key is configured."""
        return bool(self.api_key)

    def _get_client(self):
        """Lazy-load async OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
                self._client = AsyncOpenAI(api_key=self.api_key)
            except ImportError:
                logger.warning("openai_not_installed", hint="pip install openai")
                raise
        return self._client

    async def stream(
        self,
        messages: list[dict],
        temperature: float = 0.7,
        max_tokens: int = 1500,
    ) -> AsyncIterator[str]:
        response = await self._get_client().chat.completions.create(
            model=self.model,
            messages=messages,
            stream=True,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        async for chunk in response:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content


class ClaudeChatProvider(ChatCompletionProvider):
    """Anthropic Claude messages API, streamed."""

    name = "claude"

    def __init__(self, api_key: Optional[str] = None, model: str = "claude-sonnet-4-20250514"):
        self.api_key = api_key
        self.model = model
        self._client = None

    def is_available(self) -> bool:
        """Check if Anthropic API key is configured."""
        return bool(self.api_key)

    def _get_client(self):
        """Lazy-load async Anthropic client."""
        if self._client is None:
            try:
                import anthropic
                self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
            except ImportError:
                logger.warning("anthropic_not_installed", hint="pip install anthropic")
                raise
        return self._client

    @staticmethod
    def split_system(messages: list[dict]) -> tuple[str, list[dict]]:
        """Claude takes the system prompt as a separate argument."""
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        rest = [m for m in messages if m["role"] != "system"]
        return system, rest

    async def stream(
        self,
        messages: list[dict],
        temperature: float = 0.7,
        max_tokens: int = 1500,
    ) -> AsyncIterator[str]:
        system, conversation = self.split_system(messages)

        async with self._get_client().messages.stream(
            model=self.model,
            system=system,
            messages=conversation,
            temperature=temperature,
            max_tokens=max_tokens,
        ) as response:
            async for text in response.text_stream:
                if text:
                    yield text


def build_providers(settings) -> dict[str, ChatCompletionProvider]:
    return {
        "openai": OpenAIChatProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_chat_model,
        ),
        "claude": ClaudeChatProvider(
            api_key=settings.anthropic_api_key,
            model=settings.claude_chat_model,
        ),
    }


def select_provider(settings) -> ChatCompletionProvider:
    """
    Pick the chat provider named in settings.

    "auto" prefers OpenAI, then Claude, among providers with a key.

    Raises:
        ConfigError: Named provider is unknown or no provider has a key
    """
    providers = build_providers(settings)
    choice = (settings.chat_provider or "auto").lower()

    if choice != "auto":
        provider = providers.get(choice)
        if provider is None:
            raise ConfigError(f"Unknown chat provider: {settings.chat_provider}")
        if not provider.is_available():
            logger.warning("forced_provider_not_available", provider=choice)
        return provider

    for name in ["openai", "claude"]:
        provider = providers[name]
        if provider.is_available():
            logger.info("chat_provider_selected", provider=name)
            return provider

    raise ConfigError("No chat provider configured: set OPENAI_API_KEY or ANTHROPIC_API_KEY")
