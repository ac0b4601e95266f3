"""
Embedding service adapter.

Turns text into fixed-length vectors. No retry is built in: callers
decide whether a failure falls back, is recorded, or propagates.
"""

from abc import ABC, abstractmethod
from typing import Optional

import structlog

from .core.exceptions import EmbeddingError
from .core.models import FundingCall, KnowledgeEntry, ScrapedCall

logger = structlog.get_logger(__name__)


def call_embedding_text(call: ScrapedCall) -> str:
    """
    Text embedded for a funding call.

    Field order is fixed: title, description, sectors, type. Changing it
    moves new vectors away from already-stored ones.
    """
    return f"{call.title} {call.description} {' '.join(call.sectors)} {call.call_type.value}"


def knowledge_embedding_text(entry: KnowledgeEntry) -> str:
    return f"{entry.title} {entry.content}"


class EmbeddingService(ABC):
    """Abstract embedding provider."""

    dimensions: int = 1536

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """
        Embed one text.

        Raises:
            EmbeddingError: Provider call failed or vector is unusable
        """

    def is_available(self) -> bool:
        return True

    async def embed_call(self, call: ScrapedCall) -> list[float]:
        return await self.embed(call_embedding_text(call))

    async def embed_knowledge(self, entry: KnowledgeEntry) -> list[float]:
        return await self.embed(knowledge_embedding_text(entry))

    async def embed_record(self, record) -> list[float]:
        if isinstance(record, (FundingCall, ScrapedCall)):
            return await self.embed_call(record)
        return await self.embed_knowledge(record)


class OpenAIEmbeddingService(EmbeddingService):
    """OpenAI embeddings (text-embedding-3-small by default)."""

    # Conservative limit below the model's token window
    MAX_CHARS = 30000

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
    ):
        self.api_key = api_key
        self.model = model
        self.dimensions = dimensions
        self._client = None

    @classmethod
    def from_settings(cls, settings) -> "OpenAIEmbeddingService":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
        )

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

    async def embed(self, text: str) -> list[float]:
        if not self.is_available():
            raise EmbeddingError("OpenAI API key not configured")

        if len(text) > self.MAX_CHARS:
            text = text[:self.MAX_CHARS]

        try:
            response = await self._get_client().embeddings.create(
                model=self.model,
                input=text,
            )
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        vector = list(response.data[0].embedding)
        if len(vector) != self.dimensions:
            raise EmbeddingError(
                f"Expected {self.dimensions} dimensions from {self.model}, got {len(vector)}"
            )
        return vector
