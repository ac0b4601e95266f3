"""
Retrieval service.

Vector similarity first, keyword matching when the vector path fails.
Callers get the same result shape from either path.
"""

from typing import Optional

import structlog

from .core.exceptions import RetrievalError
from .core.models import CallFilters, FundingCall, KnowledgeEntry, RecordKind
from .embeddings import EmbeddingService
from .storage.base import CallStore, Record

logger = structlog.get_logger(__name__)

DEFAULT_CALL_LIMIT = 5
DEFAULT_KNOWLEDGE_LIMIT = 3


class RetrievalService:
    """Ranked lookup of funding calls and knowledge entries."""

    def __init__(self, store: CallStore, embedder: Optional[EmbeddingService]):
        self.store = store
        self.embedder = embedder

    async def _vector_search(
        self,
        kind: RecordKind,
        query: str,
        limit: int,
        filters: CallFilters,
    ) -> list[Record]:
        if self.embedder is None:
            raise RetrievalError("No embedding service configured")
        vector = await self.embedder.embed(query)
        return await self.store.similarity_search(kind, vector, limit, filters)

    async def search(
        self,
        kind: RecordKind,
        query: str,
        limit: int,
        filters: Optional[CallFilters] = None,
    ) -> list[Record]:
        """
        Most relevant records for query, nearest first.

        Active, non-expired filtering applies to funding calls on both
        paths. An empty list means nothing matched.

        Raises:
            RetrievalError: Both vector and text search failed
        """
        query = (query or "").strip()
        if not query or limit <= 0:
            return []

        filters = filters or CallFilters()

        try:
            return await self._vector_search(kind, query, limit, filters)
        except Exception as e:
            logger.warning(
                "vector_search_failed",
                kind=kind.value,
                error=str(e),
                fallback="text_search",
            )

        try:
            return await self.store.text_search(kind, query, limit, filters)
        except Exception as e:
            logger.error("text_search_failed", kind=kind.value, error=str(e))
            raise RetrievalError(f"Search failed for {kind.value}: {e}") from e

    async def search_calls(
        self,
        query: str,
        limit: int = DEFAULT_CALL_LIMIT,
        filters: Optional[CallFilters] = None,
    ) -> list[FundingCall]:
        return await self.search(RecordKind.FUNDING_CALL, query, limit, filters)

    async def search_knowledge(
        self,
        query: str,
        limit: int = DEFAULT_KNOWLEDGE_LIMIT,
        filters: Optional[CallFilters] = None,
    ) -> list[KnowledgeEntry]:
        return await self.search(RecordKind.KNOWLEDGE, query, limit, filters)
