"""
Call store interface.

The store owns persisted identity, timestamps and embeddings for both
record kinds. Funding-call reads for retrieval always drop inactive
and expired rows.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Union

from funding_assistant.core.models import (
    CallFilters,
    FundingCall,
    KnowledgeEntry,
    RecordKind,
    ScrapedCall,
    UpsertResult,
    utcnow,
)

Record = Union[FundingCall, KnowledgeEntry]


def apply_scrape(
    existing: FundingCall,
    scraped: ScrapedCall,
    embedding: Optional[list[float]],
    now: datetime,
) -> FundingCall:
    """
    Update an existing call in place from a fresh scrape.

    A supplied embedding replaces the stored one. Without one, the stored
    embedding survives only if the embedded fields are unchanged.
    """
    content_changed = existing.content_signature() != scraped.content_signature()

    existing.apply(scraped)
    if embedding is not None:
        existing.embedding = list(embedding)
    elif content_changed:
        existing.embedding = None

    existing.updated_at = now
    existing.scraped_at = now
    return existing


def new_call(
    scraped: ScrapedCall,
    embedding: Optional[list[float]],
    now: datetime,
) -> FundingCall:
    return FundingCall.from_scraped(
        scraped,
        embedding=list(embedding) if embedding is not None else None,
        created_at=now,
        updated_at=now,
        scraped_at=now,
    )


def text_matches(record: Record, query: str) -> bool:
    """Case-insensitive substring match on title and body text."""
    needle = query.casefold()
    if isinstance(record, FundingCall):
        haystacks = (record.title, record.description)
    else:
        haystacks = (record.title, record.content)
    return any(needle in (h or "").casefold() for h in haystacks)


class CallStore(ABC):
    """
    Repository for funding calls and knowledge-base entries.

    Usage:
        store = InMemoryCallStore()
        result = await store.upsert_by_url(scraped, embedding=vector)
        hits = await store.similarity_search(RecordKind.FUNDING_CALL, query_vector, 5)
    """

    def now(self) -> datetime:
        return utcnow()

    @abstractmethod
    async def upsert_by_url(
        self,
        scraped: ScrapedCall,
        embedding: Optional[list[float]] = None,
    ) -> UpsertResult:
        """
        Atomically create or update the call keyed by scraped.url.

        Both paths refresh updated_at and scraped_at.
        """

    @abstractmethod
    async def get_by_url(self, url: str) -> Optional[FundingCall]:
        pass

    @abstractmethod
    async def get(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        pass

    @abstractmethod
    async def set_active(self, url: str, active: bool) -> bool:
        """Retire or reinstate a call. Returns False if the url is unknown."""

    @abstractmethod
    async def upsert_knowledge(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Create or replace a knowledge entry keyed by id."""

    @abstractmethod
    async def find_many_without_embedding(self, kind: RecordKind) -> list[Record]:
        pass

    @abstractmethod
    async def set_embedding(self, kind: RecordKind, record_id: str, vector: list[float]) -> None:
        pass

    @abstractmethod
    async def similarity_search(
        self,
        kind: RecordKind,
        vector: list[float],
        limit: int,
        filters: Optional[CallFilters] = None,
    ) -> list[Record]:
        """Nearest first; embedded rows only."""

    @abstractmethod
    async def text_search(
        self,
        kind: RecordKind,
        query: str,
        limit: int,
        filters: Optional[CallFilters] = None,
    ) -> list[Record]:
        """Substring fallback; calls ordered by nearest deadline."""

    @abstractmethod
    async def count(self, kind: RecordKind, with_embedding: Optional[bool] = None) -> int:
        pass

    @abstractmethod
    async def list_calls(
        self,
        filters: Optional[CallFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[FundingCall]:
        """Active, open calls ordered by deadline."""

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> "CallStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
