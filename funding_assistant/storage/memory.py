"""In-process call store for tests and one-off runs."""

import copy
from typing import Optional

import structlog

from funding_assistant.core.models import (
    CallFilters,
    FundingCall,
    KnowledgeEntry,
    RecordKind,
    ScrapedCall,
    UpsertResult,
)

from .base import CallStore, Record, apply_scrape, new_call, text_matches
from .vectors import rank_by_distance

logger = structlog.get_logger(__name__)


class InMemoryCallStore(CallStore):
    """
    Dict-backed store.

    Records handed out are copies, so callers cannot mutate stored state.
    """

    def __init__(self):
        self._calls: dict[str, FundingCall] = {}
        self._url_index: dict[str, str] = {}
        self._knowledge: dict[str, KnowledgeEntry] = {}

    def _table(self, kind: RecordKind) -> dict:
        return self._calls if kind == RecordKind.FUNDING_CALL else self._knowledge

    async def upsert_by_url(
        self,
        scraped: ScrapedCall,
        embedding: Optional[list[float]] = None,
    ) -> UpsertResult:
        now = self.now()
        call_id = self._url_index.get(scraped.url)

        if call_id is None:
            call = new_call(scraped, embedding, now)
            self._calls[call.id] = call
            self._url_index[call.url] = call.id
            return UpsertResult(call=copy.deepcopy(call), created=True)

        call = apply_scrape(self._calls[call_id], scraped, embedding, now)
        return UpsertResult(call=copy.deepcopy(call), created=False)

    async def get_by_url(self, url: str) -> Optional[FundingCall]:
        call_id = self._url_index.get(url)
        return copy.deepcopy(self._calls[call_id]) if call_id else None

    async def get(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        record = self._table(kind).get(record_id)
        return copy.deepcopy(record) if record else None

    async def set_active(self, url: str, active: bool) -> bool:
        call_id = self._url_index.get(url)
        if call_id is None:
            return False
        call = self._calls[call_id]
        call.is_active = active
        call.updated_at = self.now()
        return True

    async def upsert_knowledge(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        stored = copy.deepcopy(entry)
        existing = self._knowledge.get(entry.id)
        if existing:
            stored.created_at = existing.created_at
        stored.updated_at = self.now()
        self._knowledge[stored.id] = stored
        return copy.deepcopy(stored)

    async def find_many_without_embedding(self, kind: RecordKind) -> list[Record]:
        return [
            copy.deepcopy(record)
            for record in self._table(kind).values()
            if record.embedding is None
        ]

    async def set_embedding(self, kind: RecordKind, record_id: str, vector: list[float]) -> None:
        record = self._table(kind).get(record_id)
        if record is None:
            raise KeyError(f"No {kind.value} with id {record_id}")
        record.embedding = list(vector)

    def _filtered(self, kind: RecordKind, filters: Optional[CallFilters]) -> list[Record]:
        filters = filters or CallFilters()
        if kind == RecordKind.FUNDING_CALL:
            return [c for c in self._calls.values() if filters.matches_call(c)]
        return [k for k in self._knowledge.values() if filters.matches_knowledge(k)]

    async def similarity_search(
        self,
        kind: RecordKind,
        vector: list[float],
        limit: int,
        filters: Optional[CallFilters] = None,
    ) -> list[Record]:
        candidates = [(r, r.embedding) for r in self._filtered(kind, filters)]
        return [copy.deepcopy(r) for r in rank_by_distance(vector, candidates, limit)]

    async def text_search(
        self,
        kind: RecordKind,
        query: str,
        limit: int,
        filters: Optional[CallFilters] = None,
    ) -> list[Record]:
        matches = [r for r in self._filtered(kind, filters) if text_matches(r, query)]
        if kind == RecordKind.FUNDING_CALL:
            matches.sort(key=lambda c: c.deadline)
        else:
            matches.sort(key=lambda k: k.created_at)
        return [copy.deepcopy(r) for r in matches[:limit]]

    async def count(self, kind: RecordKind, with_embedding: Optional[bool] = None) -> int:
        records = self._table(kind).values()
        if with_embedding is None:
            return len(records)
        return sum(1 for r in records if (r.embedding is not None) == with_embedding)

    async def list_calls(
        self,
        filters: Optional[CallFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[FundingCall]:
        calls = sorted(self._filtered(RecordKind.FUNDING_CALL, filters), key=lambda c: c.deadline)
        return [copy.deepcopy(c) for c in calls[offset:offset + limit]]
