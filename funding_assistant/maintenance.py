"""
Embedding maintenance: backfill missing vectors and report coverage.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from .core.models import RecordKind
from .embeddings import EmbeddingService
from .storage.base import CallStore

logger = structlog.get_logger(__name__)

# Keys of the status payload
STATUS_KEYS = {
    RecordKind.FUNDING_CALL: "calls",
    RecordKind.KNOWLEDGE: "knowledge",
}


@dataclass
class Coverage:
    kind: RecordKind
    total: int
    with_embedding: int

    @property
    def pending(self) -> int:
        return self.total - self.with_embedding

    @property
    def percent(self) -> Optional[float]:
        if self.total == 0:
            return None
        return self.with_embedding / self.total * 100

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "with_embedding": self.with_embedding,
            "pending": self.pending,
            "percent": self.percent,
        }

    def to_status(self) -> dict:
        percent = self.percent
        return {
            "pending": self.pending,
            "total": self.total,
            "coverage": "N/A" if percent is None else f"{percent:.1f}%",
        }


class EmbeddingMaintenance:
    """
    Fills in embeddings the ingestion path left empty.

    Records are processed one at a time with a fixed pause between
    provider calls.
    """

    def __init__(
        self,
        store: CallStore,
        embedder: EmbeddingService,
        delay_seconds: float = 0.1,
    ):
        self.store = store
        self.embedder = embedder
        self.delay_seconds = delay_seconds

    async def backfill(self, kind: RecordKind) -> int:
        """
        Embed every record of kind that has no vector.

        Returns:
            Number of records that were eligible, not the number that
            succeeded.
        """
        records = await self.store.find_many_without_embedding(kind)
        log = logger.bind(kind=kind.value)
        log.info("backfill_started", pending=len(records))

        succeeded = 0
        for index, record in enumerate(records):
            if index and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)
            try:
                vector = await self.embedder.embed_record(record)
                await self.store.set_embedding(kind, record.id, vector)
                succeeded += 1
            except Exception as e:
                log.error("backfill_record_failed", record_id=record.id, title=record.title, error=str(e))

        log.info(
            "backfill_complete",
            eligible=len(records),
            succeeded=succeeded,
            failed=len(records) - succeeded,
        )
        return len(records)

    async def backfill_all(self) -> dict[str, int]:
        results = {}
        for kind, key in STATUS_KEYS.items():
            results[key] = await self.backfill(kind)
        return results

    async def coverage(self) -> dict[RecordKind, Coverage]:
        report = {}
        for kind in STATUS_KEYS:
            report[kind] = Coverage(
                kind=kind,
                total=await self.store.count(kind),
                with_embedding=await self.store.count(kind, with_embedding=True),
            )
        return report

    async def status(self) -> dict[str, dict]:
        """Coverage per kind in display form: pending, total, coverage."""
        report = await self.coverage()
        return {STATUS_KEYS[kind]: cov.to_status() for kind, cov in report.items()}
