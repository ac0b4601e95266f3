"""
Ingestion orchestrator.

Coordinates:
- Adapter selection (one named source, or all of them)
- Sequential adapter execution over one shared HTTP client
- Per-record embedding and upsert into the call store
- Run statistics and human-readable error list
"""

from contextlib import AsyncExitStack
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import structlog

from .config.loader import Settings, SourceConfig, load_sources
from .core.http_client import HttpClient
from .core.models import ScrapedCall, Source
from .embeddings import EmbeddingService
from .sources.base import SourceAdapter
from .sources.registry import ADAPTERS, create_adapter, resolve_source
from .storage.base import CallStore

logger = structlog.get_logger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"


@dataclass
class RunStats:
    total: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ScrapeResult:
    """
    Outcome of one ingestion run.

    to_dict() is the stable schema returned to CLI and HTTP callers.
    """

    stats: RunStats = field(default_factory=RunStats)
    errors: list[str] = field(default_factory=list)
    state: RunState = RunState.IDLE
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        # A run that scraped nothing is not a success
        return self.stats.failed < self.stats.total

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "stats": self.stats.to_dict(),
            "errors": list(self.errors),
            "timestamp": (self.finished_at or datetime.now(timezone.utc)).isoformat(),
        }


class IngestionOrchestrator:
    """
    Runs source adapters and persists their output.

    Usage:
        orchestrator = IngestionOrchestrator(store, embedder, settings)
        result = await orchestrator.run()            # all sources
        result = await orchestrator.run("DLSC")      # one source
    """

    def __init__(
        self,
        store: CallStore,
        embedder: Optional[EmbeddingService],
        settings: Optional[Settings] = None,
        source_configs: Optional[dict[Source, SourceConfig]] = None,
        http_client: Optional[HttpClient] = None,
        adapters: Optional[dict[Source, type[SourceAdapter]]] = None,
    ):
        """
        Args:
            store: Call store receiving upserts
            embedder: Embedding service; None stores calls without vectors
            settings: Runtime settings
            source_configs: Parsed sources.yml (loaded lazily when omitted)
            http_client: Shared client; one is created per run when omitted
            adapters: Adapter table overriding the default registry
        """
        self.store = store
        self.embedder = embedder
        self.settings = settings or Settings()
        self.http_client = http_client
        self.adapters = adapters if adapters is not None else ADAPTERS
        self._source_configs = source_configs

        self.state = RunState.IDLE

    @property
    def source_configs(self) -> dict[Source, SourceConfig]:
        if self._source_configs is None:
            self._source_configs = load_sources(self.settings.sources_file)
        return self._source_configs

    def resolve(self, source: Optional[str]) -> list[Source]:
        """
        Sources to run, in order.

        Raises:
            UnknownSourceError: source names no adapter
        """
        if source:
            return [resolve_source(source, self.adapters)]
        return list(self.adapters)

    async def run(self, source: Optional[str] = None) -> ScrapeResult:
        """
        Run one named source or all sources.

        Adapter and record failures are folded into the result; only an
        unknown source name raises, before any work starts.
        """
        sources = self.resolve(source)

        result = ScrapeResult(state=RunState.RUNNING, started_at=datetime.now(timezone.utc))
        self.state = RunState.RUNNING

        logger.info("starting_ingestion", sources=[s.value for s in sources])

        async with AsyncExitStack() as stack:
            http_client = self.http_client
            if http_client is None:
                http_client = await stack.enter_async_context(
                    HttpClient.from_settings(self.settings)
                )

            for src in sources:
                await self._run_source(src, http_client, result)

        result.finished_at = datetime.now(timezone.utc)
        result.state = RunState.COMPLETED_WITH_ERRORS if result.errors else RunState.COMPLETED
        self.state = result.state

        if result.stats.total == 0:
            logger.warning("no_calls_scraped", sources=[s.value for s in sources])

        logger.info(
            "scrape_complete",
            success=result.success,
            errors=len(result.errors),
            **result.stats.to_dict(),
        )
        return result

    async def _run_source(self, source: Source, http_client, result: ScrapeResult) -> None:
        log = logger.bind(source=source.value)
        log.info("processing_source")

        try:
            adapter = create_adapter(
                source,
                self.source_configs,
                http_client=http_client,
                settings=self.settings,
                table=self.adapters,
            )
            calls = await adapter.scrape()
        except Exception as e:
            message = f"Scraper {source.value} failed: {e}"
            log.error("source_processing_failed", error=str(e))
            result.errors.append(message)
            return

        result.stats.total += len(calls)
        log.info("source_scraped", calls=len(calls))

        for call in calls:
            await self._ingest(call, result)

    async def _needs_embedding(self, call: ScrapedCall) -> bool:
        existing = await self.store.get_by_url(call.url)
        return (
            existing is None
            or existing.embedding is None
            or existing.content_signature() != call.content_signature()
        )

    async def _embed(self, call: ScrapedCall) -> Optional[list[float]]:
        """Embedding for new or changed calls; None on failure or when unchanged."""
        if self.embedder is None or not self.embedder.is_available():
            return None

        try:
            if not await self._needs_embedding(call):
                return None
            return await self.embedder.embed_call(call)
        except Exception as e:
            logger.warning("embedding_failed", url=call.url, title=call.title, error=str(e))
            return None

    async def _ingest(self, call: ScrapedCall, result: ScrapeResult) -> None:
        if not call.amounts_consistent():
            logger.warning(
                "amount_range_inverted",
                url=call.url,
                min_amount=call.min_amount,
                max_amount=call.max_amount,
            )

        embedding = await self._embed(call)

        try:
            upserted = await self.store.upsert_by_url(call, embedding=embedding)
        except Exception as e:
            result.stats.failed += 1
            result.errors.append(f"Failed to save call: {call.title} - {e}")
            logger.error("call_save_failed", url=call.url, title=call.title, error=str(e))
            return

        if upserted.created:
            result.stats.created += 1
        else:
            result.stats.updated += 1
