"""
CLI entry point for funding-assistant.

Usage:
    python -m funding_assistant scrape
    python -m funding_assistant scrape --source innovationsfonden
    python -m funding_assistant backfill --kind all
    python -m funding_assistant status
    python -m funding_assistant seed-knowledge
    python -m funding_assistant search "medtech tilskud" --limit 5
"""

import argparse
import asyncio
import json
import logging
import sys

import structlog

from .core.exceptions import UnknownSourceError

# Log level mapping
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

# Exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def setup_logging(level: str = "INFO", json_output: bool = False):
    """Configure structured logging; logs go to stderr, results to stdout."""
    log_level = LOG_LEVELS.get(level.upper(), logging.INFO)

    if json_output:
        processors = [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="funding-assistant",
        description="Danish life-science funding call aggregator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scrape all sources into the database
  python -m funding_assistant scrape

  # Scrape one source (EIC and EUROSTARS select the EU adapter)
  python -m funding_assistant scrape --source dlsc

  # Fill in missing embeddings, then check coverage
  python -m funding_assistant backfill --kind all
  python -m funding_assistant status

  # Load the packaged knowledge-base articles used as chat context
  python -m funding_assistant seed-knowledge

  # Semantic search with keyword fallback
  python -m funding_assistant search "InnoBooster"
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to settings.yml (default: packaged settings)",
    )

    parser.add_argument(
        "--db",
        type=str,
        help="SQLite database path (overrides settings)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON (for production)",
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    commands = parser.add_subparsers(dest="command")

    scrape = commands.add_parser("scrape", help="Run ingestion for one or all sources")
    scrape.add_argument(
        "--source",
        type=str,
        help="Source name (default: all)",
    )

    backfill = commands.add_parser("backfill", help="Generate missing embeddings")
    backfill.add_argument(
        "--kind",
        choices=["calls", "knowledge", "all"],
        default="all",
        help="Record kind to backfill (default: all)",
    )

    commands.add_parser("status", help="Show embedding coverage")

    seed = commands.add_parser("seed-knowledge", help="Load knowledge-base articles")
    seed.add_argument(
        "--file",
        type=str,
        help="Path to knowledge.yml (default: packaged articles)",
    )

    search = commands.add_parser("search", help="Search funding calls or knowledge")
    search.add_argument("query", type=str)
    search.add_argument("--limit", type=int, default=5)
    search.add_argument(
        "--kind",
        choices=["calls", "knowledge"],
        default="calls",
    )

    commands.add_parser("sources", help="List available sources")

    args = parser.parse_args(argv)
    if not args.version and not args.command:
        parser.print_help(sys.stderr)
        sys.exit(EXIT_USAGE)
    return args


def emit(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


KINDS = {
    "calls": "funding_call",
    "knowledge": "knowledge",
}


async def main_async(args) -> int:
    """Async main function; returns the exit code."""
    from .config import load_knowledge, load_settings
    from .core.models import RecordKind
    from .embeddings import OpenAIEmbeddingService
    from .maintenance import EmbeddingMaintenance
    from .orchestrator import IngestionOrchestrator
    from .retrieval import RetrievalService
    from .sources.registry import available_sources
    from .storage import SqliteCallStore

    logger = structlog.get_logger(__name__)

    if args.command == "sources":
        emit(available_sources())
        return EXIT_OK

    settings = load_settings(args.config, database_path=args.db)
    embedder = OpenAIEmbeddingService.from_settings(settings)

    if not embedder.is_available():
        logger.warning("embeddings_disabled", reason="No OpenAI API key")

    async with SqliteCallStore(settings.database_path) as store:
        if args.command == "scrape":
            orchestrator = IngestionOrchestrator(store, embedder, settings)
            result = await orchestrator.run(args.source)
            emit(result.to_dict())
            return EXIT_OK if result.success else EXIT_FAILURE

        if args.command == "backfill":
            maintenance = EmbeddingMaintenance(store, embedder, settings.embedding_delay_seconds)
            if args.kind == "all":
                counts = await maintenance.backfill_all()
            else:
                counts = {args.kind: await maintenance.backfill(RecordKind(KINDS[args.kind]))}
            emit({"processed": counts, "status": await maintenance.status()})
            return EXIT_OK

        if args.command == "status":
            maintenance = EmbeddingMaintenance(store, embedder, settings.embedding_delay_seconds)
            emit(await maintenance.status())
            return EXIT_OK

        if args.command == "seed-knowledge":
            entries = load_knowledge(args.file)
            for entry in entries:
                await store.upsert_knowledge(entry)
            logger.info("knowledge_seeded", count=len(entries))

            maintenance = EmbeddingMaintenance(store, embedder, settings.embedding_delay_seconds)
            processed = 0
            if embedder.is_available():
                processed = await maintenance.backfill(RecordKind.KNOWLEDGE)
            emit({
                "seeded": [entry.id for entry in entries],
                "processed": processed,
                "status": await maintenance.status(),
            })
            return EXIT_OK

        if args.command == "search":
            retrieval = RetrievalService(store, embedder)
            records = await retrieval.search(RecordKind(KINDS[args.kind]), args.query, args.limit)
            emit([record.to_dict() for record in records])
            return EXIT_OK

    return EXIT_USAGE


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    # Version check
    if args.version:
        from . import __version__
        print(f"funding-assistant {__version__}")
        sys.exit(EXIT_OK)

    # Setup logging
    setup_logging(args.log_level, args.json_logs)

    # Run async main
    try:
        sys.exit(asyncio.run(main_async(args)))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)
    except UnknownSourceError as e:
        print(f"{e}. Available: {', '.join(_source_names())}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    except Exception as e:
        logger = structlog.get_logger(__name__)
        logger.exception("fatal_error", error=str(e))
        sys.exit(EXIT_FAILURE)


def _source_names() -> list[str]:
    from .sources.registry import available_sources
    return available_sources()


if __name__ == "__main__":
    main()
