"""Exception hierarchy for the funding assistant."""


class FundingAssistantError(Exception):
    """Base class for all funding assistant errors."""


class ConfigError(FundingAssistantError):
    """Configuration file missing or invalid."""


class UnknownSourceError(FundingAssistantError, ValueError):
    """Requested source name has no registered adapter."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Unknown scraper source: {source}")


class EmbeddingError(FundingAssistantError):
    """Embedding provider call failed or returned an unusable vector."""


class StoreError(FundingAssistantError):
    """Call store read or write failed."""


class RetrievalError(FundingAssistantError):
    """Both vector search and text search failed."""
