"""
Core layer - stable foundation for the funding assistant.

Components:
- models: ScrapedCall, FundingCall, KnowledgeEntry dataclasses
- http_client: Rate-limited, retrying page fetcher
- selectors: BeautifulSoup helpers for program pages and listings
- normalizer: Danish date, amount, sector and call-type normalization
- exceptions: Error hierarchy
"""

from .models import (
    CallFilters,
    CallType,
    FundingCall,
    KnowledgeEntry,
    RecordKind,
    ScrapedCall,
    Source,
    UpsertResult,
)
from .normalizer import (
    determine_call_type,
    extract_email,
    extract_phone,
    normalize_sector,
    parse_amount,
    parse_date,
)
from .exceptions import (
    EmbeddingError,
    FundingAssistantError,
    RetrievalError,
    StoreError,
    UnknownSourceError,
)

__all__ = [
    "CallFilters",
    "CallType",
    "FundingCall",
    "KnowledgeEntry",
    "RecordKind",
    "ScrapedCall",
    "Source",
    "UpsertResult",
    "determine_call_type",
    "extract_email",
    "extract_phone",
    "normalize_sector",
    "parse_amount",
    "parse_date",
    "EmbeddingError",
    "FundingAssistantError",
    "RetrievalError",
    "StoreError",
    "UnknownSourceError",
]
