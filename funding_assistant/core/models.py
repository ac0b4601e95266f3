"""
Data models for the funding assistant.

ScrapedCall is the adapter output; FundingCall is the persisted shape
owned by the call store.
"""

import uuid
from dataclasses import dataclass, field, asdict, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Source(str, Enum):
    """Originating organization of a funding call."""
    DLSC = "DLSC"
    INNOVATIONSFONDEN = "INNOVATIONSFONDEN"
    EU_HORIZON = "EU_HORIZON"
    EIC = "EIC"
    EUROSTARS = "EUROSTARS"
    ERHVERVSSTYRELSEN = "ERHVERVSSTYRELSEN"
    OTHER = "OTHER"


class CallType(str, Enum):
    """Funding mechanism."""
    GRANT = "GRANT"
    LOAN = "LOAN"
    EQUITY = "EQUITY"
    VOUCHER = "VOUCHER"
    PRIZE = "PRIZE"
    OTHER = "OTHER"


class RecordKind(str, Enum):
    """Record families held by the call store."""
    FUNDING_CALL = "funding_call"
    KNOWLEDGE = "knowledge"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _serialize(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass
class ScrapedCall:
    """
    Normalized funding call as produced by a source adapter.

    Transient: carries no identity, timestamps or embedding. Amounts are
    whole DKK, co_financing is the percentage the applicant self-funds.
    """

    title: str
    description: str
    url: str
    source: Source
    deadline: datetime
    call_type: CallType = CallType.GRANT

    title_en: Optional[str] = None
    description_en: Optional[str] = None

    sectors: list[str] = field(default_factory=list)
    target_audience: list[str] = field(default_factory=list)

    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    co_financing: Optional[int] = None
    de_minimis: bool = False

    open_date: Optional[datetime] = None

    application_url: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    def content_signature(self) -> tuple:
        """Fields an embedding is derived from."""
        return (self.title, self.description, tuple(self.sectors), self.call_type)

    def amounts_consistent(self) -> bool:
        """min_amount <= max_amount whenever both are known."""
        if self.min_amount is None or self.max_amount is None:
            return True
        return self.min_amount <= self.max_amount

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {k: _serialize(v) for k, v in asdict(self).items()}


@dataclass
class FundingCall(ScrapedCall):
    """Persisted funding call."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    is_active: bool = True
    embedding: Optional[list[float]] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    scraped_at: Optional[datetime] = None

    @classmethod
    def from_scraped(cls, scraped: ScrapedCall, **kwargs) -> "FundingCall":
        """Create a persisted record from adapter output."""
        data = {f.name: getattr(scraped, f.name) for f in fields(ScrapedCall)}
        data["sectors"] = list(scraped.sectors)
        data["target_audience"] = list(scraped.target_audience)
        data.update(kwargs)
        return cls(**data)

    def apply(self, scraped: ScrapedCall) -> None:
        """Overwrite descriptive fields from a fresh scrape, in place."""
        for f in fields(ScrapedCall):
            value = getattr(scraped, f.name)
            if isinstance(value, list):
                value = list(value)
            setattr(self, f.name, value)

    def to_dict(self, include_embedding: bool = False) -> dict:
        data = super().to_dict()
        if not include_embedding:
            data.pop("embedding", None)
        return data


@dataclass
class KnowledgeEntry:
    """Knowledge-base article used only as chat context."""

    title: str
    content: str
    category: str = "general"

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    embedding: Optional[list[float]] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self, include_embedding: bool = False) -> dict:
        data = {k: _serialize(v) for k, v in asdict(self).items()}
        if not include_embedding:
            data.pop("embedding", None)
        return data


@dataclass
class CallFilters:
    """
    Optional narrowing applied on top of the mandatory active/non-expired
    filter for funding calls.

    as_of overrides "now" for the deadline cutoff.
    """

    source: Optional[Source] = None
    call_type: Optional[CallType] = None
    sector: Optional[str] = None
    category: Optional[str] = None
    as_of: Optional[datetime] = None

    def cutoff(self) -> datetime:
        return self.as_of or datetime.now()

    def matches_call(self, call: FundingCall) -> bool:
        if not call.is_active or call.deadline <= self.cutoff():
            return False
        if self.source and call.source != self.source:
            return False
        if self.call_type and call.call_type != self.call_type:
            return False
        if self.sector and self.sector not in call.sectors:
            return False
        return True

    def matches_knowledge(self, entry: KnowledgeEntry) -> bool:
        return not self.category or entry.category == self.category


@dataclass
class UpsertResult:
    """Outcome of an upsert-by-url."""
    call: FundingCall
    created: bool
