"""Shared fixtures: deterministic embeddings, canned HTTP pages, sample calls."""

import hashlib
import math
import re
from datetime import datetime, timedelta

import pytest

from funding_assistant.config.loader import Settings, SourceConfig
from funding_assistant.core.exceptions import EmbeddingError
from funding_assistant.core.models import CallType, KnowledgeEntry, ScrapedCall, Source
from funding_assistant.embeddings import EmbeddingService
from funding_assistant.storage.memory import InMemoryCallStore


class HashEmbeddingService(EmbeddingService):
    """Bag-of-words vectors from token hashes; identical text gives identical vectors."""

    def __init__(self, dimensions: int = 64):
        self.dimensions = dimensions
        self.calls = 0

    async def embed(self, text: str) -> list[float]:
        self.calls += 1
        vector = [0.0] * self.dimensions
        for token in re.findall(r"\w+", text.lower()):
            digest = hashlib.md5(token.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % self.dimensions] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector] if norm else vector


class FailingEmbeddingService(EmbeddingService):
    """Always fails, like a provider outage."""

    async def embed(self, text: str) -> list[float]:
        raise EmbeddingError("provider unavailable")


class FakeHttpClient:
    """Serves canned HTML by URL; unknown URLs raise like a network error."""

    def __init__(self, pages: dict[str, str]):
        self.pages = pages
        self.requested: list[str] = []

    async def get_text(self, url: str, use_cache: bool = True) -> str:
        self.requested.append(url)
        if url not in self.pages:
            raise ConnectionError(f"unreachable: {url}")
        return self.pages[url]

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


def next_year(month: int = 3, day: int = 15) -> datetime:
    return datetime(datetime.now().year + 1, month, day)


def make_call(**overrides) -> ScrapedCall:
    data = dict(
        title="InnoBooster",
        description="Tilskud til startups og SMV'er med innovative life science projekter.",
        url="https://innovationsfonden.dk/da/programmer/innobooster",
        source=Source.INNOVATIONSFONDEN,
        deadline=next_year(),
        call_type=CallType.GRANT,
        sectors=["biotech", "medtech"],
        target_audience=["startup", "sme"],
        min_amount=100_000,
        max_amount=5_000_000,
    )
    data.update(overrides)
    return ScrapedCall(**data)


@pytest.fixture
def settings():
    return Settings(embedding_dimensions=64, embedding_delay_seconds=0)


@pytest.fixture
def store():
    return InMemoryCallStore()


@pytest.fixture
def embedder():
    return HashEmbeddingService()


@pytest.fixture
def failing_embedder():
    return FailingEmbeddingService()


@pytest.fixture
def sample_call():
    return make_call()


@pytest.fixture
def knowledge_entry():
    return KnowledgeEntry(
        title="De minimis",
        content="De minimis-støtte er begrænset til 300.000 EUR over tre år.",
        category="regler",
    )


@pytest.fixture
def curated_config():
    """Two-program curated source for adapter tests."""
    return SourceConfig(
        source=Source.ERHVERVSSTYRELSEN,
        source_name="Erhvervsstyrelsen",
        base_url="https://erhvervsstyrelsen.dk",
        programs=[
            {
                "title": "Vækstpakken - SMV Vouchers",
                "description": "Vouchers til rådgivning.",
                "url": "https://erhvervsstyrelsen.dk/vaekstpakken",
                "deadline": next_year().date(),
                "max_amount": 200000,
            },
            {
                "title": "Danmarks Grønne Fremtidsfond",
                "description": "Statsinvesteringsfond.",
                "url": "https://danmarksgroennefremtidsfond.dk/",
                "deadline": next_year().date(),
                "max_amount": 100000000,
            },
        ],
    )


@pytest.fixture
def week_ago():
    return datetime.now() - timedelta(days=7)


@pytest.fixture
def call_factory():
    """Build ScrapedCall objects with realistic defaults and overrides."""
    return make_call


@pytest.fixture
def future_date():
    return next_year()


@pytest.fixture
def http_factory():
    """Build a FakeHttpClient serving the given url -> html pages."""
    return FakeHttpClient
