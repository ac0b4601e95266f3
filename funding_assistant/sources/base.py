"""
Base class for source adapters.

An adapter turns one funding source into a list of ScrapedCall records.
Per-item failures are logged and the item is dropped; scrape() itself
only raises when the whole source is unusable.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog

from funding_assistant.config.loader import Settings, SourceConfig, to_datetime
from funding_assistant.core.http_client import HttpClient
from funding_assistant.core.models import CallType, ScrapedCall, Source
from funding_assistant.core.normalizer import (
    dedupe,
    infer_de_minimis,
    normalize_sector,
    normalize_title,
    parse_amount,
)

logger = structlog.get_logger(__name__)


class SourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Shapes:
    - Curated: fixed program list from config, re-emitted every run
    - Listing: one fetched page with repeated items, keyword-filtered
    - Program pages: one fetched page per known program URL
    """

    source: Source = Source.OTHER

    def __init__(
        self,
        config: SourceConfig,
        http_client: Optional[HttpClient] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Args:
            config: Source definition from sources.yml
            http_client: Shared HTTP client, required by live-fetched shapes
            settings: Runtime settings (defaults when omitted)
        """
        self.config = config
        self.http_client = http_client
        self.settings = settings or Settings()
        self.logger = logger.bind(source=self.source.value)

    @abstractmethod
    async def scrape(self) -> list[ScrapedCall]:
        """Return normalized calls for this source."""

    async def fetch(self, url: str) -> str:
        if self.http_client is None:
            raise RuntimeError(f"{self.__class__.__name__} needs an HTTP client to fetch {url}")
        return await self.http_client.get_text(url)

    def parse_amount_value(self, value: Any) -> Optional[int]:
        """Config amounts are ints or strings such as "€2 mio"."""
        if value is None or value == "":
            return None
        if isinstance(value, (int, float)):
            return int(value)
        return parse_amount(str(value), eur_rate=self.settings.eur_to_dkk)

    def infer_de_minimis(self, max_amount: Optional[int]) -> bool:
        return infer_de_minimis(max_amount, self.settings.de_minimis_threshold)

    def build_call(self, data: dict) -> ScrapedCall:
        """
        Build a ScrapedCall from merged config/scraped values.

        Raises:
            ValueError: title, description, url or deadline missing
        """
        title = normalize_title(data.get("title") or "")
        description = (data.get("description") or "").strip()
        url = data.get("url")
        deadline = to_datetime(data.get("deadline"))

        missing = [
            name for name, value in (
                ("title", title),
                ("description", description),
                ("url", url),
                ("deadline", deadline),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        call_type = data.get("call_type")
        co_financing = data.get("co_financing")

        return ScrapedCall(
            title=title,
            description=description,
            url=url,
            source=self.source,
            deadline=deadline,
            call_type=CallType(call_type) if call_type else CallType.GRANT,
            title_en=data.get("title_en"),
            description_en=data.get("description_en"),
            sectors=dedupe(normalize_sector(s) for s in data.get("sectors") or []),
            target_audience=dedupe(data.get("target_audience") or []),
            min_amount=self.parse_amount_value(data.get("min_amount")),
            max_amount=self.parse_amount_value(data.get("max_amount")),
            co_financing=int(co_financing) if co_financing is not None else None,
            de_minimis=bool(data.get("de_minimis", False)),
            open_date=to_datetime(data.get("open_date")),
            application_url=data.get("application_url"),
            contact_email=data.get("contact_email"),
            contact_phone=data.get("contact_phone"),
        )
