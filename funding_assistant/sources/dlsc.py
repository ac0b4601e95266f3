"""
Danish Life Science Cluster: curated cluster programs plus funding news
picked from the front page.
"""

from funding_assistant.core.models import ScrapedCall, Source

from .curated import CuratedAdapter
from .listing import ListingAdapter


class DLSCAdapter(CuratedAdapter, ListingAdapter):
    """
    Hybrid adapter.

    Curated calls are always emitted. The live listing is best-effort:
    if the site is unreachable the curated calls are still returned.
    """

    source = Source.DLSC

    async def scrape(self) -> list[ScrapedCall]:
        calls = self.curated_calls()

        try:
            calls.extend(await self.listing_calls())
        except Exception as e:
            self.logger.error("listing_scrape_failed", error=str(e))

        self.logger.info("scrape_complete", calls=len(calls))
        return calls
