"""
Listing adapter: list page -> funding-related items.

Fetches one page, walks the repeated item elements, keeps the ones
whose title or teaser mentions funding, and turns each into a call.
"""

from bs4 import Tag

from funding_assistant.config.loader import ListingConfig
from funding_assistant.core.models import ScrapedCall
from funding_assistant.core.normalizer import determine_call_type, extract_deadline
from funding_assistant.core.selectors import first_link, first_text, parse_html

from .base import SourceAdapter


class ListingAdapter(SourceAdapter):
    """Scrapes the listing configured under `listing:` in sources.yml."""

    async def scrape(self) -> list[ScrapedCall]:
        calls = await self.listing_calls()
        self.logger.info("scrape_complete", calls=len(calls))
        return calls

    async def listing_calls(self) -> list[ScrapedCall]:
        listing = self.config.listing
        if listing is None:
            return []

        html = await self.fetch(listing.url)
        return self.parse_listing(html, listing)

    def is_relevant(self, title: str, description: str, listing: ListingConfig) -> bool:
        title_lower = title.lower()
        description_lower = description.lower()
        return any(k in title_lower for k in listing.title_keywords) or any(
            k in description_lower for k in listing.description_keywords
        )

    def parse_listing(self, html: str, listing: ListingConfig) -> list[ScrapedCall]:
        soup = parse_html(html)
        items = soup.select(listing.item_selector)

        self.logger.debug("listing_items_found", url=listing.url, count=len(items))

        calls = []
        for item in items:
            try:
                call = self.parse_item(item, listing)
                if call:
                    calls.append(call)
            except Exception as e:
                self.logger.error("listing_item_failed", error=str(e))

        return calls

    def parse_item(self, item: Tag, listing: ListingConfig):
        title = first_text(item, listing.title_selector)
        description = first_text(item, listing.description_selector)
        url = first_link(item, self.config.base_url + "/")

        if not (title and description and url):
            return None
        if not self.is_relevant(title, description, listing):
            return None

        deadline = extract_deadline(description, listing.deadline_labels) or listing.default_deadline

        call = self.build_call({
            "title": title,
            "description": description,
            "url": url,
            "deadline": deadline,
            "sectors": listing.sectors,
            "target_audience": listing.target_audience,
            "de_minimis": listing.de_minimis,
        })
        call.call_type = determine_call_type(f"{title} {description}")
        return call
