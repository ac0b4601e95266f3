"""
Program-page adapter: one fetched page per known program.

Each program page is mined for heading, intro, amounts, deadline and
contact address; anything the page does not state falls back to the
program's configured defaults. A page that still lacks a title,
description or deadline yields no record.
"""

from typing import Optional

from funding_assistant.core.models import ScrapedCall
from funding_assistant.core.normalizer import (
    detect_sectors,
    detect_target_audience,
    extract_amounts,
    extract_deadline,
)
from funding_assistant.core.selectors import (
    cleanup_navigation,
    extract_body_text,
    extract_contact_email,
    extract_heading,
    extract_intro,
    get_main_container,
    parse_html,
)

from .base import SourceAdapter


class ProgramPageAdapter(SourceAdapter):
    """Scrapes every program listed under `programs:` by its page URL."""

    async def scrape(self) -> list[ScrapedCall]:
        calls = []

        for program in self.config.programs:
            slug = program.get("slug") or program.get("url")
            try:
                self.logger.debug("scraping_program", slug=slug)
                call = await self.scrape_program(program)
                if call:
                    calls.append(call)
            except Exception as e:
                self.logger.error("program_scrape_failed", slug=slug, error=str(e))

        self.logger.info("scrape_complete", calls=len(calls))
        return calls

    async def scrape_program(self, program: dict) -> Optional[ScrapedCall]:
        html = await self.fetch(program["url"])
        return self.parse_program_page(html, program)

    def parse_program_page(self, html: str, program: dict) -> Optional[ScrapedCall]:
        data = {**self.config.defaults, **program}
        slug = data.get("slug", "")

        soup = parse_html(html)
        body_text = extract_body_text(soup)
        contact_email = extract_contact_email(soup)

        cleanup_navigation(soup)
        title = extract_heading(soup) or data.get("name") or slug
        description = extract_intro(get_main_container(soup))

        min_amount, max_amount = extract_amounts(body_text, eur_rate=self.settings.eur_to_dkk)
        if max_amount is None:
            min_amount = data.get("min_amount")
            max_amount = data.get("max_amount")

        deadline = extract_deadline(body_text) or data.get("deadline")

        if not title or not description or not deadline:
            self.logger.warning(
                "missing_required_fields",
                slug=slug,
                title=bool(title),
                description=bool(description),
                deadline=bool(deadline),
            )
            return None

        data.update(
            title=title,
            description=description,
            min_amount=min_amount,
            max_amount=max_amount,
            deadline=deadline,
            contact_email=contact_email or data.get("contact_email"),
            sectors=data.get("sectors") or detect_sectors(description),
            target_audience=data.get("target_audience")
            or detect_target_audience(description),
        )
        return self.build_call(data)
