"""
Curated adapter: known programs listed in sources.yml.

For sources whose calls are not exposed in a scrapeable form; the
program list is re-emitted on every run with computed fields
(call type, de-minimis, source tag).
"""

from funding_assistant.core.models import CallType, ScrapedCall, Source
from funding_assistant.core.normalizer import determine_call_type

from .base import SourceAdapter


class CuratedAdapter(SourceAdapter):
    """
    Re-emits the configured program list.

    Subclasses refine classify(), resolve_de_minimis() and resolve_source().
    """

    async def scrape(self) -> list[ScrapedCall]:
        calls = self.curated_calls()
        self.logger.info("scrape_complete", calls=len(calls))
        return calls

    def curated_calls(self) -> list[ScrapedCall]:
        calls = []

        for program in self.config.programs:
            try:
                calls.append(self.build_curated(program))
            except Exception as e:
                self.logger.error(
                    "program_processing_failed",
                    title=program.get("title"),
                    error=str(e),
                )

        return calls

    def build_curated(self, program: dict) -> ScrapedCall:
        data = {**self.config.defaults, **program}
        call = self.build_call(data)
        call.call_type = self.classify(call, data)
        call.de_minimis = self.resolve_de_minimis(call, data)
        call.source = self.resolve_source(call)
        return call

    def classify(self, call: ScrapedCall, data: dict) -> CallType:
        """Explicit call_type wins, else keyword classification of the title."""
        if data.get("call_type"):
            return CallType(data["call_type"])
        return determine_call_type(call.title)

    def resolve_de_minimis(self, call: ScrapedCall, data: dict) -> bool:
        """Explicit flag wins, else small awards are de-minimis."""
        if "de_minimis" in data:
            return bool(data["de_minimis"])
        return self.infer_de_minimis(call.max_amount)

    def resolve_source(self, call: ScrapedCall) -> Source:
        return self.source
