"""EU framework programmes relevant to Danish life science."""

from funding_assistant.core.models import ScrapedCall, Source

from .curated import CuratedAdapter


class EUHorizonAdapter(CuratedAdapter):
    """
    Curated Horizon Europe, EIC, Eurostars and MSCA calls.

    The EU funding portal needs an authenticated API for full listings,
    so the relevant calls are maintained in sources.yml. Each record is
    tagged with the programme that runs it.
    """

    source = Source.EU_HORIZON

    def resolve_source(self, call: ScrapedCall) -> Source:
        if "EIC" in call.title:
            return Source.EIC
        if "Eurostars" in call.title:
            return Source.EUROSTARS
        return Source.EU_HORIZON
