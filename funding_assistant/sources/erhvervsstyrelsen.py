"""Danish Business Authority and related state funds."""

from funding_assistant.core.models import CallType, ScrapedCall, Source

from .curated import CuratedAdapter


class ErhvervsstyrelsenAdapter(CuratedAdapter):
    """Curated vouchers, market maturation grants, export support and state equity."""

    source = Source.ERHVERVSSTYRELSEN

    def classify(self, call: ScrapedCall, data: dict) -> CallType:
        title = call.title.lower()

        if "voucher" in title or "bevis" in title:
            return CallType.VOUCHER
        if "fond" in title and ("fremtid" in title or "invester" in title):
            return CallType.EQUITY
        if "lån" in title or "loan" in title:
            return CallType.LOAN

        return CallType.GRANT
