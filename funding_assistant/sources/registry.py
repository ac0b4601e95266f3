"""
Adapter table: source tag -> adapter class.

Dispatch is a lookup, not a class hierarchy walk. Secondary tags that
one adapter emits (EIC, Eurostars) resolve to that adapter.
"""

from typing import Optional

from funding_assistant.config.loader import Settings, SourceConfig
from funding_assistant.core.exceptions import ConfigError, UnknownSourceError
from funding_assistant.core.http_client import HttpClient
from funding_assistant.core.models import Source

from .base import SourceAdapter
from .dlsc import DLSCAdapter
from .erhvervsstyrelsen import ErhvervsstyrelsenAdapter
from .eu_horizon import EUHorizonAdapter
from .innovationsfonden import InnovationsfondenAdapter

# Run order for a full ingestion
ADAPTERS: dict[Source, type[SourceAdapter]] = {
    Source.INNOVATIONSFONDEN: InnovationsfondenAdapter,
    Source.EU_HORIZON: EUHorizonAdapter,
    Source.DLSC: DLSCAdapter,
    Source.ERHVERVSSTYRELSEN: ErhvervsstyrelsenAdapter,
}

ALIASES: dict[str, Source] = {
    "EIC": Source.EU_HORIZON,
    "EUROSTARS": Source.EU_HORIZON,
    "EUHORIZEN": Source.EU_HORIZON,
    "EU-HORIZON": Source.EU_HORIZON,
    "HORIZON": Source.EU_HORIZON,
}


def resolve_source(name: str, table: Optional[dict] = None) -> Source:
    """
    Map a user-supplied source name to its adapter key in table.

    Raises:
        UnknownSourceError: No adapter handles this name
    """
    key = (name or "").strip().upper()
    try:
        source = ALIASES.get(key) or Source(key)
    except ValueError:
        raise UnknownSourceError(name) from None
    if source not in (ADAPTERS if table is None else table):
        raise UnknownSourceError(name)
    return source


def available_sources() -> list[str]:
    return [source.value for source in ADAPTERS]


def create_adapter(
    source: Source,
    configs: dict[Source, SourceConfig],
    http_client: Optional[HttpClient] = None,
    settings: Optional[Settings] = None,
    table: Optional[dict] = None,
) -> SourceAdapter:
    """
    Instantiate the adapter for source with its sources.yml entry.

    Raises:
        ConfigError: sources.yml has no entry for this source
    """
    config = configs.get(source)
    if config is None:
        raise ConfigError(f"No configuration for source {source.value}")
    adapter_cls = (ADAPTERS if table is None else table)[source]
    return adapter_cls(config, http_client=http_client, settings=settings)
