"""
Source adapters.

Shapes:
- CuratedAdapter: fixed program list from sources.yml
- ListingAdapter: fetched listing page, keyword-filtered
- ProgramPageAdapter: one fetched page per program

Adapters:
- InnovationsfondenAdapter (program pages)
- EUHorizonAdapter, ErhvervsstyrelsenAdapter (curated)
- DLSCAdapter (curated + listing)
"""

from .base import SourceAdapter
from .curated import CuratedAdapter
from .listing import ListingAdapter
from .program_pages import ProgramPageAdapter
from .registry import ADAPTERS, available_sources, create_adapter, resolve_source

__all__ = [
    "SourceAdapter",
    "CuratedAdapter",
    "ListingAdapter",
    "ProgramPageAdapter",
    "ADAPTERS",
    "available_sources",
    "create_adapter",
    "resolve_source",
]
