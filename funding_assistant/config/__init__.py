"""Configuration loading: settings.yml, sources.yml and knowledge.yml."""

from .loader import (
    ConfigLoader,
    ListingConfig,
    Settings,
    SourceConfig,
    load_knowledge,
    load_settings,
    load_sources,
)

__all__ = [
    "ConfigLoader",
    "ListingConfig",
    "Settings",
    "SourceConfig",
    "load_knowledge",
    "load_settings",
    "load_sources",
]
