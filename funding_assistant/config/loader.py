"""
YAML configuration loader.

Loads runtime settings, source definitions and knowledge-base articles with:
- Environment variable substitution
- Required-field validation
- Default values
"""

import os
import re
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from funding_assistant.core.exceptions import ConfigError
from funding_assistant.core.models import KnowledgeEntry, Source
from funding_assistant.core.normalizer import parse_date

logger = structlog.get_logger(__name__)


def substitute_env_vars(text: str) -> str:
    """
    Substitute environment variables in text.

    Supports formats:
    - ${VAR_NAME} - required, warns and substitutes "" if missing
    - ${VAR_NAME:-default} - optional with default
    """
    def replace_var(match):
        var_expr = match.group(1)
        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return os.getenv(var_name, default)
        value = os.getenv(var_expr)
        if value is None:
            logger.warning("env_var_not_set", var=var_expr)
            return ""
        return value

    return re.sub(r"\$\{([^}]+)\}", replace_var, text)


def to_datetime(value: Any) -> Optional[datetime]:
    """YAML gives dates as date objects; strings go through parse_date."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return parse_date(str(value))


@dataclass
class Settings:
    """
    Explicit runtime configuration.

    Built once at startup and handed to the components that need it.
    """

    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    chat_provider: str = "auto"
    openai_chat_model: str = "gpt-4o"
    claude_chat_model: str = "claude-sonnet-4-20250514"
    chat_temperature: float = 0.7
    chat_max_tokens: int = 1500
    chat_call_limit: int = 5
    chat_knowledge_limit: int = 3

    database_path: str = "data/funding.db"

    requests_per_second: float = 2.0
    http_timeout: float = 30.0
    cache_ttl: int = 300
    max_retries: int = 3
    user_agent: str = "Mozilla/5.0 (compatible; DLSCFundingBot/1.0)"

    sources_file: str = "sources.yml"
    eur_to_dkk: float = 7.5
    de_minimis_threshold: int = 2_000_000
    embedding_delay_seconds: float = 0.1

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Flatten the sectioned settings.yml layout."""
        openai_cfg = data.get("openai") or {}
        anthropic_cfg = data.get("anthropic") or {}
        chat = data.get("chat") or {}
        storage = data.get("storage") or {}
        http = data.get("http") or {}
        ingestion = data.get("ingestion") or {}

        values = {
            "openai_api_key": openai_cfg.get("api_key") or None,
            "embedding_model": openai_cfg.get("embedding_model"),
            "embedding_dimensions": openai_cfg.get("embedding_dimensions"),
            "openai_chat_model": openai_cfg.get("chat_model"),
            "anthropic_api_key": anthropic_cfg.get("api_key") or None,
            "claude_chat_model": anthropic_cfg.get("chat_model"),
            "chat_provider": chat.get("provider") or None,
            "chat_temperature": chat.get("temperature"),
            "chat_max_tokens": chat.get("max_tokens"),
            "chat_call_limit": chat.get("call_limit"),
            "chat_knowledge_limit": chat.get("knowledge_limit"),
            "database_path": storage.get("database_path") or None,
            "requests_per_second": http.get("requests_per_second"),
            "http_timeout": http.get("timeout"),
            "cache_ttl": http.get("cache_ttl"),
            "max_retries": http.get("max_retries"),
            "user_agent": http.get("user_agent"),
            "sources_file": ingestion.get("sources_file"),
            "eur_to_dkk": ingestion.get("eur_to_dkk"),
            "de_minimis_threshold": ingestion.get("de_minimis_threshold"),
            "embedding_delay_seconds": ingestion.get("embedding_delay_seconds"),
        }
        return cls(**{k: v for k, v in values.items() if v is not None})

    def with_overrides(self, **overrides) -> "Settings":
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


@dataclass
class ListingConfig:
    """Selectors and keyword filter for a live listing page."""

    url: str
    item_selector: str
    title_selector: str = "h2, h3"
    description_selector: str = "p"
    title_keywords: list[str] = field(default_factory=list)
    description_keywords: list[str] = field(default_factory=list)
    deadline_labels: Optional[list[str]] = None
    default_deadline: Optional[datetime] = None
    sectors: list[str] = field(default_factory=list)
    target_audience: list[str] = field(default_factory=list)
    de_minimis: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "ListingConfig":
        for name in ("url", "item_selector"):
            if name not in data:
                raise ValueError(f"Missing required listing field: {name}")
        return cls(
            url=data["url"],
            item_selector=data["item_selector"],
            title_selector=data.get("title_selector", "h2, h3"),
            description_selector=data.get("description_selector", "p"),
            title_keywords=data.get("title_keywords", []),
            description_keywords=data.get("description_keywords", []),
            deadline_labels=data.get("deadline_labels"),
            default_deadline=to_datetime(data.get("default_deadline")),
            sectors=data.get("sectors", []),
            target_audience=data.get("target_audience", []),
            de_minimis=bool(data.get("de_minimis", False)),
        )


@dataclass
class SourceConfig:
    """Configuration for one funding source."""

    source: Source
    source_name: str
    base_url: str

    # Curated entries or program page definitions, kept as raw dicts
    programs: list[dict] = field(default_factory=list)
    listing: Optional[ListingConfig] = None

    # Values applied to every record unless a program overrides them
    defaults: dict = field(default_factory=dict)

    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "SourceConfig":
        """
        Create from dictionary (e.g., from YAML).

        Raises:
            ValueError: If required fields are missing or source is unknown
        """
        for name in ("source", "source_name", "base_url"):
            if name not in data:
                raise ValueError(f"Missing required field: {name}")

        listing = data.get("listing")
        return cls(
            source=Source(str(data["source"]).upper()),
            source_name=data["source_name"],
            base_url=data["base_url"],
            programs=list(data.get("programs") or []),
            listing=ListingConfig.from_dict(listing) if listing else None,
            defaults=dict(data.get("defaults") or {}),
            metadata=dict(data.get("metadata") or {}),
        )


class ConfigLoader:
    """Loads YAML files from the package config directory (or another one)."""

    def __init__(self, config_dir: Optional[str] = None):
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = Path(__file__).parent

    def load_file(self, filename: str) -> dict:
        """
        Load YAML config file with environment substitution.

        Raises:
            ConfigError: File missing or not valid YAML
        """
        filepath = self.config_dir / filename

        if not filepath.exists():
            raise ConfigError(f"Config file not found: {filepath}")

        logger.debug("loading_config", file=str(filepath))

        with open(filepath, "r", encoding="utf-8") as f:
            content = f.read()

        content = substitute_env_vars(content)

        try:
            config = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {filepath}: {e}") from e

        return config or {}

    def load_settings(self, filename: str = "settings.yml") -> Settings:
        return Settings.from_dict(self.load_file(filename))

    def load_sources(self, filename: str = "sources.yml") -> dict[Source, SourceConfig]:
        """
        Load source definitions keyed by source tag.

        Broken entries are logged and skipped.
        """
        config = self.load_file(filename)

        sources = {}
        for source_data in config.get("sources", []):
            try:
                source = SourceConfig.from_dict(source_data)
                sources[source.source] = source
                logger.debug("source_loaded", source=source.source.value)
            except Exception as e:
                logger.error(
                    "source_load_failed",
                    source=source_data.get("source", "unknown"),
                    error=str(e),
                )

        return sources

    def load_knowledge(self, filename: str = "knowledge.yml") -> list[KnowledgeEntry]:
        """
        Load knowledge-base articles.

        Entries without an id, title or content are logged and skipped.
        """
        config = self.load_file(filename)

        entries = []
        for item in config.get("knowledge", []):
            missing = [name for name in ("id", "title", "content") if not item.get(name)]
            if missing:
                logger.error(
                    "knowledge_load_failed",
                    id=item.get("id", "unknown"),
                    missing=missing,
                )
                continue
            entries.append(KnowledgeEntry(
                id=str(item["id"]),
                title=item["title"],
                content=item["content"].strip(),
                category=item.get("category") or "general",
            ))

        logger.debug("knowledge_loaded", count=len(entries))
        return entries


def _split(path: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Split a config path into (directory, file name) for ConfigLoader.

    Relative paths are taken from the working directory when the file
    exists there; otherwise they resolve against the package config
    directory, which is where the default names live.
    """
    if not path:
        return None, None
    p = Path(path).expanduser()
    if not p.is_absolute() and not p.exists():
        packaged = Path(__file__).parent / p
        if packaged.exists():
            p = packaged
    return str(p.parent), p.name


def load_settings(config_path: Optional[str] = None, **overrides) -> Settings:
    """
    Load settings.yml (package default or config_path) and apply overrides.

    None-valued overrides are ignored so CLI flags can be passed through as-is.
    """
    config_dir, filename = _split(config_path)
    settings = ConfigLoader(config_dir).load_settings(filename or "settings.yml")
    return settings.with_overrides(**overrides)


def load_sources(config_path: Optional[str] = None) -> dict[Source, SourceConfig]:
    """Load sources.yml (package default or config_path)."""
    config_dir, filename = _split(config_path)
    return ConfigLoader(config_dir).load_sources(filename or "sources.yml")


def load_knowledge(config_path: Optional[str] = None) -> list[KnowledgeEntry]:
    """Load knowledge.yml (package default or config_path)."""
    config_dir, filename = _split(config_path)
    return ConfigLoader(config_dir).load_knowledge(filename or "knowledge.yml")
