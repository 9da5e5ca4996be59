"""YAML configuration loader and validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")

KNOWN_FORMATS = frozenset({
    "standard", "pioneer", "modern", "legacy", "vintage", "commander",
    "historic", "explorer", "timeless", "brawl", "pauper",
})


@dataclass
class CatalogConfig:
    """Where the card catalog comes from and where it is cached."""

    metadata_url: str = "https://api.scryfall.com/bulk-data/oracle-cards"
    cache_file: str = "./.cache/cards.json"
    format: str = "pioneer"
    user_agent: str = "PHL-Legality-Checker/1.0"
    rate_limit_ms: int = 100  # Scryfall allows 10 requests per second
    default_retry_after_s: float = 60.0
    request_timeout_s: float = 5.0
    metadata_timeout_s: float = 30.0
    fetch_attempts: int = 3
    download_retries: int = 3
    backoff_step_s: float = 5.0


@dataclass
class ListsConfig:
    """Location of the banned / allowed / singleton-exception list files."""

    data_dir: str = "./data"
    banned_file: str = "banned_list.csv"
    allowed_file: str = "allowed_list.csv"
    singleton_file: str = "singleton_exceptions.csv"


@dataclass
class DeckRulesConfig:
    """Deck construction limits."""

    required_size: int = 100
    max_card_name_length: int = 200
    max_card_quantity: int = 100
    max_main_deck_entries: int = 100


@dataclass
class AppConfig:
    """Top-level application configuration."""

    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    lists: ListsConfig = field(default_factory=ListsConfig)
    deck: DeckRulesConfig = field(default_factory=DeckRulesConfig)
    build_mode: bool = False

    @property
    def cache_path(self) -> Path:
        return Path(self.catalog.cache_file)

    @property
    def data_dir(self) -> Path:
        return Path(self.lists.data_dir)


def load_config(
    path: Optional[Path] = None,
    build_mode: Optional[bool] = None,
    cache_file: Optional[str] = None,
) -> AppConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        logger.info("No config file at %s, using defaults", config_path)
        config = AppConfig()
    else:
        logger.info("Loading config from %s", config_path)
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        config = _parse_config(raw) if raw else AppConfig()

    # CLI overrides
    if build_mode is not None:
        config.build_mode = build_mode
    if cache_file:
        config.catalog.cache_file = cache_file

    _validate_config(config)
    return config


def _parse_config(raw: Dict[str, Any]) -> AppConfig:
    """Parse raw YAML dict into AppConfig."""
    config = AppConfig()

    if "catalog" in raw:
        cat = raw["catalog"] or {}
        defaults = config.catalog
        config.catalog = CatalogConfig(
            metadata_url=cat.get("metadata_url", defaults.metadata_url),
            cache_file=cat.get("cache_file", defaults.cache_file),
            format=str(cat.get("format", defaults.format)).lower(),
            user_agent=cat.get("user_agent", defaults.user_agent),
            rate_limit_ms=int(cat.get("rate_limit_ms", defaults.rate_limit_ms)),
            default_retry_after_s=float(
                cat.get("default_retry_after_s", defaults.default_retry_after_s)
            ),
            request_timeout_s=float(cat.get("request_timeout_s", defaults.request_timeout_s)),
            metadata_timeout_s=float(cat.get("metadata_timeout_s", defaults.metadata_timeout_s)),
            fetch_attempts=int(cat.get("fetch_attempts", defaults.fetch_attempts)),
            download_retries=int(cat.get("download_retries", defaults.download_retries)),
            backoff_step_s=float(cat.get("backoff_step_s", defaults.backoff_step_s)),
        )

    if "lists" in raw:
        lst = raw["lists"] or {}
        config.lists = ListsConfig(
            data_dir=lst.get("data_dir", config.lists.data_dir),
            banned_file=lst.get("banned_file", config.lists.banned_file),
            allowed_file=lst.get("allowed_file", config.lists.allowed_file),
            singleton_file=lst.get("singleton_file", config.lists.singleton_file),
        )

    if "deck" in raw:
        dk = raw["deck"] or {}
        config.deck = DeckRulesConfig(
            required_size=int(dk.get("required_size", config.deck.required_size)),
            max_card_name_length=int(
                dk.get("max_card_name_length", config.deck.max_card_name_length)
            ),
            max_card_quantity=int(dk.get("max_card_quantity", config.deck.max_card_quantity)),
            max_main_deck_entries=int(
                dk.get("max_main_deck_entries", config.deck.max_main_deck_entries)
            ),
        )

    if "build_mode" in raw:
        config.build_mode = bool(raw["build_mode"])

    return config


def _validate_config(config: AppConfig) -> None:
    """Validate config and raise on errors."""
    cat = config.catalog
    if cat.format not in KNOWN_FORMATS:
        raise ValueError(
            f"Config error: unknown format '{cat.format}'. Known: {sorted(KNOWN_FORMATS)}"
        )
    if cat.rate_limit_ms < 0:
        raise ValueError("Config error: rate_limit_ms must not be negative")
    if cat.fetch_attempts < 1:
        raise ValueError("Config error: fetch_attempts must be at least 1")
    if cat.download_retries < 0:
        raise ValueError("Config error: download_retries must not be negative")
    if not cat.metadata_url:
        raise ValueError("Config error: catalog metadata_url is empty")
    if config.deck.required_size < 1:
        raise ValueError("Config error: required_size must be positive")

    logger.info(
        "Config validated: format=%s, cache -> %s, lists -> %s%s",
        cat.format,
        cat.cache_file,
        config.lists.data_dir,
        " (build mode)" if config.build_mode else "",
    )
