"""Unified configuration loaded from .reelledger.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.

Pagination is deliberately absent: the script page size is a fixed
constant (``reelledger.pages.SCRIPT_LINES_PER_PAGE``) because stored page
references depend on it.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

from reelledger.assets.services import DEFAULT_MAX_CONFLICT_RETRIES
from reelledger.audio.feeds import DEFAULT_FEED_TIMEOUT
from reelledger.audio.index import INDEX_FILENAME
from reelledger.audio.scheduler import DEFAULT_MAX_WORKERS

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".reelledger.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "reelledger" / "config.toml"


class StoreConfig(BaseModel):
    """[store] section."""

    directory: str = "./.reelledger"


class VersionsConfig(BaseModel):
    """[versions] section."""

    max_conflict_retries: int = Field(default=DEFAULT_MAX_CONFLICT_RETRIES, ge=0)


class ResolverConfig(BaseModel):
    """[resolver] section."""

    feed_url: str = ""  # empty: read audio from the local store
    feed_timeout: float = Field(default=DEFAULT_FEED_TIMEOUT, gt=0)


class SchedulerConfig(BaseModel):
    """[scheduler] section."""

    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1)


class IndexConfig(BaseModel):
    """[index] section."""

    filename: str = INDEX_FILENAME


class LedgerConfig(BaseModel):
    """Top-level configuration for the ledger."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    versions: VersionsConfig = Field(default_factory=VersionsConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)

    @property
    def store_dir(self) -> Path:
        return Path(self.store.directory)

    @property
    def index_path(self) -> Path:
        return self.store_dir / self.index.filename


def load_config(path: str | Path | None = None) -> LedgerConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .reelledger.toml in CWD
    3. ~/.config/reelledger/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged LedgerConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = LedgerConfig.model_validate(data) if data else LedgerConfig()
    return _apply_env_vars(config)


def merge_cli_overrides(config: LedgerConfig, **cli_kwargs: object) -> LedgerConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "store_dir": ("store", "directory"),
        "max_conflict_retries": ("versions", "max_conflict_retries"),
        "feed_url": ("resolver", "feed_url"),
        "feed_timeout": ("resolver", "feed_timeout"),
        "max_workers": ("scheduler", "max_workers"),
    }

    for key, value in cli_kwargs.items():
        if value is None or key not in mapping:
            continue
        section, field = mapping[key]
        data[section][field] = str(value) if isinstance(value, Path) else value

    return LedgerConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: LedgerConfig) -> LedgerConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "REELLEDGER_STORE_DIR": ("store", "directory"),
        "REELLEDGER_FEED_URL": ("resolver", "feed_url"),
    }
    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    # Numeric env vars
    numeric_mapping: dict[str, tuple[str, str, type]] = {
        "REELLEDGER_MAX_CONFLICT_RETRIES": ("versions", "max_conflict_retries", int),
        "REELLEDGER_FEED_TIMEOUT": ("resolver", "feed_timeout", float),
        "REELLEDGER_MAX_WORKERS": ("scheduler", "max_workers", int),
    }
    for env_var, (section, field, cast) in numeric_mapping.items():
        raw = os.environ.get(env_var)
        if raw is None:
            continue
        try:
            data[section][field] = cast(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: not a valid %s", env_var, raw, cast.__name__)

    return LedgerConfig.model_validate(data)
