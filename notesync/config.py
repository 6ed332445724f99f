"""
Configuration management for notes stores.

The configuration is stored as a TOML file in the store directory.
Credentials never live in the file; they come from environment variables.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w


CONFIG_FILENAME = "notesync.toml"
CONFIG_VERSION = 1

# Placeholder shipped in example environments; never a usable key
PLACEHOLDER_API_KEY = "your-openai-api-key"

DEFAULT_STORE_DIR = ".notesync"


def get_default_store_path() -> Path:
    """Store directory from NOTESYNC_STORE_PATH, else ~/.notesync."""
    env = os.environ.get("NOTESYNC_STORE_PATH")
    if env:
        return Path(env).expanduser().resolve()
    return Path.home() / DEFAULT_STORE_DIR


def get_enrichment_api_key() -> Optional[str]:
    return os.environ.get("NOTESYNC_OPENAI_API_KEY") or os.environ.get("OPENAI_API_KEY")


def is_enrichment_key_usable(key: Optional[str]) -> bool:
    """
    True if the credential selects the real enrichment backend.

    Absence is a valid, permanent state: everything then runs on the
    deterministic offline algorithms.
    """
    return bool(key) and key != PLACEHOLDER_API_KEY and key.startswith("sk-")


@dataclass
class EnrichmentConfig:
    """Enrichment backend settings."""
    model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-ada-002"
    embedding_dimension: int = 1536
    summary_max_length: int = 150
    max_tags: int = 5


@dataclass
class RemoteConfig:
    """Remote document store settings. Empty url means offline."""
    url: str = ""
    timeout: float = 10.0


@dataclass
class TimingConfig:
    """Debounce delays in seconds."""
    enrichment_delay: float = 1.5
    autosave_delay: float = 3.0
    search_delay: float = 0.3


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def enrichment_enabled(self) -> bool:
        """Whether the enrichment backend is configured (from the environment)."""
        return is_enrichment_key_usable(get_enrichment_api_key())

    @property
    def remote_api_key(self) -> Optional[str]:
        return os.environ.get("NOTESYNC_REMOTE_API_KEY")

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def _section(data: dict, name: str, cls):
    """Build a section dataclass, ignoring unknown keys."""
    known = cls.__dataclass_fields__
    return cls(**{k: v for k, v in data.get(name, {}).items() if k in known})


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    version = data.get("store", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    config = StoreConfig(
        path=store_path,
        version=version,
        created=data.get("store", {}).get("created", ""),
        enrichment=_section(data, "enrichment", EnrichmentConfig),
        remote=_section(data, "remote", RemoteConfig),
        timing=_section(data, "timing", TimingConfig),
    )
    if config.enrichment.embedding_dimension <= 0:
        raise ValueError(
            f"embedding_dimension must be positive: {config.enrichment.embedding_dimension}"
        )
    return config


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "enrichment": {
            "model": config.enrichment.model,
            "embedding_model": config.enrichment.embedding_model,
            "embedding_dimension": config.enrichment.embedding_dimension,
            "summary_max_length": config.enrichment.summary_max_length,
            "max_tags": config.enrichment.max_tags,
        },
        "remote": {
            "url": config.remote.url,
            "timeout": config.remote.timeout,
        },
        "timing": {
            "enrichment_delay": config.timing.enrichment_delay,
            "autosave_delay": config.timing.autosave_delay,
            "search_delay": config.timing.search_delay,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    config = StoreConfig(path=store_path)
    save_config(config)
    return config
