"""Settings for fluxreader, stored as TOML."""

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import toml

from .direction import SortDirection
from .store import atomic_write

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".fluxreader"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.toml"
DEFAULT_DOWNLOAD_DIR = DEFAULT_HOME / "entries"
DEFAULT_CACHE_PATH = DEFAULT_HOME / "cache.db"

SORT_ORDERS = ("published_at", "id", "status", "category_title", "category_id", "title")

# Changing any of these makes cached counts and lists stale.
CACHE_INVALIDATING_KEYS = ("order", "direction", "limit", "hide_read_entries")


class ConfigError(Exception):
    """Raised when the configuration file holds invalid values."""

    pass


@dataclass
class Settings:
    """User settings, read fresh for every command."""

    server_address: str = ""
    api_token: str = ""
    limit: int = 100
    order: str = "published_at"
    direction: str = "desc"
    hide_read_entries: bool = True
    mark_as_read_on_open: bool = True
    api_cache_enabled: bool = True
    api_cache_ttl: int = 300
    api_cache_ttl_counters: int = 60
    api_cache_ttl_categories: int = 120
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    download_dir: str = str(DEFAULT_DOWNLOAD_DIR)
    cache_path: str = str(DEFAULT_CACHE_PATH)

    @property
    def sort_direction(self) -> SortDirection:
        return SortDirection(self.direction)

    @property
    def download_path(self) -> Path:
        return Path(self.download_dir).expanduser()

    @property
    def cache_file(self) -> Path:
        return Path(self.cache_path).expanduser()

    @property
    def is_configured(self) -> bool:
        return bool(self.server_address and self.api_token)

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If a value is out of range
        """
        if self.direction not in (d.value for d in SortDirection):
            raise ConfigError(f"Invalid sort direction '{self.direction}' (use asc or desc)")
        if self.order not in SORT_ORDERS:
            raise ConfigError(f"Invalid sort order '{self.order}'")
        if not 1 <= self.limit <= 1000:
            raise ConfigError(f"Limit must be between 1 and 1000, got {self.limit}")
        for name in ("api_cache_ttl", "api_cache_ttl_counters", "api_cache_ttl_categories"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} cannot be negative")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ConfigError("Timeouts must be positive")

    def changed_keys(self, other: "Settings") -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) != getattr(other, f.name)]


def config_path(path: Optional[Path] = None) -> Path:
    """Resolve the config file path: explicit, then FLUXREADER_CONFIG, then default."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get("FLUXREADER_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from a TOML file, using defaults for anything missing.

    Args:
        path: Config file path (see config_path)

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values
    """
    path = config_path(path)
    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return Settings()

    try:
        data = toml.load(path)
    except (OSError, toml.TomlDecodeError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e

    section = data.get("miniflux", data)
    return _settings_from_dict(section)


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    """Write settings to a TOML file under a [miniflux] table.

    Raises:
        ConfigError: If the settings are invalid or the file cannot be written
    """
    settings.validate()
    path = config_path(path)
    try:
        atomic_write(path, toml.dumps({"miniflux": asdict(settings)}))
    except OSError as e:
        raise ConfigError(f"Failed to write config file {path}: {e}") from e
    return path


def _settings_from_dict(data: dict[str, Any]) -> Settings:
    defaults = Settings()
    values = {}
    for f in fields(Settings):
        if f.name not in data:
            continue
        value = data[f.name]
        expected = type(getattr(defaults, f.name))
        if expected is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ConfigError(
                f"Setting '{f.name}' must be {expected.__name__}, got {type(value).__name__}"
            )
        values[f.name] = value

    settings = Settings(**values)
    settings.validate()
    return settings
