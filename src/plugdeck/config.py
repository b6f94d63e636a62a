"""Configuration management for plugdeck.

Settings come from (lowest to highest priority): field defaults,
~/.plugdeck/config.json, a local .env file, then PLUGDECK_* environment
variables.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "TWilhem/Plugin/Plugin"


def _chmod_safe(path: Path, mode: int) -> None:
    """Set file permissions, ignoring errors on Windows."""
    try:
        path.chmod(mode)
    except OSError:
        pass


def get_config_dir() -> Path:
    """Get the config directory, creating if needed."""
    config_dir = Path.home() / ".plugdeck"
    config_dir.mkdir(exist_ok=True)
    _chmod_safe(config_dir, 0o700)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path."""
    return get_config_dir() / "config.json"


class Settings(BaseSettings):
    """plugdeck settings with env and file support."""

    model_config = SettingsConfigDict(env_prefix="PLUGDECK_", env_file=".env", extra="ignore")

    # Catalogs
    sources: list[str] = Field(
        default_factory=lambda: [DEFAULT_SOURCE],
        description="Catalog sources: 'owner/repo[/path]' or a full listing URL",
    )
    api_base: str = Field(
        default="https://api.github.com", description="Base URL of the contents API"
    )
    request_timeout: float = Field(default=15.0, description="HTTP timeout in seconds")
    fetch_retries: int = Field(
        default=3, description="Attempts per catalog source on transport errors"
    )

    # Storage
    plugin_dir: Path = Field(
        default_factory=lambda: Path.home() / ".plugdeck" / "plugins",
        description="Directory plugins are fetched into",
    )
    alias_file: Path = Field(
        default_factory=lambda: Path.home() / ".plugdeck" / "aliases.sh",
        description="Alias ledger, meant to be sourced from a shell profile",
    )

    # Embedded host
    entry_point: str = Field(
        default="create_component",
        description="Zero-argument callable every plugin exposes to build its component",
    )

    # UI
    tick_interval: float = Field(default=0.1, description="Spinner tick in seconds")
    status_ttl: float = Field(default=3.0, description="Seconds a status message stays up")
    log_limit: int = Field(default=1000, description="Activity log lines kept in memory")

    # Diagnostics
    log_file: Path = Field(
        default_factory=lambda: Path.home() / ".plugdeck" / "plugdeck.log",
        description="Python log file (the terminal belongs to the dashboard)",
    )
    debug: bool = Field(default=False, description="Verbose logging")

    def save(self) -> None:
        """Save settings to the config file."""
        config_path = get_config_path()
        config_path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        _chmod_safe(config_path, 0o600)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from the config file, falling back to defaults."""
        config_path = get_config_path()
        data: dict = {}
        if config_path.exists():
            try:
                data = json.loads(config_path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable config at %s: %s", config_path, e)

        if data:
            try:
                return cls(**data)
            except ValueError as e:
                logger.warning("Ignoring invalid config at %s: %s", config_path, e)
        return cls()


@lru_cache
def get_settings(force_reload: bool = False) -> Settings:
    """Get cached settings instance."""
    if force_reload:
        get_settings.cache_clear()
    return Settings.load()
