"""Configuration management for SorionLib.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a typed Config object. Property getters provide safe access with
defaults for every subsystem: Discord connection, event dispatch,
builders, storage and logging.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Accessor for the entry point's Config instance.
"""

import os
from pathlib import Path
from typing import Optional

import structlog
import yaml
from dotenv import load_dotenv

logger = structlog.get_logger("sorionlib.bot")

STORAGE_TYPES = ("json", "sqlite")


class Config:
    """Central configuration manager for SorionLib.

    Loads settings.yaml and .env from the config directory and
    exposes typed property accessors. Registries never read this
    object themselves; the bot facade passes the values they need.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<cwd>/config/``.
        settings: Pre-parsed settings dict. When given, settings.yaml
            is not read.
    """

    def __init__(self, config_dir: Optional[Path] = None, settings: Optional[dict] = None):
        if config_dir is None:
            config_dir = Path.cwd() / "config"
        self.config_dir = Path(config_dir)

        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        if settings is None:
            settings = self._load_yaml("settings.yaml")
        self.settings = settings

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        return {}

    def _section(self, name: str) -> dict:
        section = self.settings.get(name, {})
        return section if isinstance(section, dict) else {}

    def validate(self):
        """Validate critical settings at startup.

        Logs warnings/errors but does not raise. A missing token is
        reported here and rejected later by ``DiscordBot.login()``.
        """
        if not self.discord_token:
            logger.warning("no_discord_token", msg="Set DISCORD_TOKEN or discord.token")

        prefix = self._section("discord").get("prefix", "!")
        if not isinstance(prefix, str) or not prefix.strip():
            logger.error("config_invalid_value", key="discord.prefix", value=prefix)

        if self.storage_type is not None and self.storage_type not in STORAGE_TYPES:
            logger.error(
                "config_invalid_value",
                key="storage.type",
                value=self.storage_type,
                valid=", ".join(STORAGE_TYPES),
            )

        max_events = self._section("events").get("max_events")
        if max_events is not None and (not isinstance(max_events, int) or max_events < 1):
            logger.error("config_invalid_value", key="events.max_events", value=max_events)

    # --- Discord ---

    @property
    def discord_token(self) -> str:
        """Bot token. Env var DISCORD_TOKEN takes precedence."""
        return os.environ.get("DISCORD_TOKEN") or self._section("discord").get("token", "")

    @property
    def prefix(self) -> str:
        """Prefix for text commands (default "!")."""
        prefix = self._section("discord").get("prefix", "!")
        if not isinstance(prefix, str) or not prefix.strip():
            return "!"
        return prefix

    @property
    def guild_id(self) -> Optional[int]:
        """Guild that structured commands deploy to. None deploys globally."""
        guild = os.environ.get("DISCORD_GUILD_ID") or self._section("discord").get("guild_id")
        if guild in (None, ""):
            return None
        try:
            return int(guild)
        except (TypeError, ValueError):
            logger.error("config_invalid_value", key="discord.guild_id", value=guild)
            return None

    @property
    def deploy_retry_delay(self) -> float:
        """Seconds to wait before retrying deployment (default 5)."""
        return float(self._section("discord").get("deploy_retry_delay", 5))

    # --- Event dispatch ---

    @property
    def max_events(self) -> int:
        """Maximum number of registered events (default 100)."""
        value = self._section("events").get("max_events", 100)
        return value if isinstance(value, int) and value > 0 else 100

    @property
    def default_event_timeout_ms(self) -> int:
        """Timeout applied to events that don't set one (default 0 = none)."""
        return int(self._section("events").get("default_timeout_ms", 0))

    @property
    def metrics_retention_hours(self) -> float:
        """How long idle event metrics are kept (default 24 hours)."""
        return float(self._section("events").get("metrics_retention_hours", 24))

    @property
    def metrics_sweep_interval(self) -> float:
        """Seconds between stale-metrics sweeps (default 300)."""
        return float(self._section("events").get("metrics_sweep_interval", 300))

    @property
    def metrics_window(self) -> int:
        """Number of timing samples kept per event (default 100)."""
        return int(self._section("events").get("metrics_window", 100))

    # --- Builders ---

    @property
    def max_container_components(self) -> int:
        """Component ceiling for a single container (default 40)."""
        return int(self._section("builders").get("max_container_components", 40))

    # --- Storage ---

    @property
    def storage_type(self) -> Optional[str]:
        """Storage backend kind, or None when storage is disabled."""
        storage = self._section("storage")
        if not storage or storage.get("enabled") is False:
            return None
        return str(storage.get("type", "json")).lower()

    @property
    def storage_path(self) -> Path:
        """Path to the database file (relative paths resolve under data/)."""
        storage = self._section("storage")
        default = "database.sqlite" if self.storage_type == "sqlite" else "database.json"
        path = Path(storage.get("path", default)).expanduser()
        if not path.is_absolute():
            path = self.config_dir.parent / "data" / path
        return path

    # --- Logging ---

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return self.config_dir.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        return self._section("logging").get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"events": "DEBUG"}."""
        return self._section("logging").get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        return self._section("logging").get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        return self._section("logging").get("backup_count", 5)


# Entry point config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the entry point's config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
