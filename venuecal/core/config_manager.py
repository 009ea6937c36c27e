"""Environment-driven configuration for venuecal."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from .config_loader import Config, load_config

logger = logging.getLogger(__name__)


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment to avoid
        surprising overrides of user's environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []

        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.debug(
                "Failed to read .env file for defaults (continuing): %s",
                str(self.env_file_path),
                exc_info=True,
            )
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration overrides from environment variables.

        Recognizes:
        - VENUECAL_DISPLAY_TIMEZONE -> 'display_timezone'
        - VENUECAL_DATA_FILE -> 'data_file'
        - VENUECAL_MAX_OCCURRENCES -> 'max_occurrences_per_event' (int)
        - VENUECAL_CATEGORY_PRECEDENCE -> 'category_precedence' (comma separated)
        - VENUECAL_LOG_LEVEL -> 'log_level'

        Returns:
            Mapping of config keys to override
        """
        cfg: dict[str, Any] = {}

        timezone = os.environ.get("VENUECAL_DISPLAY_TIMEZONE")
        if timezone:
            cfg["display_timezone"] = timezone

        data_file = os.environ.get("VENUECAL_DATA_FILE")
        if data_file:
            cfg["data_file"] = data_file

        max_occurrences = os.environ.get("VENUECAL_MAX_OCCURRENCES")
        if max_occurrences:
            try:
                cfg["max_occurrences_per_event"] = int(max_occurrences)
            except ValueError:
                logger.warning("Invalid VENUECAL_MAX_OCCURRENCES=%r; ignoring", max_occurrences)

        precedence = os.environ.get("VENUECAL_CATEGORY_PRECEDENCE")
        if precedence:
            cfg["category_precedence"] = precedence

        log_level = os.environ.get("VENUECAL_LOG_LEVEL")
        if log_level:
            cfg["log_level"] = log_level

        return cfg

    def load_full_config(self, config_path: str | None = None) -> Config:
        """Load .env file, the config file and environment overrides.

        This is the main entry point for loading configuration.
        """
        self.load_env_file()
        return load_config(config_path or os.environ.get("VENUECAL_CONFIG"), self.build_config_from_env())


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and dataclass-like objects.

    Args:
        config: Configuration object (dict or object with attributes)
        key: Configuration key to retrieve
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
