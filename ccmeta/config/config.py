"""Configuration management for ccmeta.

Provides centralized configuration with TOML support and validation, loaded
hierarchically from defaults → config file → environment → CLI.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import toml

from ccmeta.models import Config
from ccmeta.utils.exceptions import ConfigurationError
from ccmeta.utils.logging_config import setup_logging

CONFIG_FILE_NAME = "ccmeta.toml"

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    "CCMETA_CREATED_BY": "create.created_by",
    "CCMETA_DEFAULT_TRACKERS": "create.default_trackers",
    "CCMETA_HASH_WORKERS": "create.hash_workers",
    "CCMETA_PROGRESS_INTERVAL": "create.progress_interval",
    "CCMETA_INCLUDE_CREATION_DATE": "create.include_creation_date",
    "CCMETA_LOG_LEVEL": "observability.log_level",
    "CCMETA_LOG_FILE": "observability.log_file",
    "CCMETA_STRUCTURED_LOGGING": "observability.structured_logging",
    "CCMETA_LOG_CORRELATION_ID": "observability.log_correlation_id",
}

# Config paths whose environment value is a comma-separated list
_LIST_PATHS = frozenset({"create.default_trackers"})
# Config paths kept as raw strings
_STRING_PATHS = frozenset(
    {"create.created_by", "observability.log_level", "observability.log_file"}
)

_config_manager: ConfigManager | None = None


def _parse_env_value(raw: str, path: str) -> bool | int | float | str | list[str]:
    if path in _LIST_PATHS:
        return [item.strip() for item in raw.split(",") if item.strip()]
    if path in _STRING_PATHS:
        return raw.upper() if path == "observability.log_level" else raw

    low = raw.lower()
    if low in {"true", "1", "yes", "on"}:
        return True
    if low in {"false", "0", "no", "off"}:
        return False
    try:
        if "." in raw:
            return float(raw)
        return int(raw)
    except ValueError:
        return raw


def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = d
    for p in parts[:-1]:
        cur = cur.setdefault(p, {})
    cur[parts[-1]] = value


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_file: str | Path | None = None, setup_logs: bool = True):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for ccmeta.toml
            setup_logs: Whether to install logging handlers from the config

        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        if setup_logs:
            self._setup_logging()

    def _find_config_file(self, config_file: str | Path | None) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            return Path(config_file)

        search_paths = [
            Path.cwd() / CONFIG_FILE_NAME,
            Path.home() / ".config" / "ccmeta" / CONFIG_FILE_NAME,
            Path.home() / f".{CONFIG_FILE_NAME}",
        ]
        for path in search_paths:
            if path.exists():
                return path
        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file is not None:
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg) from e

        config_data = self._merge_config(config_data, self._get_env_config())

        try:
            return Config(**config_data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}
        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))
        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        setup_logging(self.config.observability)


def get_config() -> Config:
    """Get the global configuration, loading it on first use."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(setup_logs=False)
    return _config_manager.config


def init_config(
    config_file: str | Path | None = None, setup_logs: bool = True
) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_file, setup_logs=setup_logs)
    return _config_manager

