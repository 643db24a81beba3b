"""Configuration management.

This module handles configuration loading and validation.
"""

from __future__ import annotations

from ccmeta.config.config import ConfigManager, get_config, init_config
from ccmeta.models import Config

__all__ = [
    "Config",
    "ConfigManager",
    "get_config",
    "init_config",
]
