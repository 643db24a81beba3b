"""Verbosity management for the ccmeta CLI.

Maps the number of ``-v`` flags to a logging level.
"""

from __future__ import annotations

import logging
from enum import IntEnum


class VerbosityLevel(IntEnum):
    """Verbosity levels for CLI commands."""

    NORMAL = 0  # Configured log level
    VERBOSE = 1  # -v: informational messages
    DEBUG = 2  # -vv: debug messages


class VerbosityManager:
    """Manages verbosity levels and maps them to logging levels."""

    LEVEL_TO_LOGGING: dict[VerbosityLevel, int | None] = {
        VerbosityLevel.NORMAL: None,
        VerbosityLevel.VERBOSE: logging.INFO,
        VerbosityLevel.DEBUG: logging.DEBUG,
    }

    def __init__(self, verbosity_count: int = 0):
        """Initialize verbosity manager.

        Args:
            verbosity_count: Number of -v flags

        """
        self.verbosity_count = max(0, min(int(VerbosityLevel.DEBUG), verbosity_count))
        self.level = VerbosityLevel(self.verbosity_count)

    @classmethod
    def from_count(cls, count: int) -> VerbosityManager:
        """Create VerbosityManager from count."""
        return cls(count)

    def get_logging_level(self) -> int | None:
        """Logging level for this verbosity; ``None`` keeps the configured one."""
        return self.LEVEL_TO_LOGGING[self.level]
