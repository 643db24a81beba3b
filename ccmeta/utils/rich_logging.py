"""Rich logging integration for ccmeta.

Provides the Rich console handler and the markup-stripping formatter used for
log files.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

from rich.console import Console, ConsoleRenderable
from rich.logging import RichHandler
from rich.text import Text

# Matches [tag], [tag=value], [/tag] and [/]
_MARKUP_PATTERN = re.compile(r"\[/?[^\]]+\]")


class CorrelationRichHandler(RichHandler):
    """RichHandler that shows the record's correlation ID, when set."""

    LEVEL_COLORS: dict[str, str] = {
        "DEBUG": "dim",
        "INFO": "cyan",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold red",
    }

    def __init__(self, *args: Any, show_colors: bool = True, **kwargs: Any) -> None:
        """Initialize handler.

        Args:
            *args: Positional arguments for RichHandler
            show_colors: Whether to color the message by level
            **kwargs: Keyword arguments for RichHandler

        """
        super().__init__(*args, **kwargs)
        self.show_colors = show_colors

    def render_message(
        self, record: logging.LogRecord, message: str
    ) -> ConsoleRenderable:
        """Render message text, prefixed with the correlation ID."""
        text = super().render_message(record, message)
        if not isinstance(text, Text):
            return text
        correlation = getattr(record, "correlation_id", None)
        if correlation and correlation != "no-correlation-id":
            text = Text.assemble((f"[{correlation[:8]}] ", "dim"), text)
        if self.show_colors and record.levelname in ("WARNING", "ERROR", "CRITICAL"):
            text.stylize(self.LEVEL_COLORS[record.levelname])
        return text


def strip_rich_markup(text: str) -> str:
    """Strip Rich markup from text for file logging."""
    return _MARKUP_PATTERN.sub("", text)


class FileFormatter(logging.Formatter):
    """Formatter for file output that strips Rich markup."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record, stripping Rich markup for file output."""
        return strip_rich_markup(super().format(record))


def create_rich_handler(
    console: Console | None = None,
    level: int | str = logging.INFO,
    show_path: bool = False,
    rich_tracebacks: bool = True,
    show_colors: bool = True,
) -> logging.Handler:
    """Create a RichHandler writing to stderr.

    Args:
        console: Optional Rich Console instance
        level: Log level
        show_path: Whether to show file paths in log output
        rich_tracebacks: Whether to use rich tracebacks
        show_colors: Whether to color messages by level

    Returns:
        Configured handler

    """
    if console is None:
        # stdout carries the command's own output
        console = Console(file=sys.stderr, markup=True)

    return CorrelationRichHandler(
        console=console,
        level=level,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
        show_colors=show_colors,
    )
