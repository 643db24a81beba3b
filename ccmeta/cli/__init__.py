"""Command-line interface for ccmeta."""

from ccmeta.cli.main import cli, main

__all__ = [
    "cli",
    "main",
]
