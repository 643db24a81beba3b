#!/usr/bin/env python3
"""Entry point for ``python -m ccmeta``."""

from __future__ import annotations

from ccmeta.cli.main import main

if __name__ == "__main__":
    main()
