"""Pytest configuration and shared fixtures for ccmeta tests."""

from __future__ import annotations

import logging
import os
import random
from pathlib import Path

import pytest

from ccmeta.config import config as config_module


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("slow", "marks tests as slow (deselect with '-m \"not slow\"')"),
        ("integration", "marks tests as integration tests"),
        ("unit", "marks tests as unit tests"),
        ("core", "marks tests as core functionality tests"),
        ("cli", "marks tests as CLI tests"),
        ("config", "marks tests as configuration tests"),
        ("observability", "marks tests as observability tests"),
        ("property", "marks tests as property-based tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _isolate_ccmeta_env(monkeypatch, tmp_path):
    """Keep user config files and CCMETA_* variables out of tests."""
    for name in list(os.environ):
        if name.startswith("CCMETA_"):
            monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr(config_module, "_config_manager", None)


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def seed_rng() -> None:
    """Seed the random module so generated file contents are reproducible."""
    random.seed(1234)


def write_file(path: Path, data: bytes) -> Path:
    """Create ``path`` (and its parents) holding ``data``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


@pytest.fixture
def make_file():
    """Factory writing a file with the given content."""
    return write_file


@pytest.fixture
def random_bytes():
    """Factory for reproducible pseudo-random payloads."""

    def _make(size: int) -> bytes:
        return random.randbytes(size)

    return _make
