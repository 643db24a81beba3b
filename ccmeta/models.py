"""Pydantic models for ccmeta.

Provides validated data models for build options and application
configuration, plus the enums shared by the builder and the shell.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ccmeta import __version__


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BuildPhase(str, Enum):
    """Builder task phases, in the order they are entered."""

    IDLE = "idle"
    WALKING = "walking"
    SIZING_PIECES = "sizing_pieces"
    HASHING = "hashing"
    ASSEMBLING = "assembling"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition can happen from this phase."""
        return self in (BuildPhase.DONE, BuildPhase.FAILED, BuildPhase.CANCELLED)


class ErrorKind(str, Enum):
    """Failure categories reported in a failed build result."""

    PATH_NOT_FOUND = "path_not_found"
    IO_READ = "io_read"
    IO_WRITE = "io_write"
    INVALID_CONFIGURATION = "invalid_configuration"
    INTERNAL = "internal"


class BuildOptions(BaseModel):
    """Options for a single metainfo build."""

    output_path: Path = Field(..., description="Destination of the document")
    piece_size_override: int | None = Field(
        None,
        description="Piece size in bytes; selected from the input size if unset",
    )
    trackers: list[list[str]] = Field(
        default_factory=list,
        description="Announce URLs grouped in tiers",
    )
    comment: str | None = Field(None, description="Free-form comment")
    is_private: bool = Field(False, description="Restrict peers to the trackers")
    source: str | None = Field(None, description="Source tag for private trackers")
    web_seeds: list[str] = Field(
        default_factory=list,
        description="HTTP web seed URLs",
    )
    created_by: str | None = Field(None, description="Creating program")
    creation_date: int | None = Field(
        None,
        ge=0,
        description="Creation timestamp in epoch seconds; omitted if unset",
    )
    hash_workers: int = Field(
        1,
        ge=1,
        le=64,
        description="Threads hashing pieces concurrently",
    )

    @field_validator("trackers", mode="before")
    @classmethod
    def normalize_tiers(cls, value: Any) -> Any:
        """Accept bare URL strings as single-URL tiers."""
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [[item] if isinstance(item, str) else item for item in value]
        return value

    @property
    def tracker_urls(self) -> list[str]:
        """All announce URLs, tier by tier."""
        return [url for tier in self.trackers for url in tier]


class CreateConfig(BaseModel):
    """Defaults applied to builds started from the command line."""

    created_by: str = Field(
        default=f"ccmeta/{__version__}",
        description="Value of the 'created by' field",
    )
    default_trackers: list[str] = Field(
        default_factory=list,
        description="Trackers used when none are given on the command line",
    )
    hash_workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Threads hashing pieces concurrently",
    )
    progress_interval: float = Field(
        default=0.5,
        gt=0.0,
        le=10.0,
        description="Seconds between progress polls",
    )
    include_creation_date: bool = Field(
        default=True,
        description="Record the creation timestamp in the document",
    )


class ObservabilityConfig(BaseModel):
    """Logging configuration."""

    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Write JSON log records to the log file",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Tag log records with a per-run correlation ID",
    )


class Config(BaseModel):
    """Main application configuration."""

    create: CreateConfig = Field(
        default_factory=CreateConfig,
        description="Build defaults",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )

    model_config = {"use_enum_values": True}
