"""Exception hierarchy for ccmeta.

Every failure the builder can report maps onto one of these classes, so the
shell can render a precise message from the structured fields alone.
"""

from __future__ import annotations

from typing import Any


class CCMetaError(Exception):
    """Base exception for all ccmeta errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize ccmeta error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(CCMetaError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Invalid build or application configuration."""


class BencodeError(ValidationError):
    """Bencode encoding/decoding errors."""


class BencodeEncodeError(BencodeError):
    """Value cannot be bencoded."""


class BencodeDecodeError(BencodeError):
    """Malformed bencoded data."""


class DiskError(CCMetaError):
    """Disk I/O related errors.

    Carries the offending path and the underlying OS error code when known.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        os_error_code: int | None = None,
    ):
        """Initialize disk error."""
        details: dict[str, Any] = {}
        if path is not None:
            details["path"] = path
        if os_error_code is not None:
            details["errno"] = os_error_code
        super().__init__(message, details)
        self.path = path
        self.os_error_code = os_error_code

    @classmethod
    def from_os_error(cls, path: str, error: OSError) -> DiskError:
        """Build the error from an ``OSError`` raised while touching ``path``."""
        return cls(
            f"{error.strerror or error}: {path}",
            path=path,
            os_error_code=error.errno,
        )


class PathNotFoundError(DiskError):
    """Input path does not exist."""


class IOReadError(DiskError):
    """Reading an input file or directory failed."""


class IOWriteError(DiskError):
    """Writing the output document failed."""


class BuildCancelledError(CCMetaError):
    """The build was cancelled by the caller."""
