"""Atomic document output.

The destination either does not exist or holds a complete document: data is
written to a temporary file in the destination directory and renamed over
the destination only after it has been flushed to disk.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from ccmeta.utils.exceptions import BuildCancelledError, IOWriteError

if TYPE_CHECKING:  # pragma: no cover
    from ccmeta.core.metainfo import MetainfoDocument

logger = logging.getLogger(__name__)

OUTPUT_FILE_MODE = 0o644


def _remove_quietly(path: str) -> None:
    with contextlib.suppress(FileNotFoundError):
        os.unlink(path)


def _missing_dirs(directory: Path) -> list[Path]:
    """``directory`` and its ancestors that do not exist yet, deepest first."""
    missing: list[Path] = []
    current = directory
    while not current.exists() and current != current.parent:
        missing.append(current)
        current = current.parent
    return missing


def _remove_dirs_quietly(created: list[Path]) -> None:
    for directory in created:
        try:
            directory.rmdir()
        except FileNotFoundError:
            continue
        except OSError:
            return


def write_atomic(
    destination: str | os.PathLike[str],
    data: bytes,
    cancel_event: threading.Event | None = None,
) -> Path:
    """Write ``data`` to ``destination`` atomically.

    Raises:
        IOWriteError: the temporary file could not be written or renamed.
        BuildCancelledError: ``cancel_event`` was set before the rename.

    """
    dest = Path(destination)
    dest_str = str(dest)
    created: list[Path] = []
    try:
        created = _missing_dirs(dest.parent)
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent
        )
    except OSError as e:
        _remove_dirs_quietly(created)
        raise IOWriteError.from_os_error(dest_str, e) from e

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, OUTPUT_FILE_MODE)

        if cancel_event is not None and cancel_event.is_set():
            msg = "Write cancelled before rename"
            raise BuildCancelledError(msg)

        os.replace(tmp_path, dest)
    except OSError as e:
        _remove_quietly(tmp_path)
        _remove_dirs_quietly(created)
        raise IOWriteError.from_os_error(dest_str, e) from e
    except BaseException:
        _remove_quietly(tmp_path)
        _remove_dirs_quietly(created)
        raise

    logger.debug("Wrote %d bytes to %s", len(data), dest)
    return dest


class MetainfoWriter:
    """Persists metainfo documents."""

    def write(
        self,
        document: MetainfoDocument,
        destination: str | os.PathLike[str],
        cancel_event: threading.Event | None = None,
    ) -> Path:
        """Encode ``document`` and write it atomically to ``destination``."""
        return write_atomic(destination, document.encode(), cancel_event)
