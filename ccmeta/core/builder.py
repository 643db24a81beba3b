"""Metainfo builder task.

Runs the whole pipeline (walk, size, hash, assemble, write) on a background
thread. The caller polls immutable snapshots of the task state and may
request cancellation at any time; it never mutates the task otherwise.

Example:
    task = create("/data/album", BuildOptions(output_path="album.torrent"))
    while not (snapshot := poll_snapshot(task)).done:
        time.sleep(0.5)
    print(snapshot.result)

"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Union

from ccmeta.core.hashing import HashPipeline
from ccmeta.core.metainfo import MetainfoAssembler
from ccmeta.core.piece_size import piece_count, select_piece_size
from ccmeta.core.walker import walk
from ccmeta.core.writer import MetainfoWriter
from ccmeta.models import BuildOptions, BuildPhase, ErrorKind
from ccmeta.utils.exceptions import (
    BuildCancelledError,
    CCMetaError,
    ConfigurationError,
    DiskError,
    IOReadError,
    IOWriteError,
    PathNotFoundError,
)
from ccmeta.utils.logging_config import log_exception

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildDone:
    """The document was written to ``output_path``."""

    output_path: Path
    file_count: int
    total_bytes: int
    piece_count: int
    piece_size: int
    info_hash: bytes
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class BuildFailed:
    """The build stopped on an error; nothing was written."""

    kind: ErrorKind
    message: str
    path: str | None = None
    os_error_code: int | None = None


@dataclass(frozen=True)
class BuildCancelled:
    """The build was cancelled; nothing was written."""


BuildResult = Union[BuildDone, BuildFailed, BuildCancelled]


@dataclass(frozen=True)
class BuildSnapshot:
    """Point-in-time view of a builder task."""

    phase: BuildPhase
    current_piece_index: int = 0
    total_piece_count: int = 0
    file_count: int = 0
    total_bytes: int = 0
    piece_size: int = 0
    warnings: tuple[str, ...] = field(default=())
    result: BuildResult | None = None

    @property
    def done(self) -> bool:
        return self.phase.is_terminal


# Non-terminal phases in the only order they may be entered
_PHASE_ORDER: dict[BuildPhase, int] = {
    BuildPhase.IDLE: 0,
    BuildPhase.WALKING: 1,
    BuildPhase.SIZING_PIECES: 2,
    BuildPhase.HASHING: 3,
    BuildPhase.ASSEMBLING: 4,
    BuildPhase.WRITING: 5,
}

_ERROR_KINDS: tuple[tuple[type[CCMetaError], ErrorKind], ...] = (
    (PathNotFoundError, ErrorKind.PATH_NOT_FOUND),
    (IOReadError, ErrorKind.IO_READ),
    (IOWriteError, ErrorKind.IO_WRITE),
    (ConfigurationError, ErrorKind.INVALID_CONFIGURATION),
)


def _failure(error: CCMetaError) -> BuildFailed:
    kind = ErrorKind.INTERNAL
    for error_type, error_kind in _ERROR_KINDS:
        if isinstance(error, error_type):
            kind = error_kind
            break
    if isinstance(error, DiskError):
        return BuildFailed(
            kind=kind,
            message=error.message,
            path=error.path,
            os_error_code=error.os_error_code,
        )
    return BuildFailed(kind=kind, message=error.message)


class BuilderTask:
    """A cancellable, progress-reporting metainfo build."""

    def __init__(self, input_path: str | os.PathLike[str], options: BuildOptions):
        """Initialize task; nothing runs until :meth:`start` or :meth:`run`."""
        self.input_path = Path(input_path)
        self.options = options
        self._lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._finished = threading.Event()
        self._thread: threading.Thread | None = None
        self._snapshot = BuildSnapshot(phase=BuildPhase.IDLE)

    def snapshot(self) -> BuildSnapshot:
        """Current state; safe to call from any thread."""
        with self._lock:
            return self._snapshot

    @property
    def phase(self) -> BuildPhase:
        return self.snapshot().phase

    @property
    def result(self) -> BuildResult | None:
        return self.snapshot().result

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        if not self.cancel_requested:
            logger.debug("Cancellation requested for %s", self.input_path)
        self._cancel_event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def start(self) -> BuilderTask:
        """Run the build on a background thread."""
        with self._lock:
            if self._thread is not None or self._snapshot.phase != BuildPhase.IDLE:
                msg = "Builder task already started"
                raise RuntimeError(msg)
            self._thread = threading.Thread(
                target=self.run,
                name=f"ccmeta-builder-{self.input_path.name}",
                daemon=True,
            )
        self._thread.start()
        return self

    def wait(self, timeout: float | None = None) -> BuildResult | None:
        """Block until the build finishes; returns ``None`` on timeout."""
        if not self._finished.wait(timeout):
            return None
        return self.result

    def run(self) -> BuildResult:
        """Run the build in the calling thread and return its result."""
        if self.phase != BuildPhase.IDLE:
            msg = "Builder task already ran"
            raise RuntimeError(msg)
        phase = BuildPhase.FAILED
        try:
            result: BuildResult = self._execute()
            phase = BuildPhase.DONE
        except BuildCancelledError:
            logger.info("Build of %s cancelled", self.input_path)
            result = BuildCancelled()
            phase = BuildPhase.CANCELLED
        except CCMetaError as e:
            logger.debug("Build of %s failed: %s", self.input_path, e)
            result = _failure(e)
        except Exception as e:
            log_exception(logger, e, f"Unexpected error building {self.input_path}")
            result = BuildFailed(kind=ErrorKind.INTERNAL, message=str(e))

        self._update(phase=phase, result=result)
        self._finished.set()
        return result

    def _update(self, **changes: object) -> None:
        with self._lock:
            current = self._snapshot
            phase = changes.get("phase", current.phase)
            if phase != current.phase:
                self._check_transition(current.phase, phase)  # type: ignore[arg-type]
            self._snapshot = replace(current, **changes)

    @staticmethod
    def _check_transition(current: BuildPhase, new: BuildPhase) -> None:
        if current.is_terminal:
            msg = f"Invalid phase transition {current.value} -> {new.value}"
            raise RuntimeError(msg)
        if new.is_terminal:
            return
        if _PHASE_ORDER[new] != _PHASE_ORDER[current] + 1:
            msg = f"Invalid phase transition {current.value} -> {new.value}"
            raise RuntimeError(msg)

    def _on_piece(self, completed: int) -> None:
        self._update(current_piece_index=completed)

    def _execute(self) -> BuildDone:
        options = self.options
        assembler = MetainfoAssembler(
            trackers=options.trackers,
            comment=options.comment,
            is_private=options.is_private,
            source=options.source,
            web_seeds=options.web_seeds,
            created_by=options.created_by,
            creation_date=options.creation_date,
        )

        self._update(phase=BuildPhase.WALKING)
        # Metadata is checked before any filesystem access so a bad tracker
        # list never costs a full hash run
        warnings = tuple(assembler.validate())
        manifest = walk(self.input_path)
        self._update(
            file_count=manifest.file_count,
            total_bytes=manifest.total_length,
            warnings=warnings,
        )

        self._update(phase=BuildPhase.SIZING_PIECES)
        piece_size = select_piece_size(
            manifest.total_length, options.piece_size_override
        )
        count = piece_count(manifest.total_length, piece_size)
        self._update(piece_size=piece_size, total_piece_count=count)

        self._update(phase=BuildPhase.HASHING)
        pipeline = HashPipeline(
            manifest,
            piece_size,
            cancel_event=self._cancel_event,
            on_piece=self._on_piece,
            workers=options.hash_workers,
        )
        table = pipeline.run()

        self._update(phase=BuildPhase.ASSEMBLING)
        document = assembler.assemble(manifest, piece_size, table)

        self._update(phase=BuildPhase.WRITING)
        output_path = MetainfoWriter().write(
            document, options.output_path, self._cancel_event
        )

        logger.info(
            "Created %s: %d files, %d bytes, %d pieces of %d bytes",
            output_path,
            manifest.file_count,
            manifest.total_length,
            count,
            piece_size,
        )
        return BuildDone(
            output_path=output_path,
            file_count=manifest.file_count,
            total_bytes=manifest.total_length,
            piece_count=count,
            piece_size=piece_size,
            info_hash=document.info_hash(),
            warnings=warnings,
        )


def create(input_path: str | os.PathLike[str], options: BuildOptions) -> BuilderTask:
    """Start building a metainfo document for ``input_path``."""
    return BuilderTask(input_path, options).start()


def poll_snapshot(task: BuilderTask) -> BuildSnapshot:
    """Current progress of ``task``."""
    return task.snapshot()


def cancel(task: BuilderTask) -> None:
    """Request cancellation of ``task``. Idempotent."""
    task.cancel()
