"""Piece hashing.

All manifest files are treated as one concatenated byte stream which is cut
into pieces of a fixed size; each piece is hashed with SHA-1 regardless of
how many files its bytes come from.
"""

from __future__ import annotations

import bisect
import hashlib
import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Callable, Iterator

from ccmeta.core.piece_size import piece_count
from ccmeta.utils.exceptions import BuildCancelledError, IOReadError

if TYPE_CHECKING:  # pragma: no cover
    from ccmeta.core.walker import FileEntry, Manifest

logger = logging.getLogger(__name__)

DIGEST_SIZE = 20


class PieceTable:
    """Piece digests in piece index order."""

    def __init__(self) -> None:
        self._digests: list[bytes] = []

    def append(self, digest: bytes) -> None:
        if len(digest) != DIGEST_SIZE:
            msg = f"Piece digest must be {DIGEST_SIZE} bytes, got {len(digest)}"
            raise ValueError(msg)
        self._digests.append(digest)

    def __len__(self) -> int:
        return len(self._digests)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._digests)

    def __getitem__(self, index: int) -> bytes:
        return self._digests[index]

    def to_bytes(self) -> bytes:
        """Concatenated digests, as stored in the document."""
        return b"".join(self._digests)


@dataclass(frozen=True)
class PieceRange:
    """Part of a piece that lies within one file."""

    path: Path
    file_offset: int
    length: int


class _StreamReader:
    """Reads manifest files back to back as a single stream.

    Only one file is open at a time; a read that reaches the end of a file
    continues in the next one.
    """

    def __init__(self, manifest: Manifest):
        self._manifest = manifest
        self._entries = iter(manifest.entries)
        self._file: BinaryIO | None = None
        self._path = ""
        self._remaining = 0

    def __enter__(self) -> _StreamReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def path(self) -> str:
        """Path of the file most recently opened."""
        return self._path

    def _open_next(self) -> BinaryIO | None:
        for entry in self._entries:
            if entry.length == 0:
                continue
            path = self._manifest.source_path(entry)
            self._path = str(path)
            try:
                self._file = open(path, "rb")  # noqa: SIM115
            except OSError as e:
                raise IOReadError.from_os_error(self._path, e) from e
            self._remaining = entry.length
            return self._file
        return None

    def readinto(self, view: memoryview) -> int:
        """Fill ``view`` from the stream; returns the number of bytes read."""
        filled = 0
        while filled < len(view):
            file = self._file or self._open_next()
            if file is None:
                break
            want = min(self._remaining, len(view) - filled)
            try:
                got = file.readinto(view[filled : filled + want])
            except OSError as e:
                raise IOReadError.from_os_error(self._path, e) from e
            if not got:
                msg = f"File is shorter than when it was listed: {self._path}"
                raise IOReadError(msg, path=self._path)
            filled += got
            self._remaining -= got
            if self._remaining == 0:
                self.close()
        return filled


class HashPipeline:
    """Computes the piece table of a manifest.

    With ``workers == 1`` the stream is read strictly sequentially through a
    single piece-sized buffer. With more workers, each piece's byte ranges are
    derived from the manifest and hashed on a thread pool; digests are still
    appended in piece index order.

    ``cancel_event`` is checked once per piece. ``on_piece`` receives the
    number of completed pieces after each one is appended.
    """

    def __init__(
        self,
        manifest: Manifest,
        piece_size: int,
        cancel_event: threading.Event | None = None,
        on_piece: Callable[[int], None] | None = None,
        workers: int = 1,
    ):
        """Initialize pipeline."""
        if piece_size <= 0:
            msg = f"Piece size must be positive, got {piece_size}"
            raise ValueError(msg)
        self.manifest = manifest
        self.piece_size = piece_size
        self.cancel_event = cancel_event
        self.on_piece = on_piece
        self.workers = max(1, workers)
        self.total_length = manifest.total_length
        self.piece_count = piece_count(self.total_length, piece_size)
        self._offsets = [entry.offset for entry in manifest.entries]

    def piece_length(self, index: int) -> int:
        """Length in bytes of piece ``index``."""
        start = index * self.piece_size
        return min(self.piece_size, self.total_length - start)

    def piece_ranges(self, index: int) -> list[PieceRange]:
        """File ranges making up piece ``index``, in stream order."""
        if not 0 <= index < self.piece_count:
            msg = f"Piece index {index} out of range"
            raise IndexError(msg)
        start = index * self.piece_size
        end = start + self.piece_length(index)
        entries = self.manifest.entries
        i = bisect.bisect_right(self._offsets, start) - 1
        ranges: list[PieceRange] = []
        pos = start
        while pos < end:
            entry: FileEntry = entries[i]
            i += 1
            if entry.end <= pos:
                continue
            length = min(entry.end, end) - pos
            ranges.append(
                PieceRange(
                    path=self.manifest.source_path(entry),
                    file_offset=pos - entry.offset,
                    length=length,
                )
            )
            pos += length
        return ranges

    def run(self) -> PieceTable:
        """Hash every piece.

        Raises:
            IOReadError: an input file could not be read in full.
            BuildCancelledError: ``cancel_event`` was set.

        """
        logger.debug(
            "Hashing %d pieces of %d bytes with %d worker(s)",
            self.piece_count,
            self.piece_size,
            self.workers,
        )
        if self.workers > 1 and self.piece_count > 1:
            return self._run_parallel()
        return self._run_sequential()

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            msg = "Hashing cancelled"
            raise BuildCancelledError(msg)

    def _append(self, table: PieceTable, digest: bytes) -> None:
        table.append(digest)
        if self.on_piece is not None:
            self.on_piece(len(table))

    def _run_sequential(self) -> PieceTable:
        table = PieceTable()
        buffer = bytearray(self.piece_size)
        view = memoryview(buffer)
        with _StreamReader(self.manifest) as reader:
            for index in range(self.piece_count):
                self._check_cancelled()
                piece = view[: self.piece_length(index)]
                if reader.readinto(piece) < len(piece):
                    msg = f"Input ended before piece {index} was complete"
                    raise IOReadError(msg, path=reader.path)
                self._append(table, hashlib.sha1(piece).digest())  # nosec B324 - SHA-1 is the v1 piece hash
        return table

    def hash_piece(self, index: int) -> bytes:
        """Read piece ``index`` through its file ranges and return its digest."""
        hasher = hashlib.sha1()  # nosec B324 - SHA-1 is the v1 piece hash
        buffer = bytearray(self.piece_length(index))
        view = memoryview(buffer)
        for piece_range in self.piece_ranges(index):
            path = str(piece_range.path)
            chunk = view[: piece_range.length]
            try:
                with open(path, "rb") as f:
                    f.seek(piece_range.file_offset)
                    filled = 0
                    while filled < piece_range.length:
                        got = f.readinto(chunk[filled:])
                        if not got:
                            msg = f"File is shorter than when it was listed: {path}"
                            raise IOReadError(msg, path=path)
                        filled += got
            except OSError as e:
                raise IOReadError.from_os_error(path, e) from e
            hasher.update(chunk)
        return hasher.digest()

    def _run_parallel(self) -> PieceTable:
        table = PieceTable()
        window = 2 * self.workers
        pending: deque[Future[bytes]] = deque()
        next_index = 0
        with ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="ccmeta-hash"
        ) as pool:
            try:
                while len(table) < self.piece_count:
                    while next_index < self.piece_count and len(pending) < window:
                        pending.append(pool.submit(self.hash_piece, next_index))
                        next_index += 1
                    self._check_cancelled()
                    self._append(table, pending.popleft().result())
            except BaseException:
                for future in pending:
                    future.cancel()
                raise
        return table
