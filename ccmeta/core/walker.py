"""Input enumeration.

Turns an input file or directory into an ordered manifest of files with their
lengths and offsets in the virtual concatenated stream that pieces are cut
from.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from ccmeta.utils.exceptions import IOReadError, PathNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileEntry:
    """One input file in manifest order."""

    path: tuple[str, ...]
    length: int
    offset: int

    @property
    def relative_path(self) -> str:
        """Path relative to the manifest root, '/'-separated."""
        return "/".join(self.path)

    @property
    def end(self) -> int:
        """Stream offset one past the last byte of this file."""
        return self.offset + self.length


@dataclass(frozen=True)
class Manifest:
    """Ordered files of a build input.

    For a single-file input ``root`` is the file itself and the only entry's
    path is its name; for a directory entries are relative to ``root``.
    """

    root: Path
    name: str
    entries: tuple[FileEntry, ...]
    is_single_file: bool

    @property
    def total_length(self) -> int:
        return self.entries[-1].end if self.entries else 0

    @property
    def file_count(self) -> int:
        return len(self.entries)

    def source_path(self, entry: FileEntry) -> Path:
        """Filesystem path of ``entry``."""
        if self.is_single_file:
            return self.root
        return self.root.joinpath(*entry.path)


def _stat(path: str, *, root: bool = False) -> os.stat_result:
    try:
        return os.stat(path)
    except FileNotFoundError as e:
        if root:
            msg = f"No such file or directory: {path}"
            raise PathNotFoundError(msg, path=path, os_error_code=e.errno) from e
        raise IOReadError.from_os_error(path, e) from e
    except OSError as e:
        raise IOReadError.from_os_error(path, e) from e


def _list_dir(path: str) -> list[str]:
    try:
        return sorted(os.listdir(path))
    except OSError as e:
        raise IOReadError.from_os_error(path, e) from e


def _walk_dir(
    dir_path: str,
    prefix: tuple[str, ...],
    ancestors: frozenset[tuple[int, int]],
    files: list[tuple[tuple[str, ...], int]],
) -> None:
    for name in _list_dir(dir_path):
        child = os.path.join(dir_path, name)
        st = _stat(child)
        if stat.S_ISDIR(st.st_mode):
            key = (st.st_dev, st.st_ino)
            if key in ancestors:
                logger.debug("Not following directory cycle at %s", child)
                continue
            _walk_dir(child, (*prefix, name), ancestors | {key}, files)
        elif stat.S_ISREG(st.st_mode):
            files.append(((*prefix, name), st.st_size))
        else:
            logger.debug("Skipping special file %s", child)


def walk(root: str | os.PathLike[str]) -> Manifest:
    """Enumerate ``root`` into a manifest.

    Directories are traversed depth-first with entries sorted by name, so an
    unchanged tree always yields the same manifest. Symbolic links are
    followed, except into a directory that is already being traversed.

    Raises:
        PathNotFoundError: ``root`` does not exist.
        IOReadError: an entry could not be stat'ed or a directory listed.

    """
    root_str = os.path.abspath(os.fspath(root))
    name = os.path.basename(os.path.normpath(root_str)) or root_str
    st = _stat(root_str, root=True)

    files: list[tuple[tuple[str, ...], int]] = []
    is_single_file = not stat.S_ISDIR(st.st_mode)
    if is_single_file:
        if not stat.S_ISREG(st.st_mode):
            msg = f"Not a regular file or directory: {root_str}"
            raise IOReadError(msg, path=root_str)
        files.append(((name,), st.st_size))
    else:
        _walk_dir(root_str, (), frozenset({(st.st_dev, st.st_ino)}), files)

    entries: list[FileEntry] = []
    offset = 0
    for path, length in files:
        entries.append(FileEntry(path=path, length=length, offset=offset))
        offset += length

    logger.debug("Walked %s: %d files, %d bytes", root_str, len(entries), offset)
    return Manifest(
        root=Path(root_str),
        name=name,
        entries=tuple(entries),
        is_single_file=is_single_file,
    )
