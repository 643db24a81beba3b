"""Metainfo builder engine.

This package contains the components that turn a file tree into a torrent
metainfo document:
- Bencoding (encoding/decoding)
- Path enumeration and piece size selection
- Cross-file piece hashing
- Document assembly and atomic output
- The cancellable builder task that drives them
"""

from __future__ import annotations

from ccmeta.core.bencode import (
    BencodeDecoder,
    BencodeEncoder,
    decode,
    encode,
)
from ccmeta.core.builder import (
    BuildCancelled,
    BuildDone,
    BuilderTask,
    BuildFailed,
    BuildResult,
    BuildSnapshot,
    cancel,
    create,
    poll_snapshot,
)
from ccmeta.core.hashing import HashPipeline, PieceTable
from ccmeta.core.metainfo import MetainfoAssembler, MetainfoDocument
from ccmeta.core.piece_size import select_piece_size
from ccmeta.core.walker import FileEntry, Manifest, walk
from ccmeta.core.writer import MetainfoWriter, write_atomic

__all__ = [
    # Bencoding
    "BencodeDecoder",
    "BencodeEncoder",
    # Builder
    "BuildCancelled",
    "BuildDone",
    "BuildFailed",
    "BuildResult",
    "BuildSnapshot",
    "BuilderTask",
    # Components
    "FileEntry",
    "HashPipeline",
    "Manifest",
    "MetainfoAssembler",
    "MetainfoDocument",
    "MetainfoWriter",
    "PieceTable",
    "cancel",
    "create",
    "decode",
    "encode",
    "poll_snapshot",
    "select_piece_size",
    "walk",
    "write_atomic",
]
