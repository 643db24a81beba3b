"""Metainfo document assembly.

Combines the manifest, piece size and piece table with tracker and metadata
fields into the document that is written to disk.
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
import os
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Sequence
from urllib.parse import urlsplit

from ccmeta.core.bencode import encode
from ccmeta.core.hashing import DIGEST_SIZE
from ccmeta.core.piece_size import piece_count
from ccmeta.utils.exceptions import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover
    from ccmeta.core.hashing import PieceTable
    from ccmeta.core.walker import Manifest

logger = logging.getLogger(__name__)

TRACKER_SCHEMES = frozenset({"http", "https", "udp", "ws", "wss"})
WEB_SEED_SCHEMES = frozenset({"http", "https"})

NO_TRACKERS_WARNING = "no trackers specified"

_HOST_LABEL = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?$")


def is_valid_host(hostname: str) -> bool:
    """Whether ``hostname`` is an IP address or a DNS name."""
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        pass
    else:
        return True
    if not hostname.isascii():
        try:
            hostname = hostname.encode("idna").decode("ascii")
        except UnicodeError:
            return False
    labels = hostname[:-1] if hostname.endswith(".") else hostname
    if not labels or len(labels) > 253:
        return False
    return all(_HOST_LABEL.match(label) for label in labels.split("."))


def is_valid_url(url: str, schemes: frozenset[str] = TRACKER_SCHEMES) -> bool:
    """Whether ``url`` has one of ``schemes`` and a well-formed host."""
    if not isinstance(url, str) or not url:
        return False
    # urlsplit silently drops tabs and newlines
    if any(ch.isspace() or not ch.isprintable() for ch in url):
        return False
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        # Accessing port validates it
        parts.port  # noqa: B018
    except ValueError:
        return False
    if parts.scheme.lower() not in schemes or not hostname:
        return False
    return is_valid_host(hostname)


@dataclass(frozen=True)
class MetainfoDocument:
    """An assembled, immutable metainfo document."""

    manifest: Manifest
    piece_size: int
    pieces: bytes
    announce_tiers: tuple[tuple[str, ...], ...] = ()
    comment: str | None = None
    private: bool = False
    source: str | None = None
    creation_date: int | None = None
    created_by: str | None = None
    web_seeds: tuple[str, ...] = field(default=())

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def piece_count(self) -> int:
        return len(self.pieces) // DIGEST_SIZE

    def info_dict(self) -> dict[bytes, Any]:
        """The ``info`` dictionary, whose hash identifies the torrent."""
        info: dict[bytes, Any] = {
            b"name": os.fsencode(self.manifest.name),
            b"piece length": self.piece_size,
            b"pieces": self.pieces,
        }
        if self.manifest.is_single_file:
            info[b"length"] = self.manifest.total_length
        else:
            info[b"files"] = [
                {
                    b"length": entry.length,
                    b"path": [os.fsencode(part) for part in entry.path],
                }
                for entry in self.manifest.entries
            ]
        if self.private:
            info[b"private"] = 1
        if self.source:
            info[b"source"] = self.source.encode("utf-8")
        return info

    def to_dict(self) -> dict[bytes, Any]:
        """Full document as a bencodable dictionary."""
        document: dict[bytes, Any] = {
            b"encoding": b"UTF-8",
            b"info": self.info_dict(),
        }
        urls = [url for tier in self.announce_tiers for url in tier]
        if urls:
            document[b"announce"] = urls[0].encode("utf-8")
        if len(urls) > 1:
            document[b"announce-list"] = [
                [url.encode("utf-8") for url in tier] for tier in self.announce_tiers
            ]
        if self.comment:
            document[b"comment"] = self.comment.encode("utf-8")
        if self.created_by:
            document[b"created by"] = self.created_by.encode("utf-8")
        if self.creation_date is not None:
            document[b"creation date"] = self.creation_date
        if self.web_seeds:
            document[b"url-list"] = [seed.encode("utf-8") for seed in self.web_seeds]
        return document

    def encode(self) -> bytes:
        """Bencoded document."""
        return encode(self.to_dict())

    def info_hash(self) -> bytes:
        """SHA-1 of the bencoded info dictionary."""
        return hashlib.sha1(encode(self.info_dict())).digest()  # nosec B324 - v1 info hash


class MetainfoAssembler:
    """Validates document metadata and builds :class:`MetainfoDocument`."""

    def __init__(
        self,
        trackers: Sequence[Sequence[str]] = (),
        comment: str | None = None,
        is_private: bool = False,
        source: str | None = None,
        web_seeds: Sequence[str] = (),
        created_by: str | None = None,
        creation_date: int | None = None,
    ):
        """Initialize assembler."""
        self.tiers: tuple[tuple[str, ...], ...] = tuple(
            tuple(tier) for tier in trackers if tier
        )
        self.comment = comment
        self.is_private = is_private
        self.source = source
        self.web_seeds = tuple(web_seeds)
        self.created_by = created_by
        self.creation_date = creation_date

    @property
    def tracker_urls(self) -> list[str]:
        return [url for tier in self.tiers for url in tier]

    def validate(self) -> list[str]:
        """Check the metadata, returning non-fatal warnings.

        Raises:
            ConfigurationError: a malformed tracker or web seed URL, or a
                private document without trackers.

        """
        for url in self.tracker_urls:
            if not is_valid_url(url, TRACKER_SCHEMES):
                msg = f"Invalid announce URL: {url!r}"
                raise ConfigurationError(msg, {"url": url})
        for url in self.web_seeds:
            if not is_valid_url(url, WEB_SEED_SCHEMES):
                msg = f"Invalid web seed URL: {url!r}"
                raise ConfigurationError(msg, {"url": url})

        warnings: list[str] = []
        if not self.tiers:
            if self.is_private:
                msg = "No trackers specified for a private torrent"
                raise ConfigurationError(msg)
            warnings.append(NO_TRACKERS_WARNING)
        return warnings

    def assemble(
        self,
        manifest: Manifest,
        piece_size: int,
        piece_table: PieceTable,
    ) -> MetainfoDocument:
        """Build the document once every piece has been hashed."""
        self.validate()
        expected = piece_count(manifest.total_length, piece_size)
        if len(piece_table) != expected:
            msg = f"Piece table has {len(piece_table)} digests, expected {expected}"
            raise ValueError(msg)

        document = MetainfoDocument(
            manifest=manifest,
            piece_size=piece_size,
            pieces=piece_table.to_bytes(),
            announce_tiers=self.tiers,
            comment=self.comment,
            private=self.is_private,
            source=self.source,
            creation_date=self.creation_date,
            created_by=self.created_by,
            web_seeds=self.web_seeds,
        )
        logger.debug(
            "Assembled document %r: %d files, %d pieces",
            manifest.name,
            manifest.file_count,
            expected,
        )
        return document
