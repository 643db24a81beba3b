"""Bencoding for metainfo documents.

Bencode is the length-prefixed, self-describing encoding used by torrent
files. Dictionaries are always written with keys sorted by their raw bytes,
which makes the encoding of a given value unique.
"""

from __future__ import annotations

from typing import Any

from ccmeta.utils.exceptions import BencodeDecodeError, BencodeEncodeError


class BencodeEncoder:
    """Encodes Python values to bencoded bytes."""

    def encode(self, obj: Any) -> bytes:
        """Encode ``obj`` and return the bencoded bytes."""
        out: list[bytes] = []
        self._encode(obj, out)
        return b"".join(out)

    def _encode(self, obj: Any, out: list[bytes]) -> None:
        # bool is an int subclass and has no bencode form
        if isinstance(obj, bool):
            msg = f"Cannot bencode boolean value: {obj!r}"
            raise BencodeEncodeError(msg)
        if isinstance(obj, int):
            out.append(b"i%de" % obj)
        elif isinstance(obj, (bytes, bytearray, memoryview)):
            data = bytes(obj)
            out.append(b"%d:" % len(data))
            out.append(data)
        elif isinstance(obj, str):
            self._encode(obj.encode("utf-8"), out)
        elif isinstance(obj, (list, tuple)):
            out.append(b"l")
            for item in obj:
                self._encode(item, out)
            out.append(b"e")
        elif isinstance(obj, dict):
            self._encode_dict(obj, out)
        else:
            msg = f"Cannot bencode value of type {type(obj).__name__}"
            raise BencodeEncodeError(msg)

    def _encode_dict(self, obj: dict[Any, Any], out: list[bytes]) -> None:
        items: dict[bytes, Any] = {}
        for key, value in obj.items():
            if isinstance(key, str):
                raw_key = key.encode("utf-8")
            elif isinstance(key, bytes):
                raw_key = key
            else:
                msg = f"Dictionary keys must be bytes or str, got {type(key).__name__}"
                raise BencodeEncodeError(msg)
            if raw_key in items:
                msg = f"Duplicate dictionary key: {raw_key!r}"
                raise BencodeEncodeError(msg)
            items[raw_key] = value

        out.append(b"d")
        for raw_key in sorted(items):
            self._encode(raw_key, out)
            self._encode(items[raw_key], out)
        out.append(b"e")


class BencodeDecoder:
    """Decodes bencoded bytes to Python values.

    Strings decode to ``bytes``; dictionary keys stay ``bytes``.
    """

    def __init__(self, data: bytes):
        """Initialize decoder over ``data``."""
        self.data = bytes(data)
        self.pos = 0

    def decode(self) -> Any:
        """Decode one value starting at the current position."""
        if self.pos >= len(self.data):
            msg = "Unexpected end of data"
            raise BencodeDecodeError(msg)

        token = self.data[self.pos : self.pos + 1]
        if token == b"i":
            return self._decode_int()
        if token == b"l":
            return self._decode_list()
        if token == b"d":
            return self._decode_dict()
        if token.isdigit():
            return self._decode_bytes()
        msg = f"Invalid token {token!r} at position {self.pos}"
        raise BencodeDecodeError(msg)

    def _decode_int(self) -> int:
        end = self.data.find(b"e", self.pos)
        if end == -1:
            msg = "Unterminated integer"
            raise BencodeDecodeError(msg)
        raw = self.data[self.pos + 1 : end]
        digits = raw[1:] if raw.startswith(b"-") else raw
        if (
            not digits.isdigit()
            or (digits.startswith(b"0") and len(digits) > 1)
            or raw == b"-0"
        ):
            msg = f"Invalid integer: {raw!r}"
            raise BencodeDecodeError(msg)
        self.pos = end + 1
        return int(raw)

    def _decode_bytes(self) -> bytes:
        colon = self.data.find(b":", self.pos)
        if colon == -1:
            msg = "Missing ':' in string"
            raise BencodeDecodeError(msg)
        raw_len = self.data[self.pos : colon]
        if not raw_len.isdigit() or (raw_len.startswith(b"0") and len(raw_len) > 1):
            msg = f"Invalid string length: {raw_len!r}"
            raise BencodeDecodeError(msg)
        length = int(raw_len)
        start = colon + 1
        end = start + length
        if end > len(self.data):
            msg = f"String length {length} exceeds available data"
            raise BencodeDecodeError(msg)
        self.pos = end
        return self.data[start:end]

    def _decode_list(self) -> list[Any]:
        self.pos += 1
        result: list[Any] = []
        while self.data[self.pos : self.pos + 1] != b"e":
            if self.pos >= len(self.data):
                msg = "Unterminated list"
                raise BencodeDecodeError(msg)
            result.append(self.decode())
        self.pos += 1
        return result

    def _decode_dict(self) -> dict[bytes, Any]:
        self.pos += 1
        result: dict[bytes, Any] = {}
        while self.data[self.pos : self.pos + 1] != b"e":
            if self.pos >= len(self.data):
                msg = "Unterminated dictionary"
                raise BencodeDecodeError(msg)
            key = self.decode()
            if not isinstance(key, bytes):
                msg = "Dictionary keys must be strings"
                raise BencodeDecodeError(msg)
            result[key] = self.decode()
        self.pos += 1
        return result


def encode(obj: Any) -> bytes:
    """Bencode ``obj``."""
    return BencodeEncoder().encode(obj)


def decode(data: bytes) -> Any:
    """Decode a complete bencoded value; trailing bytes are an error."""
    decoder = BencodeDecoder(data)
    value = decoder.decode()
    if decoder.pos != len(decoder.data):
        msg = f"Trailing data after position {decoder.pos}"
        raise BencodeDecodeError(msg)
    return value
