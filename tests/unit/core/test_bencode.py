"""Tests for the bencode codec."""

from __future__ import annotations

import pytest

from ccmeta.core.bencode import BencodeDecoder, BencodeEncoder, decode, encode
from ccmeta.utils.exceptions import BencodeDecodeError, BencodeEncodeError

pytestmark = [pytest.mark.unit, pytest.mark.core]


class TestEncode:
    """Tests for BencodeEncoder."""

    def test_integers(self):
        assert encode(0) == b"i0e"
        assert encode(42) == b"i42e"
        assert encode(-7) == b"i-7e"

    def test_strings(self):
        assert encode(b"spam") == b"4:spam"
        assert encode(b"") == b"0:"
        assert encode("héllo") == b"6:h\xc3\xa9llo"
        assert encode(bytearray(b"ab")) == b"2:ab"

    def test_lists(self):
        assert encode([b"spam", 1, [b"x"]]) == b"l4:spami1el1:xee"
        assert encode((1, 2)) == b"li1ei2ee"

    def test_dict_keys_sorted_by_raw_bytes(self):
        """Keys are sorted by their raw bytes, not insertion order."""
        value = {b"zeta": 1, b"alpha": 2, "piece length": 3, b"Z": 4}
        assert encode(value) == b"d1:Zi4e5:alphai2e12:piece lengthi3e4:zetai1ee"

    def test_same_value_same_bytes(self):
        first = encode({"b": [1, 2], "a": {"y": b"1", "x": b"2"}})
        second = encode({"a": {"x": b"2", "y": b"1"}, "b": [1, 2]})
        assert first == second

    def test_boolean_rejected(self):
        with pytest.raises(BencodeEncodeError):
            encode(True)

    def test_unsupported_type_rejected(self):
        with pytest.raises(BencodeEncodeError, match="float"):
            encode(1.5)

    def test_non_string_key_rejected(self):
        with pytest.raises(BencodeEncodeError):
            encode({1: b"x"})

    def test_duplicate_key_rejected(self):
        """A str key and bytes key with the same encoding collide."""
        with pytest.raises(BencodeEncodeError, match="Duplicate"):
            encode({"a": 1, b"a": 2})

    def test_encoder_is_reusable(self):
        encoder = BencodeEncoder()
        assert encoder.encode(1) == b"i1e"
        assert encoder.encode(b"x") == b"1:x"


class TestDecode:
    """Tests for BencodeDecoder."""

    def test_nested_document(self):
        data = b"d8:announce3:url4:infod4:name1:a6:lengthi5eee"
        assert decode(data) == {
            b"announce": b"url",
            b"info": {b"name": b"a", b"length": 5},
        }

    def test_negative_integer(self):
        assert decode(b"i-12e") == -12

    @pytest.mark.parametrize(
        "data",
        [b"i-0e", b"i03e", b"ie", b"i 1e", b"i1", b"01:a", b"5:abc", b"l", b"d1:a", b"x"],
    )
    def test_malformed_input(self, data):
        with pytest.raises(BencodeDecodeError):
            decode(data)

    def test_trailing_data_rejected(self):
        with pytest.raises(BencodeDecodeError, match="Trailing"):
            decode(b"i1ei2e")

    def test_decoder_reads_one_value(self):
        decoder = BencodeDecoder(b"i1ei2e")
        assert decoder.decode() == 1
        assert decoder.decode() == 2
        assert decoder.pos == 6

    def test_empty_input(self):
        with pytest.raises(BencodeDecodeError, match="end of data"):
            decode(b"")

    def test_non_string_dict_key(self):
        with pytest.raises(BencodeDecodeError, match="keys"):
            decode(b"di1ei2ee")
