"""Tests for atomic document output."""

from __future__ import annotations

import os
import stat
import sys
import threading
from unittest.mock import patch

import pytest

from ccmeta.core.hashing import HashPipeline
from ccmeta.core.metainfo import MetainfoAssembler
from ccmeta.core.piece_size import KiB
from ccmeta.core.walker import walk
from ccmeta.core.writer import OUTPUT_FILE_MODE, MetainfoWriter, write_atomic
from ccmeta.utils.exceptions import BuildCancelledError, IOWriteError

pytestmark = [pytest.mark.unit, pytest.mark.core]


def _leftovers(directory) -> list[str]:
    return sorted(name for name in os.listdir(directory) if name.endswith(".tmp"))


class TestWriteAtomic:
    """Tests for write_atomic."""

    def test_writes_data(self, tmp_path):
        dest = tmp_path / "out.torrent"
        assert write_atomic(dest, b"d4:spami1ee") == dest
        assert dest.read_bytes() == b"d4:spami1ee"
        assert _leftovers(tmp_path) == []

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_mode(self, tmp_path):
        dest = tmp_path / "out.torrent"
        write_atomic(dest, b"x")
        assert stat.S_IMODE(dest.stat().st_mode) == OUTPUT_FILE_MODE

    def test_replaces_existing_file(self, tmp_path):
        dest = tmp_path / "out.torrent"
        dest.write_bytes(b"old")
        write_atomic(dest, b"new")
        assert dest.read_bytes() == b"new"

    def test_creates_parent_directories(self, tmp_path):
        dest = tmp_path / "a" / "b" / "out.torrent"
        write_atomic(dest, b"x")
        assert dest.read_bytes() == b"x"

    def test_cancel_before_rename_leaves_nothing(self, tmp_path):
        dest = tmp_path / "out.torrent"
        event = threading.Event()
        event.set()
        with pytest.raises(BuildCancelledError):
            write_atomic(dest, b"x", event)
        assert not dest.exists()
        assert _leftovers(tmp_path) == []

    def test_cancel_keeps_previous_file(self, tmp_path):
        dest = tmp_path / "out.torrent"
        dest.write_bytes(b"old")
        event = threading.Event()
        event.set()
        with pytest.raises(BuildCancelledError):
            write_atomic(dest, b"new", event)
        assert dest.read_bytes() == b"old"

    def test_rename_failure_cleans_up(self, tmp_path):
        dest = tmp_path / "out.torrent"
        error = OSError(28, "No space left on device")
        with patch("ccmeta.core.writer.os.replace", side_effect=error):
            with pytest.raises(IOWriteError) as excinfo:
                write_atomic(dest, b"x")
        assert excinfo.value.path == str(dest)
        assert excinfo.value.os_error_code == 28
        assert not dest.exists()
        assert _leftovers(tmp_path) == []

    def test_cancel_removes_created_directories(self, tmp_path):
        existing = tmp_path / "existing"
        existing.mkdir()
        dest = existing / "a" / "b" / "out.torrent"
        event = threading.Event()
        event.set()
        with pytest.raises(BuildCancelledError):
            write_atomic(dest, b"x", event)
        assert not (existing / "a").exists()
        assert existing.is_dir()

    def test_write_failure_removes_created_directories(self, tmp_path):
        dest = tmp_path / "new" / "out.torrent"
        with patch("ccmeta.core.writer.os.replace", side_effect=OSError(28, "No space")):
            with pytest.raises(IOWriteError):
                write_atomic(dest, b"x")
        assert not (tmp_path / "new").exists()

    def test_failure_keeps_directories_that_existed(self, tmp_path):
        dest = tmp_path / "out.torrent"
        with patch("ccmeta.core.writer.os.replace", side_effect=OSError(28, "No space")):
            with pytest.raises(IOWriteError):
                write_atomic(dest, b"x")
        assert tmp_path.is_dir()

    def test_destination_is_directory(self, tmp_path):
        dest = tmp_path / "taken"
        dest.mkdir()
        with pytest.raises(IOWriteError):
            write_atomic(dest, b"x")
        assert dest.is_dir()
        assert _leftovers(tmp_path) == []

    def test_parent_is_a_file(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_bytes(b"")
        with pytest.raises(IOWriteError) as excinfo:
            write_atomic(blocker / "out.torrent", b"x")
        assert excinfo.value.path == str(blocker / "out.torrent")


class TestMetainfoWriter:
    """Tests for MetainfoWriter."""

    def test_writes_encoded_document(self, tmp_path, make_file):
        path = make_file(tmp_path / "src" / "a.bin", b"a" * 100)
        manifest = walk(path)
        document = MetainfoAssembler(
            trackers=[["http://tracker.example.com/announce"]]
        ).assemble(manifest, 16 * KiB, HashPipeline(manifest, 16 * KiB).run())

        dest = MetainfoWriter().write(document, tmp_path / "a.torrent")

        assert dest.read_bytes() == document.encode()
