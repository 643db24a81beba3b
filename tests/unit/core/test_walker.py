"""Tests for input enumeration."""

from __future__ import annotations

import os
import socket
import sys
from pathlib import Path

import pytest

from ccmeta.core.walker import FileEntry, walk
from ccmeta.utils.exceptions import IOReadError, PathNotFoundError

pytestmark = [pytest.mark.unit, pytest.mark.core]


class TestSingleFile:
    """Walking a single regular file."""

    def test_single_file_manifest(self, tmp_path, make_file):
        path = make_file(tmp_path / "movie.mkv", b"x" * 1000)

        manifest = walk(path)

        assert manifest.is_single_file
        assert manifest.name == "movie.mkv"
        assert manifest.root == path
        assert manifest.entries == (FileEntry(path=("movie.mkv",), length=1000, offset=0),)
        assert manifest.total_length == 1000
        assert manifest.source_path(manifest.entries[0]) == path

    def test_empty_file(self, tmp_path, make_file):
        path = make_file(tmp_path / "empty.bin", b"")
        manifest = walk(path)
        assert manifest.file_count == 1
        assert manifest.total_length == 0

    def test_relative_path_is_resolved(self, tmp_path, make_file, monkeypatch):
        make_file(tmp_path / "a.txt", b"abc")
        monkeypatch.chdir(tmp_path)
        manifest = walk("a.txt")
        assert manifest.root == Path.cwd() / "a.txt"
        assert manifest.name == "a.txt"


class TestDirectory:
    """Walking directory trees."""

    def test_entries_sorted_depth_first(self, tmp_path, make_file):
        root = tmp_path / "album"
        make_file(root / "b.txt", b"bb")
        make_file(root / "a" / "z.txt", b"z")
        make_file(root / "a" / "y" / "deep.txt", b"deep")
        make_file(root / "c.txt", b"")

        manifest = walk(root)

        assert not manifest.is_single_file
        assert manifest.name == "album"
        assert [e.relative_path for e in manifest.entries] == [
            "a/y/deep.txt",
            "a/z.txt",
            "b.txt",
            "c.txt",
        ]
        assert [e.offset for e in manifest.entries] == [0, 4, 5, 7]
        assert manifest.total_length == 7
        assert manifest.source_path(manifest.entries[1]) == root / "a" / "z.txt"

    def test_trailing_separator_keeps_name(self, tmp_path, make_file):
        root = tmp_path / "album"
        make_file(root / "a.txt", b"a")
        manifest = walk(str(root) + os.sep)
        assert manifest.name == "album"

    def test_offsets_are_contiguous(self, tmp_path, make_file):
        root = tmp_path / "data"
        for i in range(5):
            make_file(root / f"{i}.bin", b"x" * (i * 10))
        manifest = walk(root)
        for prev, cur in zip(manifest.entries, manifest.entries[1:]):
            assert cur.offset == prev.end

    def test_empty_directory(self, tmp_path):
        root = tmp_path / "empty"
        root.mkdir()
        manifest = walk(root)
        assert manifest.entries == ()
        assert manifest.total_length == 0

    def test_walk_is_repeatable(self, tmp_path, make_file):
        root = tmp_path / "tree"
        for name in ("q", "b", "m", "a"):
            make_file(root / name / "f.txt", name.encode())
        assert walk(root) == walk(root)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX symlinks")
    def test_symlinked_file_is_followed(self, tmp_path, make_file):
        target = make_file(tmp_path / "outside.bin", b"0123456789")
        root = tmp_path / "tree"
        root.mkdir()
        (root / "link.bin").symlink_to(target)
        manifest = walk(root)
        assert [(e.relative_path, e.length) for e in manifest.entries] == [
            ("link.bin", 10)
        ]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX symlinks")
    def test_directory_cycle_not_followed(self, tmp_path, make_file):
        root = tmp_path / "tree"
        make_file(root / "sub" / "f.txt", b"f")
        (root / "sub" / "loop").symlink_to(root, target_is_directory=True)
        manifest = walk(root)
        assert [e.relative_path for e in manifest.entries] == ["sub/f.txt"]

    @pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="needs unix sockets")
    def test_special_files_skipped(self, tmp_path, make_file):
        root = tmp_path / "tree"
        make_file(root / "f.txt", b"f")
        sock = socket.socket(socket.AF_UNIX)
        try:
            sock.bind(str(root / "s.sock"))
        except OSError:
            pytest.skip("cannot bind unix socket here")
        try:
            manifest = walk(root)
        finally:
            sock.close()
        assert [e.relative_path for e in manifest.entries] == ["f.txt"]


class TestErrors:
    """Failures while walking."""

    def test_missing_root(self, tmp_path):
        missing = tmp_path / "nope"
        with pytest.raises(PathNotFoundError) as excinfo:
            walk(missing)
        assert excinfo.value.path == str(missing)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX symlinks")
    def test_dangling_symlink_is_read_error(self, tmp_path, make_file):
        root = tmp_path / "tree"
        make_file(root / "ok.txt", b"ok")
        (root / "broken").symlink_to(tmp_path / "gone")
        with pytest.raises(IOReadError) as excinfo:
            walk(root)
        assert excinfo.value.path == str(root / "broken")
        assert excinfo.value.os_error_code is not None

    @pytest.mark.skipif(
        sys.platform == "win32" or os.geteuid() == 0,
        reason="permissions are not enforced",
    )
    def test_unreadable_directory(self, tmp_path, make_file):
        root = tmp_path / "tree"
        make_file(root / "locked" / "f.txt", b"f")
        (root / "locked").chmod(0)
        try:
            with pytest.raises(IOReadError):
                walk(root)
        finally:
            (root / "locked").chmod(0o755)
