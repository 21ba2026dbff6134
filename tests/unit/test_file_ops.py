"""Tests for async filesystem operations."""

import os
import tempfile
from pathlib import Path

import pytest

from dir_mirror.core.file_ops import (
    TEMP_SUFFIX,
    copy_file,
    delete_file,
    file_size,
    move_file,
    same_length,
    temp_path_for,
)


def leftover_temp_files(folder: Path):
    return [p for p in folder.iterdir() if p.name.endswith(TEMP_SUFFIX)]


@pytest.fixture
def temp_folder():
    """Create a temporary folder for testing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


class TestCopyFile:
    """Test whole-file copies."""

    async def test_copy_new_file(self, temp_folder):
        """Test copying into a missing destination."""
        src = temp_folder / "src.txt"
        dst = temp_folder / "dst.txt"
        src.write_text("Content of file 1")

        copied = await copy_file(src, dst)

        assert copied == len("Content of file 1")
        assert dst.read_text() == "Content of file 1"
        assert leftover_temp_files(temp_folder) == []

    async def test_copy_overwrites(self, temp_folder):
        """Test that an existing destination is replaced."""
        src = temp_folder / "src.txt"
        dst = temp_folder / "dst.txt"
        src.write_text("new")
        dst.write_text("old and longer")

        await copy_file(src, dst)

        assert dst.read_text() == "new"

    async def test_copy_multiple_chunks(self, temp_folder):
        """Test copying a file larger than one chunk."""
        src = temp_folder / "big.bin"
        dst = temp_folder / "big_copy.bin"
        payload = os.urandom(10_000)
        src.write_bytes(payload)

        copied = await copy_file(src, dst, chunk_size=1024)

        assert copied == 10_000
        assert dst.read_bytes() == payload

    async def test_copy_preserves_mtime(self, temp_folder):
        """Test that modification time is carried over."""
        src = temp_folder / "src.txt"
        dst = temp_folder / "dst.txt"
        src.write_text("content")
        os.utime(src, (1_600_000_000, 1_600_000_000))

        await copy_file(src, dst)

        assert int(dst.stat().st_mtime) == 1_600_000_000

    async def test_copy_missing_source(self, temp_folder):
        """Test that a vanished source raises and leaves nothing behind."""
        dst = temp_folder / "dst.txt"

        with pytest.raises(FileNotFoundError):
            await copy_file(temp_folder / "missing.txt", dst)

        assert not dst.exists()
        assert leftover_temp_files(temp_folder) == []


class TestDeleteAndMove:
    """Test delete and move operations."""

    async def test_delete_existing(self, temp_folder):
        """Test deleting an existing file."""
        target = temp_folder / "old.txt"
        target.write_text("bye")

        assert await delete_file(target) is True
        assert not target.exists()

    async def test_delete_missing_is_noop(self, temp_folder):
        """Test that deleting a missing file is not an error."""
        assert await delete_file(temp_folder / "missing.txt") is False

    async def test_move_replaces_existing(self, temp_folder):
        """Test renaming over an existing file."""
        src = temp_folder / "a.txt"
        dst = temp_folder / "b.txt"
        src.write_text("from a")
        dst.write_text("stale b")

        await move_file(src, dst)

        assert not src.exists()
        assert dst.read_text() == "from a"


class TestSizes:
    """Test size helpers."""

    async def test_file_size(self, temp_folder):
        test_file = temp_folder / "data.bin"
        test_file.write_bytes(b"x" * 100)

        assert await file_size(test_file) == 100
        assert await file_size(temp_folder / "missing.bin") is None
        assert await file_size(temp_folder) is None

    async def test_same_length(self, temp_folder):
        a = temp_folder / "a.txt"
        b = temp_folder / "b.txt"
        c = temp_folder / "c.txt"
        a.write_bytes(b"x" * 100)
        b.write_bytes(b"y" * 100)
        c.write_bytes(b"z" * 50)

        assert await same_length(a, b) is True
        assert await same_length(a, c) is False
        assert await same_length(a, temp_folder / "missing.txt") is False


def test_temp_paths_are_unique_per_copy():
    """Test that two copies of one file never share a temporary file."""
    dst = Path("/dst/report.csv")

    first = temp_path_for(dst)
    second = temp_path_for(dst)

    assert first != second
    assert first.parent == dst.parent
    assert first.name.startswith(".report.csv.")
    assert first.name.endswith(TEMP_SUFFIX)
