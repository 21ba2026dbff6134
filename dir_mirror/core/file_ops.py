"""Async filesystem mutations used to mirror files into the destination folder."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional
from uuid import uuid4

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
TEMP_SUFFIX = ".dirmirror-tmp"


def temp_path_for(dst: Path) -> Path:
    """Unique hidden sibling that receives data before it replaces dst."""
    return dst.with_name(f".{dst.name}.{uuid4().hex[:8]}{TEMP_SUFFIX}")


async def copy_file(src: Path, dst: Path, chunk_size: int = CHUNK_SIZE) -> int:
    """Copy a whole file, always overwriting the destination.

    Data is streamed into a temporary sibling which then replaces dst, so the
    destination never holds a partially written copy.

    Args:
        src: Source file
        dst: Destination file
        chunk_size: Bytes per read

    Returns:
        Number of bytes copied
    """
    tmp = temp_path_for(dst)
    copied = 0
    try:
        async with aiofiles.open(src, "rb") as fin, aiofiles.open(tmp, "wb") as fout:
            while chunk := await fin.read(chunk_size):
                await fout.write(chunk)
                copied += len(chunk)

        await asyncio.to_thread(shutil.copystat, src, tmp)
        await aiofiles.os.replace(tmp, dst)
    except BaseException:
        await _discard(tmp)
        raise

    logger.debug(f"Copied {copied} bytes: {src} -> {dst}")
    return copied


async def _discard(tmp: Path) -> None:
    try:
        await aiofiles.os.remove(tmp)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temporary file {tmp}: {e}")


async def delete_file(path: Path) -> bool:
    """Delete a file if it exists.

    Returns:
        True if a file was removed, False if there was nothing to remove
    """
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        return False
    return True


async def move_file(src: Path, dst: Path) -> None:
    """Rename src to dst, replacing an existing dst."""
    await aiofiles.os.replace(src, dst)


async def file_size(path: Path) -> Optional[int]:
    """Size of a regular file, or None if it does not exist."""
    if not await aiofiles.os.path.isfile(path):
        return None
    try:
        return (await aiofiles.os.stat(path)).st_size
    except FileNotFoundError:
        return None


async def same_length(first: Path, second: Path) -> bool:
    """Check that both files exist and have the same size."""
    first_size = await file_size(first)
    second_size = await file_size(second)
    if first_size is None or second_size is None:
        return False
    return first_size == second_size
