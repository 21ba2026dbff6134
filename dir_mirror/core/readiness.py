"""Readiness polling for files that may still be open by their writer."""

import asyncio
import errno
import logging
import os
from pathlib import Path
from typing import Callable, Optional

import psutil

if os.name == "nt":  # Windows
    import ctypes
    from ctypes import wintypes

    _kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    _kernel32.CreateFileW.argtypes = [
        wintypes.LPCWSTR,  # lpFileName
        wintypes.DWORD,  # dwDesiredAccess
        wintypes.DWORD,  # dwShareMode
        wintypes.LPVOID,  # lpSecurityAttributes
        wintypes.DWORD,  # dwCreationDisposition
        wintypes.DWORD,  # dwFlagsAndAttributes
        wintypes.HANDLE,  # hTemplateFile
    ]
    _kernel32.CreateFileW.restype = wintypes.HANDLE
    _kernel32.CloseHandle.argtypes = [wintypes.HANDLE]
    _kernel32.CloseHandle.restype = wintypes.BOOL

    _GENERIC_READ = 0x80000000
    _OPEN_EXISTING = 3
    _FILE_ATTRIBUTE_NORMAL = 0x80
    _INVALID_HANDLE_VALUE = wintypes.HANDLE(-1).value
else:  # Unix-like (macOS, Linux)
    import fcntl

logger = logging.getLogger(__name__)

# Windows ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
_WIN_LOCK_ERRORS = {32, 33}
_LOCK_ERRNOS = {errno.EACCES, errno.EAGAIN, errno.EWOULDBLOCK, errno.EDEADLK}


class FileLockedError(OSError):
    """The file is currently held by another process."""


def is_locked_error(exc: BaseException) -> bool:
    """Check if an error means the file is held by another process.

    Args:
        exc: Exception raised while opening or locking a file

    Returns:
        True for sharing or lock violations, False otherwise
    """
    if isinstance(exc, FileLockedError):
        return True
    if getattr(exc, "winerror", None) in _WIN_LOCK_ERRORS:
        return True
    return isinstance(exc, BlockingIOError)


def has_open_writer(path: Path) -> bool:
    """Check whether any visible process has the file open for writing.

    Processes of other users are skipped when access is denied. Platforms
    where psutil does not report the open mode count every open handle.

    Args:
        path: File to look for

    Returns:
        True if a writer still holds the file
    """
    target = os.path.realpath(path)
    for proc in psutil.process_iter():
        try:
            for open_file in proc.open_files():
                if open_file.path == target and getattr(open_file, "mode", "w") != "r":
                    return True
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return False


def _probe_windows(path: Path) -> int:
    # Share mode 0: fails with a sharing violation while anyone else has it open
    handle = _kernel32.CreateFileW(
        str(path), _GENERIC_READ, 0, None, _OPEN_EXISTING, _FILE_ATTRIBUTE_NORMAL, None
    )
    if handle == _INVALID_HANDLE_VALUE:
        code = ctypes.get_last_error()
        if code in _WIN_LOCK_ERRORS:
            raise FileLockedError(errno.EACCES, f"File is in use: {path}")
        raise ctypes.WinError(code)
    try:
        return os.stat(path).st_size
    finally:
        _kernel32.CloseHandle(handle)


def _probe_posix(path: Path) -> int:
    if has_open_writer(path):
        raise FileLockedError(errno.EBUSY, f"File is open for writing: {path}")

    with open(path, "rb") as f:
        length = os.fstat(f.fileno()).st_size
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            if is_locked_error(e) or e.errno in _LOCK_ERRNOS:
                raise FileLockedError(e.errno, f"File is locked: {path}") from e
            raise
        try:
            return length
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def probe_exclusive(path: Path) -> int:
    """Check that no one else holds a file and report its length.

    On Windows the file is opened with share mode 0. Elsewhere the file must
    have no open writer and must not carry another holder's flock.

    Args:
        path: File to probe

    Returns:
        File length in bytes

    Raises:
        FileLockedError: If another process holds the file
        OSError: For any other failure (missing file, permission denied, ...)
    """
    if os.name == "nt":
        return _probe_windows(path)
    return _probe_posix(path)


class ReadinessPoller:
    """Waits until a newly created file is safe to copy as a whole."""

    def __init__(self, interval: float = 1.0, probe: Optional[Callable[[Path], int]] = None):
        """Initialize readiness poller.

        Args:
            interval: Seconds to wait between attempts
            probe: Callable returning the file length once no one else holds it; raises
                FileLockedError while the writer still holds the file
        """
        self.interval = interval
        self.probe = probe or probe_exclusive

    async def wait_until_ready(self, path: Path) -> int:
        """Block the calling task until the file is complete.

        The file is ready once no other process holds it and it is not empty.
        There is no timeout; cancel the awaiting task to give up.

        Args:
            path: File to wait for

        Returns:
            File length seen on the successful attempt

        Raises:
            OSError: Any failure other than lock contention (e.g. the file vanished)
        """
        attempts = 0
        while True:
            attempts += 1
            try:
                length = await asyncio.to_thread(self.probe, path)
            except FileLockedError:
                logger.debug(f"Still being written (attempt {attempts}): {path}")
            else:
                if length > 0:
                    logger.debug(f"Ready after {attempts} attempt(s): {path} ({length} bytes)")
                    return length
                logger.debug(f"Still empty (attempt {attempts}): {path}")

            await asyncio.sleep(self.interval)
