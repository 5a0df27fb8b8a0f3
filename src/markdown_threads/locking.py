"""Advisory file locks guarding sidecar writes.

The lock is taken on a companion ``<sidecar>.lock`` file so that the sidecar
itself is only ever replaced by rename.
"""

import contextlib
import os
import sys
import time
from collections.abc import Generator
from pathlib import Path
from typing import Literal

try:
    import fcntl  # Unix file locking
except ImportError:
    fcntl = None  # type: ignore[assignment]

try:
    import msvcrt  # Windows file locking
except ImportError:
    msvcrt = None  # type: ignore[assignment]


LockMode = Literal["shared", "exclusive"]

LOCK_SUFFIX = ".lock"


class LockTimeout(Exception):  # noqa: N818
    """Raised when a lock cannot be acquired in time."""

    pass


def lock_path_for(path: Path) -> Path:
    """Companion lock file for a sidecar path."""
    return path.with_name(path.name + LOCK_SUFFIX)


def _try_lock(fd: int, mode: LockMode) -> bool:
    if sys.platform == "win32":
        # No shared locks on Windows; lock the first byte exclusively
        try:
            os.lseek(fd, 0, os.SEEK_SET)
            msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)  # type: ignore[attr-defined]
            return True
        except OSError:
            return False

    operation = fcntl.LOCK_SH if mode == "shared" else fcntl.LOCK_EX
    try:
        fcntl.flock(fd, operation | fcntl.LOCK_NB)
        return True
    except BlockingIOError:
        return False


def _unlock(fd: int) -> None:
    if sys.platform == "win32":
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
    else:
        fcntl.flock(fd, fcntl.LOCK_UN)


@contextlib.contextmanager
def file_lock(
    path: Path, mode: LockMode = "exclusive", timeout: float = 5.0
) -> Generator[Path, None, None]:
    """Hold a lock for ``path`` for the duration of the block.

    Args:
        path: Sidecar path to guard (the lock lives next to it)
        mode: "shared" for readers, "exclusive" for writers
        timeout: Seconds to keep retrying before giving up

    Yields:
        Path of the lock file

    Raises:
        LockTimeout: If the lock is still held by someone else after timeout
        OSError: If the lock file cannot be created
    """
    lock_path = lock_path_for(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    deadline = time.monotonic() + timeout
    delay = 0.01

    with open(lock_path, "a+", encoding="utf-8") as lock_file:
        fd = lock_file.fileno()
        while not _try_lock(fd, mode):
            if time.monotonic() >= deadline:
                raise LockTimeout(
                    f"Failed to acquire {mode} lock on {path} after {timeout:.1f} seconds"
                )
            time.sleep(delay)
            delay = min(delay * 2, 0.1)

        try:
            yield lock_path
        finally:
            _unlock(fd)
