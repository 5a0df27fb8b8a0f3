"""Sidecar file I/O: reading and writing ``<doc>.comments.json`` files.

A sidecar is always read and written whole. Writes go to a temp file in the
same directory and are renamed over the target, under an exclusive lock.
Concurrent writers are detected optimistically: a writer may pass the
fingerprint of the bytes it read, and the write is refused if the file has
changed since.
"""

import hashlib
import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from pydantic import ValidationError

from markdown_threads.events import ChangeNotifier, SidecarChangeEvent, WriteOrigin
from markdown_threads.locking import file_lock
from markdown_threads.logging import get_logger
from markdown_threads.models import SidecarFile
from markdown_threads.mutations import create_empty_sidecar

SIDECAR_SUFFIX = ".comments.json"
DEFAULT_LOCK_TIMEOUT = 5.0
DEFAULT_MAX_RETRIES = 3

R = TypeVar("R")


class ConcurrencyConflict(Exception):  # noqa: N818
    """Raised when a sidecar changed on disk between read and write."""

    pass


def get_sidecar_path(doc_path: Path) -> Path:
    """Map a markdown document to its sidecar file.

    The sidecar sits next to the document: ``docs/guide.md`` maps to
    ``docs/guide.comments.json``. Only a ``.md`` suffix is dropped.
    """
    name = doc_path.name
    stem = name[: -len(".md")] if name.endswith(".md") else name
    return doc_path.with_name(f"{stem}{SIDECAR_SUFFIX}")


def fingerprint_bytes(data: bytes) -> str:
    """SHA-256 of raw sidecar bytes, used for optimistic concurrency checks."""
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def compute_file_fingerprint(path: Path) -> str | None:
    """Fingerprint the current bytes of ``path``, or None if it does not exist."""
    try:
        return fingerprint_bytes(path.read_bytes())
    except FileNotFoundError:
        return None


def parse_sidecar(data: bytes | str, source: str = "<sidecar>") -> SidecarFile:
    """Parse and validate sidecar JSON.

    Raises:
        ValueError: If the payload is not valid JSON or fails schema
            validation (``doc`` not a string, wrong ``version``, ``comments``
            not an array, missing fields, empty threads)
    """
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid JSON in sidecar file {source}: {e}") from e

    try:
        return SidecarFile.model_validate(payload)
    except ValidationError as e:
        raise ValueError(f"Sidecar file {source} failed schema validation: {e}") from e


def load_sidecar(path: Path) -> SidecarFile:
    """Read and validate a sidecar file.

    Raises:
        FileNotFoundError: If the sidecar does not exist
        ValueError: If the path is not a file or the content is invalid
    """
    if not path.exists():
        raise FileNotFoundError(f"Sidecar file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    return parse_sidecar(path.read_bytes(), str(path))


def _read_snapshot(path: Path) -> tuple[SidecarFile | None, str | None]:
    """Read a sidecar and the fingerprint of the exact bytes parsed.

    A malformed sidecar is returned as None with the fingerprint of its bytes,
    so a writer can replace it without tripping the concurrency check.
    """
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None, None

    fingerprint = fingerprint_bytes(data)
    try:
        return parse_sidecar(data, str(path)), fingerprint
    except ValueError as e:
        get_logger().warning(f"Ignoring malformed sidecar: {e}", path=str(path))
        return None, fingerprint


def read_sidecar(path: Path) -> SidecarFile | None:
    """Read a sidecar, treating a missing or malformed file as absent.

    Returns:
        The parsed SidecarFile, or None
    """
    sidecar, _ = _read_snapshot(path)
    return sidecar


def serialize_sidecar(sidecar: SidecarFile) -> str:
    """Deterministic JSON (sorted keys, 2-space indent, trailing newline)."""
    data = sidecar.model_dump(mode="json", by_alias=True)
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def _atomic_replace(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(temp_name, path)
    except BaseException:
        try:
            os.unlink(temp_name)
        except OSError:
            pass  # Already renamed or never created
        raise


def write_sidecar(
    path: Path,
    sidecar: SidecarFile,
    *,
    check_fingerprint: bool = False,
    expected_fingerprint: str | None = None,
    acquire_lock: bool = True,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> str:
    """Write a sidecar file atomically.

    Args:
        path: Sidecar path
        sidecar: Sidecar to serialize
        check_fingerprint: If True, refuse to write unless the file on disk
            still has ``expected_fingerprint`` (None meaning "must not exist")
        expected_fingerprint: Fingerprint observed when the sidecar was read
        acquire_lock: If True, hold the exclusive lock while writing
        timeout: Lock timeout in seconds

    Returns:
        Fingerprint of the written bytes

    Raises:
        ConcurrencyConflict: If the fingerprint check fails
        LockTimeout: If the lock cannot be acquired within timeout
        OSError: If the write fails
    """
    content = serialize_sidecar(sidecar)

    def _do_write() -> str:
        if check_fingerprint:
            current = compute_file_fingerprint(path)
            if current != expected_fingerprint:
                raise ConcurrencyConflict(
                    f"Sidecar {path} changed since it was read:\n"
                    f"  Expected: {expected_fingerprint}\n"
                    f"  Current:  {current}"
                )
        _atomic_replace(path, content)
        get_logger().debug("Wrote sidecar", path=str(path), threads=len(sidecar.comments))
        return fingerprint_bytes(content.encode("utf-8"))

    if acquire_lock:
        with file_lock(path, mode="exclusive", timeout=timeout):
            return _do_write()
    return _do_write()


def write_sidecar_with_retry(
    path: Path,
    update_fn: Callable[[SidecarFile | None], SidecarFile | None],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> SidecarFile | None:
    """Read, update, and write a sidecar, retrying on concurrent changes.

    ``update_fn`` receives the current sidecar (None if missing or malformed)
    and returns the sidecar to write, or None to skip writing. It is called
    again with fresh data after each conflict.

    Returns:
        The written sidecar, or None if update_fn chose not to write

    Raises:
        ConcurrencyConflict: If every attempt hit a concurrent change
        LockTimeout: If the lock cannot be acquired
        OSError: If the write fails
    """
    for attempt in range(1, max_retries + 1):
        current, fingerprint = _read_snapshot(path)
        updated = update_fn(current)
        if updated is None:
            return None

        try:
            write_sidecar(
                path,
                updated,
                check_fingerprint=True,
                expected_fingerprint=fingerprint,
                timeout=timeout,
            )
            return updated
        except ConcurrencyConflict:
            get_logger().debug("Sidecar write conflict, retrying", path=str(path), attempt=attempt)

    raise ConcurrencyConflict(
        f"Failed to write {path} after {max_retries} attempts due to concurrent modifications"
    )


def _is_not_none(result: object) -> bool:
    return result is not None


class SidecarStore:
    """Document-level access to sidecars with change notification.

    Args:
        notifier: Receives a SidecarChangeEvent after each successful write
        lock_timeout: Lock timeout in seconds
        max_retries: Attempts made by ``update`` on concurrent changes
    """

    def __init__(
        self,
        notifier: ChangeNotifier | None = None,
        *,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self.notifier = notifier if notifier is not None else ChangeNotifier()
        self.lock_timeout = lock_timeout
        self.max_retries = max_retries

    def path_for(self, doc_path: Path) -> Path:
        return get_sidecar_path(doc_path)

    def exists(self, doc_path: Path) -> bool:
        return self.path_for(doc_path).is_file()

    def read(self, doc_path: Path) -> SidecarFile | None:
        """Read the document's sidecar; None if missing or malformed."""
        return read_sidecar(self.path_for(doc_path))

    def write(
        self,
        doc_path: Path,
        sidecar: SidecarFile,
        origin: WriteOrigin = WriteOrigin.INTERNAL,
    ) -> None:
        """Replace the document's sidecar unconditionally and notify listeners."""
        write_sidecar(self.path_for(doc_path), sidecar, timeout=self.lock_timeout)
        self.notifier.emit(SidecarChangeEvent(doc_path, origin))

    def update(
        self,
        doc_path: Path,
        mutate: Callable[[SidecarFile], R],
        origin: WriteOrigin = WriteOrigin.INTERNAL,
        *,
        write_if: Callable[[R], bool] | None = None,
    ) -> R | None:
        """Apply ``mutate`` to the current sidecar and write it back.

        A missing sidecar starts out empty. The sidecar is written, and an
        event emitted, only when ``write_if(result)`` is true. By default
        that is any result other than None, so a reaction toggle reporting
        False (removed) is still written. Pass ``write_if=bool`` for
        mutators that report not-found as False, such as ``delete_thread``.

        Returns:
            Whatever ``mutate`` returned on the attempt that was kept
        """
        should_write = write_if if write_if is not None else _is_not_none
        result: R | None = None

        def apply(current: SidecarFile | None) -> SidecarFile | None:
            nonlocal result
            sidecar = current if current is not None else create_empty_sidecar(doc_path.name)
            result = mutate(sidecar)
            if not should_write(result):
                return None
            return sidecar

        written = write_sidecar_with_retry(
            self.path_for(doc_path),
            apply,
            max_retries=self.max_retries,
            timeout=self.lock_timeout,
        )
        if written is not None:
            self.notifier.emit(SidecarChangeEvent(doc_path, origin))
        return result
