"""Cooperative, crash-recoverable locks for knowledge-base files.

Every backend implements ``LockBackend``: a non-blocking ``try_acquire`` and
an unconditional ``release``. Waiting, retry and timeout policy live in
``pattern_kb.core.store`` so backends stay interchangeable.

Backends:
    MarkerFileLock   - exclusive creation of ``<target>.lock``; a marker older
                       than the stale threshold is reclaimed by the next
                       caller (default; works on any filesystem)
    NativeFileLock   - OS-level lock through ``filelock.FileLock``; the OS
                       drops the lock when the holder dies
    InProcessLock    - in-memory registry for single-process use
"""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path

from filelock import FileLock
from filelock import Timeout as FileLockTimeout

from pattern_kb.ports.locking import LockBackend

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
STALE_LOCK_THRESHOLD_SECONDS = 30.0


def lock_path_for(target: str | Path) -> Path:
    """Path of the lock marker guarding ``target``."""
    target = Path(target)
    return target.with_name(target.name + LOCK_SUFFIX)


class MarkerFileLock:
    """Lock by exclusive creation of a marker file next to the target.

    The marker holds the creation timestamp. Its filesystem mtime decides
    staleness, so a holder that crashed without releasing is reclaimable
    once the marker is older than ``stale_after`` seconds. This trades
    strict exclusivity for liveness after failure.
    """

    def try_acquire(self, key: str, stale_after: float = STALE_LOCK_THRESHOLD_SECONDS) -> bool:
        """Attempt to create the marker without blocking.

        Args:
            key: Path of the file being protected.
            stale_after: Age in seconds after which an existing marker is
                considered abandoned.

        Returns:
            True if the lock is now held by the caller.

        Raises:
            OSError: For failures other than "marker already exists".
        """
        marker = lock_path_for(key)
        if self._create(marker):
            return True

        try:
            age = time.time() - marker.stat().st_mtime
        except FileNotFoundError:
            # Released between our attempt and the stat
            return self._create(marker)

        if age <= stale_after:
            return False

        logger.warning(
            "Reclaiming stale lock %s (age %.1fs > %.1fs)", marker.name, age, stale_after
        )
        try:
            marker.unlink()
        except FileNotFoundError:
            pass
        return self._create(marker)

    def release(self, key: str) -> None:
        """Remove the marker. A marker already gone is not an error."""
        marker = lock_path_for(key)
        try:
            marker.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove lock %s: %s", marker.name, e)

    @staticmethod
    def _create(marker: Path) -> bool:
        try:
            fd = os.open(marker, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        try:
            os.write(fd, str(int(time.time() * 1000)).encode("ascii"))
        finally:
            os.close(fd)
        return True


class NativeFileLock:
    """Lock through ``filelock.FileLock`` (``fcntl``/``msvcrt`` under the hood).

    A fresh ``FileLock`` is opened per attempt so two callers inside the same
    process never share a reentrant lock object. ``stale_after`` is accepted
    for interface compatibility; the OS releases a dead holder's lock itself.
    """

    def __init__(self) -> None:
        self._held: dict[str, FileLock] = {}
        self._guard = threading.Lock()

    def try_acquire(self, key: str, stale_after: float = STALE_LOCK_THRESHOLD_SECONDS) -> bool:
        lock = FileLock(str(lock_path_for(key)))
        try:
            lock.acquire(timeout=0)
        except FileLockTimeout:
            return False
        with self._guard:
            self._held[key] = lock
        return True

    def release(self, key: str) -> None:
        with self._guard:
            lock = self._held.pop(key, None)
        if lock is not None:
            lock.release()


class InProcessLock:
    """In-memory lock registry for when single-process use is guaranteed."""

    def __init__(self) -> None:
        self._held: dict[str, float] = {}
        self._guard = threading.Lock()

    def try_acquire(self, key: str, stale_after: float = STALE_LOCK_THRESHOLD_SECONDS) -> bool:
        now = time.monotonic()
        with self._guard:
            acquired_at = self._held.get(key)
            if acquired_at is not None and now - acquired_at <= stale_after:
                return False
            self._held[key] = now
            return True

    def release(self, key: str) -> None:
        with self._guard:
            self._held.pop(key, None)


def create_lock_backend(name: str) -> LockBackend:
    """Build a lock backend from its configuration name.

    Args:
        name: One of "marker", "native" or "memory".

    Raises:
        ValueError: If the name is unknown.
    """
    if name == "marker":
        return MarkerFileLock()
    if name == "native":
        return NativeFileLock()
    if name == "memory":
        return InProcessLock()
    raise ValueError(f"Unknown lock backend: {name}")
