"""Concurrency-safe JSON store for knowledge-base files.

Several independent invocations of the tool may mutate the same persisted
files. Safety comes from two primitives only:

- atomic writes: serialize, write to a uniquely named temp file in the
  target's directory, then ``os.replace`` it onto the target. The rename is
  the only step that makes new content visible, so readers see either the
  old file or the new one, never a partial write.
- advisory locks: a ``LockBackend`` serializes read-modify-write cycles on
  one path. Each cycle re-reads the file after acquiring the lock, so
  concurrent updates are never lost.

Failure semantics:
    - a write failure removes the temp file and returns
      ``SaveResult(success=False)``; the target is untouched
    - a lock timeout returns ``UpdateResult(timed_out=True)`` and applies
      no mutation; it is never raised
    - an existing file that fails to parse raises ``MalformedStoreError``
      and is never treated as absent

Usage:
    from pattern_kb.core.store import ConcurrentStore

    store = ConcurrentStore()
    result = await store.with_lock(path, lambda data: {**data, "count": data.get("count", 0) + 1})
    if not result.success:
        logger.warning("Update failed: %s", result.error)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any

from pattern_kb.core.errors import LockTimeoutError, MalformedStoreError, sanitize_path_for_error
from pattern_kb.core.file_lock import STALE_LOCK_THRESHOLD_SECONDS, MarkerFileLock
from pattern_kb.core.utils import run_blocking
from pattern_kb.ports.locking import LockBackend

logger = logging.getLogger(__name__)

LOCK_MAX_WAIT_SECONDS = 5.0
LOCK_RETRY_INTERVAL_SECONDS = 0.05


@dataclass
class SaveResult:
    """Outcome of an atomic write."""

    success: bool
    error: str | None = None


@dataclass
class UpdateResult:
    """Outcome of a locked read-modify-write cycle.

    Attributes:
        success: True if the transformed data was written.
        error: Failure description.
        retries_needed: Lock acquisition attempts that found the lock held.
        timed_out: True if the lock was never acquired.
    """

    success: bool
    error: str | None = None
    retries_needed: int = 0
    timed_out: bool = False


# =============================================================================
# Plain file operations
# =============================================================================


def _temp_path_for(target: Path) -> Path:
    """Unique sibling temp path: ``{name}.tmp.{pid}-{random_hex}``."""
    return target.with_name(f"{target.name}.tmp.{os.getpid()}-{random.randbytes(6).hex()}")


def save_json_atomic(file_path: str | Path, data: Any) -> SaveResult:
    """Write JSON data atomically.

    Args:
        file_path: Target file path. Parent directories are created.
        data: JSON-serializable data.

    Returns:
        SaveResult describing success or the failure message.
    """
    target = Path(file_path)
    temp = _temp_path_for(target)

    try:
        content = json.dumps(data, indent=2, ensure_ascii=False)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(temp, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp, target)
        return SaveResult(success=True)
    except (OSError, TypeError, ValueError) as e:
        try:
            temp.unlink()
        except FileNotFoundError:
            pass
        except OSError as cleanup_error:
            logger.warning("Could not remove temp file %s: %s", temp.name, cleanup_error)
        logger.warning("Atomic write to %s failed: %s", sanitize_path_for_error(target), e)
        return SaveResult(success=False, error=str(e))


def load_json(file_path: str | Path) -> Any | None:
    """Load a JSON file.

    Args:
        file_path: File to read.

    Returns:
        Parsed data, or None if the file does not exist.

    Raises:
        MalformedStoreError: If the file exists but cannot be read or parsed.
    """
    path = Path(file_path)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise MalformedStoreError(path, str(e)) from e

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedStoreError(path, str(e)) from e


# =============================================================================
# Locked store
# =============================================================================


class ConcurrentStore:
    """Atomic, lock-protected JSON persistence.

    Example:
        store = ConcurrentStore(max_wait=5.0)
        saved = await store.atomic_write(path, {"patterns": []})
        updated = await store.with_lock(path, add_lesson)
    """

    def __init__(
        self,
        lock_backend: LockBackend | None = None,
        max_wait: float = LOCK_MAX_WAIT_SECONDS,
        retry_interval: float = LOCK_RETRY_INTERVAL_SECONDS,
        stale_after: float = STALE_LOCK_THRESHOLD_SECONDS,
    ) -> None:
        """Initialize the store.

        Args:
            lock_backend: Lock implementation (marker files by default).
            max_wait: Maximum seconds to wait for a lock.
            retry_interval: Seconds between acquisition attempts.
            stale_after: Seconds after which a held lock is reclaimable.

        Raises:
            ValueError: If a timing value is not positive.
        """
        if max_wait <= 0:
            raise ValueError("max_wait must be positive")
        if retry_interval <= 0:
            raise ValueError("retry_interval must be positive")
        if stale_after <= 0:
            raise ValueError("stale_after must be positive")

        self._locks: LockBackend = lock_backend or MarkerFileLock()
        self._max_wait = max_wait
        self._retry_interval = retry_interval
        self._stale_after = stale_after

    @property
    def lock_backend(self) -> LockBackend:
        return self._locks

    async def atomic_write(self, file_path: str | Path, data: Any) -> SaveResult:
        """Atomically write JSON data without taking the lock."""
        return await run_blocking(save_json_atomic, file_path, data)

    async def read(self, file_path: str | Path) -> Any | None:
        """Read JSON data; None if absent, MalformedStoreError if corrupt."""
        return await run_blocking(load_json, file_path)

    async def with_lock(
        self,
        file_path: str | Path,
        transform: Callable[[Any], Any],
        default: Callable[[], Any] = dict,
    ) -> UpdateResult:
        """Apply ``transform`` to the file's data under the lock and save it.

        The lock is released before returning or re-raising, whatever
        happens inside the cycle.

        Args:
            file_path: JSON file to update.
            transform: Receives current data, returns new data.
            default: Factory for the value passed when the file is absent.

        Returns:
            UpdateResult. Lock timeouts and write failures are reported
            here, not raised.

        Raises:
            MalformedStoreError: If the existing file fails to parse.
            Exception: Anything raised by ``transform``.
        """
        key = str(Path(file_path))
        await run_blocking(_ensure_parent, key)

        try:
            retries = await self._acquire(key)
        except LockTimeoutError as e:
            logger.warning("Lock timeout on %s after %d retries", sanitize_path_for_error(key), e.retries)
            return UpdateResult(
                success=False,
                error=f"Could not acquire lock within {self._max_wait * 1000:.0f}ms",
                retries_needed=e.retries,
                timed_out=True,
            )

        try:
            current = await run_blocking(load_json, key)
            if current is None:
                current = default()
            updated = transform(current)
            saved = await run_blocking(save_json_atomic, key, updated)
        finally:
            await run_blocking(self._locks.release, key)

        if not saved.success:
            return UpdateResult(success=False, error=saved.error, retries_needed=retries)
        return UpdateResult(success=True, retries_needed=retries)

    async def locked_write(self, file_path: str | Path, data: Any) -> UpdateResult:
        """Replace a file's contents under the lock without reading it first.

        For artifacts that are regenerated wholesale, where the previous
        contents (even corrupt ones) are irrelevant.
        """
        key = str(Path(file_path))
        await run_blocking(_ensure_parent, key)

        try:
            retries = await self._acquire(key)
        except LockTimeoutError as e:
            logger.warning("Lock timeout on %s after %d retries", sanitize_path_for_error(key), e.retries)
            return UpdateResult(
                success=False,
                error=f"Could not acquire lock within {self._max_wait * 1000:.0f}ms",
                retries_needed=e.retries,
                timed_out=True,
            )

        try:
            saved = await run_blocking(save_json_atomic, key, data)
        finally:
            await run_blocking(self._locks.release, key)

        if not saved.success:
            return UpdateResult(success=False, error=saved.error, retries_needed=retries)
        return UpdateResult(success=True, retries_needed=retries)

    def with_lock_sync(
        self,
        file_path: str | Path,
        transform: Callable[[Any], Any],
        default: Callable[[], Any] = dict,
    ) -> UpdateResult:
        """Blocking twin of ``with_lock`` for callers without an event loop."""
        key = str(Path(file_path))
        _ensure_parent(key)

        try:
            retries = self._acquire_sync(key)
        except LockTimeoutError as e:
            logger.warning("Lock timeout on %s after %d retries", sanitize_path_for_error(key), e.retries)
            return UpdateResult(
                success=False,
                error=f"Could not acquire lock within {self._max_wait * 1000:.0f}ms",
                retries_needed=e.retries,
                timed_out=True,
            )

        try:
            current = load_json(key)
            if current is None:
                current = default()
            saved = save_json_atomic(key, transform(current))
        finally:
            self._locks.release(key)

        if not saved.success:
            return UpdateResult(success=False, error=saved.error, retries_needed=retries)
        return UpdateResult(success=True, retries_needed=retries)

    async def _acquire(self, key: str) -> int:
        deadline = time.monotonic() + self._max_wait
        retries = 0
        while True:
            attempt = asyncio.ensure_future(run_blocking(self._locks.try_acquire, key, self._stale_after))
            try:
                acquired = await asyncio.shield(attempt)
            except asyncio.CancelledError:
                # The executor thread may still take the lock after the caller is gone
                attempt.add_done_callback(partial(self._release_orphan, key))
                raise
            if acquired:
                return retries
            if time.monotonic() >= deadline:
                raise LockTimeoutError(key, self._max_wait, retries)
            retries += 1
            await asyncio.sleep(self._retry_interval)

    def _release_orphan(self, key: str, attempt: asyncio.Future[bool]) -> None:
        if attempt.cancelled() or attempt.exception() is not None or not attempt.result():
            return
        logger.debug("Releasing lock taken after cancellation: %s", sanitize_path_for_error(key))
        self._locks.release(key)

    def _acquire_sync(self, key: str) -> int:
        deadline = time.monotonic() + self._max_wait
        retries = 0
        while True:
            if self._locks.try_acquire(key, self._stale_after):
                return retries
            if time.monotonic() >= deadline:
                raise LockTimeoutError(key, self._max_wait, retries)
            retries += 1
            time.sleep(self._retry_interval)


def _ensure_parent(key: str) -> None:
    Path(key).parent.mkdir(parents=True, exist_ok=True)
