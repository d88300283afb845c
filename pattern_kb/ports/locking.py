"""Protocol interface for knowledge-base file locks."""

from __future__ import annotations

from typing import Protocol


class LockBackend(Protocol):
    """Non-blocking mutual exclusion keyed by file path.

    Implementations decide how a lock is represented (marker file, OS lock,
    in-memory registry). Callers own the waiting policy.
    """

    def try_acquire(self, key: str, stale_after: float) -> bool:
        """Attempt to take the lock for ``key`` without blocking.

        Args:
            key: Path of the file being protected.
            stale_after: Age in seconds after which a lock held by another
                party may be reclaimed.

        Returns:
            True if the caller now holds the lock.
        """
        ...

    def release(self, key: str) -> None:
        """Release the lock for ``key``. Must not raise if it is not held."""
        ...
