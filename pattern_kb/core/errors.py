"""Custom exceptions for the pattern knowledge base."""

from pathlib import Path


def sanitize_path_for_error(path: str | Path) -> str:
    """Extract only the filename from a path for safe error messages.

    Prevents leaking full system paths in error messages and in persisted
    artifacts that may end up committed to a repository.

    Args:
        path: Full path or filename.

    Returns:
        Just the filename portion.
    """
    if isinstance(path, Path):
        return path.name
    return Path(path).name


class PatternKBError(Exception):
    """Base exception for all pattern knowledge base errors."""

    pass


class StorageError(PatternKBError):
    """Raised when a knowledge-base file cannot be read or written."""

    pass


class MalformedStoreError(StorageError):
    """Raised when an existing knowledge-base file fails to parse.

    Distinct from "file absent": corrupt state must never be silently
    replaced with fresh data.
    """

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to load JSON from {sanitize_path_for_error(path)}: {reason}")


class LockTimeoutError(StorageError):
    """Raised when a file lock cannot be acquired within the allowed wait."""

    def __init__(self, path: str | Path, timeout: float, retries: int) -> None:
        self.path = str(path)
        self.timeout = timeout
        self.retries = retries
        super().__init__(
            f"Could not acquire lock on {sanitize_path_for_error(path)} "
            f"within {timeout:.1f}s after {retries} retries"
        )


class DiscoveryError(PatternKBError):
    """Raised when structural discovery of a project fails."""

    pass
