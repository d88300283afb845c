"""File content cache with mtime validation and LRU eviction.

Mining runs many extraction passes (entities, routes, forms, i18n keys,
analytics events, feature flags, ...) over the same set of source files.
This module lets all of those passes share one read of each file:

- mtime validation: a cached entry whose file changed on disk is purged
  and re-read, never served stale
- LRU eviction under both an entry-count and an estimated-memory budget
- safety filtering: symlinks and files over 5 MiB are refused outright,
  so they are excluded from mining and not merely left uncached
- statistics for tuning and tests

A cache instance belongs to one mining session. It is not thread-safe and
must not be shared across independent pipeline runs; call ``clear()`` when
the session is over to release memory.

Usage:
    from pattern_kb.core.content_cache import ContentCache, scan_source_directories

    cache = ContentCache()
    files = await scan_source_directories("/path/to/project", cache)
    content = await cache.get_content("/path/to/project/src/App.tsx")
    print(cache.stats().hit_rate)
    cache.clear()
"""

from __future__ import annotations

import logging
import math
import os
import stat
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from pattern_kb.core.lru import LRUList, LRUNode
from pattern_kb.core.utils import run_blocking

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

MAX_CACHE_FILE_SIZE = 5 * 1024 * 1024
MAX_CACHED_FILES = 5000
MAX_CACHE_MEMORY = 100 * 1024 * 1024
EVICTION_BATCH_PERCENT = 0.1

# In-memory size estimate per character (UTF-16 style string storage),
# independent of the on-disk byte count.
STRING_BYTES_PER_CHAR = 2

SOURCE_DIRECTORIES: tuple[str, ...] = (
    # Core
    "src",
    "app",
    # Components
    "components",
    "lib",
    # Pages / views
    "pages",
    "views",
    # Models / types
    "models",
    "entities",
    "types",
    # Routes
    "routes",
    # Forms
    "forms",
    "schemas",
    "validation",
    # Tables
    "tables",
    "grids",
    # Modals
    "modals",
    "dialogs",
    # Broader coverage
    "features",
    "modules",
    "services",
    "utils",
    "helpers",
    "api",
    "stores",
    "hooks",
    "contexts",
    "providers",
    "layouts",
    "shared",
    "common",
)

DEFAULT_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx", ".vue", ".svelte")

EXCLUDED_DIRECTORIES = frozenset(
    {"node_modules", "dist", "build", "coverage", "__pycache__", ".git", ".svn"}
)


# =============================================================================
# Cache entry and statistics
# =============================================================================


@dataclass
class CacheEntry:
    """A cached file.

    Attributes:
        path: Absolute resolved path (also the cache key).
        content: File content.
        size: Estimated in-memory size in bytes.
        mtime_ns: Modification time of the file when it was cached.
        last_accessed: Monotonic timestamp of the last hit (stats only).
        node: Position in the LRU list.
    """

    path: str
    content: str
    size: int
    mtime_ns: int
    last_accessed: float
    node: LRUNode[str]


@dataclass
class CacheStats:
    """Statistics about cache performance and usage.

    Attributes:
        hits: Reads served from the cache.
        misses: Reads that went to disk.
        skipped: Files refused because they were too large or symlinked.
        invalidations: Entries purged because the file changed (or manually).
        evictions: Entries evicted by the LRU policy.
        cache_size: Current number of entries.
        memory_usage: Current estimated memory of cached contents.
        total_bytes_read: Total on-disk bytes read.
    """

    hits: int = 0
    misses: int = 0
    skipped: int = 0
    invalidations: int = 0
    evictions: int = 0
    cache_size: int = 0
    memory_usage: int = 0
    total_bytes_read: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit rate between 0.0 and 1.0, or 0.0 if there were no reads."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


@dataclass
class WarmFile:
    """Pre-read file content used to warm a cache."""

    path: str
    content: str
    mtime_ns: int | None = None
    size: int | None = None


# =============================================================================
# Content cache
# =============================================================================


class ContentCache:
    """In-memory cache of file contents for a single mining session.

    Example:
        cache = ContentCache()
        content = await cache.get_content("/repo/src/App.tsx")
        stats = cache.stats()
        cache.clear()
    """

    def __init__(
        self,
        validate_mtime: bool = True,
        max_files: int = MAX_CACHED_FILES,
        max_memory: int = MAX_CACHE_MEMORY,
        max_file_size: int = MAX_CACHE_FILE_SIZE,
    ) -> None:
        """Initialize the cache.

        Args:
            validate_mtime: Re-stat files on every hit. Disable only for
                pre-warmed content known to be fresh.
            max_files: Maximum number of cached entries. Must be positive.
            max_memory: Maximum estimated memory in bytes. Must be positive.
            max_file_size: Files larger than this on disk are refused.

        Raises:
            ValueError: If a limit is not positive.
        """
        if max_files <= 0:
            raise ValueError("max_files must be positive")
        if max_memory <= 0:
            raise ValueError("max_memory must be positive")
        if max_file_size <= 0:
            raise ValueError("max_file_size must be positive")

        self._validate_mtime = validate_mtime
        self._max_files = max_files
        self._max_memory = max_memory
        self._max_file_size = max_file_size
        self._entries: dict[str, CacheEntry] = {}
        self._lru: LRUList[str] = LRUList()
        self._memory_usage = 0
        self._stats = CacheStats()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_content(self, file_path: str | Path) -> str | None:
        """Get file content, serving from cache when the file is unchanged.

        Args:
            file_path: Path to the file.

        Returns:
            File content, or None if the file is missing, unreadable,
            symlinked, or larger than the size ceiling.
        """
        key = _normalize(file_path)

        cached = self._entries.get(key)
        if cached is not None:
            if not self._validate_mtime:
                return self._hit(cached)

            try:
                current = await run_blocking(os.lstat, key)
            except OSError:
                self._remove_entry(key)
                return None

            if stat.S_ISLNK(current.st_mode):
                self._remove_entry(key)
                self._stats.skipped += 1
                return None

            if current.st_mtime_ns == cached.mtime_ns:
                return self._hit(cached)

            logger.debug("Content cache invalidated (mtime changed): %s", key)
            self._remove_entry(key)
            self._stats.invalidations += 1

        return await self._read_fresh(key)

    def has(self, file_path: str | Path) -> bool:
        """Check whether a file is currently cached."""
        return _normalize(file_path) in self._entries

    def invalidate(self, file_path: str | Path) -> bool:
        """Manually drop a cached file.

        Returns:
            True if the file was cached and has been removed.
        """
        key = _normalize(file_path)
        if key not in self._entries:
            return False
        self._remove_entry(key)
        self._stats.invalidations += 1
        return True

    async def warm_up(self, files: Iterable[WarmFile]) -> None:
        """Populate the cache with content that is already in memory.

        Files whose size exceeds the ceiling, or that turn out to be
        symlinks, are skipped. A missing mtime is taken from the filesystem
        when possible, otherwise from the current clock.
        """
        for warm in files:
            key = _normalize(warm.path)
            size = warm.size if warm.size is not None else len(warm.content) * STRING_BYTES_PER_CHAR
            if size > self._max_file_size or size > self._max_memory:
                continue

            mtime_ns = warm.mtime_ns
            if mtime_ns is None:
                try:
                    st = await run_blocking(os.lstat, key)
                except OSError:
                    mtime_ns = time.time_ns()
                else:
                    if stat.S_ISLNK(st.st_mode):
                        continue
                    mtime_ns = st.st_mtime_ns

            if key in self._entries:
                self._remove_entry(key)
            self._admit(key, warm.content, size, mtime_ns)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def stats(self) -> CacheStats:
        """Snapshot of the current statistics."""
        return CacheStats(
            hits=self._stats.hits,
            misses=self._stats.misses,
            skipped=self._stats.skipped,
            invalidations=self._stats.invalidations,
            evictions=self._stats.evictions,
            cache_size=len(self._entries),
            memory_usage=self._memory_usage,
            total_bytes_read=self._stats.total_bytes_read,
        )

    @property
    def hit_rate_percent(self) -> int:
        """Hit rate as a rounded percentage between 0 and 100."""
        return round(self.stats().hit_rate * 100)

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def memory_usage(self) -> int:
        return self._memory_usage

    @property
    def max_files(self) -> int:
        return self._max_files

    @property
    def max_memory(self) -> int:
        return self._max_memory

    def clear(self) -> None:
        """Drop every entry and reset statistics."""
        self._entries.clear()
        self._lru.clear()
        self._memory_usage = 0
        self._stats = CacheStats()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _hit(self, entry: CacheEntry) -> str:
        entry.last_accessed = time.monotonic()
        self._lru.move_to_front(entry.node)
        self._stats.hits += 1
        return entry.content

    async def _read_fresh(self, key: str) -> str | None:
        try:
            st = await run_blocking(os.lstat, key)
        except OSError:
            return None

        if stat.S_ISLNK(st.st_mode):
            self._stats.skipped += 1
            return None
        if not stat.S_ISREG(st.st_mode):
            return None
        if st.st_size > self._max_file_size:
            logger.debug("Content cache skipped oversized file: %s (%d bytes)", key, st.st_size)
            self._stats.skipped += 1
            return None

        try:
            content = await run_blocking(_read_text, key)
        except OSError as e:
            logger.debug("Content cache could not read %s: %s", key, e)
            return None

        memory_size = len(content) * STRING_BYTES_PER_CHAR
        self._stats.total_bytes_read += st.st_size
        self._stats.misses += 1

        if memory_size <= self._max_memory:
            self._admit(key, content, memory_size, st.st_mtime_ns)

        return content

    def _admit(self, key: str, content: str, size: int, mtime_ns: int) -> None:
        self._ensure_capacity(size)
        node = self._lru.push_front(key)
        self._entries[key] = CacheEntry(
            path=key,
            content=content,
            size=size,
            mtime_ns=mtime_ns,
            last_accessed=time.monotonic(),
            node=node,
        )
        self._memory_usage += size

    def _ensure_capacity(self, required: int) -> None:
        if len(self._entries) >= self._max_files:
            self._evict(math.ceil(self._max_files * EVICTION_BATCH_PERCENT))

        while self._memory_usage + required > self._max_memory and self._entries:
            self._evict(1)

    def _evict(self, count: int) -> None:
        for _ in range(count):
            tail = self._lru.tail
            if tail is None:
                return
            self._remove_entry(tail.key)
            self._stats.evictions += 1
            logger.debug("Content cache eviction (LRU): %s", tail.key)

    def _remove_entry(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        self._lru.unlink(entry.node)
        self._memory_usage -= entry.size


def _normalize(file_path: str | Path) -> str:
    return os.path.abspath(os.fspath(file_path))


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8", errors="replace") as f:
        return f.read()


# =============================================================================
# Scanning
# =============================================================================


@dataclass
class ScannedFile:
    """A scanned source file and its content."""

    path: str
    content: str


@dataclass
class ScanOptions:
    """Bounds for a directory scan."""

    max_depth: int = 15
    max_files: int = 3000
    extensions: tuple[str, ...] = field(default=DEFAULT_EXTENSIONS)


@dataclass
class _DirEntry:
    name: str
    path: str
    is_dir: bool
    is_file: bool
    is_symlink: bool


def _list_directory(directory: str) -> list[_DirEntry]:
    entries: list[_DirEntry] = []
    with os.scandir(directory) as it:
        for entry in it:
            is_symlink = entry.is_symlink()
            entries.append(
                _DirEntry(
                    name=entry.name,
                    path=entry.path,
                    is_dir=entry.is_dir(follow_symlinks=False),
                    is_file=entry.is_file(follow_symlinks=False),
                    is_symlink=is_symlink,
                )
            )
    entries.sort(key=lambda e: e.name)
    return entries


def _is_excluded_directory(name: str) -> bool:
    return name.startswith(".") or name in EXCLUDED_DIRECTORIES


async def scan_directory(
    directory: str | Path,
    cache: ContentCache,
    options: ScanOptions | None = None,
) -> list[ScannedFile]:
    """Recursively collect source files under a directory through the cache.

    Hidden directories, build/VCS directories and symlinks are never
    followed. Files the cache refuses (oversized, symlinked, unreadable)
    are left out.

    Args:
        directory: Directory to scan.
        cache: Cache used to read file contents.
        options: Scan bounds.

    Returns:
        Scanned files in a deterministic (name-sorted, depth-first) order.
    """
    opts = options or ScanOptions()
    files: list[ScannedFile] = []

    async def _scan(current: str, depth: int) -> None:
        if depth > opts.max_depth or len(files) >= opts.max_files:
            return

        try:
            entries = await run_blocking(_list_directory, current)
        except OSError:
            return

        for entry in entries:
            if len(files) >= opts.max_files:
                break
            if entry.is_symlink:
                continue
            if entry.is_dir:
                if not _is_excluded_directory(entry.name):
                    await _scan(entry.path, depth + 1)
            elif entry.is_file and entry.name.endswith(opts.extensions):
                content = await cache.get_content(entry.path)
                if content is not None:
                    files.append(ScannedFile(path=entry.path, content=content))

    await _scan(os.path.abspath(os.fspath(directory)), 0)
    return files


async def scan_source_directories(
    project_root: str | Path,
    cache: ContentCache,
    options: ScanOptions | None = None,
) -> list[ScannedFile]:
    """Scan every known source directory of a project.

    Directories that are missing, symlinked, or resolve outside the project
    root are skipped. Files reachable from more than one source directory
    are returned once.

    Args:
        project_root: Project root directory.
        cache: Cache used to read file contents.
        options: Scan bounds applied to each source directory.

    Returns:
        All scanned files.
    """
    root = Path(project_root).resolve()
    all_files: list[ScannedFile] = []
    seen: set[str] = set()

    for name in SOURCE_DIRECTORIES:
        candidate = root / name
        try:
            st = await run_blocking(os.lstat, candidate)
        except OSError:
            continue
        if stat.S_ISLNK(st.st_mode) or not stat.S_ISDIR(st.st_mode):
            continue

        resolved = candidate.resolve()
        if resolved != root and root not in resolved.parents:
            continue

        for scanned in await scan_directory(resolved, cache, options):
            if scanned.path not in seen:
                seen.add(scanned.path)
                all_files.append(scanned)

    return all_files


async def create_cache_from_files(files: Iterable[ScannedFile]) -> ContentCache:
    """Build a pre-warmed cache that serves the given contents without stat checks.

    Useful for tests and when contents are already in memory.
    """
    cache = ContentCache(validate_mtime=False)
    await cache.warm_up(WarmFile(path=f.path, content=f.content) for f in files)
    return cache
