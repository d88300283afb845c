"""Unit tests for ContentCache and directory scanning.

Tests cover:
- Hits, misses and hit-rate statistics
- mtime invalidation and manual invalidation
- Refusal of symlinks and oversized files
- Batch LRU eviction at the file limit and memory-driven eviction
- Warm-up with pre-read content
- Scanning source directories through the cache
"""

from __future__ import annotations

import math
import os
from pathlib import Path

import pytest

from pattern_kb.core.content_cache import (
    EVICTION_BATCH_PERCENT,
    STRING_BYTES_PER_CHAR,
    CacheStats,
    ContentCache,
    ScannedFile,
    ScanOptions,
    WarmFile,
    create_cache_from_files,
    scan_directory,
    scan_source_directories,
)

pytestmark = pytest.mark.unit


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _bump_mtime(path: Path) -> None:
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 5_000_000_000))


# =============================================================================
# Construction and statistics
# =============================================================================


class TestConstruction:
    """Tests for limit validation."""

    @pytest.mark.parametrize("kwargs", [{"max_files": 0}, {"max_memory": 0}, {"max_file_size": -1}])
    def test_rejects_non_positive_limits(self, kwargs: dict[str, int]) -> None:
        """Non-positive limits should raise ValueError."""
        with pytest.raises(ValueError):
            ContentCache(**kwargs)

    def test_cache_stats_hit_rate(self) -> None:
        """hit_rate should be hits over total reads."""
        assert CacheStats(hits=3, misses=1).hit_rate == pytest.approx(0.75)
        assert CacheStats().hit_rate == 0.0


# =============================================================================
# Reads
# =============================================================================


class TestGetContent:
    """Tests for get_content."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, temp_storage: Path) -> None:
        """First read goes to disk, second is served from memory."""
        path = _write(temp_storage / "a.ts", "export const a = 1;")
        cache = ContentCache()

        assert await cache.get_content(path) == "export const a = 1;"
        assert await cache.get_content(path) == "export const a = 1;"

        stats = cache.stats()
        assert stats.misses == 1
        assert stats.hits == 1
        assert stats.cache_size == 1
        assert stats.total_bytes_read == len("export const a = 1;")
        assert stats.hit_rate == pytest.approx(0.5)
        assert cache.hit_rate_percent == 50

    @pytest.mark.asyncio
    async def test_missing_file_returns_none(self, temp_storage: Path) -> None:
        """A missing file is not an error."""
        cache = ContentCache()

        assert await cache.get_content(temp_storage / "missing.ts") is None
        assert cache.stats().misses == 0

    @pytest.mark.asyncio
    async def test_relative_and_absolute_paths_share_entry(
        self, temp_storage: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Keys are normalized to absolute paths."""
        _write(temp_storage / "b.ts", "b")
        monkeypatch.chdir(temp_storage)
        cache = ContentCache()

        await cache.get_content("b.ts")
        await cache.get_content(temp_storage / "b.ts")

        assert cache.size == 1
        assert cache.stats().hits == 1

    @pytest.mark.asyncio
    async def test_changed_mtime_invalidates(self, temp_storage: Path) -> None:
        """A modified file should be re-read, never served stale."""
        path = _write(temp_storage / "c.ts", "old")
        cache = ContentCache()
        await cache.get_content(path)

        path.write_text("new", encoding="utf-8")
        _bump_mtime(path)

        assert await cache.get_content(path) == "new"
        stats = cache.stats()
        assert stats.invalidations == 1
        assert stats.misses == 2

    @pytest.mark.asyncio
    async def test_deleted_file_is_dropped(self, temp_storage: Path) -> None:
        """A cached file deleted from disk returns None and leaves the cache."""
        path = _write(temp_storage / "d.ts", "content")
        cache = ContentCache()
        await cache.get_content(path)

        path.unlink()

        assert await cache.get_content(path) is None
        assert not cache.has(path)
        assert cache.memory_usage == 0

    @pytest.mark.asyncio
    async def test_validate_mtime_disabled_serves_cached(self, temp_storage: Path) -> None:
        """Without mtime validation hits skip the stat check."""
        path = _write(temp_storage / "e.ts", "first")
        cache = ContentCache(validate_mtime=False)
        await cache.get_content(path)

        path.write_text("second", encoding="utf-8")
        _bump_mtime(path)

        assert await cache.get_content(path) == "first"

    @pytest.mark.asyncio
    async def test_symlink_is_refused(self, temp_storage: Path) -> None:
        """Symlinks are never followed."""
        target = _write(temp_storage / "real.ts", "secret")
        link = temp_storage / "link.ts"
        try:
            link.symlink_to(target)
        except OSError:
            pytest.skip("symlinks not supported")
        cache = ContentCache()

        assert await cache.get_content(link) is None
        assert cache.stats().skipped == 1
        assert not cache.has(link)

    @pytest.mark.asyncio
    async def test_oversized_file_is_skipped(self, temp_storage: Path) -> None:
        """Files over the size ceiling are not read."""
        path = _write(temp_storage / "big.ts", "x" * 200)
        cache = ContentCache(max_file_size=100)

        assert await cache.get_content(path) is None
        assert cache.stats().skipped == 1
        assert cache.stats().total_bytes_read == 0

    @pytest.mark.asyncio
    async def test_content_larger_than_memory_is_returned_uncached(self, temp_storage: Path) -> None:
        """Content too large for the memory budget is returned but not kept."""
        path = _write(temp_storage / "wide.ts", "y" * 600)
        cache = ContentCache(max_memory=1000)

        assert await cache.get_content(path) == "y" * 600
        assert cache.size == 0


# =============================================================================
# Eviction
# =============================================================================


class TestEviction:
    """Tests for LRU eviction."""

    @pytest.mark.asyncio
    async def test_batch_eviction_at_file_limit(self, temp_storage: Path) -> None:
        """Reaching max_files evicts ceil(10%) of entries, oldest first."""
        cache = ContentCache(max_files=10)
        paths = [_write(temp_storage / f"f{i}.ts", str(i)) for i in range(11)]

        for path in paths:
            await cache.get_content(path)

        expected_evicted = math.ceil(10 * EVICTION_BATCH_PERCENT)
        assert cache.stats().evictions == expected_evicted
        assert cache.size == 11 - expected_evicted
        assert not cache.has(paths[0])
        assert cache.has(paths[-1])

    @pytest.mark.asyncio
    async def test_recent_access_protects_from_eviction(self, temp_storage: Path) -> None:
        """A re-read entry moves to the front and survives eviction."""
        cache = ContentCache(max_files=3)
        a, b, c, d = (_write(temp_storage / f"{n}.ts", n) for n in "abcd")

        for path in (a, b, c):
            await cache.get_content(path)
        await cache.get_content(a)
        await cache.get_content(d)

        assert cache.has(a)
        assert not cache.has(b)
        assert cache.has(d)

    @pytest.mark.asyncio
    async def test_memory_limit_evicts_until_fit(self, temp_storage: Path) -> None:
        """Memory accounting never exceeds max_memory."""
        budget = 100 * STRING_BYTES_PER_CHAR
        cache = ContentCache(max_memory=budget)
        paths = [_write(temp_storage / f"m{i}.ts", "z" * 40) for i in range(4)]

        for path in paths:
            await cache.get_content(path)

        assert cache.memory_usage <= budget
        assert cache.stats().evictions == 2
        assert cache.has(paths[-1])

    @pytest.mark.asyncio
    async def test_invalidate_and_clear(self, temp_storage: Path) -> None:
        """Manual invalidation counts; clear resets everything."""
        path = _write(temp_storage / "i.ts", "i")
        cache = ContentCache()
        await cache.get_content(path)

        assert cache.invalidate(path) is True
        assert cache.invalidate(path) is False
        assert cache.stats().invalidations == 1

        await cache.get_content(path)
        cache.clear()

        assert cache.size == 0
        assert cache.memory_usage == 0
        assert cache.stats() == CacheStats()


# =============================================================================
# Warm-up
# =============================================================================


class TestWarmUp:
    """Tests for warm_up and create_cache_from_files."""

    @pytest.mark.asyncio
    async def test_warm_up_serves_content_without_disk(self, temp_storage: Path) -> None:
        """Pre-warmed content is served for paths that do not exist."""
        virtual = str(temp_storage / "virtual.ts")
        cache = await create_cache_from_files([ScannedFile(path=virtual, content="warm")])

        assert await cache.get_content(virtual) == "warm"
        assert cache.stats().hits == 1

    @pytest.mark.asyncio
    async def test_warm_up_skips_oversized(self, temp_storage: Path) -> None:
        """Warm files larger than the ceiling are ignored."""
        cache = ContentCache(max_file_size=10)
        await cache.warm_up([WarmFile(path=str(temp_storage / "w.ts"), content="w" * 50)])

        assert cache.size == 0

    @pytest.mark.asyncio
    async def test_warm_up_uses_file_mtime(self, temp_storage: Path) -> None:
        """Warm entries for real files stay valid until the file changes."""
        path = _write(temp_storage / "real.ts", "disk")
        cache = ContentCache()
        await cache.warm_up([WarmFile(path=str(path), content="disk")])

        assert await cache.get_content(path) == "disk"
        assert cache.stats().hits == 1


# =============================================================================
# Scanning
# =============================================================================


class TestScanning:
    """Tests for scan_directory and scan_source_directories."""

    @pytest.mark.asyncio
    async def test_scan_collects_source_extensions(self, temp_storage: Path) -> None:
        """Only matching extensions are returned, in sorted order."""
        _write(temp_storage / "src" / "b.tsx", "b")
        _write(temp_storage / "src" / "a.ts", "a")
        _write(temp_storage / "src" / "notes.md", "ignored")
        cache = ContentCache()

        files = await scan_directory(temp_storage / "src", cache)

        assert [Path(f.path).name for f in files] == ["a.ts", "b.tsx"]

    @pytest.mark.asyncio
    async def test_scan_skips_excluded_and_hidden_directories(self, temp_storage: Path) -> None:
        """node_modules and dot-directories are never entered."""
        _write(temp_storage / "src" / "node_modules" / "lib.js", "x")
        _write(temp_storage / "src" / ".cache" / "c.js", "x")
        _write(temp_storage / "src" / "ok.js", "x")

        files = await scan_directory(temp_storage / "src", ContentCache())

        assert [Path(f.path).name for f in files] == ["ok.js"]

    @pytest.mark.asyncio
    async def test_scan_respects_depth_and_file_limits(self, temp_storage: Path) -> None:
        """Depth and file count bounds are honoured."""
        _write(temp_storage / "src" / "top.ts", "t")
        _write(temp_storage / "src" / "a" / "b" / "deep.ts", "d")
        for i in range(5):
            _write(temp_storage / "src" / f"z{i}.ts", "z")

        shallow = await scan_directory(temp_storage / "src", ContentCache(), ScanOptions(max_depth=1))
        capped = await scan_directory(temp_storage / "src", ContentCache(), ScanOptions(max_files=2))

        assert "deep.ts" not in {Path(f.path).name for f in shallow}
        assert len(capped) == 2

    @pytest.mark.asyncio
    async def test_scan_source_directories_reuses_cache(self, temp_storage: Path) -> None:
        """A second scan is served entirely from the cache."""
        _write(temp_storage / "src" / "a.ts", "a")
        _write(temp_storage / "components" / "b.tsx", "b")
        _write(temp_storage / "other" / "c.ts", "c")
        cache = ContentCache()

        first = await scan_source_directories(temp_storage, cache)
        second = await scan_source_directories(temp_storage, cache)

        assert {Path(f.path).name for f in first} == {"a.ts", "b.tsx"}
        assert len(second) == len(first)
        stats = cache.stats()
        assert stats.misses == 2
        assert stats.hits == 2

    @pytest.mark.asyncio
    async def test_scan_source_directories_skips_symlinked_dir(self, temp_storage: Path) -> None:
        """A symlinked source directory pointing outside the root is ignored."""
        outside = temp_storage / "outside"
        _write(outside / "leak.ts", "leak")
        project = temp_storage / "project"
        project.mkdir()
        try:
            (project / "src").symlink_to(outside, target_is_directory=True)
        except OSError:
            pytest.skip("symlinks not supported")

        files = await scan_source_directories(project, ContentCache())

        assert files == []
