"""Core components for the pattern knowledge base."""

from pattern_kb.core.content_cache import (
    CacheStats,
    ContentCache,
    ScanOptions,
    ScannedFile,
    create_cache_from_files,
    scan_directory,
    scan_source_directories,
)
from pattern_kb.core.errors import (
    DiscoveryError,
    LockTimeoutError,
    MalformedStoreError,
    PatternKBError,
    StorageError,
)
from pattern_kb.core.models import (
    DiscoveredPattern,
    DiscoveredPatternsFile,
    DiscoveredProfile,
    PatternUsage,
    SelectorHint,
    SignalStrength,
)
from pattern_kb.core.quality_controls import QualityControlResult, apply_all_quality_controls
from pattern_kb.core.store import ConcurrentStore, SaveResult, UpdateResult

__all__ = [
    # Cache
    "CacheStats",
    "ContentCache",
    "ScanOptions",
    "ScannedFile",
    "create_cache_from_files",
    "scan_directory",
    "scan_source_directories",
    # Errors
    "DiscoveryError",
    "LockTimeoutError",
    "MalformedStoreError",
    "PatternKBError",
    "StorageError",
    # Models
    "DiscoveredPattern",
    "DiscoveredPatternsFile",
    "DiscoveredProfile",
    "PatternUsage",
    "SelectorHint",
    "SignalStrength",
    # Quality controls
    "QualityControlResult",
    "apply_all_quality_controls",
    # Store
    "ConcurrentStore",
    "SaveResult",
    "UpdateResult",
]
