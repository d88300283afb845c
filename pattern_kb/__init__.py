"""Pattern knowledge base - discovers and curates test interaction patterns."""

__version__ = "0.1.0"

# Re-export core components for convenience
from pattern_kb.config import Settings, get_settings
from pattern_kb.core import (
    ConcurrentStore,
    ContentCache,
    DiscoveredPattern,
    DiscoveredProfile,
    LockTimeoutError,
    MalformedStoreError,
    PatternKBError,
    SelectorHint,
    StorageError,
)
from pattern_kb.services import (
    PipelineOptions,
    PipelineOrchestrator,
    PipelineResult,
    run_full_discovery_pipeline,
)

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "PatternKBError",
    "StorageError",
    "MalformedStoreError",
    "LockTimeoutError",
    # Models
    "DiscoveredPattern",
    "DiscoveredProfile",
    "SelectorHint",
    # Core services
    "ContentCache",
    "ConcurrentStore",
    "PipelineOptions",
    "PipelineOrchestrator",
    "PipelineResult",
    "run_full_discovery_pipeline",
]
