"""Service layer for the pattern knowledge base."""

from pattern_kb.services.persistence import (
    PATTERNS_FILE,
    PROFILE_FILE,
    create_patterns_file,
    load_discovered_patterns,
    load_discovered_profile,
    save_patterns,
    save_profile,
)
from pattern_kb.services.pipeline import (
    PipelineOptions,
    PipelineOrchestrator,
    PipelineResult,
    PipelineStats,
    run_full_discovery_pipeline,
)

__all__ = [
    "PATTERNS_FILE",
    "PROFILE_FILE",
    "PipelineOptions",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineStats",
    "create_patterns_file",
    "load_discovered_patterns",
    "load_discovered_profile",
    "run_full_discovery_pipeline",
    "save_patterns",
    "save_profile",
]
