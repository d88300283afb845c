"""Persistence of discovery artifacts.

Two files live in the knowledge-base output directory:

- ``discovered-patterns.json``: curated patterns plus summary metadata
- ``discovered-profile.json``: the application profile, redacted so it can
  be committed (project root reduced to its basename, auth selector values
  replaced)

Writes go through ``ConcurrentStore`` so that concurrent runs never leave a
partial file behind. Loaders check the document shape and return None for
documents that parse but do not look like the expected artifact.
"""

from __future__ import annotations

import logging
import os
from collections import Counter
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from pattern_kb.core.errors import StorageError, sanitize_path_for_error
from pattern_kb.core.models import (
    DiscoveredPattern,
    DiscoveredPatternsFile,
    DiscoveredProfile,
    PatternsMetadata,
)
from pattern_kb.core.store import ConcurrentStore
from pattern_kb.core.utils import utc_now_iso

logger = logging.getLogger(__name__)

PATTERNS_FILE = "discovered-patterns.json"
PROFILE_FILE = "discovered-profile.json"
PATTERNS_FILE_VERSION = "1.0"
PATTERNS_SOURCE = "pattern-kb:discovery-pipeline"
REDACTED = "[REDACTED]"


def create_patterns_file(
    patterns: Sequence[DiscoveredPattern],
    profile: DiscoveredProfile,
    duration_ms: int | None = None,
    pattern_sources: dict[str, int] | None = None,
) -> DiscoveredPatternsFile:
    """Wrap curated patterns with version, timestamp and summary metadata."""
    by_category = Counter(p.category for p in patterns if p.category)
    by_template = Counter(p.template_source for p in patterns if p.template_source)
    average = sum(p.confidence for p in patterns) / len(patterns) if patterns else 0.0

    return DiscoveredPatternsFile(
        version=PATTERNS_FILE_VERSION,
        generated_at=utc_now_iso(),
        source=PATTERNS_SOURCE,
        patterns=list(patterns),
        metadata=PatternsMetadata(
            frameworks=[f.name for f in profile.frameworks],
            ui_libraries=[lib.name for lib in profile.ui_libraries],
            total_patterns=len(patterns),
            by_category=dict(by_category),
            by_template=dict(by_template),
            average_confidence=round(average, 2),
            discovery_duration=duration_ms,
            pattern_sources=pattern_sources,
        ),
    )


def redact_profile(profile: DiscoveredProfile) -> dict[str, Any]:
    """Serialize a profile with the project root and auth selectors redacted."""
    data = profile.to_json_dict()
    data["projectRoot"] = os.path.basename(os.path.normpath(profile.project_root))
    auth = data.get("auth")
    if isinstance(auth, dict) and auth.get("selectors"):
        auth["selectors"] = {key: REDACTED for key in auth["selectors"]}
    return data


async def save_patterns(
    patterns_file: DiscoveredPatternsFile,
    output_dir: str | Path,
    store: ConcurrentStore,
) -> Path:
    """Write ``discovered-patterns.json``.

    Raises:
        StorageError: If the lock could not be taken or the write failed.
    """
    path = Path(output_dir) / PATTERNS_FILE
    result = await store.locked_write(path, patterns_file.to_json_dict())
    if not result.success:
        raise StorageError(f"Could not write {PATTERNS_FILE}: {result.error}")
    logger.info("Saved %d patterns to %s", patterns_file.metadata.total_patterns, path)
    return path


async def save_profile(
    profile: DiscoveredProfile,
    output_dir: str | Path,
    store: ConcurrentStore,
) -> Path:
    """Write the redacted ``discovered-profile.json``.

    Raises:
        StorageError: If the lock could not be taken or the write failed.
    """
    path = Path(output_dir) / PROFILE_FILE
    result = await store.locked_write(path, redact_profile(profile))
    if not result.success:
        raise StorageError(f"Could not write {PROFILE_FILE}: {result.error}")
    logger.debug("Saved profile to %s", path)
    return path


# =============================================================================
# Loading
# =============================================================================


async def _load(path: Path, store: ConcurrentStore | None) -> Any | None:
    reader = store or ConcurrentStore()
    return await reader.read(path)


async def load_discovered_patterns(
    output_dir: str | Path,
    store: ConcurrentStore | None = None,
) -> DiscoveredPatternsFile | None:
    """Load ``discovered-patterns.json``.

    Returns:
        The parsed file, or None if it is absent or has the wrong shape.

    Raises:
        MalformedStoreError: If the file exists but is not valid JSON.
    """
    path = Path(output_dir) / PATTERNS_FILE
    data = await _load(path, store)
    if data is None:
        return None
    if (
        not isinstance(data, dict)
        or not isinstance(data.get("patterns"), list)
        or not isinstance(data.get("version"), str)
    ):
        logger.warning("Invalid discovered patterns shape in %s", sanitize_path_for_error(path))
        return None
    try:
        return DiscoveredPatternsFile.model_validate(data)
    except PydanticValidationError as e:
        logger.warning(
            "Invalid discovered patterns in %s: %d validation errors",
            sanitize_path_for_error(path),
            e.error_count(),
        )
        return None


async def load_discovered_profile(
    output_dir: str | Path,
    store: ConcurrentStore | None = None,
) -> DiscoveredProfile | None:
    """Load ``discovered-profile.json``.

    Returns:
        The parsed profile, or None if it is absent or has the wrong shape.

    Raises:
        MalformedStoreError: If the file exists but is not valid JSON.
    """
    path = Path(output_dir) / PROFILE_FILE
    data = await _load(path, store)
    if data is None:
        return None
    if not isinstance(data, dict) or not data.get("version") or not isinstance(data.get("frameworks"), list):
        logger.warning("Invalid discovered profile shape in %s", sanitize_path_for_error(path))
        return None
    try:
        return DiscoveredProfile.model_validate(data)
    except PydanticValidationError as e:
        logger.warning(
            "Invalid discovered profile in %s: %d validation errors",
            sanitize_path_for_error(path),
            e.error_count(),
        )
        return None

