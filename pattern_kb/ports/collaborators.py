"""Protocol interfaces for pattern-producing collaborators.

The orchestrator only sees what these protocols return: pattern records
plus, for discovery, an application profile. Default regex-based
implementations live in ``pattern_kb.discovery``; any object with the same
shape can be injected instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from pattern_kb.core.content_cache import ContentCache, ScanOptions
from pattern_kb.core.models import (
    DiscoveredElements,
    DiscoveredPattern,
    DiscoveredProfile,
    DiscoveryResult,
    MiningResult,
    SignalStrength,
)


class DiscoveryProtocol(Protocol):
    """Structural discovery of a project (frameworks, UI libraries, auth)."""

    async def discover(self, project_root: Path) -> DiscoveryResult:
        """Build an application profile.

        Args:
            project_root: Root directory of the target project.

        Returns:
            DiscoveryResult. ``errors`` make the discovery phase fail hard;
            ``warnings`` are carried into the run.
        """
        ...


class BaselineGeneratorProtocol(Protocol):
    """Generates baseline patterns (auth, navigation, UI library) from a profile."""

    def generate(self, profile: DiscoveredProfile) -> list[DiscoveredPattern]:
        ...


class ElementMinerProtocol(Protocol):
    """Mines entities, routes, forms, tables and modals from source files."""

    async def mine(
        self,
        project_root: Path,
        cache: ContentCache,
        options: ScanOptions,
    ) -> MiningResult:
        """Mine code elements, reading every file through ``cache``."""
        ...


class TemplateGeneratorProtocol(Protocol):
    """Multiplies mined elements against pattern templates."""

    def generate(self, elements: DiscoveredElements) -> list[DiscoveredPattern]:
        ...


class PackLoaderProtocol(Protocol):
    """Loads framework-specific pattern packs."""

    def load(self, framework_names: list[str]) -> list[DiscoveredPattern]:
        """Return pack patterns for every known name; unknown names are ignored."""
        ...


class AuxiliaryMinerProtocol(Protocol):
    """A miner for one auxiliary signal (i18n keys, analytics events, flags).

    Attributes:
        name: Phase name used in statistics and warnings.
        strength: Source tier applied during signal weighting.
    """

    name: str
    strength: SignalStrength

    async def mine(
        self,
        project_root: Path,
        cache: ContentCache,
        options: ScanOptions,
    ) -> list[DiscoveredPattern]:
        ...
