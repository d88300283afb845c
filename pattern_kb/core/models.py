"""Data models for the pattern knowledge base.

Persisted records serialize with camelCase keys so that downstream
test-generation tooling can consume ``discovered-patterns.json`` and
``discovered-profile.json`` unchanged. Use ``to_json_dict()`` to serialize
and ``model_validate()`` to load; both field names and aliases are accepted
on input.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SelectorStrategy = Literal[
    "data-testid", "data-cy", "data-test", "role", "aria-label", "css", "xpath", "text"
]
PatternLayer = Literal["app-specific", "framework", "universal"]
PatternCategory = Literal["auth", "navigation", "ui-interaction", "data", "assertion", "timing"]
TemplateSource = Literal[
    "crud",
    "form",
    "table",
    "modal",
    "navigation",
    "auth",
    "static",
    "i18n",
    "analytics",
    "feature-flag",
]

SELECTOR_STRATEGIES: tuple[str, ...] = get_args(SelectorStrategy)


def _clamp_unit(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


def generate_pattern_id() -> str:
    """Generate a pattern identifier of the form ``DP-xxxxxxxx``."""
    return f"DP-{uuid.uuid4().hex[:8]}"


def coerce_strategy(attribute: str, default: SelectorStrategy = "data-testid") -> SelectorStrategy:
    """Map a discovered selector attribute onto a known strategy."""
    if attribute in SELECTOR_STRATEGIES:
        return attribute  # type: ignore[return-value]
    return default


class _Record(BaseModel):
    """Immutable record serialized with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SignalStrength(str, Enum):
    """Baseline trust assigned to the collaborator that produced a pattern."""

    STRONG = "strong"  # Discovery baseline
    MEDIUM = "medium"  # Templates, framework packs, i18n
    WEAK = "weak"  # Analytics, feature flags


# =============================================================================
# Patterns
# =============================================================================


class SelectorHint(_Record):
    """A suggested strategy/value pair for locating a UI element."""

    strategy: SelectorStrategy
    value: str
    name: str | None = None
    confidence: float | None = None

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, v: float | None) -> float | None:
        return None if v is None else _clamp_unit(v)


class DiscoveredPattern(_Record):
    """A natural-language-to-action mapping candidate.

    Changes are expressed with ``model_copy(update=...)``; instances are
    never mutated.
    """

    id: str = Field(default_factory=generate_pattern_id)
    normalized_text: str
    original_text: str
    mapped_primitive: str
    selector_hints: tuple[SelectorHint, ...] = ()
    confidence: float
    layer: PatternLayer = "app-specific"
    category: PatternCategory | None = None
    source_journeys: tuple[str, ...] = ()
    success_count: int = Field(default=0, ge=0)
    fail_count: int = Field(default=0, ge=0)
    template_source: TemplateSource | None = None
    entity_name: str | None = None
    provenance: str | None = None

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, v: float) -> float:
        return _clamp_unit(v)

    @property
    def attempts(self) -> int:
        return self.success_count + self.fail_count


class PatternUsage(BaseModel):
    """Usage record for one pattern, supplied by the learning loop."""

    last_used: datetime
    use_count: int = Field(default=0, ge=0)


# Pattern id -> usage record
UsageStats = dict[str, PatternUsage]


class PatternsMetadata(_Record):
    """Summary statistics stored alongside persisted patterns."""

    frameworks: list[str] = Field(default_factory=list)
    ui_libraries: list[str] = Field(default_factory=list)
    total_patterns: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_template: dict[str, int] = Field(default_factory=dict)
    average_confidence: float = 0.0
    discovery_duration: int | None = None
    pattern_sources: dict[str, int] | None = None


class DiscoveredPatternsFile(_Record):
    """Contents of ``discovered-patterns.json``."""

    version: str = "1.0"
    generated_at: str
    source: str
    patterns: list[DiscoveredPattern]
    metadata: PatternsMetadata


# =============================================================================
# Application profile
# =============================================================================


class FrameworkSignal(_Record):
    """A detected framework (react, angular, vue, nextjs, svelte)."""

    name: str
    version: str | None = None
    confidence: float
    evidence: list[str] = Field(default_factory=list)


class UiLibrarySignal(_Record):
    """A detected UI library (mui, antd, chakra, ag-grid, ...)."""

    name: str
    confidence: float
    evidence: list[str] = Field(default_factory=list)
    has_enterprise: bool | None = None


class SelectorSignals(_Record):
    """Selector attribute usage observed in the codebase."""

    primary_attribute: str = "data-testid"
    naming_convention: Literal["kebab-case", "camelCase", "snake_case", "mixed"] = "kebab-case"
    coverage: dict[str, float] = Field(default_factory=dict)
    total_components_analyzed: int = 0
    sample_selectors: list[str] = Field(default_factory=list)


class AuthHints(_Record):
    """Authentication hints for the application."""

    detected: bool = False
    type: Literal["form", "oidc", "oauth", "sso", "basic"] | None = None
    login_route: str | None = None
    selectors: dict[str, str] | None = None
    bypass_available: bool | None = None
    bypass_method: str | None = None


class RuntimeValidation(_Record):
    validated: bool = False
    scan_url: str | None = None
    dom_sample_count: int = 0

    def to_json_dict(self) -> dict[str, Any]:
        # scanUrl is written as null when absent
        return self.model_dump(mode="json", by_alias=True)


class DiscoveredProfile(_Record):
    """Application profile produced by structural discovery."""

    version: str = "1.0"
    generated_at: str
    project_root: str
    frameworks: list[FrameworkSignal] = Field(default_factory=list)
    ui_libraries: list[UiLibrarySignal] = Field(default_factory=list)
    selector_signals: SelectorSignals = Field(default_factory=SelectorSignals)
    auth: AuthHints = Field(default_factory=AuthHints)
    runtime: RuntimeValidation = Field(default_factory=RuntimeValidation)

    def to_json_dict(self) -> dict[str, Any]:
        data = super().to_json_dict()
        data["runtime"] = self.runtime.to_json_dict()
        return data

    @property
    def framework_names(self) -> list[str]:
        """Names of detected frameworks followed by UI libraries."""
        return [f.name for f in self.frameworks] + [lib.name for lib in self.ui_libraries]


class DiscoveryResult(BaseModel):
    """Outcome of a structural discovery run."""

    success: bool
    profile: DiscoveredProfile | None = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# Mined code elements
# =============================================================================


class DiscoveredEntity(BaseModel):
    """A domain entity (user, invoice, ...) found in the code."""

    name: str
    singular: str
    plural: str
    source: str | None = None
    endpoint: str | None = None


class DiscoveredRoute(BaseModel):
    path: str
    name: str
    params: list[str] = Field(default_factory=list)


class FormField(BaseModel):
    name: str
    type: str = "text"
    label: str | None = None
    selector: str | None = None


class DiscoveredForm(BaseModel):
    id: str
    name: str
    fields: list[FormField] = Field(default_factory=list)
    submit_selector: str | None = None
    schema_name: str | None = None


class DiscoveredTable(BaseModel):
    id: str
    name: str
    columns: list[str] = Field(default_factory=list)
    table_selector: str | None = None
    header_selector: str | None = None


class DiscoveredModal(BaseModel):
    id: str
    name: str
    trigger_selector: str | None = None
    close_selector: str | None = None
    confirm_selector: str | None = None


class DiscoveredElements(BaseModel):
    """Everything the element miner found, input to template multiplication."""

    entities: list[DiscoveredEntity] = Field(default_factory=list)
    routes: list[DiscoveredRoute] = Field(default_factory=list)
    forms: list[DiscoveredForm] = Field(default_factory=list)
    tables: list[DiscoveredTable] = Field(default_factory=list)
    modals: list[DiscoveredModal] = Field(default_factory=list)


class MiningStats(_Record):
    """Counts reported by the element miner."""

    entities_found: int = 0
    routes_found: int = 0
    forms_found: int = 0
    tables_found: int = 0
    modals_found: int = 0
    files_scanned: int = 0


class MiningResult(BaseModel):
    elements: DiscoveredElements = Field(default_factory=DiscoveredElements)
    stats: MiningStats = Field(default_factory=MiningStats)
