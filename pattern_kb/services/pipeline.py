"""Discovery pipeline orchestration.

Runs the collaborators in a fixed order, folds each phase's outcome into a
single run, then weights, curates, caps and persists the patterns:

    1. discovery (profile)              errors are errors; a partial profile is kept
    2. baseline patterns                strong
    3. element mining + templates       medium
    4. framework packs                  medium
    5. auxiliary miners                 per miner (i18n medium, others weak)
    6. signal weighting + quality controls
    7. safety cap
    8. persistence (needs a profile)    failure is an error

Every phase after discovery degrades to a warning when it fails, so a run
always produces whatever it could. ``run_full_discovery_pipeline`` never
raises.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from pattern_kb.config import get_settings
from pattern_kb.core.content_cache import CacheStats, ContentCache, ScanOptions
from pattern_kb.core.file_lock import create_lock_backend
from pattern_kb.core.models import (
    DiscoveredPattern,
    DiscoveredPatternsFile,
    DiscoveredProfile,
    MiningStats,
    PatternUsage,
    SignalStrength,
)
from pattern_kb.core.quality_controls import (
    QualityControlResult,
    apply_all_quality_controls,
    apply_signal_weighting,
)
from pattern_kb.core.result import PhaseResult, Severity
from pattern_kb.core.store import ConcurrentStore
from pattern_kb.discovery import (
    BaselineGenerator,
    ElementMiner,
    FrameworkPackLoader,
    ProjectDiscovery,
    TemplateGenerator,
    default_auxiliary_miners,
)
from pattern_kb.ports.collaborators import (
    AuxiliaryMinerProtocol,
    BaselineGeneratorProtocol,
    DiscoveryProtocol,
    ElementMinerProtocol,
    PackLoaderProtocol,
    TemplateGeneratorProtocol,
)
from pattern_kb.services.persistence import create_patterns_file, save_patterns, save_profile

logger = logging.getLogger(__name__)

T = TypeVar("T")

TARGET_PATTERN_COUNT = 360
RUNTIME_VALIDATION_WARNING = (
    "Runtime validation of generated patterns against a live app is not yet implemented. "
    "Patterns are validated structurally only."
)


def _settings_default(name: str) -> Callable[[], Any]:
    return lambda: getattr(get_settings(), name)


@dataclass
class PipelineOptions:
    """Per-run options; unset values come from ``Settings``.

    Attributes:
        confidence_threshold: Minimum confidence after quality controls.
        max_patterns: Safety cap on curated patterns.
        max_depth: Scan recursion depth.
        max_files: Files collected per scan.
        max_age_days: Age limit used when pruning with ``usage_stats``.
        skip_packs: Do not load framework packs.
        skip_mining_modules: Do not run auxiliary miners.
        output_dir: Overrides where artifacts are written.
        cache: Externally owned content cache; never cleared by the run.
        usage_stats: Pattern usage records enabling pruning.
    """

    confidence_threshold: float = field(default_factory=_settings_default("confidence_threshold"))
    max_patterns: int = field(default_factory=_settings_default("max_patterns"))
    max_depth: int = field(default_factory=_settings_default("scan_max_depth"))
    max_files: int = field(default_factory=_settings_default("scan_max_files"))
    max_age_days: int = field(default_factory=_settings_default("prune_max_age_days"))
    skip_packs: bool = False
    skip_mining_modules: bool = False
    output_dir: Path | None = None
    cache: ContentCache | None = None
    usage_stats: Mapping[str, PatternUsage] | None = None

    @property
    def scan_options(self) -> ScanOptions:
        return ScanOptions(max_depth=self.max_depth, max_files=self.max_files)


@dataclass
class PipelineStats:
    """Statistics gathered during a run."""

    duration_ms: int = 0
    pattern_sources: dict[str, int] = field(default_factory=dict)
    total_before_qc: int = 0
    total_after_qc: int = 0
    quality_controls: QualityControlResult | None = None
    mining: MiningStats | None = None
    cache: CacheStats | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "durationMs": self.duration_ms,
            "patternSources": dict(self.pattern_sources),
            "totalBeforeQC": self.total_before_qc,
            "totalAfterQC": self.total_after_qc,
        }
        if self.quality_controls is not None:
            data["qualityControls"] = self.quality_controls.to_dict()
        if self.mining is not None:
            data["mining"] = self.mining.to_json_dict()
        if self.cache is not None:
            data["cache"] = {
                "hits": self.cache.hits,
                "misses": self.cache.misses,
                "skipped": self.cache.skipped,
                "invalidations": self.cache.invalidations,
                "evictions": self.cache.evictions,
                "hitRate": round(self.cache.hit_rate, 4),
                "totalBytesRead": self.cache.total_bytes_read,
            }
        return data


@dataclass
class PipelineResult:
    """Outcome of a pipeline run. ``success`` is True iff there are no errors."""

    success: bool
    profile: DiscoveredProfile | None
    patterns_file: DiscoveredPatternsFile | None
    patterns: list[DiscoveredPattern]
    stats: PipelineStats
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    output_dir: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly summary (patterns themselves are omitted)."""
        return {
            "success": self.success,
            "patternCount": len(self.patterns),
            "outputDir": str(self.output_dir) if self.output_dir else None,
            "stats": self.stats.to_dict(),
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


@dataclass
class _PipelineRun:
    """Mutable accumulator for one run."""

    started: float = field(default_factory=time.monotonic)
    patterns: list[DiscoveredPattern] = field(default_factory=list)
    strengths: dict[str, SignalStrength] = field(default_factory=dict)
    stats: PipelineStats = field(default_factory=PipelineStats)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def add(self, source: str, patterns: Sequence[DiscoveredPattern], strength: SignalStrength) -> None:
        self.patterns.extend(patterns)
        self.stats.pattern_sources[source] = self.stats.pattern_sources.get(source, 0) + len(patterns)
        for pattern in patterns:
            self.strengths.setdefault(pattern.id, strength)

    def fold(self, result: PhaseResult[T]) -> T | None:
        """Record a phase outcome and return its value (None on failure)."""
        self.warnings.extend(result.warnings)
        if result.ok:
            return result.value
        target = self.errors if result.severity == "error" else self.warnings
        target.append(result.message())
        logger.log(
            logging.ERROR if result.severity == "error" else logging.WARNING,
            "%s",
            result.message(),
        )
        return None

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


async def _guard(
    phase: str,
    func: Callable[[], Awaitable[T]],
    severity: Severity = "warning",
) -> PhaseResult[T]:
    try:
        return PhaseResult.success(phase, await func())
    except Exception as e:
        logger.debug("Phase %s raised", phase, exc_info=True)
        return PhaseResult.failure(phase, e, severity)


class PipelineOrchestrator:
    """Runs discovery, generation, curation and persistence for one project.

    Collaborators are injected; anything not supplied falls back to the
    regex-based implementations in ``pattern_kb.discovery``.

    Example:
        orchestrator = PipelineOrchestrator()
        result = await orchestrator.run(Path("/repo/app"))
        if not result.success:
            print(result.errors)
    """

    def __init__(
        self,
        discovery: DiscoveryProtocol | None = None,
        baseline: BaselineGeneratorProtocol | None = None,
        miner: ElementMinerProtocol | None = None,
        templates: TemplateGeneratorProtocol | None = None,
        packs: PackLoaderProtocol | None = None,
        auxiliary_miners: Sequence[AuxiliaryMinerProtocol] | None = None,
        store: ConcurrentStore | None = None,
    ) -> None:
        self._discovery = discovery or ProjectDiscovery()
        self._baseline = baseline or BaselineGenerator()
        self._miner = miner or ElementMiner()
        self._templates = templates or TemplateGenerator()
        self._packs = packs or FrameworkPackLoader()
        self._auxiliary = list(default_auxiliary_miners() if auxiliary_miners is None else auxiliary_miners)
        self._store = store

    def _get_store(self) -> ConcurrentStore:
        if self._store is None:
            s = get_settings()
            self._store = ConcurrentStore(
                lock_backend=create_lock_backend(s.lock_backend),
                max_wait=s.lock_max_wait_seconds,
                retry_interval=s.lock_retry_interval_seconds,
                stale_after=s.lock_stale_after_seconds,
            )
        return self._store

    async def run(
        self,
        project_root: str | Path,
        llkb_dir: str | Path | None = None,
        options: PipelineOptions | None = None,
    ) -> PipelineResult:
        """Run the full pipeline.

        Args:
            project_root: Root directory of the target project.
            llkb_dir: Knowledge-base directory; ``options.output_dir`` wins
                when both are set.
            options: Run options.

        Returns:
            PipelineResult. Phase failures are reported in ``warnings`` and
            ``errors``, never raised.
        """
        opts = options or PipelineOptions()
        root = Path(project_root).resolve()
        run = _PipelineRun()

        owns_cache = opts.cache is None
        cache = opts.cache if opts.cache is not None else self._create_cache()

        profile: DiscoveredProfile | None = None
        curated: list[DiscoveredPattern] = []
        patterns_file: DiscoveredPatternsFile | None = None
        output_dir: Path | None = None

        try:
            profile = await self._discover(root, run)

            if profile is not None:
                baseline = run.fold(
                    await _guard("Discovery pattern generation", self._async(self._baseline.generate, profile))
                )
                if baseline is not None:
                    run.add("discovery", baseline, SignalStrength.STRONG)

            mined = run.fold(await _guard("Mining/template generation", lambda: self._mine(root, cache, opts)))
            if mined is not None:
                generated, mining_stats = mined
                run.stats.mining = mining_stats
                run.add("templates", generated, SignalStrength.MEDIUM)

            if profile is not None and not opts.skip_packs:
                names = profile.framework_names
                pack_patterns = run.fold(
                    await _guard("Framework pack loading", self._async(self._packs.load, names))
                )
                if pack_patterns is not None:
                    run.add("packs", pack_patterns, SignalStrength.MEDIUM)

            if not opts.skip_mining_modules:
                for miner in self._auxiliary:
                    aux = run.fold(
                        await _guard(
                            f"{miner.name} mining",
                            lambda m=miner: m.mine(root, cache, opts.scan_options),
                        )
                    )
                    if aux is not None:
                        run.add(miner.name, aux, miner.strength)

            curated = self._curate(run, opts)

            if profile is not None:
                patterns_file = create_patterns_file(
                    curated, profile, run.elapsed_ms, dict(run.stats.pattern_sources)
                )
                output_dir = self._resolve_output_dir(root, llkb_dir, opts)
                run.fold(
                    await _guard(
                        "Persistence",
                        lambda: self._persist(patterns_file, profile, output_dir),
                        severity="error",
                    )
                )
        finally:
            run.stats.cache = cache.stats()
            if owns_cache:
                cache.clear()

        run.stats.duration_ms = run.elapsed_ms
        logger.info(
            "Pipeline finished in %dms: %d patterns, %d warnings, %d errors",
            run.stats.duration_ms,
            len(curated),
            len(run.warnings),
            len(run.errors),
        )
        return PipelineResult(
            success=not run.errors,
            profile=profile,
            patterns_file=patterns_file,
            patterns=curated,
            stats=run.stats,
            warnings=run.warnings,
            errors=run.errors,
            output_dir=output_dir,
        )

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    async def _discover(self, root: Path, run: _PipelineRun) -> DiscoveredProfile | None:
        """Run discovery; a profile reported alongside errors is still used."""
        phase = "Discovery"
        try:
            result = await self._discovery.discover(root)
        except Exception as e:
            logger.debug("Discovery raised", exc_info=True)
            return run.fold(PhaseResult.failure(phase, e, severity="error"))

        if result.profile is None:
            error = "; ".join(result.errors) or "no profile produced"
            return run.fold(
                PhaseResult(phase=phase, error=error, severity="error", warnings=tuple(result.warnings))
            )

        profile = run.fold(PhaseResult.success(phase, result.profile, tuple(result.warnings)))
        errors = list(result.errors)
        if not result.success and not errors:
            errors.append("reported failure without details")
        for error in errors:
            run.fold(PhaseResult(phase=phase, error=error, severity="error"))
        return profile

    async def _mine(
        self, root: Path, cache: ContentCache, opts: PipelineOptions
    ) -> tuple[list[DiscoveredPattern], MiningStats]:
        mining = await self._miner.mine(root, cache, opts.scan_options)
        return self._templates.generate(mining.elements), mining.stats

    def _curate(self, run: _PipelineRun, opts: PipelineOptions) -> list[DiscoveredPattern]:
        weighted = apply_signal_weighting(run.patterns, run.strengths)
        run.stats.total_before_qc = len(weighted)

        try:
            curated, qc_result = apply_all_quality_controls(
                weighted,
                threshold=opts.confidence_threshold,
                usage_stats=opts.usage_stats,
                max_age_days=opts.max_age_days,
            )
            run.stats.quality_controls = qc_result
        except Exception as e:
            logger.warning("Quality controls raised", exc_info=True)
            run.warnings.append(f"Quality controls failed, using unvalidated patterns: {e}")
            curated = weighted

        if len(curated) > opts.max_patterns:
            run.warnings.append(
                f"Pattern count ({len(curated)}) exceeded cap ({opts.max_patterns}), "
                f"truncated to top {opts.max_patterns} by confidence"
            )
            curated = sorted(curated, key=lambda p: p.confidence, reverse=True)[: opts.max_patterns]

        run.stats.total_after_qc = len(curated)
        if len(curated) < TARGET_PATTERN_COUNT:
            run.warnings.append(
                f"Pattern count ({len(curated)}) is below target ({TARGET_PATTERN_COUNT})"
            )
        run.warnings.append(RUNTIME_VALIDATION_WARNING)
        return curated

    async def _persist(
        self,
        patterns_file: DiscoveredPatternsFile,
        profile: DiscoveredProfile,
        output_dir: Path,
    ) -> None:
        store = self._get_store()
        await save_patterns(patterns_file, output_dir, store)
        await save_profile(profile, output_dir, store)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _async(func: Callable[..., T], *args: Any) -> Callable[[], Awaitable[T]]:
        async def call() -> T:
            return func(*args)

        return call

    @staticmethod
    def _create_cache() -> ContentCache:
        s = get_settings()
        return ContentCache(max_files=s.cache_max_files, max_memory=s.cache_max_memory_bytes)

    @staticmethod
    def _resolve_output_dir(root: Path, llkb_dir: str | Path | None, opts: PipelineOptions) -> Path:
        if opts.output_dir is not None:
            return Path(opts.output_dir)
        if llkb_dir is not None:
            return Path(llkb_dir)
        configured = Path(get_settings().output_dir)
        return configured if configured.is_absolute() else root / configured


async def run_full_discovery_pipeline(
    project_root: str | Path,
    llkb_dir: str | Path | None = None,
    options: PipelineOptions | None = None,
    orchestrator: PipelineOrchestrator | None = None,
) -> PipelineResult:
    """Run the pipeline with default collaborators; never raises.

    Args:
        project_root: Root directory of the target project.
        llkb_dir: Knowledge-base directory (defaults to
            ``<project_root>/.artk/llkb``).
        options: Run options.
        orchestrator: Preconfigured orchestrator to use instead.

    Returns:
        PipelineResult; unexpected failures appear in ``errors``.
    """
    try:
        return await (orchestrator or PipelineOrchestrator()).run(project_root, llkb_dir, options)
    except Exception as e:
        logger.error("Pipeline failed unexpectedly: %s", e, exc_info=True)
        return PipelineResult(
            success=False,
            profile=None,
            patterns_file=None,
            patterns=[],
            stats=PipelineStats(),
            errors=[f"Pipeline failed: {type(e).__name__}: {e}"],
        )
