"""Quality controls for discovered patterns.

Pure functions over pattern collections; each returns a new list and never
mutates its input. ``apply_all_quality_controls`` runs them in a fixed order:

    cross-source boost -> deduplication -> confidence threshold -> pruning

Boosting runs before deduplication so that agreement between independent
sources is still visible before duplicates collapse into one record.
Signal weighting is applied by the orchestrator before any of these.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from pattern_kb.core.models import DiscoveredPattern, PatternUsage, SelectorHint, SignalStrength
from pattern_kb.core.utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_MAX_AGE_DAYS = 90
CROSS_SOURCE_BOOST = 0.1
MAX_CONFIDENCE = 0.95

SIGNAL_CONFIDENCES: dict[SignalStrength, float] = {
    SignalStrength.STRONG: 0.85,
    SignalStrength.MEDIUM: 0.75,
    SignalStrength.WEAK: 0.60,
}


@dataclass
class QualityControlResult:
    """Per-stage counts from a quality-control run."""

    input_count: int
    output_count: int
    deduplicated: int
    threshold_filtered: int
    cross_source_boosted: int
    pruned: int

    def to_dict(self) -> dict[str, int]:
        return {
            "inputCount": self.input_count,
            "outputCount": self.output_count,
            "deduplicated": self.deduplicated,
            "thresholdFiltered": self.threshold_filtered,
            "crossSourceBoosted": self.cross_source_boosted,
            "pruned": self.pruned,
        }


# =============================================================================
# Signal weighting
# =============================================================================


def apply_signal_weighting(
    patterns: Iterable[DiscoveredPattern],
    strengths: Mapping[str, SignalStrength],
) -> list[DiscoveredPattern]:
    """Raise each pattern's confidence to the floor of its source tier.

    Confidence is never lowered, so a pattern that earned more through
    observed success keeps it. The result is capped at ``MAX_CONFIDENCE``.

    Args:
        patterns: Patterns to weight.
        strengths: Pattern id -> source tier. Patterns without an entry
            are returned unchanged.
    """
    weighted: list[DiscoveredPattern] = []
    for pattern in patterns:
        strength = strengths.get(pattern.id)
        if strength is None:
            weighted.append(pattern)
            continue
        floor = SIGNAL_CONFIDENCES[SignalStrength(strength)]
        confidence = min(max(pattern.confidence, floor), MAX_CONFIDENCE)
        weighted.append(pattern.model_copy(update={"confidence": confidence}))
    return weighted


# =============================================================================
# Cross-source boost
# =============================================================================


def _unique_sources(group: list[DiscoveredPattern]) -> int:
    template_sources = {p.template_source for p in group if p.template_source}
    entity_names = {p.entity_name for p in group if p.entity_name}
    journeys = {j for p in group for j in p.source_journeys}
    return max(len(template_sources), len(entity_names), len(journeys))


def boost_cross_source_patterns(patterns: Iterable[DiscoveredPattern]) -> list[DiscoveredPattern]:
    """Boost every member of a text group backed by two or more distinct sources.

    Patterns are grouped by normalized text. Distinct sources are counted as
    the largest of: distinct template sources, distinct entity names,
    distinct source journeys. Qualifying groups get ``CROSS_SOURCE_BOOST``
    added to each member, capped at ``MAX_CONFIDENCE``.

    The output lists groups in order of first appearance.
    """
    groups: dict[str, list[DiscoveredPattern]] = {}
    for pattern in patterns:
        groups.setdefault(pattern.normalized_text, []).append(pattern)

    boosted: list[DiscoveredPattern] = []
    for group in groups.values():
        if len(group) < 2 or _unique_sources(group) < 2:
            boosted.extend(group)
            continue
        for pattern in group:
            confidence = min(pattern.confidence + CROSS_SOURCE_BOOST, MAX_CONFIDENCE)
            boosted.append(pattern.model_copy(update={"confidence": confidence}))
    return boosted


# =============================================================================
# Deduplication
# =============================================================================


def _merge_selector_hints(
    first: Iterable[SelectorHint], second: Iterable[SelectorHint]
) -> tuple[SelectorHint, ...]:
    merged: dict[tuple[str, str], SelectorHint] = {}
    for hint in (*first, *second):
        key = (hint.strategy, hint.value)
        existing = merged.get(key)
        if existing is None:
            merged[key] = hint
        elif hint.confidence is not None and (
            existing.confidence is None or hint.confidence > existing.confidence
        ):
            merged[key] = hint
    return tuple(merged.values())


def _dedup_key(pattern: DiscoveredPattern) -> str:
    return f"{pattern.normalized_text.lower()}::{pattern.mapped_primitive}"


def deduplicate_patterns(patterns: Iterable[DiscoveredPattern]) -> list[DiscoveredPattern]:
    """Collapse patterns sharing normalized text (case-insensitive) and primitive.

    Merged records keep the maximum confidence, sum success and failure
    counters, union source journeys, and union selector hints by
    (strategy, value) preferring the higher-confidence hint.

    Lineage (id, template source, entity name, provenance) stays with the
    first-seen member. This can under-report source diversity on the
    survivor, but boosting has already accounted for it.
    """
    seen: dict[str, DiscoveredPattern] = {}
    for pattern in patterns:
        key = _dedup_key(pattern)
        existing = seen.get(key)
        if existing is None:
            seen[key] = pattern
            continue

        journeys = dict.fromkeys((*existing.source_journeys, *pattern.source_journeys))
        seen[key] = existing.model_copy(
            update={
                "confidence": max(existing.confidence, pattern.confidence),
                "success_count": existing.success_count + pattern.success_count,
                "fail_count": existing.fail_count + pattern.fail_count,
                "source_journeys": tuple(journeys),
                "selector_hints": _merge_selector_hints(
                    existing.selector_hints, pattern.selector_hints
                ),
            }
        )
    return list(seen.values())


# =============================================================================
# Threshold and pruning
# =============================================================================


def apply_confidence_threshold(
    patterns: Iterable[DiscoveredPattern],
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> list[DiscoveredPattern]:
    """Keep patterns whose confidence is at least ``threshold``, in order."""
    return [p for p in patterns if p.confidence >= threshold]


def prune_unused_patterns(
    patterns: Iterable[DiscoveredPattern],
    usage_stats: Mapping[str, PatternUsage],
    max_age_days: int = DEFAULT_MAX_AGE_DAYS,
    now: datetime | None = None,
) -> list[DiscoveredPattern]:
    """Drop attempted patterns that have not been used within ``max_age_days``.

    A pattern that was never attempted is always kept, as is one with no
    usage record.

    Args:
        patterns: Patterns to prune.
        usage_stats: Pattern id -> usage record.
        max_age_days: Maximum age of the last use.
        now: Reference time (defaults to the current UTC time).
    """
    reference = now or utc_now()
    max_age = timedelta(days=max_age_days)

    kept: list[DiscoveredPattern] = []
    for pattern in patterns:
        if pattern.attempts == 0:
            kept.append(pattern)
            continue
        usage = usage_stats.get(pattern.id)
        if usage is None:
            kept.append(pattern)
            continue

        last_used = usage.last_used
        if last_used.tzinfo is None:
            last_used = last_used.replace(tzinfo=reference.tzinfo)
        if reference - last_used <= max_age:
            kept.append(pattern)
    return kept


# =============================================================================
# Combined
# =============================================================================


def apply_all_quality_controls(
    patterns: Iterable[DiscoveredPattern],
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    usage_stats: Mapping[str, PatternUsage] | None = None,
    max_age_days: int = DEFAULT_MAX_AGE_DAYS,
) -> tuple[list[DiscoveredPattern], QualityControlResult]:
    """Run boost, dedup, threshold and (when usage stats are given) pruning.

    Returns:
        Tuple of (surviving patterns, per-stage counts).
    """
    items = list(patterns)
    before = {p.id: p.confidence for p in items}

    after_boost = boost_cross_source_patterns(items)
    boosted = sum(
        1 for p in after_boost if p.id in before and p.confidence > before[p.id]
    )

    after_dedup = deduplicate_patterns(after_boost)
    after_threshold = apply_confidence_threshold(after_dedup, threshold)

    after_prune = after_threshold
    if usage_stats is not None:
        after_prune = prune_unused_patterns(after_threshold, usage_stats, max_age_days)

    result = QualityControlResult(
        input_count=len(items),
        output_count=len(after_prune),
        deduplicated=len(after_boost) - len(after_dedup),
        threshold_filtered=len(after_dedup) - len(after_threshold),
        cross_source_boosted=boosted,
        pruned=len(after_threshold) - len(after_prune),
    )
    logger.debug(
        "Quality controls: %d -> %d (dedup=%d, threshold=%d, boosted=%d, pruned=%d)",
        result.input_count,
        result.output_count,
        result.deduplicated,
        result.threshold_filtered,
        result.cross_source_boosted,
        result.pruned,
    )
    return after_prune, result
