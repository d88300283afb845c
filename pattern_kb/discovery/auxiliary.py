"""Auxiliary miners: i18n keys, analytics events and feature flags.

Each miner scans the project's source directories through the shared
content cache, extracts names with a set of regexes, and turns every
distinct name into a handful of assertion/interaction patterns.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from pattern_kb.core.content_cache import ContentCache, ScanOptions, ScannedFile, scan_source_directories
from pattern_kb.core.models import (
    DiscoveredPattern,
    PatternCategory,
    SelectorHint,
    SignalStrength,
    TemplateSource,
)
from pattern_kb.discovery.elements import iter_matches

logger = logging.getLogger(__name__)

I18N_PATTERN_CONFIDENCE = 0.75
ANALYTICS_PATTERN_CONFIDENCE = 0.70
FEATURE_FLAG_PATTERN_CONFIDENCE = 0.70

# (text template with {label}, primitive, category, carries a text hint)
AuxTemplate = tuple[str, str, PatternCategory, bool]


def name_to_label(name: str) -> str:
    """``checkout_completed`` / ``darkMode`` -> ``Checkout Completed`` / ``Dark Mode``."""
    spaced = re.sub(r"[_-]", " ", name)
    spaced = re.sub(r"(?<=[a-z0-9])([A-Z])", r" \1", spaced)
    return " ".join(word[:1].upper() + word[1:].lower() for word in spaced.split())


class _SourceMiner:
    """Shared scan-extract-generate loop for auxiliary miners.

    Subclasses set the class attributes and implement ``extract``, which
    returns ``(name, hint value)`` pairs in discovery order.
    """

    name: str
    strength: SignalStrength
    confidence: float
    template_source: TemplateSource
    templates: tuple[AuxTemplate, ...]

    async def mine(
        self,
        project_root: Path,
        cache: ContentCache,
        options: ScanOptions,
    ) -> list[DiscoveredPattern]:
        files = await scan_source_directories(project_root, cache, options)
        found = self.extract(files)
        patterns = self.generate(found)
        logger.debug("%s miner: %d names -> %d patterns", self.name, len(found), len(patterns))
        return patterns

    def extract(self, files: list[ScannedFile]) -> list[tuple[str, str]]:
        raise NotImplementedError

    def generate(self, found: list[tuple[str, str]]) -> list[DiscoveredPattern]:
        patterns: list[DiscoveredPattern] = []
        seen: set[str] = set()
        for raw_name, hint_value in found:
            label = name_to_label(raw_name)
            if not label:
                continue
            for template, primitive, category, with_hint in self.templates:
                text = template.format(label=label)
                key = f"{text}:{primitive}"
                if key in seen:
                    continue
                seen.add(key)
                hints: tuple[SelectorHint, ...] = ()
                if with_hint:
                    hints = (SelectorHint(strategy="text", value=hint_value, confidence=self.confidence),)
                patterns.append(
                    DiscoveredPattern(
                        normalized_text=text.lower(),
                        original_text=text,
                        mapped_primitive=primitive,
                        selector_hints=hints,
                        confidence=self.confidence,
                        category=category,
                        template_source=self.template_source,
                        provenance=self.name,
                    )
                )
        return patterns


def _first_group(match: re.Match[str]) -> str | None:
    return next((g for g in match.groups() if g), None)


# =============================================================================
# i18n
# =============================================================================

I18N_KEY_PATTERNS: dict[str, re.Pattern[str]] = {
    "t_call": re.compile(
        r"\bt\s*\(\s*['\"`]([^'\"`]+)['\"`]\s*"
        r"(?:,\s*\{[^}]*defaultValue\s*:\s*['\"`]([^'\"`]+)['\"`][^}]*\})?\)"
    ),
    "trans_component": re.compile(r"<Trans\s+i18nKey\s*=\s*['\"`]([^'\"`]+)['\"`]"),
    "angular_translate": re.compile(
        r"(?:\{\{\s*['\"`]([^'\"`]+)['\"`]\s*\|\s*translate\s*\}\}"
        r"|\$translate\.get\s*\(\s*['\"`]([^'\"`]+)['\"`]\))"
    ),
    "vue_i18n": re.compile(r"\$t\s*\(\s*['\"`]([^'\"`]+)['\"`]\)"),
}


def clean_i18n_key(key: str) -> str:
    """Drop an ``ns:`` namespace prefix or keep the last dotted segment."""
    if ":" in key:
        parts = key.split(":")
        if len(parts) == 2:
            return parts[1]
    if "." in key:
        return key.rsplit(".", 1)[-1]
    return key


class I18nMiner(_SourceMiner):
    name = "i18n"
    strength = SignalStrength.MEDIUM
    confidence = I18N_PATTERN_CONFIDENCE
    template_source: TemplateSource = "i18n"
    templates = (
        ("verify {label} text", "assert", "assertion", True),
        ("verify {label} is visible", "assert", "assertion", True),
    )

    def extract(self, files: list[ScannedFile]) -> list[tuple[str, str]]:
        found: list[tuple[str, str]] = []
        seen: set[tuple[str, str]] = set()
        for scanned in files:
            for pattern_name, pattern in I18N_KEY_PATTERNS.items():
                for match in iter_matches(pattern, scanned.content):
                    if pattern_name == "t_call":
                        raw_key, default_value = match.group(1), match.group(2)
                    else:
                        raw_key, default_value = _first_group(match), None
                    if not raw_key or (raw_key, scanned.path) in seen:
                        continue
                    seen.add((raw_key, scanned.path))
                    key = clean_i18n_key(raw_key)
                    found.append((key, default_value or key))
        return found


# =============================================================================
# Analytics
# =============================================================================

ANALYTICS_EVENT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"gtag\s*\(\s*['\"]event['\"]\s*,\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"ReactGA\.event\s*\(\s*\{[^}]*action\s*:\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"mixpanel\.track\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"analytics\.track\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"amplitude\.logEvent\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"(?:trackEvent|logEvent|sendEvent)\s*\(\s*['\"]([^'\"]+)['\"]"),
)


class AnalyticsMiner(_SourceMiner):
    name = "analytics"
    strength = SignalStrength.WEAK
    confidence = ANALYTICS_PATTERN_CONFIDENCE
    template_source: TemplateSource = "analytics"
    templates = (
        ("verify {label} tracked", "assert", "assertion", False),
        ("trigger {label} event", "click", "ui-interaction", False),
    )

    def extract(self, files: list[ScannedFile]) -> list[tuple[str, str]]:
        return _extract_names(files, ANALYTICS_EVENT_PATTERNS)


# =============================================================================
# Feature flags
# =============================================================================

FEATURE_FLAG_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"ldClient\??\.variation\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"flags\[['\"]([^'\"]+)['\"]\]"),
    re.compile(r"getTreatment\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"(?:hasFeature|getValue)\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"(?:useFlag|isEnabled)\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"(?:featureFlags|features)\.(?:isEnabled|enabled|has)\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"isFeatureEnabled\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"(?:process\.env|import\.meta\.env)\.FEATURE_(\w+)"),
)


class FeatureFlagMiner(_SourceMiner):
    name = "feature_flags"
    strength = SignalStrength.WEAK
    confidence = FEATURE_FLAG_PATTERN_CONFIDENCE
    template_source: TemplateSource = "feature-flag"
    templates = (
        ("ensure {label} visible", "assert", "assertion", False),
        ("verify {label} enabled", "assert", "assertion", False),
        ("test with {label} disabled", "navigate", "navigation", False),
    )

    def extract(self, files: list[ScannedFile]) -> list[tuple[str, str]]:
        return _extract_names(files, FEATURE_FLAG_PATTERNS)


def _extract_names(files: list[ScannedFile], patterns: tuple[re.Pattern[str], ...]) -> list[tuple[str, str]]:
    found: list[tuple[str, str]] = []
    seen: set[tuple[str, str]] = set()
    for scanned in files:
        for pattern in patterns:
            for match in iter_matches(pattern, scanned.content):
                name = match.group(1)
                if not name or (name, scanned.path) in seen:
                    continue
                seen.add((name, scanned.path))
                found.append((name, name))
    return found


def default_auxiliary_miners() -> list[_SourceMiner]:
    return [I18nMiner(), AnalyticsMiner(), FeatureFlagMiner()]
