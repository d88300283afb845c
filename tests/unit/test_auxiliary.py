"""Unit tests for auxiliary miners and framework packs.

Tests cover:
- Name and i18n key cleanup
- i18n, analytics and feature flag extraction and pattern generation
- Pattern deduplication inside one miner
- Framework pack loading
"""

from __future__ import annotations

from pathlib import Path

import pytest

from pattern_kb.core.content_cache import ContentCache, ScannedFile, ScanOptions
from pattern_kb.core.models import SignalStrength
from pattern_kb.discovery.auxiliary import (
    AnalyticsMiner,
    FeatureFlagMiner,
    I18nMiner,
    clean_i18n_key,
    default_auxiliary_miners,
    name_to_label,
)
from pattern_kb.discovery.packs import FRAMEWORK_PACKS, FrameworkPackLoader

pytestmark = pytest.mark.unit


def _file(content: str, path: str = "/app/src/Component.tsx") -> ScannedFile:
    return ScannedFile(path=path, content=content)


class TestHelpers:
    """Tests for label and key helpers."""

    @pytest.mark.parametrize(
        ("name", "label"),
        [
            ("checkout_completed", "Checkout Completed"),
            ("darkMode", "Dark Mode"),
            ("new-dashboard", "New Dashboard"),
            ("v2Checkout", "V2 Checkout"),
        ],
    )
    def test_name_to_label(self, name: str, label: str) -> None:
        """Separators and camelCase humps become spaces."""
        assert name_to_label(name) == label

    @pytest.mark.parametrize(
        ("key", "cleaned"),
        [("common:save", "save"), ("checkout.summary.title", "title"), ("plain", "plain")],
    )
    def test_clean_i18n_key(self, key: str, cleaned: str) -> None:
        """Namespaces and dotted prefixes are dropped."""
        assert clean_i18n_key(key) == cleaned


class TestI18nMiner:
    """Tests for I18nMiner."""

    def test_default_value_becomes_text_hint(self) -> None:
        """A defaultValue is preferred over the key for the hint."""
        miner = I18nMiner()
        found = miner.extract([_file("t('checkout.title', { defaultValue: 'Complete your order' })")])

        assert found == [("title", "Complete your order")]

        patterns = miner.generate(found)
        assert [p.original_text for p in patterns] == ["verify Title text", "verify Title is visible"]
        hint = patterns[0].selector_hints[0]
        assert hint.strategy == "text"
        assert hint.value == "Complete your order"
        assert patterns[0].template_source == "i18n"
        assert patterns[0].provenance == "i18n"
        assert patterns[0].confidence == pytest.approx(0.75)

    def test_framework_specific_syntaxes(self) -> None:
        """Trans components, Angular pipes and vue-i18n calls are recognised."""
        content = """
        <Trans i18nKey="welcome.banner" />
        {{ 'nav.home' | translate }}
        $t('profile.edit')
        """

        keys = [key for key, _ in I18nMiner().extract([_file(content)])]

        assert sorted(keys) == ["banner", "edit", "home"]

    def test_same_key_in_one_file_counted_once(self) -> None:
        """Repeated keys in one file are extracted once."""
        found = I18nMiner().extract([_file("t('a.save'); t('a.save');")])

        assert found == [("save", "save")]


class TestAnalyticsAndFlags:
    """Tests for AnalyticsMiner and FeatureFlagMiner."""

    def test_analytics_events(self) -> None:
        """Several tracking SDKs are recognised."""
        content = """
        gtag('event', 'sign_up');
        mixpanel.track('Plan Upgraded');
        trackEvent('cart_viewed');
        """

        names = [name for name, _ in AnalyticsMiner().extract([_file(content)])]

        assert names == ["sign_up", "Plan Upgraded", "cart_viewed"]

    def test_analytics_patterns_are_weak_without_hints(self) -> None:
        """Analytics patterns carry no selector hints."""
        miner = AnalyticsMiner()
        patterns = miner.generate([("sign_up", "sign_up")])

        assert miner.strength == SignalStrength.WEAK
        assert [p.original_text for p in patterns] == ["verify Sign Up tracked", "trigger Sign Up event"]
        assert all(p.selector_hints == () for p in patterns)

    def test_feature_flags(self) -> None:
        """Flag SDK calls and FEATURE_ env vars are recognised."""
        content = """
        const on = ldClient.variation('new-checkout', false);
        if (flags['beta_search']) {}
        const legacy = process.env.FEATURE_LEGACY_NAV;
        """

        names = [name for name, _ in FeatureFlagMiner().extract([_file(content)])]

        assert names == ["new-checkout", "beta_search", "LEGACY_NAV"]

    def test_duplicate_labels_generate_once(self) -> None:
        """Names that map to the same label yield one set of patterns."""
        patterns = FeatureFlagMiner().generate([("dark_mode", "dark_mode"), ("darkMode", "darkMode")])

        assert len(patterns) == 3
        assert patterns[2].mapped_primitive == "navigate"
        assert patterns[2].template_source == "feature-flag"


class TestMinersOverProject:
    """Tests for the miners scanning a project."""

    @pytest.mark.asyncio
    async def test_default_miners_share_cache(self, sample_project: Path) -> None:
        """All three miners read through one cache; later miners hit it."""
        cache = ContentCache()
        results = {}
        for miner in default_auxiliary_miners():
            results[miner.name] = await miner.mine(sample_project, cache, ScanOptions())

        assert [p.original_text for p in results["i18n"]] == ["verify Save text", "verify Save is visible"]
        assert len(results["analytics"]) == 2
        assert results["analytics"][0].original_text == "verify Checkout Completed tracked"
        assert len(results["feature_flags"]) == 3
        assert results["feature_flags"][0].original_text == "ensure Dark Mode visible"
        stats = cache.stats()
        assert stats.misses == 8
        assert stats.hits == 16


class TestFrameworkPacks:
    """Tests for FrameworkPackLoader."""

    def test_loads_known_packs_once(self) -> None:
        """Duplicates and unknown names are ignored."""
        patterns = FrameworkPackLoader().load(["react", "mui", "react", "unknown"])

        assert len(patterns) == len(FRAMEWORK_PACKS["react"]) + len(FRAMEWORK_PACKS["mui"])
        assert {p.entity_name for p in patterns} == {"react", "mui"}
        assert all(p.layer == "framework" and p.provenance == "packs" for p in patterns)
        assert patterns[0].selector_hints[0].value == "#root"
        assert patterns[0].confidence == pytest.approx(0.65)

    def test_custom_packs(self) -> None:
        """Packs and confidence can be supplied."""
        loader = FrameworkPackLoader(
            packs={"qwik": (("wait for qwik app", "waitForVisible", "timing", None),)},
            confidence=0.5,
        )

        patterns = loader.load(["qwik", "react"])

        assert [p.original_text for p in patterns] == ["wait for qwik app"]
        assert patterns[0].selector_hints == ()
        assert patterns[0].confidence == pytest.approx(0.5)
