"""Built-in framework pattern packs.

A pack is a fixed list of interactions that are idiomatic for one framework
or component library. Packs are selected by the names the profile reports;
unknown names are ignored.
"""

from __future__ import annotations

import logging

from pattern_kb.core.models import DiscoveredPattern, PatternCategory, SelectorHint

logger = logging.getLogger(__name__)

PACK_CONFIDENCE = 0.65
PROVENANCE = "packs"

# (text, primitive, category, optional css hint)
PackEntry = tuple[str, str, PatternCategory, str | None]

FRAMEWORK_PACKS: dict[str, tuple[PackEntry, ...]] = {
    "react": (
        ("wait for react app to load", "waitForVisible", "timing", "#root"),
        ("click react router link", "click", "navigation", "a[href]"),
        ("verify react error boundary is shown", "assert", "assertion", None),
        ("wait for suspense fallback to disappear", "waitForVisible", "timing", None),
    ),
    "angular": (
        ("wait for angular app to load", "waitForVisible", "timing", "app-root"),
        ("click router link", "click", "navigation", "[routerLink]"),
        ("fill reactive form control", "fill", "data", "[formControlName]"),
        ("verify mat error is shown", "assert", "assertion", "mat-error"),
    ),
    "vue": (
        ("wait for vue app to load", "waitForVisible", "timing", "#app"),
        ("click router link", "click", "navigation", "a.router-link-active, a[href]"),
        ("fill v-model input", "fill", "data", None),
    ),
    "nextjs": (
        ("wait for next.js page to load", "waitForVisible", "timing", "#__next"),
        ("click next link", "click", "navigation", "a[href]"),
        ("verify next.js 404 page is shown", "assert", "assertion", None),
    ),
    "svelte": (
        ("wait for svelte app to load", "waitForVisible", "timing", None),
        ("fill bound input", "fill", "data", None),
    ),
    "mui": (
        ("open MUI autocomplete", "click", "ui-interaction", ".MuiAutocomplete-root"),
        ("select MUI autocomplete option", "click", "ui-interaction", ".MuiAutocomplete-option"),
        ("open MUI date picker", "click", "ui-interaction", ".MuiPickersPopper-root"),
        ("verify MUI alert is shown", "assert", "assertion", ".MuiAlert-root"),
        ("close MUI drawer", "click", "ui-interaction", ".MuiDrawer-root"),
    ),
    "antd": (
        ("open Ant dropdown", "click", "ui-interaction", ".ant-dropdown-trigger"),
        ("select Ant date", "click", "ui-interaction", ".ant-picker"),
        ("verify Ant notification is shown", "assert", "assertion", ".ant-notification"),
        ("confirm Ant popconfirm", "click", "ui-interaction", ".ant-popconfirm .ant-btn-primary"),
    ),
    "chakra": (
        ("open Chakra menu", "click", "ui-interaction", None),
        ("verify Chakra alert is shown", "assert", "assertion", ".chakra-alert"),
        ("close Chakra drawer", "click", "ui-interaction", None),
    ),
    "ag-grid": (
        ("wait for AG Grid to load", "waitForVisible", "timing", ".ag-root"),
        ("open AG Grid column menu", "click", "ui-interaction", ".ag-header-cell-menu-button"),
        ("select all AG Grid rows", "click", "ui-interaction", ".ag-header-select-all"),
        ("verify AG Grid has no rows", "assert", "assertion", ".ag-overlay-no-rows-center"),
        ("go to next AG Grid page", "click", "ui-interaction", ".ag-paging-button"),
    ),
}


def _pack_pattern(framework: str, entry: PackEntry, confidence: float) -> DiscoveredPattern:
    text, primitive, category, css = entry
    hints = (SelectorHint(strategy="css", value=css, confidence=confidence),) if css else ()
    return DiscoveredPattern(
        normalized_text=text.lower(),
        original_text=text,
        mapped_primitive=primitive,
        selector_hints=hints,
        confidence=confidence,
        layer="framework",
        category=category,
        entity_name=framework,
        provenance=PROVENANCE,
    )


class FrameworkPackLoader:
    """Default pack loader backed by ``FRAMEWORK_PACKS``."""

    def __init__(
        self,
        packs: dict[str, tuple[PackEntry, ...]] | None = None,
        confidence: float = PACK_CONFIDENCE,
    ) -> None:
        self._packs = FRAMEWORK_PACKS if packs is None else packs
        self._confidence = confidence

    def load(self, framework_names: list[str]) -> list[DiscoveredPattern]:
        patterns: list[DiscoveredPattern] = []
        for name in dict.fromkeys(framework_names):
            entries = self._packs.get(name)
            if entries is None:
                logger.debug("No pattern pack for %s", name)
                continue
            patterns.extend(_pack_pattern(name, entry, self._confidence) for entry in entries)
        return patterns
