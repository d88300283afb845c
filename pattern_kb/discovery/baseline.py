"""Baseline patterns derived from the application profile.

Auth patterns (when auth was detected), generic navigation patterns, and
component patterns for every detected UI library that has a template set.
"""

from __future__ import annotations

import re

from pattern_kb.core.models import (
    DiscoveredPattern,
    DiscoveredProfile,
    SelectorHint,
    SelectorSignals,
    coerce_strategy,
)

HIGH_CONFIDENCE_AUTH = 0.85
MEDIUM_CONFIDENCE_AUTH = 0.70
NAVIGATION_CONFIDENCE = 0.70
FRAMEWORK_PATTERN_CONFIDENCE = 0.60
MAX_UI_PATTERN_CONFIDENCE = 0.75

PROVENANCE = "discovery"

# (text, primitive, auth selector key)
AUTH_PATTERN_TEMPLATES: tuple[tuple[str, str, str | None], ...] = (
    ("click login button", "click", "submitButton"),
    ("click sign in button", "click", "submitButton"),
    ("enter username", "fill", "usernameField"),
    ("enter email", "fill", "usernameField"),
    ("enter password", "fill", "passwordField"),
    ("submit login form", "click", "submitButton"),
    ("click logout button", "click", None),
    ("click sign out button", "click", None),
    ("verify logged in", "assert", None),
    ("verify logged out", "assert", None),
)

NAVIGATION_PATTERN_TEMPLATES: tuple[tuple[str, str], ...] = (
    ("navigate to {route}", "navigate"),
    ("go to {route}", "navigate"),
    ("open {route} page", "navigate"),
    ("click {item} in navigation", "click"),
    ("click {item} in sidebar", "click"),
    ("click {item} in menu", "click"),
    ("return to home", "navigate"),
    ("go back", "navigate"),
)

# library -> (text, primitive, component)
UI_LIBRARY_TEMPLATES: dict[str, tuple[tuple[str, str, str], ...]] = {
    "mui": (
        ("click MUI button", "click", "Button"),
        ("open MUI dialog", "click", "Dialog"),
        ("close MUI dialog", "click", "Dialog"),
        ("select MUI option", "click", "Select"),
        ("fill MUI text field", "fill", "TextField"),
        ("open MUI menu", "click", "Menu"),
        ("click MUI tab", "click", "Tabs"),
        ("toggle MUI switch", "click", "Switch"),
        ("check MUI checkbox", "check", "Checkbox"),
        ("dismiss MUI snackbar", "click", "Snackbar"),
    ),
    "antd": (
        ("click Ant button", "click", "Button"),
        ("open Ant modal", "click", "Modal"),
        ("close Ant modal", "click", "Modal"),
        ("select Ant option", "click", "Select"),
        ("fill Ant input", "fill", "Input"),
        ("click Ant table row", "click", "Table"),
        ("sort Ant table column", "click", "Table"),
        ("dismiss Ant message", "click", "Message"),
    ),
    "chakra": (
        ("click Chakra button", "click", "Button"),
        ("open Chakra modal", "click", "Modal"),
        ("close Chakra modal", "click", "Modal"),
        ("fill Chakra input", "fill", "Input"),
        ("dismiss Chakra toast", "click", "Toast"),
    ),
    "ag-grid": (
        ("click AG Grid row", "click", "agGrid"),
        ("select AG Grid row", "click", "agGrid"),
        ("sort AG Grid column", "click", "agGrid"),
        ("filter AG Grid column", "fill", "agGrid"),
        ("expand AG Grid row", "click", "agGrid"),
        ("collapse AG Grid row", "click", "agGrid"),
        ("edit AG Grid cell", "fill", "agGrid"),
        ("clear AG Grid filter", "click", "agGrid"),
    ),
}


def to_kebab_case(name: str) -> str:
    """``TextField`` -> ``text-field``; ``agGrid`` -> ``ag-grid``."""
    return re.sub(r"([A-Z])", r"-\1", name).lower().lstrip("-")


def generate_auth_patterns(profile: DiscoveredProfile) -> list[DiscoveredPattern]:
    selectors = profile.auth.selectors or {}
    strategy = coerce_strategy(profile.selector_signals.primary_attribute)
    patterns: list[DiscoveredPattern] = []

    for text, primitive, selector_key in AUTH_PATTERN_TEMPLATES:
        value = selectors.get(selector_key) if selector_key else None
        hints: tuple[SelectorHint, ...] = ()
        if value:
            hints = (SelectorHint(strategy=strategy, value=value, confidence=HIGH_CONFIDENCE_AUTH),)
        patterns.append(
            DiscoveredPattern(
                normalized_text=text.lower(),
                original_text=text,
                mapped_primitive=primitive,
                selector_hints=hints,
                confidence=HIGH_CONFIDENCE_AUTH if value else MEDIUM_CONFIDENCE_AUTH,
                category="auth",
                template_source="auth",
                provenance=PROVENANCE,
            )
        )
    return patterns


def generate_navigation_patterns() -> list[DiscoveredPattern]:
    return [
        DiscoveredPattern(
            normalized_text=text.lower(),
            original_text=text,
            mapped_primitive=primitive,
            confidence=NAVIGATION_CONFIDENCE,
            category="navigation",
            template_source="navigation",
            provenance=PROVENANCE,
        )
        for text, primitive in NAVIGATION_PATTERN_TEMPLATES
    ]


def generate_ui_library_patterns(
    library: str, library_confidence: float, signals: SelectorSignals
) -> list[DiscoveredPattern]:
    strategy = coerce_strategy(signals.primary_attribute)
    return [
        DiscoveredPattern(
            normalized_text=text.lower(),
            original_text=text,
            mapped_primitive=primitive,
            selector_hints=(
                SelectorHint(
                    strategy=strategy,
                    value=to_kebab_case(component),
                    confidence=FRAMEWORK_PATTERN_CONFIDENCE,
                ),
            ),
            confidence=min(library_confidence, MAX_UI_PATTERN_CONFIDENCE),
            layer="framework",
            category="ui-interaction",
            provenance=PROVENANCE,
        )
        for text, primitive, component in UI_LIBRARY_TEMPLATES.get(library, ())
    ]


class BaselineGenerator:
    """Default baseline generator."""

    def generate(self, profile: DiscoveredProfile) -> list[DiscoveredPattern]:
        patterns: list[DiscoveredPattern] = []
        if profile.auth.detected:
            patterns.extend(generate_auth_patterns(profile))
        patterns.extend(generate_navigation_patterns())
        for library in profile.ui_libraries:
            patterns.extend(
                generate_ui_library_patterns(library.name, library.confidence, profile.selector_signals)
            )
        return patterns
