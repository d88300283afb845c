"""Template multiplication: mined elements x pattern templates.

Each template is ``(text, primitive, category)``; placeholders in braces
are filled from the mined element. Template groups carry their template
source (crud, form, table, modal, navigation, static).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from pattern_kb.core.models import (
    DiscoveredElements,
    DiscoveredEntity,
    DiscoveredForm,
    DiscoveredModal,
    DiscoveredPattern,
    DiscoveredRoute,
    DiscoveredTable,
    PatternCategory,
    SelectorHint,
    TemplateSource,
)

logger = logging.getLogger(__name__)

DEFAULT_GENERATED_CONFIDENCE = 0.70
SELECTOR_CONFIDENCE_BOOST = 0.15
MAX_CONFIDENCE = 0.95
MAX_GENERATED_PATTERNS = 2000

PROVENANCE = "templates"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class PatternTemplate:
    text: str
    primitive: str
    category: PatternCategory
    template_source: TemplateSource

    @property
    def placeholders(self) -> tuple[str, ...]:
        return tuple(_PLACEHOLDER.findall(self.text))


def _group(source: TemplateSource, rows: list[tuple[str, str, PatternCategory]]) -> tuple[PatternTemplate, ...]:
    return tuple(PatternTemplate(text, primitive, category, source) for text, primitive, category in rows)


CRUD_TEMPLATES = _group(
    "crud",
    [
        ("create new {entity}", "click", "data"),
        ("add {entity}", "click", "data"),
        ("click add {entity} button", "click", "data"),
        ("click create {entity} button", "click", "data"),
        ("open new {entity} form", "click", "data"),
        ("view {entity} details", "click", "data"),
        ("open {entity}", "click", "data"),
        ("click on {entity}", "click", "data"),
        ("select {entity} from list", "click", "data"),
        ("view {entity} list", "navigate", "data"),
        ("edit {entity}", "click", "data"),
        ("update {entity}", "click", "data"),
        ("modify {entity}", "click", "data"),
        ("click edit {entity} button", "click", "data"),
        ("save {entity} changes", "click", "data"),
        ("delete {entity}", "click", "data"),
        ("remove {entity}", "click", "data"),
        ("click delete {entity} button", "click", "data"),
        ("confirm {entity} deletion", "click", "data"),
        ("cancel {entity} deletion", "click", "data"),
        ("search for {entity}", "fill", "data"),
        ("filter {entities}", "fill", "data"),
        ("clear {entity} filter", "click", "data"),
    ],
)

FORM_TEMPLATES = _group(
    "form",
    [
        ("fill {form} form", "fill", "data"),
        ("submit {form} form", "click", "data"),
        ("cancel {form} form", "click", "data"),
        ("reset {form} form", "click", "data"),
        ("clear {form} form", "click", "data"),
        ("enter {field} in {form}", "fill", "data"),
        ("fill in {field}", "fill", "data"),
        ("select {field} option", "click", "data"),
        ("check {field} checkbox", "check", "data"),
        ("uncheck {field} checkbox", "uncheck", "data"),
        ("toggle {field}", "click", "data"),
        ("upload file to {field}", "upload", "data"),
        ("clear {field} field", "clear", "data"),
        ("verify {field} error message", "assert", "assertion"),
        ("verify {form} validation error", "assert", "assertion"),
        ("verify {field} is required", "assert", "assertion"),
        ("verify {form} submitted successfully", "assert", "assertion"),
    ],
)

TABLE_TEMPLATES = _group(
    "table",
    [
        ("click row in {table}", "click", "ui-interaction"),
        ("select row in {table}", "click", "ui-interaction"),
        ("double-click row in {table}", "dblclick", "ui-interaction"),
        ("expand row in {table}", "click", "ui-interaction"),
        ("collapse row in {table}", "click", "ui-interaction"),
        ("hover over row in {table}", "hover", "ui-interaction"),
        ("sort {column} column in {table}", "click", "ui-interaction"),
        ("sort {table} by {column}", "click", "ui-interaction"),
        ("filter {column} in {table}", "fill", "ui-interaction"),
        ("resize {column} column", "drag", "ui-interaction"),
        ("hide {column} column", "click", "ui-interaction"),
        ("show {column} column", "click", "ui-interaction"),
        ("go to next page in {table}", "click", "ui-interaction"),
        ("go to previous page in {table}", "click", "ui-interaction"),
        ("go to page {page} in {table}", "click", "ui-interaction"),
        ("change page size in {table}", "click", "ui-interaction"),
        ("edit cell in {table}", "dblclick", "ui-interaction"),
        ("click cell in {table}", "click", "ui-interaction"),
        ("select all rows in {table}", "click", "ui-interaction"),
        ("deselect all rows in {table}", "click", "ui-interaction"),
        ("verify {table} has {count} rows", "assert", "assertion"),
        ("verify {table} contains {text}", "assert", "assertion"),
        ("verify {table} is empty", "assert", "assertion"),
        ("verify {column} is sorted", "assert", "assertion"),
    ],
)

MODAL_TEMPLATES = _group(
    "modal",
    [
        ("open {modal} modal", "click", "ui-interaction"),
        ("open {modal} dialog", "click", "ui-interaction"),
        ("close {modal} modal", "click", "ui-interaction"),
        ("close {modal} dialog", "click", "ui-interaction"),
        ("dismiss {modal}", "click", "ui-interaction"),
        ("confirm {modal}", "click", "ui-interaction"),
        ("cancel {modal}", "click", "ui-interaction"),
        ("click OK in {modal}", "click", "ui-interaction"),
        ("click Cancel in {modal}", "click", "ui-interaction"),
        ("click Yes in {modal}", "click", "ui-interaction"),
        ("click No in {modal}", "click", "ui-interaction"),
        ("submit {modal}", "click", "ui-interaction"),
        ("press Escape to close {modal}", "keyboard", "ui-interaction"),
        ("click outside {modal} to close", "click", "ui-interaction"),
        ("click backdrop to close {modal}", "click", "ui-interaction"),
        ("verify {modal} is open", "assert", "assertion"),
        ("verify {modal} is closed", "assert", "assertion"),
        ("verify {modal} contains {text}", "assert", "assertion"),
        ("verify {modal} title is {title}", "assert", "assertion"),
    ],
)

NAVIGATION_TEMPLATES = _group(
    "navigation",
    [
        ("navigate to {route}", "navigate", "navigation"),
        ("go to {route}", "navigate", "navigation"),
        ("open {route} page", "navigate", "navigation"),
        ("visit {route}", "navigate", "navigation"),
        ("click {route} in navigation", "click", "navigation"),
        ("click {route} in sidebar", "click", "navigation"),
        ("click {route} in menu", "click", "navigation"),
        ("select {route} from menu", "click", "navigation"),
        ("expand {route} menu", "click", "navigation"),
        ("collapse {route} menu", "click", "navigation"),
        ("click {route} in breadcrumb", "click", "navigation"),
        ("navigate via breadcrumb to {route}", "click", "navigation"),
        ("click {route} tab", "click", "navigation"),
        ("switch to {route} tab", "click", "navigation"),
        ("click {route} in header", "click", "navigation"),
        ("click {route} in footer", "click", "navigation"),
        ("go back", "navigate", "navigation"),
        ("go forward", "navigate", "navigation"),
        ("return to {route}", "navigate", "navigation"),
        ("verify on {route} page", "assert", "assertion"),
        ("verify URL contains {route}", "assert", "assertion"),
        ("verify {route} is active in navigation", "assert", "assertion"),
    ],
)

NOTIFICATION_TEMPLATES = _group(
    "static",
    [
        ("a success notification appears", "assert", "assertion"),
        ("an error notification appears", "assert", "assertion"),
        ("a warning notification appears", "assert", "assertion"),
        ("an info notification appears", "assert", "assertion"),
        ("a toast message appears", "assert", "assertion"),
        ("a notification with text {text} appears", "assert", "assertion"),
        ("verify success message is displayed", "assert", "assertion"),
        ("verify error message is displayed", "assert", "assertion"),
        ("verify notification contains {text}", "assert", "assertion"),
        ("verify toast shows {text}", "assert", "assertion"),
        ("dismiss notification", "click", "ui-interaction"),
        ("close toast", "click", "ui-interaction"),
        ("dismiss all notifications", "click", "ui-interaction"),
        ("wait for notification to appear", "waitForVisible", "timing"),
        ("wait for toast to disappear", "waitForVisible", "timing"),
        ("wait for notification to close", "waitForVisible", "timing"),
        ("verify alert message contains {text}", "assert", "assertion"),
        ("accept alert dialog", "click", "ui-interaction"),
        ("dismiss alert dialog", "click", "ui-interaction"),
        ("verify alert is shown", "assert", "assertion"),
    ],
)


def _fill(text: str, placeholder: str, value: str) -> str:
    return text.replace("{" + placeholder + "}", value, 1)


def create_pattern(
    template: PatternTemplate,
    text: str,
    entity_name: str | None,
    confidence: float,
    hints: tuple[SelectorHint, ...] = (),
) -> DiscoveredPattern:
    """Build an app-specific pattern from a filled template."""
    return DiscoveredPattern(
        normalized_text=text.lower(),
        original_text=text,
        mapped_primitive=template.primitive,
        selector_hints=hints,
        confidence=min(confidence, MAX_CONFIDENCE),
        category=template.category,
        template_source=template.template_source,
        entity_name=entity_name or None,
        provenance=PROVENANCE,
    )


def _css_hint(value: str | None, confidence: float) -> tuple[SelectorHint, ...]:
    if not value:
        return ()
    return (SelectorHint(strategy="css", value=value, confidence=confidence),)


# =============================================================================
# Per-element expansion
# =============================================================================


def expand_entity(template: PatternTemplate, entity: DiscoveredEntity, confidence: float) -> list[DiscoveredPattern]:
    patterns: list[DiscoveredPattern] = []
    if "entity" in template.placeholders:
        text = _fill(template.text, "entity", entity.singular)
        patterns.append(create_pattern(template, text, entity.singular, confidence))
    if "entities" in template.placeholders:
        text = _fill(template.text, "entities", entity.plural)
        patterns.append(create_pattern(template, text, entity.plural, confidence))
    return patterns


def expand_form(template: PatternTemplate, form: DiscoveredForm, confidence: float) -> list[DiscoveredPattern]:
    placeholders = template.placeholders
    boosted = confidence + SELECTOR_CONFIDENCE_BOOST

    if "field" not in placeholders:
        if "form" not in placeholders:
            return []
        text = _fill(template.text, "form", form.name)
        hints = _css_hint(form.submit_selector, boosted) if "submit" in template.text else ()
        return [create_pattern(template, text, form.name, confidence, hints)]

    patterns: list[DiscoveredPattern] = []
    for field in form.fields:
        text = _fill(template.text, "field", field.label or field.name)
        if "form" in placeholders:
            text = _fill(text, "form", form.name)
        patterns.append(
            create_pattern(template, text, field.name, confidence, _css_hint(field.selector, boosted))
        )
    return patterns


def expand_table(template: PatternTemplate, table: DiscoveredTable, confidence: float) -> list[DiscoveredPattern]:
    placeholders = template.placeholders

    if "column" not in placeholders:
        if "table" not in placeholders:
            return []
        text = _fill(template.text, "table", table.name)
        hints = _css_hint(table.table_selector, confidence + SELECTOR_CONFIDENCE_BOOST)
        return [create_pattern(template, text, table.name, confidence, hints)]

    patterns: list[DiscoveredPattern] = []
    for column in table.columns:
        text = _fill(template.text, "column", column)
        if "table" in placeholders:
            text = _fill(text, "table", table.name)
        header = f'{table.header_selector}:has-text("{column}")' if table.header_selector else None
        hints = _css_hint(header, confidence + SELECTOR_CONFIDENCE_BOOST * 0.5)
        patterns.append(create_pattern(template, text, column, confidence, hints))
    return patterns


def expand_modal(template: PatternTemplate, modal: DiscoveredModal, confidence: float) -> list[DiscoveredPattern]:
    if "modal" not in template.placeholders:
        return []
    text = _fill(template.text, "modal", modal.name)
    boosted = confidence + SELECTOR_CONFIDENCE_BOOST

    selector: str | None = None
    if "open" in template.text and modal.trigger_selector:
        selector = modal.trigger_selector
    elif "close" in template.text and modal.close_selector:
        selector = modal.close_selector
    elif any(word in template.text for word in ("confirm", "OK", "Yes")) and modal.confirm_selector:
        selector = modal.confirm_selector

    return [create_pattern(template, text, modal.name, confidence, _css_hint(selector, boosted))]


def expand_route(template: PatternTemplate, route: DiscoveredRoute, confidence: float) -> list[DiscoveredPattern]:
    if "route" not in template.placeholders:
        return []
    text = _fill(template.text, "route", route.name)
    hints: tuple[SelectorHint, ...] = ()
    if template.primitive == "navigate":
        hints = (SelectorHint(strategy="text", value=route.name, confidence=confidence),)
    return [create_pattern(template, text, route.name, confidence, hints)]


# =============================================================================
# Generators
# =============================================================================


def generate_navigation_patterns(routes: list[DiscoveredRoute], confidence: float) -> list[DiscoveredPattern]:
    """Route patterns; placeholder-free templates are emitted once overall."""
    patterns: list[DiscoveredPattern] = []
    emitted_generic: set[str] = set()
    for route in routes:
        for template in NAVIGATION_TEMPLATES:
            if not template.placeholders:
                if template.text not in emitted_generic:
                    emitted_generic.add(template.text)
                    patterns.append(create_pattern(template, template.text, None, confidence))
            else:
                patterns.extend(expand_route(template, route, confidence))
    return patterns


def generate_notification_patterns(confidence: float) -> list[DiscoveredPattern]:
    return [create_pattern(t, t.text, None, confidence) for t in NOTIFICATION_TEMPLATES]


class TemplateGenerator:
    """Default template generator."""

    def __init__(
        self,
        confidence: float = DEFAULT_GENERATED_CONFIDENCE,
        max_patterns: int = MAX_GENERATED_PATTERNS,
    ) -> None:
        self._confidence = confidence
        self._max_patterns = max_patterns

    def generate(self, elements: DiscoveredElements) -> list[DiscoveredPattern]:
        c = self._confidence
        patterns: list[DiscoveredPattern] = []
        for entity in elements.entities:
            for template in CRUD_TEMPLATES:
                patterns.extend(expand_entity(template, entity, c))
        for form in elements.forms:
            for template in FORM_TEMPLATES:
                patterns.extend(expand_form(template, form, c))
        for table in elements.tables:
            for template in TABLE_TEMPLATES:
                patterns.extend(expand_table(template, table, c))
        for modal in elements.modals:
            for template in MODAL_TEMPLATES:
                patterns.extend(expand_modal(template, modal, c))
        patterns.extend(generate_navigation_patterns(elements.routes, c))
        patterns.extend(generate_notification_patterns(c))

        if len(patterns) > self._max_patterns:
            logger.info("Template patterns truncated from %d to %d", len(patterns), self._max_patterns)
            patterns.sort(key=lambda p: p.confidence, reverse=True)
            patterns = patterns[: self._max_patterns]
        return patterns
