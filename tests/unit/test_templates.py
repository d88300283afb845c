"""Unit tests for template multiplication.

Tests cover:
- Per-element expansion for entities, forms, tables, modals and routes
- Selector hint propagation and confidence boosts
- Generic navigation templates emitted once
- Generator totals and the safety cap
"""

from __future__ import annotations

import pytest

from pattern_kb.core.models import (
    DiscoveredElements,
    DiscoveredEntity,
    DiscoveredForm,
    DiscoveredModal,
    DiscoveredRoute,
    DiscoveredTable,
    FormField,
)
from pattern_kb.discovery.templates import (
    CRUD_TEMPLATES,
    FORM_TEMPLATES,
    MODAL_TEMPLATES,
    NAVIGATION_TEMPLATES,
    NOTIFICATION_TEMPLATES,
    SELECTOR_CONFIDENCE_BOOST,
    TABLE_TEMPLATES,
    PatternTemplate,
    TemplateGenerator,
    create_pattern,
    expand_entity,
    expand_form,
    expand_modal,
    expand_route,
    expand_table,
    generate_navigation_patterns,
)

pytestmark = pytest.mark.unit

USER = DiscoveredEntity(name="user", singular="user", plural="users", endpoint="/api/users")
SIGNUP = DiscoveredForm(
    id="signup",
    name="Signup",
    fields=[
        FormField(name="email", type="email", label="Email", selector='[name="email"]'),
        FormField(name="firstName", label="First Name"),
    ],
    submit_selector='button[type="submit"]',
)
ORDERS = DiscoveredTable(
    id="orders",
    name="Orders",
    columns=["status", "amount"],
    table_selector="#orders",
    header_selector="#orders th",
)


def _texts(patterns: list) -> list[str]:
    return [p.original_text for p in patterns]


class TestTemplateTables:
    """Tests for the template tables themselves."""

    def test_table_sizes(self) -> None:
        """Each family carries its full set of templates."""
        assert len(CRUD_TEMPLATES) == 23
        assert len(FORM_TEMPLATES) == 17
        assert len(TABLE_TEMPLATES) == 24
        assert len(MODAL_TEMPLATES) == 19
        assert len(NAVIGATION_TEMPLATES) == 22
        assert len(NOTIFICATION_TEMPLATES) == 20

    def test_placeholders(self) -> None:
        """Placeholders are parsed from the text."""
        template = PatternTemplate("sort {table} by {column}", "click", "ui-interaction", "table")

        assert template.placeholders == ("table", "column")

    def test_create_pattern_caps_confidence(self) -> None:
        """Generated confidence never exceeds 0.95."""
        pattern = create_pattern(CRUD_TEMPLATES[0], "Create new user", "user", 1.2)

        assert pattern.confidence == pytest.approx(0.95)
        assert pattern.normalized_text == "create new user"
        assert pattern.provenance == "templates"
        assert pattern.template_source == "crud"


class TestExpansion:
    """Tests for per-element expansion."""

    def test_entity_singular_and_plural(self) -> None:
        """{entity} uses the singular, {entities} the plural."""
        patterns = [p for t in CRUD_TEMPLATES for p in expand_entity(t, USER, 0.7)]

        assert len(patterns) == 23
        assert "create new user" in _texts(patterns)
        assert "filter users" in _texts(patterns)
        assert {p.entity_name for p in patterns} == {"user", "users"}

    def test_form_field_templates_expand_per_field(self) -> None:
        """Field templates produce one pattern per field with field selectors."""
        template = next(t for t in FORM_TEMPLATES if t.text == "enter {field} in {form}")

        patterns = expand_form(template, SIGNUP, 0.7)

        assert _texts(patterns) == ["enter Email in Signup", "enter First Name in Signup"]
        email_hint = patterns[0].selector_hints[0]
        assert email_hint.strategy == "css"
        assert email_hint.value == '[name="email"]'
        assert email_hint.confidence == pytest.approx(0.7 + SELECTOR_CONFIDENCE_BOOST)
        assert patterns[1].selector_hints == ()

    def test_form_submit_carries_submit_selector(self) -> None:
        """Only submit templates get the submit button selector."""
        submit = next(t for t in FORM_TEMPLATES if t.text == "submit {form} form")
        cancel = next(t for t in FORM_TEMPLATES if t.text == "cancel {form} form")

        assert expand_form(submit, SIGNUP, 0.7)[0].selector_hints[0].value == 'button[type="submit"]'
        assert expand_form(cancel, SIGNUP, 0.7)[0].selector_hints == ()

    def test_form_total(self) -> None:
        """A form yields 7 form-level plus 10 per-field patterns."""
        patterns = [p for t in FORM_TEMPLATES for p in expand_form(t, SIGNUP, 0.7)]

        assert len(patterns) == 7 + 10 * len(SIGNUP.fields)

    def test_table_column_hints(self) -> None:
        """Column templates get header selectors with half the boost."""
        template = next(t for t in TABLE_TEMPLATES if t.text == "sort {column} column in {table}")

        patterns = expand_table(template, ORDERS, 0.7)

        assert _texts(patterns) == ["sort status column in Orders", "sort amount column in Orders"]
        hint = patterns[0].selector_hints[0]
        assert hint.value == '#orders th:has-text("status")'
        assert hint.confidence == pytest.approx(0.7 + SELECTOR_CONFIDENCE_BOOST * 0.5)

    def test_table_total(self) -> None:
        """A table yields 17 table-level plus 7 per-column patterns."""
        patterns = [p for t in TABLE_TEMPLATES for p in expand_table(t, ORDERS, 0.7)]

        assert len(patterns) == 17 + 7 * len(ORDERS.columns)
        assert patterns[0].selector_hints[0].value == "#orders"

    def test_modal_selectors_by_verb(self) -> None:
        """Open, close and confirm templates pick the matching selector."""
        modal = DiscoveredModal(
            id="delete",
            name="Delete User",
            trigger_selector="#open-delete",
            close_selector="#close-delete",
            confirm_selector="#confirm-delete",
        )
        by_text = {
            p.original_text: p for t in MODAL_TEMPLATES for p in expand_modal(t, modal, 0.7)
        }

        assert len(by_text) == 19
        assert by_text["open Delete User modal"].selector_hints[0].value == "#open-delete"
        assert by_text["close Delete User dialog"].selector_hints[0].value == "#close-delete"
        assert by_text["confirm Delete User"].selector_hints[0].value == "#confirm-delete"
        assert by_text["dismiss Delete User"].selector_hints == ()

    def test_route_navigate_gets_text_hint(self) -> None:
        """Navigate templates carry a text hint with the route name."""
        route = DiscoveredRoute(path="/settings", name="Settings")
        navigate = next(t for t in NAVIGATION_TEMPLATES if t.text == "navigate to {route}")
        click = next(t for t in NAVIGATION_TEMPLATES if t.text == "click {route} tab")

        nav_pattern = expand_route(navigate, route, 0.7)[0]
        click_pattern = expand_route(click, route, 0.7)[0]

        assert nav_pattern.selector_hints[0].strategy == "text"
        assert nav_pattern.selector_hints[0].value == "Settings"
        assert click_pattern.selector_hints == ()

    def test_generic_navigation_emitted_once(self) -> None:
        """Placeholder-free templates are not repeated per route."""
        routes = [
            DiscoveredRoute(path="/a", name="A"),
            DiscoveredRoute(path="/b", name="B"),
        ]

        patterns = generate_navigation_patterns(routes, 0.7)

        assert _texts(patterns).count("go back") == 1
        assert len(patterns) == 2 + 20 * len(routes)


class TestTemplateGenerator:
    """Tests for TemplateGenerator."""

    def test_empty_elements_still_yield_notifications(self) -> None:
        """Static notification templates are always emitted."""
        patterns = TemplateGenerator().generate(DiscoveredElements())

        assert len(patterns) == len(NOTIFICATION_TEMPLATES)
        assert {p.template_source for p in patterns} == {"static"}

    def test_totals_for_one_entity(self) -> None:
        """One entity contributes its CRUD patterns."""
        patterns = TemplateGenerator().generate(DiscoveredElements(entities=[USER]))

        assert len(patterns) == 23 + 20
        assert all(p.confidence == pytest.approx(0.7) for p in patterns)

    def test_truncates_to_cap_by_confidence(self) -> None:
        """Past the cap, the most confident patterns are kept."""
        patterns = TemplateGenerator(max_patterns=10).generate(DiscoveredElements(forms=[SIGNUP]))

        assert len(patterns) == 10
        assert patterns[0].confidence == pytest.approx(0.7)
