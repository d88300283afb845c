"""Regex-based mining of code elements from project sources.

One scan of the source directories (through the shared content cache)
feeds every extractor: entities, routes, forms, tables and modals.
Prisma schemas and Next.js ``pages/`` / ``app/`` directories are read in
addition to the scanned sources.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from itertools import islice
from pathlib import Path

from pattern_kb.core.content_cache import ContentCache, ScanOptions, ScannedFile, scan_source_directories
from pattern_kb.core.models import (
    DiscoveredElements,
    DiscoveredEntity,
    DiscoveredForm,
    DiscoveredModal,
    DiscoveredRoute,
    DiscoveredTable,
    FormField,
    MiningResult,
    MiningStats,
)
from pattern_kb.core.utils import run_blocking
from pattern_kb.discovery.inflection import pluralize, singularize

logger = logging.getLogger(__name__)

MAX_REGEX_ITERATIONS = 10_000

NEXTJS_PAGE_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js")


def iter_matches(pattern: re.Pattern[str], text: str) -> Iterator[re.Match[str]]:
    """``pattern.finditer`` bounded to ``MAX_REGEX_ITERATIONS`` matches."""
    return islice(pattern.finditer(text), MAX_REGEX_ITERATIONS)


def field_name_to_label(name: str) -> str:
    """``firstName`` / ``first_name`` -> ``First Name``."""
    spaced = re.sub(r"([A-Z])", r" \1", name)
    spaced = re.sub(r"[_-]", " ", spaced)
    return " ".join(word[:1].upper() + word[1:].lower() for word in spaced.split())


# =============================================================================
# Entities
# =============================================================================

# name -> (pattern, is API pattern)
ENTITY_PATTERNS: dict[str, tuple[re.Pattern[str], bool]] = {
    "type_interface": (re.compile(r"(?:export\s+)?(?:interface|type)\s+(\w+)(?:\s+extends|\s*[={<])"), False),
    "class_name": (re.compile(r"(?:export\s+)?class\s+(\w+)(?:\s+extends|\s+implements|\s*\{)"), False),
    "prisma_model": (re.compile(r"model\s+(\w+)\s*\{"), False),
    "typeorm_entity": (re.compile(r"@Entity\s*\(\s*['\"]?(\w+)?['\"]?\s*\)"), False),
    "api_fetch": (
        re.compile(r"(?:fetch|axios\.(?:get|post|put|delete|patch))\s*\(\s*[`'\"]/?(?:api/)?(\w+)", re.IGNORECASE),
        True,
    ),
    "rest_resource": (re.compile(r"/api/(\w+)(?:/|['\"`])", re.IGNORECASE), True),
    "graphql_type": (re.compile(r"type\s+(\w+)\s*(?:@|\{|implements)"), False),
    "mongoose_schema": (re.compile(r"new\s+(?:mongoose\.)?Schema\s*<?\s*(\w+)?"), False),
    "mongoose_model": (re.compile(r"mongoose\.model\s*[<(]\s*['\"]?(\w+)"), False),
    "sequelize_model": (re.compile(r"sequelize\.define\s*\(\s*['\"](\w+)"), False),
    "mikro_entity": (re.compile(r"@Entity\s*\(\s*\{\s*(?:tableName|collection)\s*:\s*['\"](\w+)"), False),
}

ENTITY_EXCLUSIONS = frozenset(
    {
        "props", "state", "context", "config", "options", "params", "args",
        "request", "response", "result", "error", "data", "payload",
        "component", "element", "node", "children", "ref", "handler",
        "event", "callback", "dispatch", "action", "reducer", "store",
        "service", "controller", "repository", "factory", "builder",
        "helper", "util", "utils", "hook", "provider", "consumer",
        "string", "number", "boolean", "object", "array", "function",
        "any", "unknown", "void", "null", "undefined", "never",
        "partial", "required", "readonly", "pick", "omit", "record",
        "promise", "async", "await", "import", "export", "default",
    }
)

_ENTITY_SUFFIX = re.compile(r"(?:Model|Entity|Schema|Type|Interface|DTO|Input|Output)$", re.IGNORECASE)
_UTILITY_SUFFIX = re.compile(
    r"(?:Props|State|Context|Config|Options|Params|Args|Handler|Callback|Service|Controller|Repository)$",
    re.IGNORECASE,
)
_PRISMA_MODEL = re.compile(r"model\s+(\w+)\s*\{")


@dataclass
class _EntityAccumulator:
    name: str
    sources: list[str] = field(default_factory=list)
    endpoints: list[str] = field(default_factory=list)

    def add_source(self, source: str) -> None:
        if source not in self.sources:
            self.sources.append(source)

    def add_endpoint(self, endpoint: str) -> None:
        if endpoint not in self.endpoints:
            self.endpoints.append(endpoint)


def extract_entities(content: str, source: str, entities: dict[str, _EntityAccumulator]) -> None:
    for pattern, is_api in ENTITY_PATTERNS.values():
        for match in iter_matches(pattern, content):
            raw_name = match.group(1)
            if not raw_name:
                continue
            normalized = _ENTITY_SUFFIX.sub("", raw_name).lower()
            if is_api:
                normalized = singularize(normalized)
            if normalized in ENTITY_EXCLUSIONS or len(normalized) < 3:
                continue
            if _UTILITY_SUFFIX.search(raw_name):
                continue

            entry = entities.setdefault(normalized, _EntityAccumulator(normalized))
            entry.add_source(source)
            if is_api:
                entry.add_endpoint(f"/api/{pluralize(normalized)}")


def extract_prisma_entities(content: str, source: str, entities: dict[str, _EntityAccumulator]) -> None:
    for match in iter_matches(_PRISMA_MODEL, content):
        name = match.group(1).lower()
        if name in ENTITY_EXCLUSIONS or len(name) < 3:
            continue
        if name in entities:
            entities[name].add_source(source)
        else:
            entities[name] = _EntityAccumulator(name, [source], [f"/api/{name}"])


def _to_entity(entry: _EntityAccumulator) -> DiscoveredEntity:
    singular = singularize(entry.name)
    return DiscoveredEntity(
        name=entry.name,
        singular=singular,
        plural=pluralize(singular),
        source=entry.sources[0] if entry.sources else None,
        endpoint=entry.endpoints[0] if entry.endpoints else None,
    )


# =============================================================================
# Routes
# =============================================================================

ROUTE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<Route\s+[^>]*path\s*=\s*[{'\"]([\w/:.-]+)['\"}\s]", re.IGNORECASE),
    re.compile(r"path:\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"\{\s*path:\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"(?:app|router)\.(?:get|post|put|delete|patch|all)\s*\(\s*['\"]([^'\"]+)['\"]", re.IGNORECASE),
    re.compile(r"@(?:Get|Post|Put|Delete|Patch|All)\s*\(\s*['\"]?([^'\")\s]*)", re.IGNORECASE),
)

_ROUTE_PARAM = re.compile(r":(\w+)")


def path_to_name(route_path: str) -> str:
    """``/user-settings/:id`` -> ``User Settings``; ``/`` -> ``Home``."""
    segments = [s for s in route_path.split("/") if s and not s.startswith(":")]
    if not segments:
        return "Home"
    return " ".join(word[:1].upper() + word[1:] for word in segments[-1].split("-"))


def _make_route(route_path: str) -> DiscoveredRoute:
    return DiscoveredRoute(
        path=route_path,
        name=path_to_name(route_path),
        params=_ROUTE_PARAM.findall(route_path),
    )


def extract_routes(content: str, routes: dict[str, DiscoveredRoute]) -> None:
    for pattern in ROUTE_PATTERNS:
        for match in iter_matches(pattern, content):
            raw = match.group(1)
            if not raw or raw in ("*", "**"):
                continue
            route_path = raw if raw.startswith("/") else f"/{raw}"
            if route_path.startswith("/api/") or route_path in routes:
                continue
            routes[route_path] = _make_route(route_path)


def _dynamic_segment(name: str) -> str:
    if name.startswith("[") and name.endswith("]"):
        return f":{name[1:-1]}"
    return name


def _sorted_entries(directory: str) -> list[os.DirEntry[str]]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda e: e.name)


def collect_nextjs_pages(directory: str, base_path: str = "") -> list[str]:
    """Route paths for a Next.js ``pages/`` directory."""
    try:
        entries = _sorted_entries(directory)
    except OSError:
        return []

    paths: list[str] = []
    for entry in entries:
        if entry.is_symlink() or entry.name.startswith((".", "_")):
            continue
        if entry.is_dir():
            if not base_path and entry.name == "api":
                continue
            paths.extend(collect_nextjs_pages(entry.path, f"{base_path}/{_dynamic_segment(entry.name)}"))
            continue
        stem, ext = os.path.splitext(entry.name)
        if ext not in NEXTJS_PAGE_EXTENSIONS:
            continue
        if stem == "index":
            paths.append(base_path or "/")
        else:
            paths.append(f"{base_path}/{_dynamic_segment(stem)}")
    return paths


def collect_nextjs_app_routes(directory: str, base_path: str = "") -> list[str]:
    """Route paths for a Next.js ``app/`` directory; ``(group)`` folders add no segment."""
    try:
        entries = _sorted_entries(directory)
    except OSError:
        return []

    paths: list[str] = []
    for entry in entries:
        if entry.is_symlink() or entry.name.startswith((".", "_")):
            continue
        if entry.is_dir():
            if entry.name.startswith("(") and entry.name.endswith(")"):
                segment = ""
            else:
                segment = _dynamic_segment(entry.name)
            paths.extend(
                collect_nextjs_app_routes(entry.path, f"{base_path}/{segment}" if segment else base_path)
            )
        elif entry.name in {f"page{ext}" for ext in NEXTJS_PAGE_EXTENSIONS}:
            paths.append(base_path or "/")
    return paths


# =============================================================================
# Forms
# =============================================================================

_ZOD_SCHEMA = re.compile(r"z\.object\s*\(\s*\{([\s\S]{0,2000}?)\}\s*\)")
_ZOD_FIELD = re.compile(r"(\w+)\s*:\s*z\.(\w+)")
_YUP_SCHEMA = re.compile(r"(?:yup|Yup)\.object\s*\(\s*\{([\s\S]{0,2000}?)\}\s*\)")
_YUP_FIELD = re.compile(r"(\w+)\s*:\s*(?:yup|Yup)\.(\w+)")
_RHF_REGISTER = re.compile(r"register\s*\(\s*['\"](\w+)['\"]")
_INPUT_NAME_FIRST = re.compile(r"<input[^>]+name\s*=\s*['\"](\w+)['\"]", re.IGNORECASE)
_INPUT_TYPE_FIRST = re.compile(r"<input[^>]+type\s*=\s*['\"](\w+)['\"][^>]+name\s*=\s*['\"](\w+)['\"]", re.IGNORECASE)
_FORM_FILE_SUFFIX = re.compile(r"(?:Form|Schema|Validation)$", re.IGNORECASE)

ZOD_INPUT_TYPES = {
    "string": "text",
    "email": "email",
    "number": "number",
    "boolean": "checkbox",
    "date": "date",
    "enum": "select",
    "password": "password",
}
YUP_INPUT_TYPES = {
    "string": "text",
    "email": "email",
    "number": "number",
    "boolean": "checkbox",
    "date": "date",
    "mixed": "text",
}


def _file_stem(source: str) -> str:
    return Path(source).stem


def extract_form(content: str, source: str) -> DiscoveredForm | None:
    """Build a form from schema fields and inputs found in one file."""
    fields: dict[str, FormField] = {}

    def add(name: str, input_type: str, selector: str | None = None) -> None:
        if name not in fields:
            fields[name] = FormField(
                name=name, type=input_type, label=field_name_to_label(name), selector=selector
            )

    schema_name: str | None = None
    zod = _ZOD_SCHEMA.search(content)
    if zod:
        schema_name = "zod"
        for match in iter_matches(_ZOD_FIELD, zod.group(1)):
            add(match.group(1), ZOD_INPUT_TYPES.get(match.group(2).lower(), "text"))

    yup = _YUP_SCHEMA.search(content)
    if yup:
        schema_name = schema_name or "yup"
        for match in iter_matches(_YUP_FIELD, yup.group(1)):
            add(match.group(1), YUP_INPUT_TYPES.get(match.group(2).lower(), "text"))

    for match in iter_matches(_RHF_REGISTER, content):
        add(match.group(1), "text", f'[name="{match.group(1)}"]')
    for match in iter_matches(_INPUT_TYPE_FIRST, content):
        add(match.group(2), match.group(1) or "text", f'[name="{match.group(2)}"]')
    for match in iter_matches(_INPUT_NAME_FIRST, content):
        add(match.group(1), "text", f'[name="{match.group(1)}"]')

    if not fields:
        return None

    base = _FORM_FILE_SUFFIX.sub("", _file_stem(source))
    form_id = base.lower() or "form"
    return DiscoveredForm(
        id=form_id,
        name=field_name_to_label(base) or "Form",
        fields=list(fields.values()),
        submit_selector='button[type="submit"]' if re.search(r"type\s*=\s*['\"]submit['\"]", content) else None,
        schema_name=schema_name,
    )


# =============================================================================
# Tables
# =============================================================================

_TABLE_HINT = re.compile(r"(?:AgGridReact|DataGrid|useReactTable|Table)", re.IGNORECASE)
_HTML_TABLE = re.compile(r"<table[^>]*\bid\s*=\s*['\"]([^'\"]+)['\"]", re.IGNORECASE)
_COLUMN_DEFS = re.compile(r"columnDefs\s*[:=]\s*\[([^\]]+)\]", re.DOTALL)
_COLUMNS = re.compile(r"columns\s*[:=]\s*\[([^\]]+)\]", re.DOTALL)
_FIELD = re.compile(r"field:\s*['\"](\w+)['\"]")
_ACCESSOR_KEY = re.compile(r"accessorKey:\s*['\"](\w+)['\"]")
_DATA_INDEX = re.compile(r"dataIndex:\s*['\"](\w+)['\"]")
_HTML_TH = re.compile(r"<th[^>]*>([^<]+)</th>", re.IGNORECASE)
_TABLE_FILE_SUFFIX = re.compile(r"(?:Table|Grid|List|DataGrid)$", re.IGNORECASE)


def extract_table(content: str, source: str) -> DiscoveredTable | None:
    """Build a table from column definitions and headers found in one file."""
    if not _TABLE_HINT.search(content) and "<table" not in content.lower():
        return None

    columns: list[str] = []

    def add(column: str) -> None:
        if column and column not in columns:
            columns.append(column)

    defs = _COLUMN_DEFS.search(content) or _COLUMNS.search(content)
    if defs:
        for match in iter_matches(_FIELD, defs.group(1)):
            add(match.group(1))
    for pattern in (_ACCESSOR_KEY, _DATA_INDEX):
        for match in iter_matches(pattern, content):
            add(match.group(1))
    for match in iter_matches(_HTML_TH, content):
        add(match.group(1).strip())

    if not columns:
        return None

    table_selector = header_selector = None
    html_table = _HTML_TABLE.search(content)
    if html_table:
        table_selector = f"#{html_table.group(1)}"
        header_selector = f"#{html_table.group(1)} th"
    elif "AgGridReact" in content:
        table_selector = ".ag-root"
        header_selector = ".ag-header-cell"

    base = _TABLE_FILE_SUFFIX.sub("", _file_stem(source))
    return DiscoveredTable(
        id=base.lower() or "table",
        name=field_name_to_label(base) or "Data Table",
        columns=columns,
        table_selector=table_selector,
        header_selector=header_selector,
    )


# =============================================================================
# Modals
# =============================================================================

MODAL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<Dialog[^>]*(?:open|onClose)[^>]*>", re.IGNORECASE),
    re.compile(r"<Dialog\.Root", re.IGNORECASE),
    re.compile(r"<Modal[^>]*(?:isOpen|onRequestClose|onClose|open|visible|onCancel)[^>]*>", re.IGNORECASE),
    re.compile(r"(?:Modal|Dialog|Popup|Overlay)\s*(?:name|id|title)\s*=\s*['\"](\w+)['\"]", re.IGNORECASE),
    re.compile(r"(?:open|show|toggle)(?:Modal|Dialog)\s*\(\s*['\"]?(\w+)", re.IGNORECASE),
)

MODAL_TITLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<DialogTitle[^>]*>([^<]+)</DialogTitle>", re.IGNORECASE),
    re.compile(r"<ModalHeader[^>]*>([^<]+)</ModalHeader>", re.IGNORECASE),
    re.compile(r"<Dialog\.Title[^>]*>([^<]+)</Dialog\.Title>", re.IGNORECASE),
    re.compile(r"title\s*=\s*[{'\"]([\w\s]+)['\"}]", re.IGNORECASE),
)

_MODAL_FILE_SUFFIX = re.compile(r"(?:Modal|Dialog|Popup)$", re.IGNORECASE)


def extract_modal(content: str, source: str) -> DiscoveredModal | None:
    if not any(pattern.search(content) for pattern in MODAL_PATTERNS):
        return None

    title: str | None = None
    for pattern in MODAL_TITLE_PATTERNS:
        match = pattern.search(content)
        if match and match.group(1).strip():
            title = match.group(1).strip()
            break

    base = _MODAL_FILE_SUFFIX.sub("", _file_stem(source))
    if not base:
        return None
    return DiscoveredModal(
        id=base.lower(),
        name=title or field_name_to_label(base) or "Modal",
    )


# =============================================================================
# Miner
# =============================================================================


def extract_elements(
    files: list[ScannedFile],
    prisma: tuple[str, str] | None = None,
    extra_routes: list[str] | None = None,
) -> DiscoveredElements:
    """Run every extractor over already-read files.

    Args:
        files: Scanned source files.
        prisma: Optional ``(path, content)`` of a Prisma schema.
        extra_routes: Route paths found from the filesystem layout.
    """
    entities: dict[str, _EntityAccumulator] = {}
    routes: dict[str, DiscoveredRoute] = {}
    forms: dict[str, DiscoveredForm] = {}
    tables: dict[str, DiscoveredTable] = {}
    modals: dict[str, DiscoveredModal] = {}

    for scanned in files:
        extract_entities(scanned.content, scanned.path, entities)
        extract_routes(scanned.content, routes)
        form = extract_form(scanned.content, scanned.path)
        if form is not None:
            forms.setdefault(form.id, form)
        table = extract_table(scanned.content, scanned.path)
        if table is not None:
            tables.setdefault(table.id, table)
        modal = extract_modal(scanned.content, scanned.path)
        if modal is not None:
            modals.setdefault(modal.id, modal)

    if prisma is not None:
        extract_prisma_entities(prisma[1], prisma[0], entities)
    for route_path in extra_routes or ():
        routes[route_path] = _make_route(route_path)

    return DiscoveredElements(
        entities=[_to_entity(e) for e in entities.values()],
        routes=list(routes.values()),
        forms=list(forms.values()),
        tables=list(tables.values()),
        modals=list(modals.values()),
    )


def _filesystem_routes(root: str) -> list[str]:
    paths: list[str] = []
    pages = os.path.join(root, "pages")
    if os.path.isdir(pages) and not os.path.islink(pages):
        paths.extend(collect_nextjs_pages(pages))
    app = os.path.join(root, "app")
    if os.path.isdir(app) and not os.path.islink(app):
        paths.extend(collect_nextjs_app_routes(app))
    return paths


class ElementMiner:
    """Default element miner; all file contents come from the shared cache."""

    async def mine(
        self,
        project_root: Path,
        cache: ContentCache,
        options: ScanOptions,
    ) -> MiningResult:
        root = os.path.abspath(os.fspath(project_root))
        files = await scan_source_directories(root, cache, options)

        prisma_path = os.path.join(root, "prisma", "schema.prisma")
        prisma_content = await cache.get_content(prisma_path)
        prisma = (prisma_path, prisma_content) if prisma_content is not None else None

        extra_routes = await run_blocking(_filesystem_routes, root)
        elements = extract_elements(files, prisma, extra_routes)

        stats = MiningStats(
            entities_found=len(elements.entities),
            routes_found=len(elements.routes),
            forms_found=len(elements.forms),
            tables_found=len(elements.tables),
            modals_found=len(elements.modals),
            files_scanned=len(files),
        )
        logger.debug(
            "Mined %d files: %d entities, %d routes, %d forms, %d tables, %d modals",
            stats.files_scanned,
            stats.entities_found,
            stats.routes_found,
            stats.forms_found,
            stats.tables_found,
            stats.modals_found,
        )
        return MiningResult(elements=elements, stats=stats)
