"""Structural discovery of a target project.

Detects frameworks and UI libraries from ``package.json`` and marker files,
analyzes selector attribute usage in ``src/``, and extracts authentication
hints (from ``.artk/discovery.json`` when present, otherwise by scanning
auth-looking files).
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from pattern_kb.core.content_cache import EXCLUDED_DIRECTORIES
from pattern_kb.core.errors import DiscoveryError
from pattern_kb.core.models import (
    AuthHints,
    DiscoveredProfile,
    DiscoveryResult,
    FrameworkSignal,
    SelectorSignals,
    UiLibrarySignal,
)
from pattern_kb.core.utils import run_blocking, utc_now_iso

logger = logging.getLogger(__name__)

PACKAGE_CONFIDENCE_BOOST = 0.3
FILE_CONFIDENCE_BOOST = 0.2
UI_PACKAGE_CONFIDENCE_BOOST = 0.25
UI_ENTERPRISE_BOOST = 0.15
MAX_SAMPLE_SELECTORS = 50
MAX_SCAN_DEPTH = 20
MAX_FILES_TO_SCAN = 5000

# name -> (packages, marker files, confidence cap)
FRAMEWORK_PATTERNS: dict[str, tuple[tuple[str, ...], tuple[str, ...], float]] = {
    "react": (
        ("react", "react-dom"),
        ("src/App.tsx", "src/App.jsx", "src/index.tsx", "src/index.jsx"),
        0.95,
    ),
    "angular": (
        ("@angular/core", "@angular/common"),
        ("angular.json", "src/app/app.module.ts", "src/app/app.component.ts"),
        0.95,
    ),
    "vue": (
        ("vue",),
        ("src/App.vue", "src/main.ts", "vue.config.js", "vite.config.ts"),
        0.90,
    ),
    "nextjs": (
        ("next",),
        ("next.config.js", "next.config.mjs", "next.config.ts", "src/app/page.tsx", "pages/_app.tsx"),
        0.95,
    ),
    "svelte": (("svelte",), ("svelte.config.js", "src/App.svelte"), 0.90),
}

# name -> (packages, enterprise packages, confidence cap)
UI_LIBRARY_PATTERNS: dict[str, tuple[tuple[str, ...], tuple[str, ...], float]] = {
    "mui": (
        ("@mui/material", "@mui/core", "@emotion/react", "@emotion/styled"),
        ("@mui/x-data-grid-pro", "@mui/x-data-grid-premium"),
        0.85,
    ),
    "antd": (
        ("antd", "@ant-design/icons"),
        ("@ant-design/pro-components", "@ant-design/pro-layout"),
        0.85,
    ),
    "chakra": (("@chakra-ui/react", "@chakra-ui/core"), (), 0.85),
    "ag-grid": (
        ("ag-grid-community", "ag-grid-react", "ag-grid-angular", "ag-grid-vue"),
        ("ag-grid-enterprise", "@ag-grid-enterprise/core"),
        0.90,
    ),
    "tailwind": (("tailwindcss",), (), 0.80),
    "bootstrap": (("bootstrap", "react-bootstrap", "ng-bootstrap", "bootstrap-vue"), (), 0.80),
}

SELECTOR_PATTERNS: dict[str, re.Pattern[str]] = {
    attr: re.compile(attr + r"""=['"]([^'"]+)['"]""")
    for attr in ("data-testid", "data-cy", "data-test", "data-test-id", "aria-label", "role")
}

SELECTOR_EXTENSIONS = (".tsx", ".jsx", ".vue", ".html", ".ts", ".js")

_AUTH_FILE_PATTERN = re.compile(r"auth|login|signin|oauth|sso", re.IGNORECASE)
_AUTH_CODE_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "oidc": tuple(re.compile(p, re.IGNORECASE) for p in (r"oidc", r"openid", r"id_token", r"authorization_code")),
    "oauth": tuple(re.compile(p, re.IGNORECASE) for p in (r"oauth", r"access_token", r"refresh_token")),
    "form": tuple(re.compile(p, re.IGNORECASE) for p in (r"login.*form", r"username.*password", r"signin")),
    "sso": tuple(re.compile(p, re.IGNORECASE) for p in (r"sso", r"saml", r"federation")),
}
_LOGIN_ROUTE = re.compile(r"""['"](/login|/signin|/auth)['"]""", re.IGNORECASE)
_VERSION_PREFIX = re.compile(r"[\^~>=<]")


# =============================================================================
# Framework and UI library detection
# =============================================================================


def _read_dependencies(project_root: Path) -> dict[str, str] | None:
    package_json = project_root / "package.json"
    try:
        parsed = json.loads(package_json.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Could not read package.json: %s", e)
        return None
    if not isinstance(parsed, dict):
        return None

    deps: dict[str, str] = {}
    for section in ("dependencies", "devDependencies"):
        values = parsed.get(section)
        if isinstance(values, dict):
            deps.update({str(k): str(v) for k, v in values.items()})
    return deps


def detect_frameworks(project_root: Path) -> list[FrameworkSignal]:
    """Detect frameworks, most confident first."""
    deps = _read_dependencies(project_root)
    if deps is None:
        return []

    signals: list[FrameworkSignal] = []
    for name, (packages, files, cap) in FRAMEWORK_PATTERNS.items():
        evidence: list[str] = []
        confidence = 0.0
        for pkg in packages:
            if deps.get(pkg):
                evidence.append(f"package.json:{pkg}@{deps[pkg]}")
                confidence += PACKAGE_CONFIDENCE_BOOST
        for rel in files:
            if (project_root / rel).exists():
                evidence.append(f"file:{rel}")
                confidence += FILE_CONFIDENCE_BOOST
        if not evidence:
            continue

        primary = deps.get(packages[0])
        signals.append(
            FrameworkSignal(
                name=name,
                version=_VERSION_PREFIX.sub("", primary, count=1) if primary else None,
                confidence=min(confidence, cap),
                evidence=evidence,
            )
        )

    return sorted(signals, key=lambda s: s.confidence, reverse=True)


def detect_ui_libraries(project_root: Path) -> list[UiLibrarySignal]:
    """Detect UI libraries, most confident first."""
    deps = _read_dependencies(project_root)
    if deps is None:
        return []

    signals: list[UiLibrarySignal] = []
    for name, (packages, enterprise, cap) in UI_LIBRARY_PATTERNS.items():
        evidence: list[str] = []
        confidence = 0.0
        has_enterprise = False
        for pkg in packages:
            if deps.get(pkg):
                evidence.append(f"package.json:{pkg}")
                confidence += UI_PACKAGE_CONFIDENCE_BOOST
        for pkg in enterprise:
            if deps.get(pkg):
                evidence.append(f"package.json:{pkg} (enterprise)")
                confidence += UI_ENTERPRISE_BOOST
                has_enterprise = True
        if evidence:
            signals.append(
                UiLibrarySignal(
                    name=name,
                    confidence=min(confidence, cap),
                    evidence=evidence,
                    has_enterprise=has_enterprise or None,
                )
            )

    return sorted(signals, key=lambda s: s.confidence, reverse=True)


# =============================================================================
# Selector analysis
# =============================================================================


def _walk_sources(root: Path, extensions: tuple[str, ...]) -> list[Path]:
    found: list[Path] = []

    def _walk(current: Path, depth: int) -> None:
        if depth > MAX_SCAN_DEPTH or len(found) > MAX_FILES_TO_SCAN:
            return
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError:
            return
        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir(follow_symlinks=False):
                if not entry.name.startswith(".") and entry.name not in EXCLUDED_DIRECTORIES:
                    _walk(Path(entry.path), depth + 1)
            elif entry.name.endswith(extensions):
                found.append(Path(entry.path))

    _walk(root, 0)
    return found


def detect_naming_convention(samples: list[str]) -> str:
    """Classify selector samples as kebab-case, camelCase, snake_case or mixed."""
    if not samples:
        return "kebab-case"
    kebab = sum(1 for s in samples if "-" in s)
    camel = sum(1 for s in samples if re.search(r"[a-z][A-Z]", s))
    snake = sum(1 for s in samples if "_" in s)
    top = max(kebab, camel, snake)
    if top == 0:
        return "kebab-case"
    winners = [name for name, count in (("kebab-case", kebab), ("camelCase", camel), ("snake_case", snake)) if count == top]
    return winners[0] if len(winners) == 1 else "mixed"


def analyze_selector_signals(project_root: Path) -> SelectorSignals:
    """Count selector attributes in ``src/`` and derive the dominant convention."""
    counts = dict.fromkeys(SELECTOR_PATTERNS, 0)
    samples: list[str] = []
    src = project_root / "src"
    files = _walk_sources(src, SELECTOR_EXTENSIONS) if src.is_dir() else []

    for path in files:
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        for attr, pattern in SELECTOR_PATTERNS.items():
            for match in pattern.finditer(content):
                counts[attr] += 1
                if len(samples) < MAX_SAMPLE_SELECTORS:
                    samples.append(match.group(1))

    total = sum(counts.values())
    coverage = {attr: (count / total if total else 0.0) for attr, count in counts.items()}
    primary = max(counts, key=lambda a: counts[a]) if total else "data-testid"
    component_count = sum(1 for f in files if f.suffix != ".html")

    return SelectorSignals(
        primary_attribute=primary,
        naming_convention=detect_naming_convention(samples),
        coverage=coverage,
        total_components_analyzed=component_count,
        sample_selectors=samples[:10],
    )


# =============================================================================
# Auth hints
# =============================================================================


def _auth_from_discovery_file(project_root: Path) -> AuthHints | None:
    path = project_root / ".artk" / "discovery.json"
    try:
        parsed: Any = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Ignoring unreadable discovery.json: %s", e)
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("auth"), dict):
        return None
    try:
        return AuthHints.model_validate({**parsed["auth"], "detected": True})
    except PydanticValidationError as e:
        logger.debug("Ignoring malformed auth block in discovery.json: %s", e)
        return None


def _scan_for_auth(src: Path) -> AuthHints:
    detected = False
    auth_type: str | None = None
    login_route: str | None = None

    for path in _walk_sources(src, SELECTOR_EXTENSIONS):
        if not _AUTH_FILE_PATTERN.search(path.name):
            continue
        detected = True
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        if auth_type is None:
            for kind, patterns in _AUTH_CODE_PATTERNS.items():
                if any(p.search(content) for p in patterns):
                    auth_type = kind
                    break
        if login_route is None:
            match = _LOGIN_ROUTE.search(content)
            if match:
                login_route = match.group(1)

    if not detected:
        return AuthHints()
    return AuthHints(detected=True, type=auth_type, login_route=login_route)


def extract_auth_hints(project_root: Path) -> AuthHints:
    """Auth hints from ``.artk/discovery.json``, falling back to a source scan."""
    hints = _auth_from_discovery_file(project_root)
    if hints is not None:
        return hints
    src = project_root / "src"
    if not src.is_dir():
        return AuthHints()
    return _scan_for_auth(src)


# =============================================================================
# Discovery
# =============================================================================


def run_discovery(project_root: str | Path) -> DiscoveryResult:
    """Run every detector and assemble the application profile.

    Framework detection failures are errors; the other detectors degrade
    to defaults with a warning.
    """
    root = Path(project_root)
    if not root.is_dir():
        return DiscoveryResult(
            success=False,
            errors=[f"Project root does not exist: {root.name}"],
        )

    errors: list[str] = []
    warnings: list[str] = []

    frameworks: list[FrameworkSignal] = []
    try:
        frameworks = detect_frameworks(root)
        if not frameworks:
            warnings.append("No frameworks detected")
    except (OSError, ValueError) as e:
        errors.append(f"Framework detection failed: {e}")

    ui_libraries: list[UiLibrarySignal] = []
    try:
        ui_libraries = detect_ui_libraries(root)
    except (OSError, ValueError) as e:
        warnings.append(f"UI library detection failed: {e}")

    try:
        selector_signals = analyze_selector_signals(root)
    except (OSError, ValueError) as e:
        warnings.append(f"Selector analysis failed: {e}")
        selector_signals = SelectorSignals()

    try:
        auth = extract_auth_hints(root)
    except (OSError, ValueError) as e:
        warnings.append(f"Auth hint extraction failed: {e}")
        auth = AuthHints()

    profile = DiscoveredProfile(
        generated_at=utc_now_iso(),
        project_root=str(root.resolve()),
        frameworks=frameworks,
        ui_libraries=ui_libraries,
        selector_signals=selector_signals,
        auth=auth,
    )
    return DiscoveryResult(success=not errors, profile=profile, errors=errors, warnings=warnings)


class ProjectDiscovery:
    """Default discovery collaborator; runs detection off the event loop."""

    async def discover(self, project_root: Path) -> DiscoveryResult:
        try:
            return await run_blocking(run_discovery, project_root)
        except OSError as e:
            raise DiscoveryError(f"Could not scan project: {e}") from e
