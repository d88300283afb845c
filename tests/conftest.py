"""Pytest fixtures for pattern knowledge base tests."""

from __future__ import annotations

import json
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from pattern_kb.config import Settings, override_settings, reset_settings
from pattern_kb.core.models import DiscoveredPattern, DiscoveredProfile, FrameworkSignal, UiLibrarySignal
from pattern_kb.core.utils import utc_now_iso

# ---------------------------------------------------------------------------
# Basic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def temp_storage() -> Generator[Path, None, None]:
    """Provide temporary storage directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_storage: Path) -> Generator[Settings, None, None]:
    """Provide test settings with temp output directory."""
    settings = Settings(
        output_dir=temp_storage / "llkb",
        log_level="DEBUG",
        lock_max_wait_seconds=2.0,
        lock_retry_interval_seconds=0.01,
    )
    override_settings(settings)
    yield settings
    reset_settings()


# ---------------------------------------------------------------------------
# Pattern helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_pattern() -> Callable[..., DiscoveredPattern]:
    """Factory for DiscoveredPattern with sensible defaults."""

    def _make(text: str = "click save button", **overrides: Any) -> DiscoveredPattern:
        fields: dict[str, Any] = {
            "normalized_text": text.lower(),
            "original_text": text,
            "mapped_primitive": "click",
            "confidence": 0.7,
        }
        fields.update(overrides)
        return DiscoveredPattern(**fields)

    return _make


@pytest.fixture
def sample_profile() -> DiscoveredProfile:
    """A React + MUI profile."""
    return DiscoveredProfile(
        generated_at=utc_now_iso(),
        project_root="/home/dev/projects/shop-frontend",
        frameworks=[FrameworkSignal(name="react", version="18.2.0", confidence=0.9)],
        ui_libraries=[UiLibrarySignal(name="mui", confidence=0.5)],
    )


# ---------------------------------------------------------------------------
# Sample project
# ---------------------------------------------------------------------------

SAMPLE_FILES: dict[str, str] = {
    "src/App.tsx": """
import { Routes, Route } from 'react-router-dom';

export default function App() {
  return (
    <Routes>
      <Route path="/dashboard" element={<Dashboard />} />
      <Route path="/users/:id" element={<UserDetail />} />
    </Routes>
  );
}
""",
    "src/routes.ts": """
export const routes = [
  { path: '/settings' },
  { path: '*' },
];
""",
    "src/types/invoice.ts": """
export interface Invoice {
  id: string;
  total: number;
}
""",
    "src/api/users.ts": """
export async function loadUsers() {
  return fetch('/api/users');
}
""",
    "src/components/UserForm.tsx": """
import { z } from 'zod';

const schema = z.object({
  email: z.string(),
  firstName: z.string(),
  age: z.number(),
});

export function UserForm() {
  const { t } = useTranslation();
  return (
    <form>
      <button type="submit">{t('common.save')}</button>
    </form>
  );
}
""",
    "src/components/OrdersTable.tsx": """
const columns = [
  { field: 'status' },
  { field: 'amount' },
];

export function OrdersTable() {
  return <DataGrid columns={columns} />;
}
""",
    "src/components/DeleteUserDialog.tsx": """
export function DeleteUserDialog({ open, onClose }) {
  return (
    <Dialog open={open} onClose={onClose}>
      <DialogTitle>Delete User</DialogTitle>
    </Dialog>
  );
}
""",
    "src/components/Checkout.tsx": """
export function Checkout() {
  analytics.track('checkout_completed');
  if (isFeatureEnabled('darkMode')) {
    return null;
  }
  return <div data-testid="checkout-root" />;
}
""",
}


def write_project(root: Path, files: dict[str, str], dependencies: dict[str, str] | None = None) -> Path:
    """Write a project tree with a package.json under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    package = {"name": "sample-app", "dependencies": dependencies or {}}
    (root / "package.json").write_text(json.dumps(package), encoding="utf-8")
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def project_factory(temp_storage: Path) -> Callable[..., Path]:
    """Factory writing a named project under the temp directory."""

    def _make(name: str, files: dict[str, str], dependencies: dict[str, str] | None = None) -> Path:
        return write_project(temp_storage / name, files, dependencies)

    return _make


@pytest.fixture
def sample_project(temp_storage: Path) -> Path:
    """A small React + MUI project exercising every miner."""
    return write_project(
        temp_storage / "shop-frontend",
        SAMPLE_FILES,
        {"react": "^18.2.0", "react-dom": "^18.2.0", "@mui/material": "^5.14.0"},
    )
