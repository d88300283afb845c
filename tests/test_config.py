"""Tests for configuration system."""

from pathlib import Path

import pytest

from pattern_kb.config import (
    Settings,
    get_settings,
    override_settings,
    reset_settings,
)


class TestSettings:
    """Tests for Settings class."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        s = Settings()
        assert s.output_dir == Path("./.artk/llkb")
        assert s.confidence_threshold == 0.7
        assert s.max_patterns == 2000
        assert s.prune_max_age_days == 90
        assert s.scan_max_depth == 15
        assert s.scan_max_files == 3000
        assert s.lock_max_wait_seconds == 5.0
        assert s.lock_backend == "marker"
        assert s.log_level == "INFO"

    def test_custom_values(self) -> None:
        """Test custom configuration values."""
        s = Settings(output_dir="/custom/kb", confidence_threshold=0.8, lock_backend="native")
        assert s.output_dir == Path("/custom/kb")
        assert s.confidence_threshold == 0.8
        assert s.lock_backend == "native"

    def test_threshold_bounds(self) -> None:
        """Test confidence threshold bounds."""
        assert Settings(confidence_threshold=0.0).confidence_threshold == 0.0
        assert Settings(confidence_threshold=1.0).confidence_threshold == 1.0

        with pytest.raises(ValueError):
            Settings(confidence_threshold=-0.1)

        with pytest.raises(ValueError):
            Settings(confidence_threshold=1.1)

    def test_scan_limits(self) -> None:
        """Scan depth and file limits are bounded."""
        with pytest.raises(ValueError):
            Settings(scan_max_depth=21)

        with pytest.raises(ValueError):
            Settings(scan_max_files=5001)

    def test_unknown_lock_backend(self) -> None:
        """Only known lock backends are accepted."""
        with pytest.raises(ValueError):
            Settings(lock_backend="redis")

    def test_environment_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Values are read from PATTERN_KB_ environment variables."""
        monkeypatch.setenv("PATTERN_KB_MAX_PATTERNS", "500")
        monkeypatch.setenv("PATTERN_KB_LOCK_BACKEND", "memory")

        s = Settings()

        assert s.max_patterns == 500
        assert s.lock_backend == "memory"


class TestSettingsInjection:
    """Tests for settings dependency injection."""

    def test_get_settings_returns_singleton(self) -> None:
        """Test that get_settings returns same instance."""
        reset_settings()
        s1 = get_settings()
        s2 = get_settings()
        assert s1 is s2

    def test_override_settings(self) -> None:
        """Test settings override for testing."""
        reset_settings()
        original = get_settings()

        custom = Settings(output_dir="/override/kb")
        override_settings(custom)

        current = get_settings()
        assert current.output_dir == Path("/override/kb")
        assert current is custom
        assert current is not original

        reset_settings()

    def test_reset_settings(self) -> None:
        """Test settings reset."""
        reset_settings()
        s1 = get_settings()

        reset_settings()
        s2 = get_settings()

        assert s1 is not s2

