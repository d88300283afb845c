"""Configuration system for the pattern knowledge base."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pattern knowledge base configuration."""

    # Storage
    output_dir: Path = Field(
        default=Path("./.artk/llkb"),
        description="Directory that receives discovered-patterns.json and discovered-profile.json",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_json: bool = Field(
        default=False,
        description="Emit structured JSON log lines instead of plain text",
    )

    # Quality controls
    confidence_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum confidence a pattern needs to survive quality controls",
    )
    max_patterns: int = Field(
        default=2000,
        ge=1,
        description="Hard safety cap on the number of curated patterns",
    )
    prune_max_age_days: int = Field(
        default=90,
        ge=1,
        description="Attempted patterns unused for longer than this are pruned",
    )

    # Scanning
    scan_max_depth: int = Field(
        default=15,
        ge=1,
        le=20,
        description="Maximum directory recursion depth while scanning sources",
    )
    scan_max_files: int = Field(
        default=3000,
        ge=1,
        le=5000,
        description="Maximum files collected per scan",
    )

    # Content cache
    cache_max_files: int = Field(
        default=5000,
        ge=1,
        description="Maximum number of files held by the content cache",
    )
    cache_max_memory_bytes: int = Field(
        default=100 * 1024 * 1024,
        ge=1024,
        description="Maximum estimated memory used by cached file contents",
    )

    # Locking
    lock_max_wait_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Maximum time to wait for a knowledge-base file lock",
    )
    lock_retry_interval_seconds: float = Field(
        default=0.05,
        gt=0.0,
        description="Poll interval between lock acquisition attempts",
    )
    lock_stale_after_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Locks older than this are treated as abandoned",
    )
    lock_backend: str = Field(
        default="marker",
        pattern="^(marker|native|memory)$",
        description="Lock implementation: marker file, OS-level filelock, or in-process",
    )

    model_config = {
        "env_prefix": "PATTERN_KB_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


# Settings singleton with dependency injection support
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the settings instance (lazy-loaded singleton).

    Returns:
        The Settings instance.

    Example:
        from pattern_kb.config import get_settings
        settings = get_settings()
        print(settings.output_dir)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def override_settings(new_settings: Settings) -> None:
    """Override the settings instance (for testing).

    Args:
        new_settings: The new Settings instance to use.
    """
    global _settings
    _settings = new_settings


def reset_settings() -> None:
    """Reset settings to None (forces reload on next get_settings call)."""
    global _settings
    _settings = None
