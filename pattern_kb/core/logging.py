"""Log formatting for the pattern knowledge base.

Mining reads arbitrary project sources and config files, so a log line can
quote a credential that was sitting in the scanned code: an ``apiKey``
constant, a bearer header in a fetch call, a token in a ``.env`` file or a
database URL with a password in it. Formatters built here redact those
values before the record is emitted.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

REDACTED = "***MASKED***"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Ordered: header and URL forms run before the generic assignment form.
SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"Bearer\s+[A-Za-z0-9._~+/-]+=*", re.I), f"Bearer {REDACTED}"),
    (re.compile(r"(\b[a-z][a-z0-9+.-]*://[^:/@\s]+:)[^@\s]+@", re.I), rf"\1{REDACTED}@"),
    (re.compile(r"\b(?:ghp|gho|ghs|ghr|github_pat)_[A-Za-z0-9_]{20,255}"), "***GITHUB_TOKEN***"),
    (re.compile(r"\bAKIA[0-9A-Z]{16}\b"), "***AWS_KEY***"),
    (re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"), "***JWT***"),
    (
        re.compile(
            r"(api[_-]?key|client[_-]?secret|secret|access[_-]?token|auth[_-]?token|password|passwd)"
            r"[\"'`]?\s*[:=]\s*[\"'`]?[^\s\"'`,;)]+",
            re.I,
        ),
        rf"\1={REDACTED}",
    ),
]


def mask_sensitive_text(message: str) -> str:
    """Redact credentials that scanned sources may have leaked into a message."""
    for pattern, replacement in SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class SecureFormatter(logging.Formatter):
    """Plain text formatter that redacts credentials."""

    def format(self, record: logging.LogRecord) -> str:
        return mask_sensitive_text(super().format(record))


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Redaction runs on the message and traceback before encoding so the
    replacement text never breaks the JSON quoting.
    """

    def __init__(self, mask_sensitive: bool = True) -> None:
        super().__init__()
        self.mask_sensitive = mask_sensitive

    def _clean(self, text: str) -> str:
        return mask_sensitive_text(text) if self.mask_sensitive else text

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, str] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self._clean(record.getMessage()),
        }
        if record.exc_info:
            entry["exception"] = self._clean(self.formatException(record.exc_info))
        return json.dumps(entry)


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    mask_sensitive: bool = True,
) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
        json_format: Emit one JSON object per record.
        mask_sensitive: Redact credentials in every emitted line.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter(mask_sensitive=mask_sensitive)
    elif mask_sensitive:
        formatter = SecureFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    else:
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
