"""Shared utility functions for the pattern knowledge base."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from functools import partial
from typing import Any, TypeVar

T = TypeVar("T")


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware).

    Returns:
        A timezone-aware datetime object representing the current time in UTC.

    Example:
        >>> from pattern_kb.core.utils import utc_now
        >>> now = utc_now()
        >>> now.tzinfo is not None
        True
    """
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a ``Z`` suffix."""
    return utc_now().strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


async def run_blocking(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking call in the default executor.

    Filesystem calls go through here so they never stall the event loop.

    Args:
        func: The synchronous function to run.
        *args: Arguments to pass to the function.

    Returns:
        The result of the function call.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args))
