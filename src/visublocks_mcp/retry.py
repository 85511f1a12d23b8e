"""Exponential backoff for transient generation-backend failures."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .config import get_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_MARKERS: tuple[str, ...] = (
    "429",
    "quota",
    "resource_exhausted",
    "timed out",
    "timeout",
    "502",
    "503",
    "unavailable",
    "connection reset",
)


def is_transient(exc: BaseException) -> bool:
    """True when *exc* looks like a rate limit, timeout or upstream outage."""
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in TRANSIENT_MARKERS)


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Delay before retry number *attempt* (0-based): ``base * 2**attempt`` plus jitter, capped."""
    return min(base * (2 ** attempt) + random.random(), cap)


async def with_retry(call: Callable[[], Awaitable[T]], *, label: str = "gemini") -> T:
    """Await ``call()`` until it succeeds, retrying transient failures.

    *call* must build a fresh awaitable on every invocation. Attempt count and
    delays come from :class:`~visublocks_mcp.config.ServerConfig`. Permanent
    errors and the final transient error propagate unchanged.
    """
    cfg = get_config()
    attempts = cfg.retry_max_attempts
    for attempt in range(attempts):
        try:
            return await call()
        except Exception as exc:
            if attempt + 1 >= attempts or not is_transient(exc):
                raise
            delay = backoff_delay(attempt, cfg.retry_base_delay, cfg.retry_max_delay)
            logger.warning("%s call failed (%d/%d), retrying in %.1fs: %s", label, attempt + 1, attempts, delay, exc)
            await asyncio.sleep(delay)
    raise RuntimeError("with_retry needs at least one attempt")
