"""Retry for idempotent remote reads.

Transport failures (no answer, 429, 5xx) are retried with exponential
backoff; a Retry-After from the server replaces the computed delay.
Writes are never retried here: a sign-in or insert that timed out may
already have been applied.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from .exceptions import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Retry budget and backoff curve."""

    max_retries: int = 3
    backoff_base: float = 0.5  # seconds
    backoff_max: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_status_codes: tuple[int, ...] = (429, 500, 502, 503, 504)

    def delay_for(self, attempt: int, retry_after: float | None = None) -> float:
        """Seconds to wait before retry number ``attempt`` (0 based)."""
        if retry_after is None:
            retry_after = self.backoff_base * self.backoff_multiplier**attempt
        return min(retry_after, self.backoff_max)


def is_retryable(exc: Exception, config: RetryConfig) -> bool:
    """Transport failures without a status (network) or with a retryable status."""
    if not isinstance(exc, TransportError):
        return False
    return exc.status is None or exc.status in config.retryable_status_codes


async def retry_with_backoff(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    context_msg: str = "",
    **kwargs: Any,
) -> T:
    """Await ``fn(*args, **kwargs)``, retrying transient transport failures.

    Args:
        fn: Async callable to execute
        *args: Positional args for fn
        config: Retry configuration (uses defaults if None)
        context_msg: Extra context for log messages (e.g. profile id)
        **kwargs: Keyword args for fn

    Returns:
        Result of fn

    Raises:
        Exception: The first non-retryable error, or the last transport
            error once the budget is spent
    """
    cfg = config or RetryConfig()
    attempts = cfg.max_retries + 1
    ctx = f" [{context_msg}]" if context_msg else ""

    attempt = 0
    while True:
        try:
            result = await fn(*args, **kwargs)
        except Exception as exc:
            if not is_retryable(exc, cfg):
                raise
            if attempt + 1 >= attempts:
                logger.error(f"RETRY_EXHAUSTED: {attempts} attempts{ctx}: {exc}")
                raise
            delay = cfg.delay_for(attempt, getattr(exc, "retry_after", None))
            logger.warning(
                f"RETRYING: attempt={attempt + 1}/{attempts} "
                f"status={getattr(exc, 'status', None)} delay={delay:.1f}s{ctx}: {exc}"
            )
            await asyncio.sleep(delay)
            attempt += 1
            continue

        if attempt:
            logger.info(f"RETRY_RECOVERED: attempt {attempt + 1}/{attempts}{ctx}")
        return result
