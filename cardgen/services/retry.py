# ─────────────────────────────────────────────────────────────────────────────
# Bounded Retry — fixed-delay retry loop, independent of HTTP
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try, how long to wait, and which errors qualify."""

    max_attempts: int
    delay_seconds: float
    retry_on: Callable[[BaseException], bool]

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {self.delay_seconds}")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """Run ``operation`` until it succeeds or the policy gives up.

    Non-retryable errors and the error from the final attempt propagate
    unchanged. ``on_retry(attempt, exc)`` fires before each sleep.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= policy.max_attempts or not policy.retry_on(exc):
                raise
            logger.info(
                "retrying_after_delay",
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_seconds=policy.delay_seconds,
                error_type=type(exc).__name__,
            )
            if on_retry is not None:
                on_retry(attempt, exc)
            await sleep(policy.delay_seconds)
            attempt += 1
