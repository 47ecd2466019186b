"""Retry policy and a generic async retry helper."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def _retryable_by_flag(error: BaseException) -> bool:
    return bool(getattr(error, "retryable", False))


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to wait before retrying a failed operation.

    ``max_retries`` counts retries, so the operation runs at most
    ``max_retries + 1`` times. An error's ``retry_after`` attribute, when
    set, replaces the fixed delay for that attempt.
    """
    max_retries: int = 2
    delay_seconds: float = 2.0
    retryable: Callable[[BaseException], bool] = field(default=_retryable_by_flag)

    def delay_for(self, error: BaseException) -> float:
        hint = getattr(error, "retry_after", None)
        return float(hint) if hint is not None else self.delay_seconds


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds, retrying errors the policy allows."""
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if not policy.retryable(e) or attempt >= policy.max_retries:
                raise
            attempt += 1
            delay = policy.delay_for(e)
            logger.warning(
                "%s failed (%s). Retrying in %.1fs... (attempt %d/%d)",
                label, e, delay, attempt, policy.max_retries,
            )
            await sleep(delay)
