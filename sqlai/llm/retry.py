"""
Retry policy for provider calls.

Transient failures (rate limiting, server errors, timeouts, unreachable
provider) are retried with exponential backoff via tenacity. Client-side
failures such as 400/401 or an empty completion fail immediately.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from sqlai.config import LLMSettings
from sqlai.llm.base import LLMConnectionError, LLMProviderError, LLMTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Rate limiting plus transient server errors
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_retryable(exc: BaseException) -> bool:
    """Whether a failed call is worth another attempt."""
    if isinstance(exc, (LLMTimeoutError, LLMConnectionError)):
        return True
    if isinstance(exc, LLMProviderError):
        return exc.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (asyncio.TimeoutError, ConnectionError))


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempts and backoff schedule for a retried call.

    The n-th retry waits ``min(initial_delay * 2**(n-1) + U(0, jitter), max_delay)``
    seconds.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    jitter: float = 0.5
    retryable: Callable[[BaseException], bool] = is_retryable

    @classmethod
    def from_settings(cls, settings: LLMSettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_retries,
            initial_delay=settings.backoff_initial,
            max_delay=settings.backoff_max,
        )


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``func()`` under ``policy``.

    The last exception is re-raised unchanged once attempts run out or a
    non-retryable error occurs.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential_jitter(
            initial=policy.initial_delay,
            max=policy.max_delay,
            jitter=policy.jitter,
        ),
        retry=retry_if_exception(policy.retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )
    return await retrying(func)
