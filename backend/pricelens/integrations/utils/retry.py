"""Retry policy with exponential backoff for adapter operations."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.retry import retry_base

from pricelens.core.exceptions import AdapterError, UnknownError

logger = structlog.get_logger(__name__)

# Unknown failures get one retry before they surface
UNKNOWN_ERROR_MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff for one adapter.

    ``max_retries`` counts retries after the first attempt, so an operation
    runs at most ``max_retries + 1`` times. The wait before retry ``n``
    (0-based) is ``initial_delay * 2**n`` seconds, capped at ``max_delay``.
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")


class retry_if_retryable_adapter_error(retry_base):
    """Retry only adapter errors flagged retryable.

    ``UnknownError`` is retried once; anything that is not an
    ``AdapterError`` is never retried.
    """

    def __call__(self, retry_state: RetryCallState) -> bool:
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return False
        exc = retry_state.outcome.exception()
        if not isinstance(exc, AdapterError) or not exc.retryable:
            return False
        if isinstance(exc, UnknownError):
            return retry_state.attempt_number < UNKNOWN_ERROR_MAX_ATTEMPTS
        return True


def build_retrying(
    policy: RetryPolicy,
    *,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    before_sleep: Optional[Callable[[RetryCallState], None]] = None,
) -> AsyncRetrying:
    """Build a tenacity controller for one adapter operation.

    The last error is re-raised as-is once the budget is spent.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_exponential(multiplier=policy.initial_delay, exp_base=2, max=policy.max_delay),
        retry=retry_if_retryable_adapter_error(),
        sleep=sleep or asyncio.sleep,
        before_sleep=before_sleep,
        reraise=True,
    )
