"""Tenacity retry controller for outbound DrsHub calls.

Only responses whose status is listed in :attr:`RetryPolicy.retry_statuses`
(500-510 and 429 by default) are retried. Everything else, including other
non-2xx statuses, surfaces immediately. When attempts run out the last
``ProviderHTTPError`` is re-raised unchanged so callers keep its status.

Usage:
    retrying = build_async_retrying(settings.retry)
    async for attempt in retrying:
        with attempt:
            response = await client.get(url)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from DrsHub.config.models import RetryPolicy
from DrsHub.errors import ProviderHTTPError

LOGGER = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


def is_retryable_status(status: int, policy: RetryPolicy) -> bool:
    """Return ``True`` when ``status`` should be retried under ``policy``."""
    return status in policy.retry_statuses


def _retry_on_status(policy: RetryPolicy) -> Callable[[BaseException], bool]:
    def _predicate(exc: BaseException) -> bool:
        return isinstance(exc, ProviderHTTPError) and is_retryable_status(exc.status, policy)

    return _predicate


def _log_before_sleep(retry_state: RetryCallState) -> None:
    """Log the failed attempt number and the delay before the next one."""
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    status = getattr(exc, "status", None)
    url = getattr(exc, "url", None)
    LOGGER.warning(
        f"Attempt {retry_state.attempt_number} for {url} failed with status {status}; "
        f"retrying in {delay:.2f}s"
    )


def build_async_retrying(
    policy: RetryPolicy,
    *,
    sleep: Optional[SleepFn] = None,
) -> AsyncRetrying:
    """Create an ``AsyncRetrying`` controller for ``policy``.

    Args:
        policy: Attempt cap, backoff and retryable statuses
        sleep: Coroutine used to wait between attempts (``asyncio.sleep`` by default)

    Returns:
        Configured AsyncRetrying instance; iterate it fresh for every call
    """
    return AsyncRetrying(
        retry=retry_if_exception(_retry_on_status(policy)),
        wait=wait_exponential(
            multiplier=policy.initial_delay_s,
            exp_base=policy.multiplier,
            min=0,
        ),
        stop=stop_after_attempt(policy.max_attempts),
        before_sleep=_log_before_sleep,
        sleep=sleep or asyncio.sleep,
        reraise=True,
    )


__all__ = ["build_async_retrying", "is_retryable_status"]
