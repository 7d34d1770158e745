"""Tenacity retry wrapper driven by RetryConfig.

Connectors never retry on their own; the scheduler wraps whole calls
(a discovery pass, an extraction batch) with this decorator.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import RetryConfig
from .errors import ServiceInterruption

logger = structlog.get_logger()


def _log_before_sleep(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "retrying_after_interruption",
        attempt=state.attempt_number,
        wait_seconds=state.next_action.sleep if state.next_action else None,
        error=str(exc),
    )


def with_retry(
    config: RetryConfig,
    *,
    retryable_exceptions: tuple[type[BaseException], ...] = (ServiceInterruption,),
) -> Callable:
    """Return a tenacity retry decorator configured from *config*.

    Only transient failures are retried by default; repository errors and
    cancellations propagate on the first attempt.

    Usage::

        @with_retry(config.retry)
        def discover() -> list[str]: ...
    """
    return retry(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential(
            multiplier=config.multiplier,
            min=config.initial_wait_seconds,
            max=config.max_wait_seconds,
        ),
        retry=retry_if_exception_type(retryable_exceptions),
        before_sleep=_log_before_sleep,
        reraise=True,
    )
