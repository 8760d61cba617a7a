"""
utils/retry.py — Exponential-backoff retry decorator for async HTTP calls.

Uses tenacity under the hood. Logs each attempt with structlog so failures
are observable without crashing the pipeline. Backoff sleeps are
asyncio sleeps, so a cancelled task stops waiting immediately.

Usage:
    from lmiadata_pipeline.utils.retry import with_retry

    @with_retry(max_attempts=3, base_delay=1.0, backoff_factor=1.5)
    async def fetch_data(url: str) -> bytes:
        async with httpx.AsyncClient() as client:
            r = await client.get(url)
            r.raise_for_status()
            return r.content

    # Settings-driven policies are applied at call time:
    fetch = with_retry(max_attempts=config.max_attempts)(self._fetch_once)
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> Callable[[F], F]:
    """
    Decorator that retries an async function with exponential backoff.

    Delays: base_delay * backoff_factor^(attempt-1), capped at max_delay.
    Default: 1 s, 2 s, 4 s.

    Args:
        max_attempts:   Total attempts before raising.
        base_delay:     Initial delay in seconds.
        max_delay:      Maximum delay cap in seconds.
        backoff_factor: Multiplier applied to the delay after each failure.
        retry_on:       Exception type(s) that trigger a retry. Anything
                        else propagates on the first failure.

    Returns:
        Decorated async function. The last exception is re-raised once
        attempts are exhausted.
    """

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt_log = log.bind(function=fn.__qualname__)
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(max_attempts),
                    wait=wait_exponential(
                        multiplier=base_delay, exp_base=backoff_factor, max=max_delay
                    ),
                    retry=retry_if_exception_type(retry_on),
                    reraise=True,
                ):
                    with attempt:
                        attempt_num = attempt.retry_state.attempt_number
                        if attempt_num > 1:
                            attempt_log.warning(
                                "retry_attempt",
                                attempt=attempt_num,
                                max_attempts=max_attempts,
                            )
                        return await fn(*args, **kwargs)
            except RetryError as exc:
                attempt_log.error(
                    "retry_exhausted",
                    max_attempts=max_attempts,
                    error=str(exc),
                )
                raise
            except Exception as exc:
                attempt_log.warning("call_failed", error=str(exc))
                raise

        return wrapper  # type: ignore[return-value]

    return decorator
