"""Retry with exponential backoff for transient upstream failures.

Every upstream attempt can cost money, so retries are few and only cover
failures where the provider most likely did no work: 5xx answers and
connection-level errors. Timeouts are never retried; the provider may still
be generating.
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

import httpx

from briefgate.app.core.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class RetryPolicy:
    """How often and how patiently to retry an upstream call.

    Example:
        >>> policy = RetryPolicy(max_retries=2, base_delay=1.0)
        >>> policy.calculate_delay(attempt=1)
        2.0
    """

    max_retries: int = 1
    base_delay: float = 0.5
    max_delay: float = 5.0
    exponential_base: float = 2.0
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        httpx.HTTPStatusError,
        httpx.NetworkError,
    )

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (0-indexed), capped at ``max_delay``."""
        return min(self.base_delay * self.exponential_base**attempt, self.max_delay)

    def is_retryable(self, exception: Exception) -> bool:
        if isinstance(exception, httpx.TimeoutException):
            return False
        if isinstance(exception, httpx.HTTPStatusError):
            # 4xx means the request itself is wrong (or rejected); retrying won't help
            return exception.response.status_code >= 500
        return isinstance(exception, self.retryable_exceptions)


async def call_with_retry(
    policy: RetryPolicy,
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Await ``func(*args, **kwargs)``, retrying per ``policy``.

    The last exception is re-raised once retries are exhausted or when it is
    not retryable.
    """
    name = getattr(func, "__name__", repr(func))
    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not policy.is_retryable(e):
                raise
            if attempt >= policy.max_retries:
                logger.warning(
                    f"Giving up on {name} after {policy.max_retries} retries: "
                    f"{type(e).__name__}: {e}"
                )
                raise
            delay = policy.calculate_delay(attempt)
            attempt += 1
            logger.warning(
                f"Retry {attempt}/{policy.max_retries} for {name} after "
                f"{type(e).__name__}: {e} (waiting {delay:.2f}s)"
            )
            await asyncio.sleep(delay)


def with_retry(policy: Optional[RetryPolicy] = None) -> Callable[[F], F]:
    """Decorator form of ``call_with_retry``.

    Example:
        >>> @with_retry(RetryPolicy(max_retries=1))
        ... async def post(url, payload):
        ...     ...
    """
    retry_policy = policy or RetryPolicy()

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await call_with_retry(retry_policy, func, *args, **kwargs)

        return wrapper  # type: ignore

    return decorator
