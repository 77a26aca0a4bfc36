"""Retry logic with pluggable backoff.

One retry policy serves every remote call in the package. The backoff is a
strategy object so that fixed, linear, exponential and server-directed
(Retry-After) waits share the same loop.

Example:
    >>> from printgen.resilience.retry import LinearBackoff, RetryConfig, async_retry_with_backoff
    >>> config = RetryConfig(max_attempts=3, backoff=LinearBackoff(step_seconds=1.0))
    >>> result = await async_retry_with_backoff(
    ...     client.render,
    ...     config,
    ...     url,
    ...     options,
    ... )
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

from printgen.core.exceptions import BaseError, ClientError

logger = logging.getLogger(__name__)


class BackoffStrategy(Protocol):
    def delay(self, attempt: int, exc: BaseException) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        ...


@dataclass
class LinearBackoff:
    """Wait `attempt * step_seconds`: 1s, 2s, 3s, ..."""

    step_seconds: float = 1.0

    def delay(self, attempt: int, exc: BaseException) -> float:
        return attempt * self.step_seconds


@dataclass
class ExponentialBackoff:
    """Exponential backoff with optional jitter.

    Attributes:
        initial_delay_seconds: Delay after the first failure
        max_delay_seconds: Maximum delay between retries
        exponential_base: Base for exponential backoff (delay *= base ** (attempt - 1))
        jitter: Whether to add random jitter to delays
    """

    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True

    def delay(self, attempt: int, exc: BaseException) -> float:
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** (attempt - 1)),
            self.max_delay_seconds,
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())  # Random between 50% and 150%
        return delay


@dataclass
class RetryAfterBackoff:
    """Honour a server-provided Retry-After, otherwise defer to `fallback`."""

    fallback: BackoffStrategy = field(default_factory=LinearBackoff)
    max_delay_seconds: float = 60.0

    def delay(self, attempt: int, exc: BaseException) -> float:
        retry_after = getattr(exc, "retry_after", None)
        if retry_after is not None:
            return min(float(retry_after), self.max_delay_seconds)
        return self.fallback.delay(attempt, exc)


def build_backoff(strategy: str, step_seconds: float = 1.0) -> BackoffStrategy:
    """Build a backoff strategy from its configured name."""
    name = strategy.strip().lower()
    if name == "linear":
        return LinearBackoff(step_seconds=step_seconds)
    if name == "exponential":
        return ExponentialBackoff(initial_delay_seconds=step_seconds)
    if name in ("retry-after", "retry_after"):
        return RetryAfterBackoff(fallback=LinearBackoff(step_seconds=step_seconds))
    raise ValueError(f"Unknown backoff strategy: {strategy}")


def is_retryable(exc: BaseException) -> bool:
    """Everything is retried except errors that mark the input as bad."""
    if isinstance(exc, ClientError):
        return False
    if isinstance(exc, BaseError):
        return exc.retryable
    return isinstance(exc, Exception)


@dataclass
class RetryConfig:
    """Configuration for retry logic.

    Attributes:
        max_attempts: Maximum number of attempts (including initial)
        backoff: Strategy computing the wait after each failed attempt
        should_retry: Predicate deciding whether an exception is transient
    """

    max_attempts: int = 3
    backoff: BackoffStrategy = field(default_factory=LinearBackoff)
    should_retry: Callable[[BaseException], bool] = is_retryable


async def async_retry_with_backoff(
    func: Callable[..., Awaitable[Any]],
    config: RetryConfig,
    *args,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    **kwargs,
) -> Any:
    """Await `func` until it succeeds, a non-retryable error occurs, or
    attempts run out.

    Args:
        func: Coroutine function to execute
        config: Retry configuration
        *args: Positional arguments for func
        on_retry: Called with (attempt, exception, delay) before each wait
        **kwargs: Keyword arguments for func

    Returns:
        Result from successful function call

    Raises:
        The last exception if all attempts fail, or the first
        non-retryable exception immediately.
    """
    for attempt in range(1, config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not config.should_retry(e):
                raise

            if attempt == config.max_attempts:
                logger.error(
                    f"All {config.max_attempts} retry attempts failed: {type(e).__name__}: {e}",
                    extra={"attempt": attempt, "max_attempts": config.max_attempts},
                )
                raise

            delay = config.backoff.delay(attempt, e)
            logger.warning(
                f"Attempt {attempt}/{config.max_attempts} failed: {type(e).__name__}: {e}. "
                f"Retrying in {delay:.2f}s...",
                extra={
                    "attempt": attempt,
                    "max_attempts": config.max_attempts,
                    "delay_seconds": delay,
                    "exception_type": type(e).__name__,
                },
            )
            if on_retry is not None:
                on_retry(attempt, e, delay)

            await asyncio.sleep(delay)

    raise ValueError("max_attempts must be at least 1")
