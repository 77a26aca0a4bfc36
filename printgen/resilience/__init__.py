"""Resilience utilities for remote render, merge and storage calls."""

from printgen.resilience.retry import (
    BackoffStrategy,
    ExponentialBackoff,
    LinearBackoff,
    RetryAfterBackoff,
    RetryConfig,
    async_retry_with_backoff,
    build_backoff,
    is_retryable,
)

__all__ = [
    "BackoffStrategy",
    "ExponentialBackoff",
    "LinearBackoff",
    "RetryAfterBackoff",
    "RetryConfig",
    "async_retry_with_backoff",
    "build_backoff",
    "is_retryable",
]
