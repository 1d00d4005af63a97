"""Shared utilities."""

from .retry import RetryConfig, RetryResult, retry_with_backoff

__all__ = ["RetryConfig", "RetryResult", "retry_with_backoff"]
