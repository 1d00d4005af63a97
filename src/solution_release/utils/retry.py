"""
Retry logic with exponential backoff for filesystem operations.

Export tools and antivirus scanners briefly hold locks on freshly written
files; reads of such files are retried before the run gives up.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type


logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including first try)
        initial_delay_ms: Initial delay in milliseconds
        max_delay_ms: Maximum delay in milliseconds
        backoff_multiplier: Multiplier for exponential backoff
        jitter: Whether to add random jitter to delay
    """
    max_attempts: int = 2
    initial_delay_ms: float = 200.0
    max_delay_ms: float = 2000.0
    backoff_multiplier: float = 2.0
    jitter: bool = True


@dataclass
class RetryResult:
    """
    Result of a retry operation.

    Attributes:
        success: Whether the operation succeeded
        result: The result value if successful
        attempts: Number of attempts made
        error: The last error if failed
    """
    success: bool
    result: Any = None
    attempts: int = 0
    error: Optional[BaseException] = None


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay for a given attempt with exponential backoff.

    Args:
        attempt: Attempt number (0-based)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    delay_ms = min(
        config.initial_delay_ms * (config.backoff_multiplier ** attempt),
        config.max_delay_ms,
    )

    # ±25% jitter
    if config.jitter:
        delay_ms *= 0.75 + (random.random() * 0.5)

    return delay_ms / 1000.0


def retry_with_backoff(
    operation: Callable[[], Any],
    config: RetryConfig,
    retry_on: Tuple[Type[BaseException], ...] = (OSError,),
    operation_name: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> RetryResult:
    """
    Execute an operation with retry and exponential backoff.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates to the caller unchanged.

    Args:
        operation: Callable to execute (takes no arguments)
        config: Retry configuration
        retry_on: Exception types that count as transient
        operation_name: Name for logging
        sleep: Sleep function (injectable for tests)

    Returns:
        RetryResult with success/failure info

    Example:
        >>> result = retry_with_backoff(lambda: path.read_bytes(), RetryConfig())
        >>> if not result.success:
        ...     raise result.error
    """
    last_error: Optional[BaseException] = None

    for attempt in range(config.max_attempts):
        try:
            result = operation()
        except retry_on as e:
            last_error = e
            logger.warning(
                "%s failed on attempt %d/%d: %s",
                operation_name, attempt + 1, config.max_attempts, e,
            )
            if attempt < config.max_attempts - 1:
                delay = calculate_delay(attempt, config)
                logger.debug("Backing off for %.3fs before retry", delay)
                sleep(delay)
            continue

        if attempt > 0:
            logger.info("%s succeeded after %d attempts", operation_name, attempt + 1)
        return RetryResult(
            success=True,
            result=result,
            attempts=attempt + 1,
        )

    logger.error("%s exhausted all %d attempts", operation_name, config.max_attempts)
    return RetryResult(
        success=False,
        attempts=config.max_attempts,
        error=last_error,
    )
