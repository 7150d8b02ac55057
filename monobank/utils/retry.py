"""
Caller-side retry helper for monobank API calls
Exponential backoff with jitter; the client itself performs a single attempt
"""

import asyncio
import inspect
import random
from dataclasses import dataclass
from functools import wraps
from typing import Optional, Callable

from ..models.errors import APIError, MonobankError
from .logger import log


@dataclass
class RetryConfig:
    """Configuration for retry behavior"""

    max_attempts: int = 4
    base_delay: float = 0.5  # seconds
    max_delay: float = 30.0  # seconds
    exponential_base: float = 2.0
    jitter: bool = True


def is_retryable_exception(exception: Exception) -> bool:
    """
    Default classifier for retryable exceptions

    Args:
        exception: The exception to classify

    Returns:
        True for transport, rate-limited and server errors
    """
    if isinstance(exception, MonobankError):
        return exception.is_retryable
    return False


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay before the next attempt

    Args:
        attempt: Attempt that just failed (1-based)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    delay = min(delay, config.max_delay)

    if config.jitter:
        # Full jitter
        delay = delay * random.random()

    return delay


def server_requested_delay(exception: Exception) -> float:
    """Retry-After delay carried by a rate-limited APIError, 0 if none"""
    if isinstance(exception, APIError) and exception.retry_after is not None:
        return exception.retry_after.total_seconds()
    return 0.0


def retryable(
    config: Optional[RetryConfig] = None,
    classify: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Decorator adding retry logic to a coroutine function

    The last exception is re-raised unchanged once attempts are exhausted.

    Args:
        config: Retry configuration (uses defaults if None)
        classify: Function to determine if exception is retryable
        on_retry: Callback called before each retry attempt
    """
    if config is None:
        config = RetryConfig()

    if classify is None:
        classify = is_retryable_exception

    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"retryable expects a coroutine function, got {func!r}")

        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not classify(e):
                        raise

                    if attempt >= config.max_attempts:
                        log.error(
                            f"All retry attempts exhausted for {func.__name__}",
                            extra={
                                "event": "retry_failed",
                                "function": func.__name__,
                                "total_attempts": config.max_attempts,
                                "exception_type": type(e).__name__,
                            },
                        )
                        raise

                    delay = max(calculate_delay(attempt, config), server_requested_delay(e))

                    log.warning(
                        f"Retry attempt {attempt}/{config.max_attempts} for {func.__name__}",
                        extra={
                            "event": "retry_attempt",
                            "function": func.__name__,
                            "attempt": attempt,
                            "max_attempts": config.max_attempts,
                            "delay_seconds": delay,
                            "exception_type": type(e).__name__,
                            "exception_message": str(e),
                        },
                    )

                    if on_retry:
                        on_retry(attempt, e, delay)

                    if delay > 0:
                        await asyncio.sleep(delay)

        return wrapper

    return decorator
