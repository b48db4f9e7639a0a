"""
Retry with exponential backoff for use cases that lose a concurrency race.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional

from ..config import get_settings
from ..utils.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 1.0
    exponential_base: float = 2.0
    jitter: bool = True

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        settings = get_settings()
        return cls(
            max_attempts=settings.max_retry_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            # Spread out competing retries
            delay = delay * (0.5 + random.random() * 0.5)
        return delay


async def retry_async(
    func: Callable,
    config: RetryConfig,
    retryable_exceptions: tuple = (ConcurrencyError,),
    *args,
    **kwargs
) -> Any:
    """
    Retry an async function with exponential backoff.

    Args:
        func: The async function to retry
        config: Retry configuration
        retryable_exceptions: Exceptions that should trigger retries; anything
            else propagates on the first occurrence
        *args, **kwargs: Arguments to pass to the function

    Returns:
        The result of the function call

    Raises:
        The last exception if all retries are exhausted
    """
    last_exception = None

    for attempt in range(config.max_attempts):
        try:
            result = await func(*args, **kwargs)
            if attempt > 0:
                logger.info("%s succeeded on attempt %d", func.__name__, attempt + 1)
            return result

        except retryable_exceptions as e:
            last_exception = e

            if attempt == config.max_attempts - 1:
                break

            delay = config.delay_for(attempt)
            logger.warning(
                "Attempt %d failed for %s: %s. Retrying in %.2fs...",
                attempt + 1, func.__name__, e, delay
            )
            await asyncio.sleep(delay)

    logger.error("All %d attempts failed for %s", config.max_attempts, func.__name__)
    raise last_exception


def retry_on_concurrency_error(
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    jitter: bool = True
):
    """Decorator for retrying operations that may fail due to concurrency issues.

    Unset parameters fall back to the ``max_retry_attempts``,
    ``retry_base_delay`` and ``retry_max_delay`` settings, read on each call.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            defaults = RetryConfig.from_settings()
            config = RetryConfig(
                max_attempts=max_attempts or defaults.max_attempts,
                base_delay=defaults.base_delay if base_delay is None else base_delay,
                max_delay=defaults.max_delay if max_delay is None else max_delay,
                jitter=jitter,
            )
            return await retry_async(func, config, (ConcurrencyError,), *args, **kwargs)
        return wrapper

    return decorator
