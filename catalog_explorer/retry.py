"""
Exponential backoff for flaky calls, mainly S3 reads and writes.
"""

import functools
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

from catalog_explorer.exceptions import CatalogError

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnRetry = Callable[[Exception, int], None]


@dataclass(frozen=True)
class RetryConfig:
    """How many attempts to make, how long to wait, and which errors qualify."""
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: Tuple[float, float] = (0.5, 1.5)
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)
    non_retryable_exceptions: Tuple[Type[Exception], ...] = ()

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based), capped at max_delay before jitter."""
        delay = min(self.base_delay * self.exponential_base ** attempt, self.max_delay)
        if self.jitter:
            low, high = self.jitter_range
            delay *= random.uniform(low, high)
        return delay

    def is_retryable(self, exc: Exception) -> bool:
        # CatalogError subclasses declare their own retryability
        if isinstance(exc, self.non_retryable_exceptions):
            return False
        if isinstance(exc, CatalogError) and not exc.retryable:
            return False
        return isinstance(exc, self.retryable_exceptions)


def call_with_retry(
    func: Callable[..., T],
    *args,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[OnRetry] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs,
) -> T:
    """
    Call func(*args, **kwargs), retrying per `config`.

    The last exception is re-raised once attempts run out; errors that are
    not retryable are re-raised immediately.
    """
    config = config or RetryConfig()
    name = getattr(func, "__qualname__", repr(func))
    attempt = 0
    while True:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            attempt += 1
            if not config.is_retryable(e):
                logger.warning(f"{name} raised non-retryable {type(e).__name__}: {e}")
                raise
            if attempt >= config.max_attempts:
                logger.error(f"{name} failed after {attempt} attempts: {e}")
                raise

            delay = config.calculate_delay(attempt - 1)
            logger.warning(
                f"{name} attempt {attempt}/{config.max_attempts} failed: {e}. Retrying in {delay:.2f}s"
            )
            if on_retry:
                on_retry(e, attempt)
            sleep(delay)


def retry_with_backoff(
    config: Optional[RetryConfig] = None,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[OnRetry] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Decorator form of call_with_retry.

    Either pass a RetryConfig or the individual settings; `config` wins.

    Example:
        @retry_with_backoff(max_attempts=3, retryable_exceptions=(BotoCoreError,))
        def fetch_object(bucket, key):
            return s3.get_object(Bucket=bucket, Key=key)
    """
    config = config or RetryConfig(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        retryable_exceptions=retryable_exceptions,
    )

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return call_with_retry(
                func, *args, config=config, on_retry=on_retry, sleep=sleep, **kwargs
            )

        return wrapper

    return decorator
