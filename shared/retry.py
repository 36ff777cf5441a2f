"""
Retry with backoff for origin and store operations.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger

EXPONENTIAL = "exponential"
LINEAR = "linear"
FIXED = "fixed"


class RetryConfig:
    """Attempt ceiling and backoff policy.

    ``delay_for(n)`` is the pause after the n-th failed attempt: base x 2^(n-1)
    for exponential, base x n for linear, base for fixed; capped at
    ``max_delay`` and optionally jittered by up to 10%.
    """

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True,
                 backoff_strategy: str = EXPONENTIAL):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy

    @classmethod
    def linear(cls, max_attempts: int = 3, base_delay: float = 1.0) -> "RetryConfig":
        return cls(max_attempts=max_attempts, base_delay=base_delay, jitter=False, backoff_strategy=LINEAR)

    def delay_for(self, attempt: int) -> float:
        if self.backoff_strategy == EXPONENTIAL:
            delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        elif self.backoff_strategy == LINEAR:
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay

        delay = min(delay, self.max_delay)
        if self.jitter:
            delay += random.uniform(-0.1 * delay, 0.1 * delay)
        return max(0.0, delay)


class RetryError(Exception):
    """All attempts failed; ``last_exception`` is the final failure."""

    def __init__(self, message: str, last_exception: BaseException, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


async def call_with_retry(func: Callable[..., Awaitable[Any]],
                          *args,
                          exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                          config: Optional[RetryConfig] = None,
                          operation: Optional[str] = None,
                          **kwargs) -> Any:
    """Await ``func(*args, **kwargs)`` until it succeeds or attempts run out.

    Only ``exceptions`` are retried; anything else propagates on the spot.
    Exhaustion raises :class:`RetryError`.
    """
    config = config or RetryConfig()
    name = operation or getattr(func, "__name__", "operation")
    logger = get_logger("retry").bind(operation=name)

    attempt = 0
    while True:
        attempt += 1
        try:
            result = await func(*args, **kwargs)
        except exceptions as exc:
            if attempt >= config.max_attempts:
                logger.error("Retries exhausted", attempts=attempt, error=str(exc))
                raise RetryError(f"{name} failed after {attempt} attempts", exc, attempt) from exc

            delay = config.delay_for(attempt)
            logger.warning("Attempt failed, backing off", attempt=attempt, delay=delay, error=str(exc))
            await asyncio.sleep(delay)
            continue

        if attempt > 1:
            logger.info("Retry succeeded", attempt=attempt)
        return result
