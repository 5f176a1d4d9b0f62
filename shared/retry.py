"""
Bounded retries for idempotent backend calls.

Only operations that are safe to repeat may be retried. In the edge
gateway that is the decision-cache delete that follows an admin mutation.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Optional, Tuple, Type

from shared.logging import get_logger

logger = get_logger("edge.retry")


@dataclass(frozen=True)
class RetryConfig:
    """Attempt budget and exponential backoff shape.

    ``jitter`` is the fraction of each delay added or removed at random.
    """
    max_attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0
    multiplier: float = 2.0
    jitter: float = 0.1

    def delays(self) -> Iterator[float]:
        """Sleep durations before attempts 2..max_attempts."""
        for attempt in range(1, self.max_attempts):
            delay = min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)
            if self.jitter:
                delay += random.uniform(-delay * self.jitter, delay * self.jitter)
            yield max(0.0, delay)


class RetryError(Exception):
    """All attempts failed; ``last_exception`` is the final cause."""

    def __init__(self, operation: str, attempts: int, last_exception: BaseException):
        super().__init__(f"{operation} failed after {attempts} attempts")
        self.operation = operation
        self.attempts = attempts
        self.last_exception = last_exception


async def call_with_retry(
    operation: Callable[..., Awaitable[Any]],
    *args: Any,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    config: Optional[RetryConfig] = None,
    **kwargs: Any,
) -> Any:
    """Await ``operation(*args, **kwargs)``, retrying on ``retry_on``.

    Other exceptions propagate immediately. Raises RetryError once the
    attempt budget is spent.
    """
    config = config or RetryConfig()
    name = getattr(operation, "__qualname__", None) or getattr(operation, "__name__", repr(operation))
    delays = config.delays()
    attempt = 0

    while True:
        attempt += 1
        try:
            result = await operation(*args, **kwargs)
        except retry_on as e:
            delay = next(delays, None)
            if delay is None:
                logger.error("Retries exhausted", operation=name, attempts=attempt, error=str(e))
                raise RetryError(name, attempt, e) from e

            logger.warning(
                "Attempt failed, retrying",
                operation=name,
                attempt=attempt,
                delay=round(delay, 3),
                error=str(e)
            )
            await asyncio.sleep(delay)
            continue

        if attempt > 1:
            logger.info("Retry succeeded", operation=name, attempt=attempt)
        return result
