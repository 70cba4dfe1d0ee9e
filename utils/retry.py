import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

__all__ = ["RetryPolicy", "linear_backoff", "fixed_delay", "retry_async"]


def linear_backoff(base: float) -> Callable[[int], float]:
    """Delay of ``base * attempt`` seconds after the given failed attempt."""
    return lambda attempt: base * attempt


def fixed_delay(seconds: float) -> Callable[[int], float]:
    """Same delay after every failed attempt."""
    return lambda attempt: seconds


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try a call and how long to wait between tries.

    ``max_attempts`` counts every call including the first; ``None`` means
    unbounded. ``backoff`` maps the 1-based number of the failed attempt to a
    delay in seconds.
    """

    max_attempts: int | None
    backoff: Callable[[int], float]

    def allows(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt < self.max_attempts


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    description: str = "call",
    logger: logging.Logger | None = None,
) -> T:
    """Await ``func()`` under ``policy``, retrying on ``retry_on`` exceptions.

    Parameters
    ----------
    func:
        Zero-argument coroutine factory; called once per attempt.
    policy:
        Attempt cap and backoff function.
    retry_on:
        Exception types that trigger a retry. Anything else propagates at once.
    description:
        Short label used in log lines (e.g. ``"page 3"``).
    logger:
        Optional logger for diagnostics; if omitted a module-level logger is used.

    Raises
    ------
    Exception
        Re-raises the last encountered exception if all attempts fail.
    """
    logger = logger or logging.getLogger(__name__)
    attempt = 0
    while True:
        attempt += 1
        try:
            return await func()
        except retry_on as exc:
            limit = policy.max_attempts if policy.max_attempts is not None else "inf"
            if not policy.allows(attempt):
                logger.warning("%s failed after %s attempts: %s", description, attempt, exc)
                raise
            delay = policy.backoff(attempt)
            logger.warning(
                "%s failed (attempt %s/%s): %s; retrying in %.2fs",
                description,
                attempt,
                limit,
                exc,
                delay,
            )
            await asyncio.sleep(delay)
