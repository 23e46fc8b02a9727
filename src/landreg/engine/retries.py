"""
Read-after-write reconciliation.

Registry reads served by the RPC node can lag a mutation that just went
through. ``mutate_and_confirm`` runs the mutation once and then polls a
verification predicate until the expected state is observable, or fails with
``ConvergenceError``.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .exceptions import ConvergenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_DELAY_SECONDS = 1.0


class ConsistencyRetrier:
    """
    Bounded verification poller.

    Args:
        max_attempts: Number of verification polls (>= 1)
        delay: Seconds slept between two polls
        backoff: Multiplier applied to the delay after each poll

    Raises:
        ValueError: If max_attempts < 1 or delay/backoff are negative.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay: float = DEFAULT_DELAY_SECONDS,
        backoff: float = 1.0,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        if backoff < 1.0:
            raise ValueError(f"backoff must be >= 1.0, got {backoff}")
        self.max_attempts = max_attempts
        self.delay = delay
        self.backoff = backoff

    async def run(
        self,
        mutate: Callable[[], Awaitable[T]],
        verify: Callable[[], Awaitable[bool]],
        description: str = "expected state",
    ) -> T:
        """
        Run ``mutate`` once, then poll ``verify`` until it returns True.

        Mutation errors propagate and are never retried. Errors raised by
        ``verify`` propagate as well.

        Returns:
            The mutation result.

        Raises:
            ConvergenceError: If ``verify`` never returned True.
        """
        result = await mutate()

        delay = self.delay
        for attempt in range(1, self.max_attempts + 1):
            if await verify():
                logger.debug("Confirmed %s after %d check(s)", description, attempt)
                return result
            if attempt < self.max_attempts:
                logger.debug(
                    "%s not observed yet (check %d/%d), retrying in %.2fs",
                    description, attempt, self.max_attempts, delay,
                )
                await asyncio.sleep(delay)
                delay *= self.backoff

        logger.warning("Gave up waiting for %s after %d checks", description, self.max_attempts)
        raise ConvergenceError(description, self.max_attempts)


async def mutate_and_confirm(
    mutate: Callable[[], Awaitable[T]],
    verify: Callable[[], Awaitable[bool]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    delay: float = DEFAULT_DELAY_SECONDS,
    description: str = "expected state",
    backoff: float = 1.0,
    retrier: Optional[ConsistencyRetrier] = None,
) -> Any:
    """Functional form of :meth:`ConsistencyRetrier.run`."""
    retrier = retrier or ConsistencyRetrier(max_attempts=max_attempts, delay=delay, backoff=backoff)
    return await retrier.run(mutate, verify, description)
