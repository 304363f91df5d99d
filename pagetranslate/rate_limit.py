"""Token bucket that caps the outbound request rate."""
import asyncio
import logging
import time
from typing import Awaitable, Callable

from pagetranslate.config.constants import DEFAULT_CAPACITY, DEFAULT_REFILL_PER_SECOND

logger = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket rate limiter for dispatches on one event loop.

    Tokens are refilled lazily on every acquisition attempt, so no background
    timer is needed. All state is touched from the event loop only.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        refill_per_second: float = DEFAULT_REFILL_PER_SECOND,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        if refill_per_second <= 0:
            raise ValueError(f"refill_per_second must be positive, got {refill_per_second}")

        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self._clock = clock
        self._sleep = sleep
        self.tokens = float(capacity)
        self.last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_per_second)
        self.last_refill = now

    @property
    def available(self) -> float:
        """Current token count after a lazy refill."""
        self._refill()
        return self.tokens

    async def acquire(self) -> None:
        """Wait until a token is available and take it."""
        while True:
            self._refill()
            if self.tokens >= 1:
                self.tokens -= 1
                return

            # Another acquirer may take the refilled token while we sleep,
            # so the computation is redone after every wait.
            wait = (1 - self.tokens) / self.refill_per_second
            logger.debug("Rate limit reached, waiting %.2fs for a token", wait)
            await self._sleep(wait)
