"""Token bucket rate limiting for endpoint dispatch."""

import asyncio
import time
from typing import Callable, Dict, Sequence

from ..models.tree import Endpoint


class TokenBucket:
    """Async token bucket whose capacity equals its refill rate.

    Callers are served in arrival order: the lock is held while a caller
    waits for its tokens, and asyncio.Lock wakes waiters first-in-first-out.
    Cancelling a waiting acquire releases the lock without debiting.
    """

    def __init__(self,
                 rate: float,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize token bucket.

        Args:
            rate: Tokens added per second, also the bucket capacity
            clock: Monotonic time source
        """
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.rate = float(rate)
        self.capacity = float(rate)
        self._clock = clock
        self._tokens = self.capacity
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> float:
        """Tokens currently available (after refill)."""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._updated_at
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated_at = now

    async def acquire(self, count: int = 1) -> None:
        """Wait until count tokens are available and take them.

        Args:
            count: Number of tokens to take

        Raises:
            ValueError: count is below one or above the capacity
            asyncio.CancelledError: the caller was cancelled while waiting
        """
        if count < 1 or count > self.capacity:
            raise ValueError(
                f"count must be between 1 and {self.capacity:g}, got {count}"
            )

        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= count:
                    self._tokens -= count
                    return
                await asyncio.sleep((count - self._tokens) / self.rate)


def build_limiters(endpoints: Sequence[Endpoint],
                   rates: Sequence[int]) -> Dict[str, TokenBucket]:
    """Create one bucket per endpoint.

    Args:
        endpoints: Endpoints in run order
        rates: A single rate applied to every endpoint, or one per endpoint

    Returns:
        Mapping of endpoint label to its bucket
    """
    if len(rates) == 1:
        rates = list(rates) * len(endpoints)
    if len(rates) != len(endpoints):
        raise ValueError(
            f"Expected 1 or {len(endpoints)} rate limits, got {len(rates)}"
        )
    return {
        endpoint.label: TokenBucket(rate)
        for endpoint, rate in zip(endpoints, rates)
    }
