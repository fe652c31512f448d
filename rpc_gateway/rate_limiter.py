"""
Rate Limiter - Token Bucket Admission Control
=============================================

Bounds the rate of outbound RPC work.

- Reservoir starts full and each admission consumes one token
- Every refresh interval the reservoir is reset to capacity (discrete refill)
- Successive admissions are spaced by at least min_time
- Callers that find the reservoir empty wait in FIFO order; nothing is dropped
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Token bucket with a fixed-interval reservoir refresh.

    Args:
        reservoir: Tokens available per refresh interval (default: 50)
        refresh_interval_ms: Milliseconds between refills (default: 1000)
        min_time_ms: Minimum milliseconds between two admissions (default: 100)
    """

    def __init__(
        self,
        reservoir: int = 50,
        refresh_interval_ms: float = 1000,
        min_time_ms: float = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        if reservoir < 1:
            raise ValueError("reservoir must be >= 1")
        if refresh_interval_ms <= 0:
            raise ValueError("refresh_interval_ms must be > 0")

        self.reservoir = reservoir
        self.refresh_interval = refresh_interval_ms / 1000
        self.min_time = min_time_ms / 1000
        self._clock = clock

        self.tokens = reservoir
        self._next_refill: Optional[float] = None
        self._last_admission: Optional[float] = None

        # asyncio.Lock wakes waiters in FIFO order
        self._lock = asyncio.Lock()
        self._waiting = 0

        self.total_admitted = 0
        self.total_delayed = 0

    async def schedule(self, work: Callable[[], Awaitable[T]]) -> T:
        """Run work once a token is available.

        Exceptions raised by work propagate unchanged.
        """
        await self.acquire()
        return await work()

    async def acquire(self) -> None:
        """Wait until admitted and consume one token."""
        self._waiting += 1
        try:
            async with self._lock:
                await self._wait_for_spacing()
                await self._wait_for_token()
                self.tokens -= 1
                self._last_admission = self._clock()
                self.total_admitted += 1
        finally:
            self._waiting -= 1

    async def _wait_for_spacing(self) -> None:
        if self._last_admission is None or not self.min_time:
            return
        delay = self._last_admission + self.min_time - self._clock()
        if delay > 0:
            await asyncio.sleep(delay)

    async def _wait_for_token(self) -> None:
        self._refill()
        if self.tokens > 0:
            return

        self.total_delayed += 1
        logger.debug(
            "rate_limiter_reservoir_empty",
            waiting=self._waiting,
            refill_in_ms=round((self._next_refill - self._clock()) * 1000, 1),
        )
        while self.tokens <= 0:
            await asyncio.sleep(max(0.0, self._next_refill - self._clock()))
            self._refill()

    def _refill(self) -> None:
        """Reset the reservoir if one or more refill ticks have passed."""
        now = self._clock()
        if self._next_refill is None:
            self._next_refill = now + self.refresh_interval
            return
        if now < self._next_refill:
            return
        missed = int((now - self._next_refill) // self.refresh_interval)
        self._next_refill += (missed + 1) * self.refresh_interval
        self.tokens = self.reservoir

    @property
    def queued(self) -> int:
        """Callers currently waiting for admission."""
        return self._waiting

    def get_stats(self) -> Dict[str, Any]:
        return {
            'tokens': self.tokens,
            'reservoir': self.reservoir,
            'queued': self._waiting,
            'total_admitted': self.total_admitted,
            'total_delayed': self.total_delayed,
        }
