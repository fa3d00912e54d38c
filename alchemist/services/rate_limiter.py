"""
CallerRateLimiter - Per-caller throttle with a depth-one bucket.

A caller gets exactly one accepted request per window. Rejected requests are
not queued and do not move the window.
"""

import asyncio
import time
from typing import Callable

from loguru import logger

from alchemist.services.errors import CallerRateLimitedError

# Prune forgotten callers once the map grows past this many entries
_PRUNE_THRESHOLD = 10_000


class CallerRateLimiter:
    """
    Usage:
        limiter = CallerRateLimiter(window=0.8)
        await limiter.acquire("203.0.113.7")  # raises CallerRateLimitedError
    """

    def __init__(
        self,
        window: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._window = window
        self._clock = clock
        self._last_accepted: dict[str, float] = {}
        self._lock = asyncio.Lock()
        self.rejected = 0

    @property
    def window(self) -> float:
        return self._window

    async def acquire(self, caller_id: str) -> None:
        """Accept a request from ``caller_id`` or raise CallerRateLimitedError."""
        async with self._lock:
            now = self._clock()
            last = self._last_accepted.get(caller_id)

            if last is not None and now - last < self._window:
                self.rejected += 1
                retry_after = self._window - (now - last)
                logger.info(
                    f"[RateLimiter] Rejected '{caller_id}', retry after {retry_after:.3f}s"
                )
                raise CallerRateLimitedError(caller_id, retry_after)

            self._last_accepted[caller_id] = now

            if len(self._last_accepted) > _PRUNE_THRESHOLD:
                self._prune(now)

    def _prune(self, now: float) -> None:
        """Drop callers whose last request is older than the window."""
        stale = [k for k, v in self._last_accepted.items() if now - v >= self._window]
        for key in stale:
            del self._last_accepted[key]
        if stale:
            logger.debug(f"[RateLimiter] Pruned {len(stale)} idle callers")

    def __len__(self) -> int:
        return len(self._last_accepted)
