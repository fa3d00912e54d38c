"""
RequestDeduplicator - Coalesces concurrent dispatches for the same pair.

When several callers ask for the same uncached pair at once, only one
dispatch runs and every caller awaits its result. The dispatch runs as its
own task shielded from caller cancellation: a caller that goes away does not
abort the provider call, and the finished result still reaches the cache.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


class RequestDeduplicator:
    """
    Usage:
        dedup = RequestDeduplicator()
        outcome = await dedup.dedupe(key, lambda: dispatch_and_store(key))
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._lock = asyncio.Lock()
        self._debug = debug
        self._stats = DeduplicatorStats()

    async def dedupe(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Execute request with deduplication.

        Args:
            key: Unique identifier for this request
            request_fn: Async function to execute if no duplicate exists

        Returns:
            Result from request_fn (either fresh or from in-flight request)
        """
        async with self._lock:
            task = self._in_flight.get(key)
            if task is not None:
                self._stats.joined += 1
                self._log(f"DEDUPE: Waiting for in-flight request: {key!r}")
            else:
                self._stats.started += 1
                self._log(f"NEW: Starting request: {key!r}")
                task = asyncio.create_task(self._execute_and_cleanup(key, request_fn))
                task.add_done_callback(self._consume_exception)
                self._in_flight[key] = task

        return await asyncio.shield(task)

    @staticmethod
    def _consume_exception(task: asyncio.Task[Any]) -> None:
        """Mark a failure as retrieved even if every waiter has gone away."""
        if not task.cancelled():
            task.exception()

    async def _execute_and_cleanup(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Execute request and clean up when done."""
        try:
            return await request_fn()
        finally:
            async with self._lock:
                self._in_flight.pop(key, None)
                self._log(f"DONE: Request completed: {key!r}")

    async def cancel_all(self) -> int:
        """Cancel all in-flight requests."""
        async with self._lock:
            tasks = list(self._in_flight.values())
            self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            self._log(f"CANCEL_ALL: {len(tasks)} requests cancelled")
        return len(tasks)

    def get_in_flight_count(self) -> int:
        """Get number of in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> "DeduplicatorStats":
        """Get deduplication statistics."""
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Deduplicator] {message}")


@dataclass
class DeduplicatorStats:
    """Coalescing counters."""

    started: int = 0  # Dispatches actually run
    joined: int = 0  # Callers that awaited someone else's dispatch
    in_flight: int = 0

    @property
    def join_rate(self) -> float:
        total = self.started + self.joined
        return self.joined / total if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "started": self.started,
            "joined": self.joined,
            "in_flight": self.in_flight,
            "join_rate": f"{self.join_rate:.2%}",
        }
