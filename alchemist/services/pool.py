"""
ProviderPool - Rotating set of provider credentials with per-credential cooldown.

Selection is round-robin from a cursor that persists across calls, so load is
spread over every credential instead of always preferring the first one.
Credentials that hit a rate limit or a server error are excluded until their
cooldown elapses.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from loguru import logger

if TYPE_CHECKING:
    from alchemist.providers.base import ProviderAdapter


@dataclass(eq=False)
class CredentialEntry:
    """One credential bound to one provider adapter."""

    credential: str
    adapter: "ProviderAdapter"
    label: str
    cooldown_until: float = 0.0  # Clock value; 0.0 means never cooled down

    def is_available(self, now: float) -> bool:
        return self.cooldown_until <= now


class ProviderPool:
    """
    Ordered, rotating pool of credential entries.

    Usage:
        pool = ProviderPool.for_adapter(adapter, ["key-1", "key-2"])

        entry = await pool.next_available()
        if entry is None:
            ...  # every credential is cooling down

        await pool.mark_cooldown(entry, 60.0)
    """

    def __init__(
        self,
        entries: list[CredentialEntry],
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries = list(entries)
        self._cursor = 0
        self._clock = clock
        self._lock = asyncio.Lock()

    @classmethod
    def for_adapter(
        cls,
        adapter: "ProviderAdapter",
        credentials: list[str],
        clock: Callable[[], float] = time.monotonic,
    ) -> "ProviderPool":
        """Build a pool binding every credential to the same adapter."""
        entries = [
            CredentialEntry(
                credential=credential,
                adapter=adapter,
                label=f"{adapter.name}#{index}",
            )
            for index, credential in enumerate(credentials)
        ]
        return cls(entries, clock=clock)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[CredentialEntry]:
        return list(self._entries)

    async def next_available(self) -> CredentialEntry | None:
        """Return the next credential not cooling down, or None if all are.

        Scans circularly from the persistent cursor and leaves the cursor just
        past the returned entry. Cooldown state is not modified.
        """
        async with self._lock:
            size = len(self._entries)
            now = self._clock()
            for offset in range(size):
                index = (self._cursor + offset) % size
                entry = self._entries[index]
                if entry.is_available(now):
                    self._cursor = (index + 1) % size
                    return entry
            return None

    async def mark_cooldown(self, entry: CredentialEntry, duration: float) -> None:
        """Exclude a credential from selection for ``duration`` seconds."""
        async with self._lock:
            entry.cooldown_until = self._clock() + duration
        logger.warning(f"[ProviderPool] {entry.label} cooling down for {duration:.1f}s")

    def cooling_count(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._entries if not entry.is_available(now))

    def get_status(self) -> dict[str, Any]:
        """Get pool status as dictionary (credentials are never exposed)."""
        now = self._clock()
        return {
            "size": len(self._entries),
            "cooling": self.cooling_count(),
            "entries": [
                {
                    "label": entry.label,
                    "available": entry.is_available(now),
                    "cooldown_remaining": round(max(0.0, entry.cooldown_until - now), 1),
                }
                for entry in self._entries
            ],
        }
