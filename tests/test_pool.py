"""Tests for credential rotation and cooldown."""

import asyncio
from collections import Counter

import pytest

from alchemist.services.pool import ProviderPool
from fakes import StubAdapter, make_pool


class TestNextAvailable:
    @pytest.mark.asyncio
    async def test_round_robin_across_calls(self, clock) -> None:
        pool = make_pool(StubAdapter(), size=3, clock=clock)

        labels = [(await pool.next_available()).label for _ in range(5)]

        assert labels == ["stub#0", "stub#1", "stub#2", "stub#0", "stub#1"]

    @pytest.mark.asyncio
    async def test_skips_cooling_entry(self, clock) -> None:
        pool = make_pool(StubAdapter(), size=3, clock=clock)
        entries = pool.entries
        await pool.mark_cooldown(entries[1], 30.0)

        labels = [(await pool.next_available()).label for _ in range(4)]

        assert labels == ["stub#0", "stub#2", "stub#0", "stub#2"]

    @pytest.mark.asyncio
    async def test_entry_returns_after_cooldown(self, clock) -> None:
        pool = make_pool(StubAdapter(), size=2, clock=clock)
        first = await pool.next_available()
        await pool.mark_cooldown(first, 30.0)

        assert (await pool.next_available()).label == "stub#1"
        assert (await pool.next_available()).label == "stub#1"

        clock.advance(30.0)

        # Available again exactly at cooldown_until
        assert (await pool.next_available()).label == "stub#0"

    @pytest.mark.asyncio
    async def test_none_when_all_cooling(self, clock) -> None:
        pool = make_pool(StubAdapter(), size=2, clock=clock)
        for entry in pool.entries:
            await pool.mark_cooldown(entry, 10.0)

        assert await pool.next_available() is None
        assert pool.cooling_count() == 2

    @pytest.mark.asyncio
    async def test_empty_pool(self) -> None:
        pool = ProviderPool([])

        assert await pool.next_available() is None
        assert len(pool) == 0

    @pytest.mark.asyncio
    async def test_does_not_touch_cooldowns(self, clock) -> None:
        pool = make_pool(StubAdapter(), size=2, clock=clock)

        await pool.next_available()
        await pool.next_available()

        assert all(entry.cooldown_until == 0.0 for entry in pool.entries)

    @pytest.mark.asyncio
    async def test_concurrent_selection_stays_fair(self) -> None:
        pool = make_pool(StubAdapter(), size=3)

        entries = await asyncio.gather(*(pool.next_available() for _ in range(30)))

        counts = Counter(entry.label for entry in entries)
        assert counts == {"stub#0": 10, "stub#1": 10, "stub#2": 10}


class TestCooldown:
    @pytest.mark.asyncio
    async def test_mark_cooldown_sets_deadline(self, clock) -> None:
        pool = make_pool(StubAdapter(), size=1, clock=clock)
        entry = pool.entries[0]

        await pool.mark_cooldown(entry, 45.0)

        assert entry.cooldown_until == clock.now + 45.0
        assert not entry.is_available(clock.now)

    def test_status_hides_credentials(self, clock) -> None:
        pool = make_pool(StubAdapter(), size=2, clock=clock)

        status = pool.get_status()

        assert status["size"] == 2
        assert status["cooling"] == 0
        assert "key-0" not in str(status)
        assert [e["label"] for e in status["entries"]] == ["stub#0", "stub#1"]
