"""
Tests for AutoroleCache (resound/services/autorole_cache.py).
The database loader is replaced by small async callables.
"""

import asyncio
import logging

import pytest
from unittest.mock import AsyncMock

from resound.services.autorole_cache import AutoroleCache


ROWS = [(111, 1001), (222, 2002), (333, 3003)]


# ─── Repopulation ─────────────────────────────────────────────────────────────

class TestRepopulation:
    @pytest.mark.asyncio
    async def test_returns_loaded_roles(self):
        cache = AutoroleCache(AsyncMock(return_value=ROWS))
        for guild_id, role_id in ROWS:
            assert await cache.get(guild_id) == role_id

    @pytest.mark.asyncio
    async def test_unknown_guild_means_no_autorole(self):
        loader = AsyncMock(return_value=ROWS)
        cache = AutoroleCache(loader)
        assert await cache.get(999) is None
        assert await cache.get(998) is None
        # One bulk load per cold cache, never one per missing guild.
        assert loader.await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self):
        gate = asyncio.Event()
        calls = 0

        async def loader():
            nonlocal calls
            calls += 1
            await gate.wait()
            return ROWS

        cache = AutoroleCache(loader)
        waiters = [asyncio.create_task(cache.get(222)) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*waiters)

        assert calls == 1
        assert results == [2002] * 5

    @pytest.mark.asyncio
    async def test_failed_load_leaves_cache_empty_and_retries_later(self, caplog):
        loader = AsyncMock(side_effect=[RuntimeError("database is locked"), ROWS])
        cache = AutoroleCache(loader)

        with caplog.at_level(logging.ERROR, logger="Resound.AutoroleCache"):
            assert await cache.get(111) is None
        assert cache.is_empty()
        assert any("populate" in r.message for r in caplog.records)

        assert await cache.get(111) == 1001
        assert loader.await_count == 2

    @pytest.mark.asyncio
    async def test_warm_skips_load_when_entries_exist(self):
        loader = AsyncMock(return_value=ROWS)
        cache = AutoroleCache(loader)
        first = await cache.warm()
        assert await cache.warm() == first
        loader.assert_awaited_once()


# ─── Expiry ───────────────────────────────────────────────────────────────────

class TestExpiry:
    @pytest.mark.asyncio
    async def test_entries_expire_after_inactivity_not_insertion(self):
        now = [0.0]
        cache = AutoroleCache(AsyncMock(return_value=ROWS), ttl_seconds=180, clock=lambda: now[0])
        await cache.warm()

        now[0] = 100.0
        assert cache.get_if_present(111) == 1001  # refreshes last access

        now[0] = 200.0
        assert cache.get_if_present(222) is None
        assert cache.get_if_present(111) == 1001

    @pytest.mark.asyncio
    async def test_cache_repopulates_once_everything_expired(self):
        now = [0.0]
        loader = AsyncMock(return_value=ROWS)
        cache = AutoroleCache(loader, ttl_seconds=180, clock=lambda: now[0])
        await cache.warm()

        now[0] = 500.0
        assert cache.is_empty()
        assert await cache.get(333) == 3003
        assert loader.await_count == 2
