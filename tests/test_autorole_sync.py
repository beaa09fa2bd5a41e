"""
Tests for AutoroleSyncJob (resound/services/autorole_sync.py).
Guilds and members are lightweight fakes; grants are AsyncMocks.
"""

from datetime import timedelta

import discord
import pytest
from unittest.mock import AsyncMock

from resound.services.autorole_cache import AutoroleCache
from resound.services.autorole_sync import GRANT_REASON, AutoroleSyncJob
from recovery_fakes import FakeGuild, FakeMember, FakeRole


def minutes_ago(minutes: int):
    return discord.utils.utcnow() - timedelta(minutes=minutes)


def make_job(rows):
    return AutoroleSyncJob(AutoroleCache(AsyncMock(return_value=rows)))


# ─── Grants ───────────────────────────────────────────────────────────────────

class TestGrants:
    @pytest.mark.asyncio
    async def test_only_recent_joiners_without_role_are_granted(self):
        role = FakeRole(10)
        recent = FakeMember(1, joined_at=minutes_ago(5))
        recent_too = FakeMember(2, joined_at=minutes_ago(29))
        old = FakeMember(3, joined_at=minutes_ago(45))
        has_role = FakeMember(4, joined_at=minutes_ago(2), roles=[role])
        guild = FakeGuild(100, members=[recent, recent_too, old, has_role], roles=[role])

        job = make_job([(100, 10)])
        result = await job.run([guild], shard_id=0)
        await job.drain()

        assert result.grants_requested == 2
        recent.add_roles.assert_awaited_once_with(role, reason=GRANT_REASON)
        recent_too.add_roles.assert_awaited_once_with(role, reason=GRANT_REASON)
        old.add_roles.assert_not_called()
        has_role.add_roles.assert_not_called()

    @pytest.mark.asyncio
    async def test_members_without_join_time_are_skipped(self):
        role = FakeRole(10)
        unknown = FakeMember(1, joined_at=None)
        guild = FakeGuild(100, members=[unknown], roles=[role])

        job = make_job([(100, 10)])
        result = await job.run([guild])

        assert result.grants_requested == 0
        unknown.add_roles.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_grant_does_not_stop_others(self):
        role = FakeRole(10)
        failing = FakeMember(1, joined_at=minutes_ago(1))
        failing.add_roles.side_effect = RuntimeError("Missing Access")
        ok = FakeMember(2, joined_at=minutes_ago(1))
        guild = FakeGuild(100, members=[failing, ok], roles=[role])

        job = make_job([(100, 10)])
        result = await job.run([guild])
        await job.drain()

        assert result.grants_requested == 2
        ok.add_roles.assert_awaited_once()


# ─── Skips ────────────────────────────────────────────────────────────────────

class TestSkips:
    @pytest.mark.asyncio
    async def test_missing_manage_roles_skips_guild(self):
        role = FakeRole(10)
        member = FakeMember(1, joined_at=minutes_ago(1))
        guild = FakeGuild(100, members=[member], roles=[role], manage_roles=False)

        result = await make_job([(100, 10)]).run([guild])

        assert result.grants_requested == 0
        member.add_roles.assert_not_called()

    @pytest.mark.asyncio
    async def test_guild_without_autorole_is_skipped(self):
        member = FakeMember(1, joined_at=minutes_ago(1))
        guild = FakeGuild(100, members=[member], roles=[FakeRole(10)])

        result = await make_job([(200, 20)]).run([guild])

        assert result.grants_requested == 0
        member.add_roles.assert_not_called()

    @pytest.mark.asyncio
    async def test_deleted_role_is_skipped_and_loop_continues(self):
        gone = FakeGuild(100, members=[FakeMember(1, joined_at=minutes_ago(1))])
        role = FakeRole(20)
        member = FakeMember(2, joined_at=minutes_ago(1))
        alive = FakeGuild(200, members=[member], roles=[role])

        job = make_job([(100, 10), (200, 20)])
        result = await job.run([gone, alive])
        await job.drain()

        assert result.guilds_scanned == 2
        assert result.grants_requested == 1
        member.add_roles.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unassignable_role_is_skipped(self):
        role = FakeRole(10, assignable=False)
        member = FakeMember(1, joined_at=minutes_ago(1))
        guild = FakeGuild(100, members=[member], roles=[role])

        result = await make_job([(100, 10)]).run([guild])

        assert result.grants_requested == 0

    @pytest.mark.asyncio
    async def test_failed_repopulation_degrades_to_noop(self):
        member = FakeMember(1, joined_at=minutes_ago(1))
        guild = FakeGuild(100, members=[member], roles=[FakeRole(10)])
        job = AutoroleSyncJob(AutoroleCache(AsyncMock(side_effect=RuntimeError("db down"))))

        result = await job.run([guild])

        assert result.grants_requested == 0
        member.add_roles.assert_not_called()
