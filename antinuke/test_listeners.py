from unittest.mock import AsyncMock, MagicMock

import pytest

from .common.models import ProtectionKind
from .common.tracker import ActionTracker
from .conftest import FakeClock
from .listeners import Listeners
from .tasks import Tasks


class Harness(Listeners, Tasks):
    def __init__(self):
        self.pipeline = MagicMock()
        self.pipeline.dispatch = AsyncMock()
        self.tracker = ActionTracker(clock=FakeClock(0))

    async def save(self) -> None:
        pass


@pytest.fixture
def cog():
    return Harness()


@pytest.mark.asyncio
async def test_ban_event(cog):
    guild, user = MagicMock(), MagicMock()
    await cog.on_member_ban(guild, user)
    cog.pipeline.dispatch.assert_awaited_once_with(guild, ProtectionKind.MAX_BANS, user)


@pytest.mark.asyncio
async def test_member_remove_checks_for_kick(cog):
    member = MagicMock()
    await cog.on_member_remove(member)
    cog.pipeline.dispatch.assert_awaited_once_with(member.guild, ProtectionKind.MAX_KICKS, member)


@pytest.mark.asyncio
async def test_role_and_channel_deletes(cog):
    role, channel = MagicMock(), MagicMock()
    await cog.on_guild_role_delete(role)
    await cog.on_guild_channel_delete(channel)
    calls = [c.args for c in cog.pipeline.dispatch.await_args_list]
    assert calls == [
        (role.guild, ProtectionKind.MAX_ROLE_DELETES, role),
        (channel.guild, ProtectionKind.MAX_CHANNEL_DELETES, channel),
    ]


@pytest.mark.asyncio
async def test_webhooks_update(cog):
    channel = MagicMock()
    await cog.on_webhooks_update(channel)
    cog.pipeline.dispatch.assert_awaited_once_with(channel.guild, ProtectionKind.WEBHOOK_CREATE, channel)


@pytest.mark.asyncio
async def test_only_bot_joins_are_checked(cog):
    await cog.on_member_join(MagicMock(bot=False))
    cog.pipeline.dispatch.assert_not_awaited()
    bot_member = MagicMock(bot=True)
    await cog.on_member_join(bot_member)
    cog.pipeline.dispatch.assert_awaited_once_with(bot_member.guild, ProtectionKind.BOT_ADD, bot_member)


@pytest.mark.asyncio
async def test_sweep_loop_body_sweeps_tracker(cog):
    cog.tracker.record(1, ProtectionKind.MAX_BANS)
    cog.tracker.clock.advance(3_600_000)
    await cog.sweep_tracker.coro(cog)
    assert len(cog.tracker) == 0
