from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from .common.attribution import AttributionResolver
from .common.mitigation import MitigationEngine
from .common.models import GuildSettings
from .common.pipeline import AntiNukePipeline
from .common.tracker import ActionTracker

BOT_ID = 1000
OWNER_ID = 2000
ACTOR_ID = 3000
GUILD_ID = 4000
LOG_CHANNEL_ID = 5000


class FakeClock:
    def __init__(self, now: float = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class AuditLogIterator:
    def __init__(self, entries: list, error: Exception | None = None):
        self.entries = list(entries)
        self.error = error

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.error:
            raise self.error
        if not self.entries:
            raise StopAsyncIteration
        return self.entries.pop(0)


def http_error(cls=discord.HTTPException, status: int = 500):
    return cls(MagicMock(status=status, reason="error"), "error")


def audit_entry(entry_id: int, executor_id: int, target_id: int | None, created_at_ms: float):
    entry = MagicMock()
    entry.id = entry_id
    entry.user_id = executor_id
    entry.target = MagicMock(id=target_id) if target_id is not None else None
    entry.created_at = datetime.fromtimestamp(created_at_ms / 1000, tz=timezone.utc)
    return entry


def set_audit_log(guild, *entries, error: Exception | None = None):
    guild.audit_logs = MagicMock(side_effect=lambda **kwargs: AuditLogIterator(entries, error))


def make_member(user_id: int, roles: list | None = None):
    member = MagicMock()
    member.id = user_id
    member.name = f"user{user_id}"
    member.mention = f"<@{user_id}>"
    member.roles = roles or []
    member.kick = AsyncMock()
    member.edit = AsyncMock()
    return member


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bot():
    bot = MagicMock()
    bot.user.id = BOT_ID
    bot.get_user = MagicMock(side_effect=lambda uid: make_member(uid))
    bot.fetch_user = AsyncMock()
    return bot


@pytest.fixture
def log_channel():
    channel = MagicMock()
    channel.id = LOG_CHANNEL_ID
    channel.name = "antinuke-log"
    channel.send = AsyncMock()
    channel.permissions_for.return_value = MagicMock(embed_links=True, send_messages=True)
    return channel


@pytest.fixture
def members():
    return {ACTOR_ID: make_member(ACTOR_ID)}


@pytest.fixture
def guild(members, log_channel):
    guild = MagicMock()
    guild.id = GUILD_ID
    guild.name = "Test Guild"
    guild.owner_id = OWNER_ID
    guild.me = make_member(BOT_ID)
    guild.get_member = MagicMock(side_effect=lambda uid: members.get(uid))
    guild.fetch_member = AsyncMock(side_effect=http_error(discord.NotFound, 404))
    guild.get_channel = MagicMock(side_effect=lambda cid: log_channel if cid == LOG_CHANNEL_ID else None)
    guild.ban = AsyncMock()
    set_audit_log(guild)
    return guild


@pytest.fixture
def conf():
    return GuildSettings(enabled=True, log_channel=LOG_CHANNEL_ID)


@pytest.fixture
def persist():
    return AsyncMock()


@pytest.fixture
def tracker(clock):
    return ActionTracker(clock=clock)


@pytest.fixture
def resolver(bot, clock):
    return AttributionResolver(bot, clock=clock, sleep=AsyncMock())


@pytest.fixture
def engine(bot, persist, clock):
    return MitigationEngine(bot, persist, clock=clock)


@pytest.fixture
def pipeline(bot, conf, persist, tracker, resolver, engine):
    return AntiNukePipeline(
        bot,
        get_conf=lambda guild: conf,
        persist=persist,
        tracker=tracker,
        resolver=resolver,
        engine=engine,
    )
