import asyncio
import logging
import typing as t
from collections import OrderedDict

import discord
from redbot.core.bot import Red

from . import Base
from .constants import CONSUMED_LIMIT, GRACE_DELAY, STALE_AFTER, WEBHOOK_SCAN_LIMIT
from .models import ProtectionKind
from .utils import now_ms

log = logging.getLogger("red.vrt.antinuke.attribution")

AUDIT_ACTIONS = {
    ProtectionKind.MAX_BANS: discord.AuditLogAction.ban,
    ProtectionKind.MAX_KICKS: discord.AuditLogAction.kick,
    ProtectionKind.MAX_ROLE_DELETES: discord.AuditLogAction.role_delete,
    ProtectionKind.MAX_CHANNEL_DELETES: discord.AuditLogAction.channel_delete,
    ProtectionKind.WEBHOOK_CREATE: discord.AuditLogAction.webhook_create,
    ProtectionKind.BOT_ADD: discord.AuditLogAction.bot_add,
}


class AuditEntry(Base):
    id: int
    executor_id: int
    target_id: int | None = None
    created_at: float  # Milliseconds

    @classmethod
    def from_discord(cls, entry: discord.AuditLogEntry) -> "AuditEntry":
        executor_id = entry.user_id if entry.user_id is not None else entry.user.id
        return cls(
            id=entry.id,
            executor_id=executor_id,
            target_id=getattr(entry.target, "id", None),
            created_at=entry.created_at.timestamp() * 1000,
        )


class AttributionResolver:
    """
    Figures out who caused a destructive event by reading the most recent matching audit log entry

    This is a heuristic. When identical actions land within the same audit propagation window,
    the latest entry may belong to a different occurrence than the one being handled.
    """

    def __init__(
        self,
        bot: Red,
        clock: t.Callable[[], float] | None = None,
        delay: float = GRACE_DELAY,
        sleep: t.Callable[[float], t.Awaitable[t.Any]] = asyncio.sleep,
    ):
        self.bot = bot
        self.clock = clock or now_ms
        self.delay = delay
        self.sleep = sleep
        self.consumed: OrderedDict[int, None] = OrderedDict()

    async def fetch_recent(self, guild: discord.Guild, kind: ProtectionKind, limit: int = 1) -> list[AuditEntry]:
        """Newest first"""
        entries = []
        try:
            async for entry in guild.audit_logs(limit=limit, action=AUDIT_ACTIONS[kind]):
                entries.append(AuditEntry.from_discord(entry))
        except discord.Forbidden:
            log.debug(f"Missing audit log access in {guild.name}")
        except discord.HTTPException as e:
            log.warning(f"Failed to fetch {kind.value} audit logs in {guild.name}", exc_info=e)
        return entries

    async def fetch_latest(self, guild: discord.Guild, kind: ProtectionKind) -> AuditEntry | None:
        entries = await self.fetch_recent(guild, kind)
        return entries[0] if entries else None

    def accepts(self, entry: AuditEntry | None, kind: ProtectionKind, target_id: int | None = None) -> bool:
        if entry is None:
            return False
        if kind.matches_target and entry.target_id != target_id:
            return False
        if entry.executor_id == self.bot.user.id:
            return False
        if self.clock() - entry.created_at > STALE_AFTER:
            return False
        return True

    def consume(self, entry: AuditEntry) -> bool:
        """Mark an entry as attributed, returns False if it already was"""
        if entry.id in self.consumed:
            return False
        self.consumed[entry.id] = None
        while len(self.consumed) > CONSUMED_LIMIT:
            self.consumed.popitem(last=False)
        return True

    def pick(
        self,
        entries: list[AuditEntry],
        kind: ProtectionKind,
        candidates: t.Collection[int],
        consume: bool = False,
    ) -> AuditEntry | None:
        """The newest acceptable entry whose target is one of the candidates and has not been attributed yet"""
        for entry in entries:
            if entry.target_id not in candidates or entry.id in self.consumed:
                continue
            if not self.accepts(entry, kind):
                continue
            if consume:
                self.consume(entry)
            return entry
        return None

    async def resolve(
        self,
        guild: discord.Guild,
        kind: ProtectionKind,
        target_id: int | None = None,
        consume: bool = False,
        candidates: t.Collection[int] | None = None,
    ) -> AuditEntry | None:
        # Give the audit log a moment to catch up with the gateway event
        await self.sleep(self.delay)
        if candidates is not None:
            entries = await self.fetch_recent(guild, kind, limit=WEBHOOK_SCAN_LIMIT)
            entry = self.pick(entries, kind, candidates, consume=consume)
            if entry is None:
                log.debug(f"No unattributed {kind.value} entry matches {len(candidates)} candidates in {guild.name}")
            return entry
        entry = await self.fetch_latest(guild, kind)
        if not self.accepts(entry, kind, target_id):
            log.debug(f"Declined attribution for {kind.value} in {guild.name}: {entry}")
            return None
        if consume and not self.consume(entry):
            log.debug(f"Audit entry {entry.id} was already attributed")
            return None
        return entry
