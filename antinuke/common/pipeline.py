import logging
import typing as t

import discord
from redbot.core.bot import Red

from .attribution import AttributionResolver
from .exemption import is_exempt
from .mitigation import MitigationEngine, MitigationResult
from .models import GuildSettings, ProtectionKind
from .tracker import ActionTracker

log = logging.getLogger("red.vrt.antinuke.pipeline")

# What the gateway handed us: the banned user, removed member, deleted role/channel, or updated channel
EventTarget = t.Union[discord.abc.Snowflake, None]


class AntiNukePipeline:
    """
    guild event -> attribution -> exemption -> sliding window -> mitigation

    Nothing here holds a lock. Callbacks interleave at every await, so two events for the same actor
    may both read a pre-append count or both reach the threshold and both mitigate.
    """

    def __init__(
        self,
        bot: Red,
        get_conf: t.Callable[[discord.Guild], GuildSettings],
        persist: t.Callable[[], t.Awaitable[None]],
        tracker: ActionTracker | None = None,
        resolver: AttributionResolver | None = None,
        engine: MitigationEngine | None = None,
    ):
        self.bot = bot
        self.get_conf = get_conf
        self.tracker = tracker if tracker is not None else ActionTracker()
        self.resolver = resolver if resolver is not None else AttributionResolver(bot)
        self.engine = engine if engine is not None else MitigationEngine(bot, persist)

    async def dispatch(
        self,
        guild: discord.Guild,
        kind: ProtectionKind,
        target: EventTarget = None,
    ) -> MitigationResult | None:
        """Run the pipeline for one event, logging anything unexpected instead of raising"""
        try:
            return await self.process(guild, kind, target)
        except Exception as e:
            log.exception(f"Error handling {kind.value} in {guild.name}", exc_info=e)
            return None

    async def process(
        self,
        guild: discord.Guild,
        kind: ProtectionKind,
        target: EventTarget = None,
    ) -> MitigationResult | None:
        conf = self.get_conf(guild)
        if not conf.enabled:
            return None
        rule = conf.get_rule(kind)
        if not rule.enabled:
            return None

        if kind == ProtectionKind.WEBHOOK_CREATE:
            return await self.process_webhooks(guild, conf, target)

        target_id = target.id if target is not None and kind.matches_target else None
        entry = await self.resolver.resolve(guild, kind, target_id=target_id)
        if entry is None:
            return None
        actor_id = entry.executor_id
        if await is_exempt(actor_id, guild, conf):
            return None

        if kind.rate_based:
            self.tracker.record(actor_id, kind)
            count = self.tracker.count_within(actor_id, kind, rule.window)
            if count < rule.threshold:
                return None
            return await self.engine.act(guild, actor_id, kind, conf, count)

        # Bot additions act on the bot that joined
        return await self.engine.act(guild, actor_id, kind, conf, 1, subject=target)

    async def process_webhooks(
        self,
        guild: discord.Guild,
        conf: GuildSettings,
        channel: EventTarget,
    ) -> MitigationResult | None:
        """
        A webhooks update only names the channel, so match it against recent create entries
        whose webhook still lives there. Entries are consumed so edits and our own deletes don't re-trigger.
        """
        webhooks = await self.get_webhooks(channel)
        if not webhooks:
            return None
        entry = await self.resolver.resolve(
            guild,
            ProtectionKind.WEBHOOK_CREATE,
            consume=True,
            candidates={w.id for w in webhooks},
        )
        if entry is None:
            return None
        if await is_exempt(entry.executor_id, guild, conf):
            return None
        webhook = discord.utils.get(webhooks, id=entry.target_id)
        return await self.engine.act(guild, entry.executor_id, ProtectionKind.WEBHOOK_CREATE, conf, 1, subject=webhook)

    async def get_webhooks(self, channel: EventTarget) -> list[discord.Webhook]:
        if channel is None:
            return []
        try:
            return await channel.webhooks()
        except discord.HTTPException as e:
            log.warning(f"Could not fetch webhooks for {channel.name}", exc_info=e)
            return []
