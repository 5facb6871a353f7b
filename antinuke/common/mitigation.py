import logging
import typing as t
from dataclasses import dataclass, field
from datetime import datetime, timezone

import discord
from redbot.core.bot import Red
from redbot.core.utils.mod import get_audit_reason

from .errors import ActionFailed, MitigationError, NotifyFailed, UnresolvedActor
from .exemption import get_member
from .models import ActionRecord, GuildSettings, MitigationAction, ProtectionKind
from .utils import humanize_ms, now_ms

log = logging.getLogger("red.vrt.antinuke.mitigation")

NO_ACTION = "No action taken"
Subject = discord.Member | discord.Webhook | None


@dataclass
class MitigationResult:
    actor_id: int
    kind: ProtectionKind
    action: MitigationAction
    count: int
    outcome: str = NO_ACTION
    acted: bool = False
    notified: bool = False
    record: ActionRecord | None = None
    errors: list[MitigationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class MitigationEngine:
    """
    Applies the configured punishment for a triggered protection, reports it, and records it

    Platform failures are collected on the returned result rather than raised, the actor never hears about them.
    Each qualifying event runs this on its own, so a burst crossing the threshold several times acts several times.
    """

    def __init__(
        self,
        bot: Red,
        persist: t.Callable[[], t.Awaitable[None]],
        clock: t.Callable[[], float] | None = None,
    ):
        self.bot = bot
        self.persist = persist
        self.clock = clock or now_ms

    async def resolve_user(self, user_id: int) -> discord.User | None:
        if user := self.bot.get_user(user_id):
            return user
        try:
            return await self.bot.fetch_user(user_id)
        except discord.HTTPException:
            return None

    async def act(
        self,
        guild: discord.Guild,
        actor_id: int,
        kind: ProtectionKind,
        conf: GuildSettings,
        count: int,
        subject: Subject = None,
    ) -> MitigationResult:
        """Punish `actor_id` for tripping `kind`

        Rate based protections act on the actor's membership.
        Webhook and bot protections act on the `subject` the actor created or invited.
        """
        rule = conf.get_rule(kind)
        result = MitigationResult(actor_id=actor_id, kind=kind, action=rule.action, count=count)

        user = await self.resolve_user(actor_id)
        if not user:
            log.warning(f"Could not fetch user {actor_id} after they triggered {kind.label} in {guild.name}")
            result.errors.append(UnresolvedActor(f"User {actor_id} could not be fetched"))
            return result

        log.warning(f"{user.name} ({actor_id}) triggered {kind.label} in {guild.name} with {count} action(s)")
        target = await get_member(guild, actor_id) if kind.rate_based else subject
        reason = get_audit_reason(guild.me, f"Anti-Nuke protection: {kind.label}")
        try:
            result.outcome = await self.apply(rule.action, kind, guild, target, reason)
            result.acted = target is not None
        except discord.HTTPException as e:
            log.warning(f"Failed to {rule.action.value} for {kind.label} in {guild.name}", exc_info=e)
            result.outcome = f"Failed to {rule.action.value} ({e})"
            result.errors.append(ActionFailed(str(e)))

        result.notified = await self.notify(guild, user, conf, result)

        record = ActionRecord(
            user_id=actor_id,
            display_name=user.name,
            kind=kind,
            outcome=result.outcome,
            count=count,
            timestamp=int(self.clock()),
        )
        conf.add_record(record)
        result.record = record
        await self.persist()
        return result

    async def apply(
        self,
        action: MitigationAction,
        kind: ProtectionKind,
        guild: discord.Guild,
        target: Subject,
        reason: str,
    ) -> str:
        if action not in kind.allowed_actions:
            raise ValueError(f"{action.value} is not a valid action for {kind.label}")
        if target is None:
            # Left the guild or the webhook is already gone
            return NO_ACTION
        noun = "Bot" if kind == ProtectionKind.BOT_ADD else "User"

        if action == MitigationAction.BAN:
            await guild.ban(target, reason=reason)
            return f"{noun} was banned"
        elif action == MitigationAction.KICK:
            await target.kick(reason=reason)
            return f"{noun} was kicked"
        elif action == MitigationAction.DERANK:
            # Integration managed roles cannot be removed by anyone
            keep = [role for role in target.roles if role.managed]
            await target.edit(roles=keep, reason=reason)
            return f"{noun} was deranked (all roles removed)"
        elif action == MitigationAction.DELETE:
            await target.delete(reason=reason)
            return "Webhook was deleted"
        raise ValueError(f"Unhandled mitigation action: {action}")

    def build_embed(self, user: discord.User, result: MitigationResult, rule_desc: str) -> discord.Embed:
        kind = result.kind
        embed = discord.Embed(
            title="Anti-Nuke Protection Triggered",
            description=f"Anti-nuke protection was triggered for **{kind.label}**.",
            color=discord.Color.red(),
            timestamp=datetime.fromtimestamp(self.clock() / 1000, tz=timezone.utc),
        )
        embed.add_field(name="User", value=f"{user.mention} (`{user.id}`)", inline=True)
        embed.add_field(name="Trigger", value=rule_desc, inline=True)
        embed.add_field(name="Action Taken", value=result.outcome, inline=False)
        embed.add_field(name="Timestamp", value=f"<t:{int(self.clock() // 1000)}:F>", inline=False)
        embed.set_footer(text="Anti-Nuke Protection System")
        return embed

    async def notify(
        self,
        guild: discord.Guild,
        user: discord.User,
        conf: GuildSettings,
        result: MitigationResult,
    ) -> bool:
        if not conf.log_channel:
            return False
        channel = guild.get_channel(conf.log_channel)
        if not channel:
            result.errors.append(NotifyFailed(f"Log channel {conf.log_channel} not found"))
            return False

        rule = conf.get_rule(result.kind)
        rule_desc = result.kind.label
        if result.kind.rate_based:
            rule_desc += f"\n{result.count} in {humanize_ms(rule.window)}"
        embed = self.build_embed(user, result, rule_desc)
        perms = channel.permissions_for(guild.me)
        try:
            if perms.embed_links:
                await channel.send(embed=embed)
            elif perms.send_messages:
                await channel.send(f"**{user.name}** (`{user.id}`) triggered {result.kind.label}: {result.outcome}")
            else:
                log.warning(f"Could not send Anti-Nuke log to {channel.name} in {guild.name}!")
                result.errors.append(NotifyFailed(f"No permission to send in {channel.name}"))
                return False
        except discord.HTTPException as e:
            log.warning(f"Failed to send Anti-Nuke log in {guild.name}", exc_info=e)
            result.errors.append(NotifyFailed(str(e)))
            return False
        return True
