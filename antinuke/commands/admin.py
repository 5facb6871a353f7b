import discord
from redbot.core import commands
from redbot.core.utils.chat_formatting import box, humanize_list, pagify, text_to_file

from ..abc import MixinMeta
from ..common import Base
from ..common.models import ActionRecord, GuildSettings, MitigationAction, ProtectionKind
from ..common.utils import humanize_ms

REQUIRED_PERMS = {
    MitigationAction.BAN: "ban_members",
    MitigationAction.KICK: "kick_members",
    MitigationAction.DERANK: "manage_roles",
    MitigationAction.DELETE: "manage_webhooks",
}


class HistoryExport(Base):
    guild_id: int
    records: list[ActionRecord]


class ProtectionConverter(commands.Converter):
    async def convert(self, ctx: commands.Context, argument: str) -> ProtectionKind:
        try:
            return ProtectionKind.parse(argument)
        except ValueError:
            valid = humanize_list([f"`{k.value}`" for k in ProtectionKind])
            raise commands.BadArgument(f"`{argument}` is not a valid protection, use one of {valid}")


class ActionConverter(commands.Converter):
    async def convert(self, ctx: commands.Context, argument: str) -> MitigationAction:
        try:
            return MitigationAction(argument.lower())
        except ValueError:
            valid = humanize_list([f"`{a.value}`" for a in MitigationAction])
            raise commands.BadArgument(f"`{argument}` is not a valid action, use one of {valid}")


def describe_rule(conf: GuildSettings, kind: ProtectionKind) -> str:
    rule = conf.get_rule(kind)
    if not rule.enabled:
        return "Disabled"
    if kind.rate_based:
        return f"Enabled (Threshold: {rule.threshold} in {humanize_ms(rule.window)}, Action: {rule.action.value})"
    return f"Enabled (Action: {rule.action.value})"


class Admin(MixinMeta):
    @commands.group(aliases=["anuke"])
    @commands.guildowner()
    @commands.guild_only()
    async def antinuke(self, ctx: commands.Context):
        """
        Anti-Nuke protection against mass destructive actions

        Tracks bans, kicks, role deletions, and channel deletions per user.
        If someone exceeds a protection's threshold within its time window, the set action is taken on them.
        New webhooks and bot invites are handled immediately.

        The server owner is always exempt, trusted staff can be whitelisted.
        """

    @antinuke.command(name="enable")
    async def enable_antinuke(self, ctx: commands.Context):
        """Enable the Anti-Nuke system"""
        conf = self.db.get_conf(ctx.guild)
        conf.enabled = True
        txt = (
            "Anti-Nuke protection has been **Enabled**\n"
            "Make sure to whitelist trusted staff members and bots to prevent false positives."
        )
        if not conf.log_channel:
            txt += f"\nNo log channel is set, use `{ctx.clean_prefix}antinuke logchannel` to set one."
        await ctx.send(txt)
        await self.save()

    @antinuke.command(name="disable")
    async def disable_antinuke(self, ctx: commands.Context):
        """Disable the Anti-Nuke system"""
        self.db.get_conf(ctx.guild).enabled = False
        await ctx.send("Anti-Nuke protection has been **Disabled**")
        await self.save()

    @antinuke.command(name="view", aliases=["status", "settings"])
    @commands.bot_has_permissions(embed_links=True)
    async def view_settings(self, ctx: commands.Context):
        """View the Anti-Nuke settings"""
        conf = self.db.get_conf(ctx.guild)
        lchan = f"<#{conf.log_channel}>" if conf.log_channel else "Not Set"
        em = discord.Embed(
            title="Anti-Nuke Settings",
            description=f"`Enabled:       `{conf.enabled}\n"
            f"`LogChannel:    `{lchan}\n"
            f"`Actions Taken: `{len(conf.action_history)}",
            color=await ctx.embed_color(),
        )
        for kind in ProtectionKind:
            em.add_field(name=kind.label, value=describe_rule(conf, kind), inline=False)

        users = [f"<@{uid}>" for uid in conf.whitelisted_users]
        roles = [f"<@&{rid}>" for rid in conf.whitelisted_roles]
        em.add_field(name="Whitelisted Users", value=humanize_list(users) or "None", inline=False)
        em.add_field(name="Whitelisted Roles", value=humanize_list(roles) or "None", inline=False)
        await ctx.send(embed=em)

        perms = {
            "view_audit_log": ctx.guild.me.guild_permissions.view_audit_log,
            "ban_members": ctx.guild.me.guild_permissions.ban_members,
            "kick_members": ctx.guild.me.guild_permissions.kick_members,
            "manage_roles": ctx.guild.me.guild_permissions.manage_roles,
            "manage_webhooks": ctx.guild.me.guild_permissions.manage_webhooks,
        }
        missing = [k for k, v in perms.items() if not v]
        if missing:
            await ctx.send(f"Just a heads up, I do not have the following permissions\n{box(humanize_list(missing))}")

    @antinuke.command(name="toggle")
    async def toggle_protection(self, ctx: commands.Context, protection: ProtectionConverter):
        """Enable/Disable a specific protection"""
        rule = self.db.get_conf(ctx.guild).get_rule(protection)
        rule.enabled = not rule.enabled
        state = "**Enabled**" if rule.enabled else "**Disabled**"
        await ctx.send(f"{protection.label} has been {state}")
        await self.save()

    @antinuke.command(name="threshold")
    async def set_threshold(self, ctx: commands.Context, protection: ProtectionConverter, threshold: int):
        """
        Set how many actions within the time window trigger a protection

        Only applies to the mass detection protections
        """
        if not protection.rate_based:
            return await ctx.send(f"{protection.label} does not use thresholds!")
        if threshold < 1:
            return await ctx.send("The threshold must be at least 1!")
        self.db.get_conf(ctx.guild).get_rule(protection).threshold = threshold
        await ctx.send(f"The threshold for {protection.label} has been set to {threshold}")
        await self.save()

    @antinuke.command(name="window", aliases=["time"])
    async def set_window(self, ctx: commands.Context, protection: ProtectionConverter, seconds: int):
        """
        Set the time window (in seconds) actions are counted within

        Only applies to the mass detection protections
        """
        if not protection.rate_based:
            return await ctx.send(f"{protection.label} does not use time windows!")
        if seconds < 1:
            return await ctx.send("The time window must be at least 1 second!")
        self.db.get_conf(ctx.guild).get_rule(protection).window = seconds * 1000
        await ctx.send(f"The time window for {protection.label} has been set to {seconds} seconds")
        await self.save()

    @antinuke.command(name="action")
    async def set_action(self, ctx: commands.Context, protection: ProtectionConverter, action: ActionConverter):
        """
        Set the action taken when a protection triggers

        **Actions**
        `ban` - ban the user (or the invited bot)
        `kick` - kick the user (or the invited bot)
        `derank` - remove all roles from the user
        `delete` - delete the created webhook

        Mass detection protections support `ban`, `kick`, and `derank`.
        Bot Addition supports `kick` and `ban`, Webhook Creation supports `delete`.
        """
        conf = self.db.get_conf(ctx.guild)
        try:
            conf.set_action(protection, action)
        except ValueError as e:
            return await ctx.send(str(e))
        perm = REQUIRED_PERMS[action]
        txt = f"The action for {protection.label} has been set to `{action.value}`"
        if not getattr(ctx.guild.me.guild_permissions, perm):
            txt += f"\nI do not have the `{perm}` permission, this action will fail until I do!"
        await ctx.send(txt)
        await self.save()

    @antinuke.group(name="whitelist", aliases=["wl"])
    async def whitelist(self, ctx: commands.Context):
        """Manage users and roles that are exempt from Anti-Nuke"""

    @whitelist.command(name="user")
    async def whitelist_user(self, ctx: commands.Context, user: discord.Member | discord.User):
        """Add/Remove a user from the whitelist"""
        conf = self.db.get_conf(ctx.guild)
        if user.id in conf.whitelisted_users:
            conf.whitelisted_users.discard(user.id)
            await ctx.send(f"{user} has been removed from the whitelist!")
        else:
            conf.whitelisted_users.add(user.id)
            await ctx.send(f"{user} has been added to the whitelist!")
        await self.save()

    @whitelist.command(name="role")
    async def whitelist_role(self, ctx: commands.Context, *, role: discord.Role):
        """Add/Remove a role from the whitelist"""
        conf = self.db.get_conf(ctx.guild)
        if role.id in conf.whitelisted_roles:
            conf.whitelisted_roles.discard(role.id)
            await ctx.send(f"{role.name} has been removed from the whitelist!")
        else:
            conf.whitelisted_roles.add(role.id)
            await ctx.send(f"{role.name} has been added to the whitelist!")
        await self.save()

    @antinuke.command(name="logchannel")
    async def set_log_channel(self, ctx: commands.Context, channel: discord.TextChannel = None):
        """Set the log channel for Anti-Nuke actions

        Leave blank to clear it
        """
        conf = self.db.get_conf(ctx.guild)
        if not channel:
            conf.log_channel = 0
            await ctx.send("Anti-Nuke log channel has been cleared")
            return await self.save()
        if not channel.permissions_for(ctx.me).embed_links:
            return await ctx.send("I dont have permission to send embeds in that channel!")
        conf.log_channel = channel.id
        await ctx.tick()
        await self.save()

    @antinuke.command(name="history")
    async def view_history(self, ctx: commands.Context, amount: int = 10):
        """View the most recent actions taken by Anti-Nuke

        The full history is attached as a JSON file
        """
        conf = self.db.get_conf(ctx.guild)
        if not conf.action_history:
            return await ctx.send("No actions have been taken yet")
        records = conf.action_history[-max(amount, 1) :]
        txt = ""
        for record in reversed(records):
            txt += (
                f"{record.when} **{record.display_name}** (`{record.user_id}`)\n"
                f"- {record.kind.label} x{record.count}: {record.outcome}\n"
            )
        export = HistoryExport(guild_id=ctx.guild.id, records=conf.action_history)
        file = text_to_file(export.dump_json().decode(), filename="antinuke-history.json")
        pages = list(pagify(txt, page_length=1900))
        for idx, page in enumerate(pages):
            if idx == len(pages) - 1:
                await ctx.send(page, file=file)
            else:
                await ctx.send(page)

    @antinuke.command(name="reset")
    async def reset_settings(self, ctx: commands.Context, confirm: bool):
        """Reset all Anti-Nuke settings and history for this server"""
        if not confirm:
            return await ctx.send("Not resetting")
        self.db.configs[ctx.guild.id] = GuildSettings()
        await ctx.send("Anti-Nuke settings have been reset")
        await self.save()
