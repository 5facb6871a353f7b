import discord
from redbot.core import commands

from ..abc import MixinMeta
from ..common.models import ProtectionKind


class GuildListeners(MixinMeta):
    @commands.Cog.listener()
    async def on_member_ban(self, guild: discord.Guild, user: discord.User | discord.Member) -> None:
        await self.pipeline.dispatch(guild, ProtectionKind.MAX_BANS, user)

    @commands.Cog.listener()
    async def on_guild_role_delete(self, role: discord.Role) -> None:
        await self.pipeline.dispatch(role.guild, ProtectionKind.MAX_ROLE_DELETES, role)

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        await self.pipeline.dispatch(channel.guild, ProtectionKind.MAX_CHANNEL_DELETES, channel)

    @commands.Cog.listener()
    async def on_webhooks_update(self, channel: discord.abc.GuildChannel) -> None:
        # Fires for creates, edits, and deletes alike, the audit log tells them apart
        await self.pipeline.dispatch(channel.guild, ProtectionKind.WEBHOOK_CREATE, channel)
