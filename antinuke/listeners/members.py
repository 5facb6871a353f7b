import discord
from redbot.core import commands

from ..abc import MixinMeta
from ..common.models import ProtectionKind


class MemberListeners(MixinMeta):
    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        # Leaves look the same as kicks until the audit log says otherwise
        await self.pipeline.dispatch(member.guild, ProtectionKind.MAX_KICKS, member)

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        if not member.bot:
            return
        await self.pipeline.dispatch(member.guild, ProtectionKind.BOT_ADD, member)
