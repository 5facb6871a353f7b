import logging

import discord

from .models import GuildSettings

log = logging.getLogger("red.vrt.antinuke.exemption")


async def get_member(guild: discord.Guild, user_id: int) -> discord.Member | None:
    """Cached member lookup with an API fallback"""
    if member := guild.get_member(user_id):
        return member
    try:
        return await guild.fetch_member(user_id)
    except discord.HTTPException:
        return None


async def is_exempt(actor_id: int, guild: discord.Guild, conf: GuildSettings) -> bool:
    if actor_id == guild.owner_id:
        return True
    if actor_id in conf.whitelisted_users:
        return True
    if not conf.whitelisted_roles:
        return False
    member = await get_member(guild, actor_id)
    if not member:
        log.debug(f"Could not resolve {actor_id} in {guild.name} for role whitelist check")
        return False
    return any(role.id in conf.whitelisted_roles for role in member.roles)
