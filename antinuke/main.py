import asyncio
import logging
import typing as t

import discord
from redbot.core import Config, commands
from redbot.core.bot import Red

from .abc import CompositeMetaClass
from .commands import Commands
from .common.models import DB, GuildSettings
from .common.pipeline import AntiNukePipeline
from .common.tracker import ActionTracker
from .listeners import Listeners
from .tasks import Tasks

log = logging.getLogger("red.vrt.antinuke")
RequestType = t.Literal["discord_deleted_user", "owner", "user", "user_strict"]


class AntiNuke(Commands, Listeners, Tasks, commands.Cog, metaclass=CompositeMetaClass):
    """
    Anti-Nuke protection against rogue staff and compromised accounts

    Watches for bursts of destructive actions and punishes whoever is responsible:
    Mass bans, kicks, role deletions, and channel deletions within a configurable window.
    Newly created webhooks and newly invited bots are handled as they happen.

    The guild owner, whitelisted users, and holders of whitelisted roles are never punished.
    """

    __author__ = "[vertyco](https://github.com/vertyco/vrt-cogs)"
    __version__ = "2.0.0"

    def format_help_for_context(self, ctx: commands.Context):
        helpcmd = super().format_help_for_context(ctx)
        return f"{helpcmd}\nCog Version: {self.__version__}\nAuthor: {self.__author__}"

    async def red_delete_data_for_user(self, *, requester: RequestType, user_id: int):
        """Remove the user from whitelists, action history, and the in-memory action tracker"""
        self.tracker.forget(user_id)
        changed = False
        for conf in self.db.configs.values():
            if user_id in conf.whitelisted_users:
                conf.whitelisted_users.discard(user_id)
                changed = True
            history = [i for i in conf.action_history if i.user_id != user_id]
            if len(history) != len(conf.action_history):
                conf.action_history = history
                changed = True
        if changed:
            await self.save()

    def __init__(self, bot: Red):
        super().__init__()
        self.bot: Red = bot
        self.config = Config.get_conf(self, 117, force_registration=True)
        self.config.register_global(db={})
        self.db: DB = DB()
        self.saving = False

        self.tracker = ActionTracker()
        self.pipeline = AntiNukePipeline(
            bot,
            get_conf=self.get_conf,
            persist=self.save,
            tracker=self.tracker,
        )

    async def cog_load(self) -> None:
        asyncio.create_task(self.initialize())

    async def cog_unload(self) -> None:
        self.stop_antinuke_tasks()

    def get_conf(self, guild: discord.Guild | int) -> GuildSettings:
        return self.db.get_conf(guild)

    async def save(self) -> None:
        if self.saving:
            return
        try:
            self.saving = True
            dump = await asyncio.to_thread(self.db.model_dump, mode="json")
            await self.config.db.set(dump)
        except Exception as e:
            log.exception("Failed to save config", exc_info=e)
        finally:
            self.saving = False

    async def initialize(self) -> None:
        await self.bot.wait_until_red_ready()
        data = await self.config.db()
        self.db = await asyncio.to_thread(DB.model_validate, data)
        log.info("Config loaded")
        self.start_antinuke_tasks()
