import logging

import discord
from discord.ext import tasks

from ..abc import MixinMeta
from ..common.constants import SWEEP_INTERVAL

log = logging.getLogger("red.vrt.antinuke.tasks.sweep")

loop_kwargs = {"minutes": SWEEP_INTERVAL}
if discord.version_info >= (2, 4, 0):
    loop_kwargs["name"] = "AntiNuke.sweep_tracker"


class SweepTask(MixinMeta):
    @tasks.loop(**loop_kwargs)
    async def sweep_tracker(self):
        removed = self.tracker.sweep()
        if removed:
            log.debug(f"Tracker sweep removed {removed} actors, {len(self.tracker)} remain")

    @sweep_tracker.before_loop
    async def before_sweep_tracker(self):
        await self.bot.wait_until_red_ready()
        log.info("Starting action tracker sweep loop")
