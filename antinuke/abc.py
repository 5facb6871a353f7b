from abc import ABCMeta, abstractmethod

from discord.ext.commands.cog import CogMeta
from redbot.core.bot import Red

from .common.models import DB
from .common.pipeline import AntiNukePipeline
from .common.tracker import ActionTracker


class CompositeMetaClass(CogMeta, ABCMeta):
    """Type detection"""


class MixinMeta(metaclass=ABCMeta):
    """Type hinting"""

    bot: Red
    db: DB
    tracker: ActionTracker
    pipeline: AntiNukePipeline

    @abstractmethod
    async def save(self) -> None:
        raise NotImplementedError
