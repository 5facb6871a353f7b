from ..abc import CompositeMetaClass
from .guild import GuildListeners
from .members import MemberListeners


class Listeners(GuildListeners, MemberListeners, metaclass=CompositeMetaClass):
    """Subclass all event listeners"""
