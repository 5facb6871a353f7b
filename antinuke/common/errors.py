class MitigationError(Exception):
    """Base for failures the mitigation engine reports instead of raising"""


class UnresolvedActor(MitigationError):
    """The responsible user could not be fetched"""


class ActionFailed(MitigationError):
    """The platform refused the punitive action"""


class NotifyFailed(MitigationError):
    """The log channel notification could not be sent"""
