from ..abc import CompositeMetaClass
from .sweep import SweepTask


class Tasks(SweepTask, metaclass=CompositeMetaClass):
    """
    Subclass all task loops

    The tracker sweep runs independently of event traffic
    """

    def start_antinuke_tasks(self):
        self.sweep_tracker.start()

    def stop_antinuke_tasks(self):
        self.sweep_tracker.cancel()
