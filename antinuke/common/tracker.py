import logging
import typing as t

from .constants import RETENTION
from .models import ProtectionKind
from .utils import now_ms

log = logging.getLogger("red.vrt.antinuke.tracker")


class ActionTracker:
    """
    Sliding window log of destructive actions per actor

    Timestamps are appended in callback order and only ever filtered, so each list stays non-decreasing.
    Nothing here survives a restart.
    """

    def __init__(self, clock: t.Callable[[], float] | None = None, retention: int = RETENTION):
        self.clock = clock or now_ms
        self.retention = retention
        # {actor_id: {kind: [timestamp_ms]}}
        self.actions: dict[int, dict[ProtectionKind, list[float]]] = {}

    def __contains__(self, actor_id: int) -> bool:
        return actor_id in self.actions

    def __len__(self) -> int:
        return len(self.actions)

    def record(self, actor_id: int, kind: ProtectionKind) -> None:
        self.actions.setdefault(actor_id, {}).setdefault(kind, []).append(self.clock())

    def count_within(self, actor_id: int, kind: ProtectionKind, window: int) -> int:
        """Count the actor's actions of this kind within the last `window` ms, pruning the rest"""
        kinds = self.actions.get(actor_id)
        if not kinds or kind not in kinds:
            return 0
        now = self.clock()
        recent = [ts for ts in kinds[kind] if now - ts < window]
        kinds[kind] = recent
        return len(recent)

    def sweep(self) -> int:
        """Drop timestamps past retention and forget actors with nothing left

        Returns the number of actors removed
        """
        now = self.clock()
        removed = 0
        for actor_id in list(self.actions.keys()):
            kinds = self.actions[actor_id]
            for kind in list(kinds.keys()):
                kinds[kind] = [ts for ts in kinds[kind] if now - ts < self.retention]
            if not any(kinds.values()):
                del self.actions[actor_id]
                removed += 1
        if removed:
            log.debug(f"Swept {removed} idle actors from the action tracker")
        return removed

    def forget(self, actor_id: int) -> None:
        self.actions.pop(actor_id, None)
