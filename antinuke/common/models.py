from enum import Enum

import discord
from pydantic import Field

from . import Base
from .constants import HISTORY_LIMIT


class MitigationAction(str, Enum):
    BAN = "ban"
    KICK = "kick"
    DERANK = "derank"  # Remove every role the bot is able to remove
    DELETE = "delete"  # Webhooks only


class ProtectionKind(str, Enum):
    MAX_BANS = "max_bans"
    MAX_KICKS = "max_kicks"
    MAX_ROLE_DELETES = "max_role_deletes"
    MAX_CHANNEL_DELETES = "max_channel_deletes"
    WEBHOOK_CREATE = "webhook_create"
    BOT_ADD = "bot_add"

    @property
    def label(self) -> str:
        return LABELS[self]

    @property
    def rate_based(self) -> bool:
        """Counted against a threshold within a window, as opposed to acting on every occurrence"""
        return self.value.startswith("max_")

    @property
    def matches_target(self) -> bool:
        """Whether the audit entry target must be the member that triggered the event"""
        return self in (ProtectionKind.MAX_KICKS, ProtectionKind.BOT_ADD)

    @property
    def allowed_actions(self) -> list[MitigationAction]:
        if self == ProtectionKind.WEBHOOK_CREATE:
            return [MitigationAction.DELETE]
        if self == ProtectionKind.BOT_ADD:
            return [MitigationAction.KICK, MitigationAction.BAN]
        return [MitigationAction.BAN, MitigationAction.KICK, MitigationAction.DERANK]

    @classmethod
    def parse(cls, text: str) -> "ProtectionKind":
        """Find a protection by value, camelCase name, or label (case insensitive)"""
        cleaned = text.strip().lower().replace("_", "").replace("-", "").replace(" ", "")
        for kind in cls:
            names = [kind.value.replace("_", ""), kind.label.lower().replace(" ", "")]
            if cleaned in names:
                return kind
        raise ValueError(f"{text} is not a valid protection")


LABELS = {
    ProtectionKind.MAX_BANS: "Mass Ban Detection",
    ProtectionKind.MAX_KICKS: "Mass Kick Detection",
    ProtectionKind.MAX_ROLE_DELETES: "Mass Role Deletion",
    ProtectionKind.MAX_CHANNEL_DELETES: "Mass Channel Deletion",
    ProtectionKind.WEBHOOK_CREATE: "Webhook Creation",
    ProtectionKind.BOT_ADD: "Bot Addition",
}


class ProtectionRule(Base):
    enabled: bool = True
    threshold: int | None = None  # Rate based kinds only
    window: int | None = None  # Milliseconds, rate based kinds only
    action: MitigationAction = MitigationAction.BAN


def default_rule(kind: ProtectionKind) -> ProtectionRule:
    if kind == ProtectionKind.WEBHOOK_CREATE:
        return ProtectionRule(action=MitigationAction.DELETE)
    if kind == ProtectionKind.BOT_ADD:
        return ProtectionRule(action=MitigationAction.KICK)
    threshold = 3 if kind in (ProtectionKind.MAX_BANS, ProtectionKind.MAX_KICKS) else 2
    return ProtectionRule(threshold=threshold, window=10_000, action=MitigationAction.BAN)


def default_protections() -> dict[ProtectionKind, ProtectionRule]:
    return {kind: default_rule(kind) for kind in ProtectionKind}


class ActionRecord(Base):
    user_id: int
    display_name: str
    kind: ProtectionKind
    outcome: str
    count: int
    timestamp: int  # Milliseconds

    @property
    def when(self) -> str:
        return f"<t:{self.timestamp // 1000}:f>"


class GuildSettings(Base):
    enabled: bool = False
    log_channel: int = 0
    whitelisted_users: set[int] = set()
    whitelisted_roles: set[int] = set()
    protections: dict[ProtectionKind, ProtectionRule] = Field(default_factory=default_protections)
    action_history: list[ActionRecord] = []

    def get_rule(self, kind: ProtectionKind) -> ProtectionRule:
        rule = self.protections.setdefault(kind, default_rule(kind))
        if kind.rate_based and (rule.threshold is None or rule.window is None):
            default = default_rule(kind)
            rule.threshold = rule.threshold or default.threshold
            rule.window = rule.window or default.window
        return rule

    def set_action(self, kind: ProtectionKind, action: MitigationAction) -> None:
        if action not in kind.allowed_actions:
            valid = ", ".join(a.value for a in kind.allowed_actions)
            raise ValueError(f"{kind.label} only supports: {valid}")
        self.get_rule(kind).action = action

    def add_record(self, record: ActionRecord) -> None:
        self.action_history.append(record)
        if len(self.action_history) > HISTORY_LIMIT:
            self.action_history = self.action_history[-HISTORY_LIMIT:]


class DB(Base):
    configs: dict[int, GuildSettings] = {}

    def get_conf(self, guild: discord.Guild | int) -> GuildSettings:
        gid = guild if isinstance(guild, int) else guild.id
        return self.configs.setdefault(gid, GuildSettings())
