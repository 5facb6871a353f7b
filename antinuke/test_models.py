import pytest

from .common.models import (
    DB,
    ActionRecord,
    GuildSettings,
    MitigationAction,
    ProtectionKind,
)


def make_record(i: int) -> ActionRecord:
    return ActionRecord(
        user_id=i,
        display_name=f"user{i}",
        kind=ProtectionKind.MAX_BANS,
        outcome="User was banned",
        count=3,
        timestamp=i * 1000,
    )


def test_history_keeps_newest_hundred():
    conf = GuildSettings()
    for i in range(101):
        conf.add_record(make_record(i))
    assert len(conf.action_history) == 100
    oldest = min(conf.action_history, key=lambda r: r.timestamp)
    assert oldest.user_id == 1
    assert conf.action_history[-1].user_id == 100


def test_defaults():
    conf = GuildSettings()
    assert not conf.enabled
    assert conf.log_channel == 0
    bans = conf.get_rule(ProtectionKind.MAX_BANS)
    assert (bans.threshold, bans.window, bans.action) == (3, 10_000, MitigationAction.BAN)
    roles = conf.get_rule(ProtectionKind.MAX_ROLE_DELETES)
    assert roles.threshold == 2
    webhooks = conf.get_rule(ProtectionKind.WEBHOOK_CREATE)
    assert webhooks.threshold is None and webhooks.window is None
    assert webhooks.action == MitigationAction.DELETE
    assert conf.get_rule(ProtectionKind.BOT_ADD).action == MitigationAction.KICK


def test_missing_rule_is_backfilled():
    conf = GuildSettings.model_validate({"protections": {"max_bans": {"threshold": 5, "window": 2000}}})
    assert conf.get_rule(ProtectionKind.MAX_BANS).threshold == 5
    assert conf.get_rule(ProtectionKind.BOT_ADD).action == MitigationAction.KICK


def test_set_action_validates_kind():
    conf = GuildSettings()
    conf.set_action(ProtectionKind.MAX_KICKS, MitigationAction.DERANK)
    assert conf.get_rule(ProtectionKind.MAX_KICKS).action == MitigationAction.DERANK
    with pytest.raises(ValueError):
        conf.set_action(ProtectionKind.WEBHOOK_CREATE, MitigationAction.BAN)
    with pytest.raises(ValueError):
        conf.set_action(ProtectionKind.BOT_ADD, MitigationAction.DERANK)
    with pytest.raises(ValueError):
        conf.set_action(ProtectionKind.MAX_BANS, MitigationAction.DELETE)


@pytest.mark.parametrize(
    "text, kind",
    [
        ("max_bans", ProtectionKind.MAX_BANS),
        ("maxKicks", ProtectionKind.MAX_KICKS),
        ("MAXROLEDELETES", ProtectionKind.MAX_ROLE_DELETES),
        ("webhook-create", ProtectionKind.WEBHOOK_CREATE),
        ("Bot Addition", ProtectionKind.BOT_ADD),
    ],
)
def test_parse_protection(text, kind):
    assert ProtectionKind.parse(text) == kind


def test_parse_rejects_unknown():
    with pytest.raises(ValueError):
        ProtectionKind.parse("maxEmojis")


def test_kind_properties():
    rate_based = [k for k in ProtectionKind if k.rate_based]
    assert ProtectionKind.WEBHOOK_CREATE not in rate_based
    assert ProtectionKind.BOT_ADD not in rate_based
    assert len(rate_based) == 4
    assert [k for k in ProtectionKind if k.matches_target] == [ProtectionKind.MAX_KICKS, ProtectionKind.BOT_ADD]


def test_db_survives_config_storage():
    db = DB()
    conf = db.get_conf(123)
    conf.enabled = True
    conf.whitelisted_users.add(5)
    conf.add_record(make_record(1))
    dump = db.model_dump(mode="json")

    loaded = DB.model_validate(dump)
    restored = loaded.get_conf(123)
    assert restored.enabled
    assert restored.whitelisted_users == {5}
    assert restored.action_history[0].kind == ProtectionKind.MAX_BANS
    assert db.get_conf(456) is db.configs[456]
