import asyncio
from pathlib import Path

import pytest

from guard.config import (
    ConfigError,
    PolicyConfig,
    PolicySnapshot,
    SettingsHolder,
    load_config,
    snapshot_from_config,
)
from guard.store import RuleStore, make_persist_callback
from guard.types import ApprovalDecision, ApprovalRule, ApprovalScope, PermissionMode


def test_defaults_when_file_is_missing(tmp_path: Path):
    config = load_config(tmp_path / "missing.yaml", env={})
    assert config.vault == "."
    assert config.enable_blocklist is True
    assert config.permission_mode == PermissionMode.NORMAL
    assert "rm -rf" in config.blocked_commands.unix


def test_yaml_and_env_overrides(tmp_path: Path):
    path = tmp_path / "vaultguard.yaml"
    path.write_text(
        "vault: /data/vault\n"
        "export_paths: [/data/export]\n"
        "blocked_commands:\n"
        "  unix: [rm]\n",
        encoding="utf-8",
    )
    config = load_config(path, env={"VAULTGUARD_PERMISSION_MODE": "yolo"})
    assert config.vault == "/data/vault"
    assert config.export_paths == ["/data/export"]
    assert config.blocked_commands.unix == ["rm"]
    assert config.permission_mode == PermissionMode.YOLO

    config = load_config(path, env={"VAULTGUARD_VAULT": "/other"})
    assert config.vault == "/other"


def test_bad_config_raises(tmp_path: Path):
    path = tmp_path / "vaultguard.yaml"
    path.write_text("- not\n- a mapping\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path, env={})
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yaml", env={"VAULTGUARD_PERMISSION_MODE": "reckless"})


def test_windows_snapshot_includes_both_lists():
    config = PolicyConfig()
    raws = [p.raw for p in snapshot_from_config(config, platform="win32").blocklist]
    assert "rm -rf" in raws
    assert "diskpart" in raws
    raws = [p.raw for p in snapshot_from_config(config, platform="linux").blocklist]
    assert "diskpart" not in raws


def test_blocklist_update_swaps_snapshot():
    holder = SettingsHolder(PolicySnapshot.build(patterns=["rm"]))
    before = holder.snapshot
    warnings = holder.set_blocklist(["git", "(", ""], enabled=False)
    assert [p for p, _ in warnings] == ["(", ""]
    after = holder.snapshot
    assert after is not before
    assert [p.raw for p in before.blocklist] == ["rm"]
    assert [p.raw for p in after.blocklist] == ["git", "("]
    assert after.enable_blocklist is False


def test_store_replaces_same_pattern(tmp_path: Path):
    store = RuleStore(tmp_path / "rules.yaml")
    store.add(ApprovalRule(tool_name="Bash", pattern="ls", decision=ApprovalDecision.ALLOW))
    rules = store.add(ApprovalRule(tool_name="Bash", pattern="ls", decision=ApprovalDecision.DENY))
    assert [r.decision for r in rules] == [ApprovalDecision.DENY]
    assert store.load() == rules


def test_store_skips_invalid_entries(tmp_path: Path):
    path = tmp_path / "rules.yaml"
    path.write_text(
        "rules:\n"
        "  - {tool_name: Bash, pattern: ls, decision: allow}\n"
        "  - {tool_name: Bash, decision: maybe}\n",
        encoding="utf-8",
    )
    [rule] = RuleStore(path).load()
    assert rule.pattern == "ls"


def test_store_does_not_save_session_rules(tmp_path: Path):
    store = RuleStore(tmp_path / "rules.yaml")
    store.save([ApprovalRule(tool_name="Bash", pattern="ls", decision=ApprovalDecision.ALLOW, scope=ApprovalScope.SESSION)])
    assert store.load() == []


def test_persist_callback_updates_snapshot(tmp_path: Path):
    holder = SettingsHolder()
    persist = make_persist_callback(RuleStore(tmp_path / "rules.yaml"), holder)
    rule = ApprovalRule(tool_name="Bash", pattern="ls", decision=ApprovalDecision.ALLOW)
    asyncio.run(persist("Bash:ls", rule))
    assert holder.snapshot.rules == (rule,)
