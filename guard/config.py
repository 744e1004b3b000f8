from __future__ import annotations

import dataclasses
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from guard.blocklist import (
    CompiledPattern,
    PatternValidation,
    PlatformBlockedCommands,
    compile_patterns,
    get_bash_tool_blocked_commands,
    validate_blocklist_pattern,
)
from guard.types import ApprovalRule, PermissionMode

DEFAULT_CONFIG_PATH = "vaultguard.yaml"

ENV_OVERRIDES = {
    "VAULTGUARD_VAULT": "vault",
    "VAULTGUARD_PERMISSION_MODE": "permission_mode",
    "VAULTGUARD_RULES_PATH": "rules_path",
    "VAULTGUARD_AUDIT_LOG": "audit_log",
}


class ConfigError(ValueError):
    pass


class PolicyConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    vault: str = "."
    readwrite_paths: list[str] = Field(default_factory=list)
    context_paths: list[str] = Field(default_factory=list)
    export_paths: list[str] = Field(default_factory=list)
    enable_blocklist: bool = True
    blocked_commands: PlatformBlockedCommands = Field(default_factory=PlatformBlockedCommands)
    permission_mode: PermissionMode = PermissionMode.NORMAL
    rules_path: Optional[str] = ".vaultguard/approvals.yaml"
    audit_log: Optional[str] = None


def _load_yaml(path: str | Path) -> dict[str, Any]:
    file_path = Path(path)
    if not file_path.exists():
        return {}
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config {file_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config {file_path} must be a mapping")
    return data


def load_config(
    path: str | Path = DEFAULT_CONFIG_PATH,
    env: Optional[Mapping[str, str]] = None,
) -> PolicyConfig:
    if env is None:
        env = os.environ
    data = _load_yaml(path)
    for var, key in ENV_OVERRIDES.items():
        value = env.get(var, "").strip()
        if value:
            data[key] = value
    try:
        return PolicyConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config: {exc}") from exc


@dataclass(frozen=True)
class PolicySnapshot:
    """Everything one verdict reads, fixed for the duration of that verdict."""

    blocklist: tuple[CompiledPattern, ...] = ()
    enable_blocklist: bool = True
    permission_mode: PermissionMode = PermissionMode.NORMAL
    rules: tuple[ApprovalRule, ...] = ()

    @classmethod
    def build(
        cls,
        patterns: Iterable[str] = (),
        enable_blocklist: bool = True,
        permission_mode: PermissionMode = PermissionMode.NORMAL,
        rules: Iterable[ApprovalRule] = (),
    ) -> "PolicySnapshot":
        return cls(
            blocklist=compile_patterns(patterns),
            enable_blocklist=enable_blocklist,
            permission_mode=PermissionMode(permission_mode),
            rules=tuple(rules),
        )


def snapshot_from_config(
    config: PolicyConfig,
    rules: Iterable[ApprovalRule] = (),
    platform: Optional[str] = None,
) -> PolicySnapshot:
    return PolicySnapshot.build(
        patterns=get_bash_tool_blocked_commands(config.blocked_commands, platform),
        enable_blocklist=config.enable_blocklist,
        permission_mode=config.permission_mode,
        rules=rules,
    )


class SettingsHolder:
    """Owns the live snapshot. Updates build a new snapshot and swap it in whole."""

    def __init__(self, snapshot: Optional[PolicySnapshot] = None) -> None:
        self._snapshot = snapshot or PolicySnapshot()
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> PolicySnapshot:
        return self._snapshot

    def update(self, **changes: Any) -> PolicySnapshot:
        with self._lock:
            self._snapshot = dataclasses.replace(self._snapshot, **changes)
            return self._snapshot

    def set_blocklist(
        self,
        patterns: list[str],
        enabled: Optional[bool] = None,
    ) -> list[tuple[str, PatternValidation]]:
        """Replace the blocklist; returns the patterns that carry a warning."""
        warnings: list[tuple[str, PatternValidation]] = []
        for pattern in patterns:
            validation = validate_blocklist_pattern(pattern)
            if validation.error:
                warnings.append((pattern, validation))
        changes: dict[str, Any] = {"blocklist": compile_patterns(patterns)}
        if enabled is not None:
            changes["enable_blocklist"] = enabled
        self.update(**changes)
        return warnings
