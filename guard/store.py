from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from guard.types import ApprovalRule, ApprovalScope

if TYPE_CHECKING:
    from guard.approval import PersistApprovalCallback
    from guard.config import SettingsHolder

logger = logging.getLogger(__name__)


class RuleStore:
    """Approval rules kept in a YAML file under a top-level ``rules`` list."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> list[ApprovalRule]:
        if not self.path.exists():
            return []
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Failed to load approval rules from %s: %s", self.path, exc)
            return []
        entries = data.get("rules", []) if isinstance(data, dict) else []
        rules: list[ApprovalRule] = []
        for entry in entries or []:
            try:
                rules.append(ApprovalRule.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping invalid approval rule %r: %s", entry, exc)
        return rules

    def save(self, rules: list[ApprovalRule]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload: dict[str, Any] = {
            "rules": [rule.model_dump(mode="json") for rule in rules if rule.scope == ApprovalScope.ALWAYS]
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        os.replace(tmp, self.path)

    def add(self, rule: ApprovalRule) -> list[ApprovalRule]:
        rules = [r for r in self.load() if (r.tool_name, r.pattern) != (rule.tool_name, rule.pattern)]
        rules.append(rule)
        self.save(rules)
        return rules


def make_persist_callback(store: RuleStore, settings: "SettingsHolder") -> "PersistApprovalCallback":
    """Persist a rule to disk, then swap it into the live policy snapshot."""

    async def persist(signature: str, rule: ApprovalRule) -> None:
        rules = await asyncio.to_thread(store.add, rule)
        settings.update(rules=tuple(rules))
        logger.info("Saved %s rule for %s", rule.decision.value, signature)

    return persist
