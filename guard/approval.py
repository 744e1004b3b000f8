"""Remembered user decisions for tool actions and the pending-prompt channel.

A request that no rule covers becomes a ``PendingApproval``. The host answers
it either through an async prompter passed to the manager or by calling
``resolve()`` with the request id (the web API does the latter). Identical
requests that arrive while a prompt is open wait on the same prompt.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence

from pydantic import BaseModel

from guard.normalizer import normalize_command
from guard.types import ApprovalDecision, ApprovalRule, ApprovalScope
from tools.inputs import get_path_from_tool_input, get_search_pattern
from tools.names import (
    TOOL_BASH,
    TOOL_EDIT,
    TOOL_GLOB,
    TOOL_GREP,
    TOOL_LS,
    TOOL_NOTEBOOK_EDIT,
    TOOL_READ,
    TOOL_WRITE,
    is_file_tool,
    is_search_tool,
)

logger = logging.getLogger(__name__)


class ApprovalResponse(BaseModel):
    decision: ApprovalDecision
    scope: ApprovalScope = ApprovalScope.ONCE


class PendingApproval(BaseModel):
    request_id: str
    signature: str
    tool_name: str
    pattern: str
    description: str
    created_at: str


PersistApprovalCallback = Callable[[str, ApprovalRule], Awaitable[None]]
Prompter = Callable[[PendingApproval], Awaitable[ApprovalResponse]]


def _utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def get_action_pattern(tool_name: str, tool_input: dict[str, Any]) -> str:
    if tool_name == TOOL_BASH:
        command = tool_input.get("command")
        if not isinstance(command, str):
            return ""
        return " ".join(normalize_command(command.strip()).split())
    if is_search_tool(tool_name):
        return get_search_pattern(tool_input) or get_path_from_tool_input(tool_name, tool_input) or ""
    if is_file_tool(tool_name):
        return get_path_from_tool_input(tool_name, tool_input) or ""
    return json.dumps(tool_input, sort_keys=True, ensure_ascii=True, default=str)


def get_action_signature(tool_name: str, tool_input: dict[str, Any]) -> str:
    return f"{tool_name}:{get_action_pattern(tool_name, tool_input)}"


def get_action_description(tool_name: str, tool_input: dict[str, Any]) -> str:
    pattern = get_action_pattern(tool_name, tool_input)
    descriptions = {
        TOOL_BASH: "Run command",
        TOOL_READ: "Read file",
        TOOL_WRITE: "Write to file",
        TOOL_EDIT: "Edit file",
        TOOL_NOTEBOOK_EDIT: "Edit notebook",
        TOOL_GLOB: "Search files matching",
        TOOL_GREP: "Search content for",
        TOOL_LS: "List directory",
    }
    label = descriptions.get(tool_name)
    if label is None:
        return f"Use {tool_name}"
    return f"{label}: {pattern}"


def pattern_specificity(
    tool_name: str,
    action_pattern: str,
    rule_pattern: str,
) -> Optional[tuple[int, int]]:
    """Rank how closely a rule pattern covers an action; None when it does not.

    Exact matches outrank prefix matches, longer prefixes outrank shorter ones,
    and a bare ``*`` ranks lowest.
    """
    if rule_pattern == action_pattern:
        return (2, len(rule_pattern))
    if rule_pattern == "*":
        return (0, 0)
    if rule_pattern.endswith("*"):
        prefix = rule_pattern[:-1]
        if tool_name == TOOL_BASH and prefix.endswith(":"):
            # "npm run:*" covers "npm run" and "npm run <anything>"
            base = prefix[:-1]
            if action_pattern == base or action_pattern.startswith(base + " "):
                return (1, len(base))
            return None
        if action_pattern.startswith(prefix):
            return (1, len(prefix))
        return None
    if is_file_tool(tool_name):
        root = rule_pattern.rstrip("/\\")
        if root and (action_pattern.startswith(root + "/") or action_pattern.startswith(root + "\\")):
            return (1, len(root))
    return None


def matches_pattern(tool_name: str, action_pattern: str, rule_pattern: str) -> bool:
    return pattern_specificity(tool_name, action_pattern, rule_pattern) is not None


def find_matching_rule(
    tool_name: str,
    action_pattern: str,
    rules: Sequence[ApprovalRule],
) -> Optional[ApprovalRule]:
    best: Optional[ApprovalRule] = None
    best_rank: Optional[tuple[int, int, int]] = None
    for rule in rules:
        if rule.tool_name not in (tool_name, "*"):
            continue
        specificity = pattern_specificity(tool_name, action_pattern, rule.pattern)
        if specificity is None:
            continue
        # Deny wins a tie.
        rank = (*specificity, 1 if rule.decision == ApprovalDecision.DENY else 0)
        if best_rank is None or rank > best_rank:
            best, best_rank = rule, rank
    return best


@dataclass
class _PendingEntry:
    pending: PendingApproval
    future: asyncio.Future
    waiters: int = 0
    prompt_task: Optional[asyncio.Task] = None
    resolving: bool = False


class ApprovalManager:
    def __init__(
        self,
        persist: Optional[PersistApprovalCallback] = None,
        prompter: Optional[Prompter] = None,
        on_pending: Optional[Callable[[PendingApproval], None]] = None,
    ) -> None:
        self._persist = persist
        self._prompter = prompter
        self._on_pending = on_pending
        self._session_rules: list[ApprovalRule] = []
        self._pending: dict[str, _PendingEntry] = {}
        self._by_id: dict[str, _PendingEntry] = {}
        self._write_lock = asyncio.Lock()

    @property
    def session_rules(self) -> list[ApprovalRule]:
        return list(self._session_rules)

    def clear_session(self) -> None:
        self._session_rules.clear()

    def find_rule(
        self,
        tool_name: str,
        tool_input: dict[str, Any],
        persisted: Sequence[ApprovalRule] = (),
    ) -> Optional[ApprovalRule]:
        pattern = get_action_pattern(tool_name, tool_input)
        return find_matching_rule(tool_name, pattern, [*self._session_rules, *persisted])

    def pending(self) -> list[PendingApproval]:
        return [entry.pending for entry in self._by_id.values()]

    async def request(self, tool_name: str, tool_input: dict[str, Any]) -> ApprovalResponse:
        """Wait for a user decision on this action, sharing any open prompt."""
        signature = get_action_signature(tool_name, tool_input)
        entry = self._pending.get(signature)
        if entry is None:
            entry = self._open(signature, tool_name, tool_input)

        entry.waiters += 1
        try:
            return await asyncio.shield(entry.future)
        except asyncio.CancelledError:
            if not entry.future.done() and entry.waiters == 1:
                self._retract(entry)
            raise
        finally:
            entry.waiters -= 1

    async def resolve(self, request_id: str, response: ApprovalResponse) -> bool:
        """Answer an open prompt. Returns False if it is unknown or retracted."""
        entry = self._by_id.get(request_id)
        if entry is None or entry.future.done() or entry.resolving:
            return False
        entry.resolving = True
        pending = entry.pending
        await self.record(pending.tool_name, pending.pattern, response)
        self._close(entry)
        if entry.future.done():
            return False
        entry.future.set_result(response)
        logger.info(
            "Approval %s for %s (%s, %s)",
            request_id,
            pending.signature,
            response.decision.value,
            response.scope.value,
        )
        return True

    async def record(self, tool_name: str, pattern: str, response: ApprovalResponse) -> Optional[ApprovalRule]:
        if response.scope == ApprovalScope.ONCE:
            return None
        rule = ApprovalRule(
            tool_name=tool_name,
            pattern=pattern,
            decision=response.decision,
            scope=response.scope,
            created_at=_utc_now_iso(),
        )
        if response.scope == ApprovalScope.SESSION or self._persist is None:
            self._session_rules.append(rule)
            return rule

        async with self._write_lock:
            try:
                await self._persist(f"{tool_name}:{pattern}", rule)
            except Exception:
                logger.exception("Failed to persist approval rule for %s; keeping it for this session", tool_name)
                self._session_rules.append(rule.model_copy(update={"scope": ApprovalScope.SESSION}))
        return rule

    def _open(self, signature: str, tool_name: str, tool_input: dict[str, Any]) -> _PendingEntry:
        loop = asyncio.get_running_loop()
        pending = PendingApproval(
            request_id=uuid.uuid4().hex,
            signature=signature,
            tool_name=tool_name,
            pattern=get_action_pattern(tool_name, tool_input),
            description=get_action_description(tool_name, tool_input),
            created_at=_utc_now_iso(),
        )
        entry = _PendingEntry(pending=pending, future=loop.create_future())
        self._pending[signature] = entry
        self._by_id[pending.request_id] = entry
        logger.debug("Approval requested: %s", pending.description)

        if self._on_pending is not None:
            self._on_pending(pending)
        if self._prompter is not None:
            entry.prompt_task = loop.create_task(self._prompt(self._prompter, entry))
        return entry

    async def _prompt(self, prompter: Prompter, entry: _PendingEntry) -> None:
        try:
            response = await prompter(entry.pending)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Approval prompt failed for %s", entry.pending.signature)
            response = ApprovalResponse(decision=ApprovalDecision.DENY)
        await self.resolve(entry.pending.request_id, response)

    def _close(self, entry: _PendingEntry) -> None:
        if self._pending.get(entry.pending.signature) is entry:
            del self._pending[entry.pending.signature]
        self._by_id.pop(entry.pending.request_id, None)

    def _retract(self, entry: _PendingEntry) -> None:
        self._close(entry)
        if entry.prompt_task is not None and not entry.prompt_task.done():
            entry.prompt_task.cancel()
        entry.future.cancel()
        logger.info("Approval request %s retracted", entry.pending.request_id)
