from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional

from guard.approval import ApprovalManager, PendingApproval, Prompter, get_action_description
from guard.blocklist import find_blocking_pattern
from guard.boundary import VaultBoundary
from guard.config import PolicyConfig, PolicySnapshot, SettingsHolder, snapshot_from_config
from guard.constructs import describe_construct, find_dangerous_construct
from guard.paths import Classifier, check_file_path, describe_violation, find_path_violation
from guard.session import AuditTrail
from guard.store import RuleStore, make_persist_callback
from guard.types import (
    ApprovalDecision,
    BashInvocation,
    FileInvocation,
    Invocation,
    PermissionMode,
    Verdict,
    parse_invocation,
)
from tools.names import is_edit_tool, requires_approval


class Stage(str, Enum):
    CONSTRUCT_CHECK = "construct_check"
    PATH_CHECK = "path_check"
    BLOCKLIST_CHECK = "blocklist_check"
    APPROVAL_CHECK = "approval_check"


BASH_STAGES = (Stage.CONSTRUCT_CHECK, Stage.PATH_CHECK, Stage.BLOCKLIST_CHECK, Stage.APPROVAL_CHECK)
FILE_STAGES = (Stage.PATH_CHECK, Stage.APPROVAL_CHECK)
OTHER_STAGES = (Stage.APPROVAL_CHECK,)


def stages_for(invocation: Invocation) -> tuple[Stage, ...]:
    if isinstance(invocation, BashInvocation):
        return BASH_STAGES
    if isinstance(invocation, FileInvocation):
        return FILE_STAGES
    return OTHER_STAGES


class PolicyOrchestrator:
    """Pre-tool-use hook: runs the checks in order and returns one verdict.

    The first stage that denies ends the evaluation. Only the approval stage
    can allow, and it still honours saved deny rules.
    """

    def __init__(
        self,
        settings: SettingsHolder,
        classify: Classifier,
        approvals: ApprovalManager,
        logger: logging.Logger,
        audit: Optional[AuditTrail] = None,
    ) -> None:
        self.settings = settings
        self.classify = classify
        self.approvals = approvals
        self.logger = logger
        self.audit = audit

    def close(self) -> None:
        if self.audit is not None:
            self.audit.close()

    async def pre_tool_use(self, raw: Any) -> dict[str, Any]:
        verdict = await self.evaluate(raw)
        return verdict.to_hook_output()

    async def evaluate(self, raw: Any) -> Verdict:
        invocation = parse_invocation(raw)
        if invocation is None:
            return Verdict.allow()

        snapshot = self.settings.snapshot
        stage: Optional[Stage] = None
        try:
            for stage in stages_for(invocation):
                verdict = await self._run_stage(stage, invocation, snapshot)
                if verdict is not None:
                    break
            else:
                verdict = Verdict.allow()
        except asyncio.CancelledError:
            self._record(invocation, stage, None)
            raise
        except Exception as exc:
            self.logger.exception("Policy evaluation failed for %s", invocation.tool_name)
            verdict = Verdict.deny(f"Access denied: policy evaluation failed ({exc}).")

        self._record(invocation, stage, verdict)
        return verdict

    async def _run_stage(
        self,
        stage: Stage,
        invocation: Invocation,
        snapshot: PolicySnapshot,
    ) -> Optional[Verdict]:
        if stage == Stage.CONSTRUCT_CHECK:
            return self._check_constructs(invocation)
        if stage == Stage.PATH_CHECK:
            return self._check_paths(invocation)
        if stage == Stage.BLOCKLIST_CHECK:
            return self._check_blocklist(invocation, snapshot)
        return await self._check_approval(invocation, snapshot)

    def _check_constructs(self, invocation: Invocation) -> Optional[Verdict]:
        if not isinstance(invocation, BashInvocation):
            return None
        construct = find_dangerous_construct(invocation.command)
        if construct is None:
            return None
        return Verdict.deny(describe_construct(construct))

    def _check_paths(self, invocation: Invocation) -> Optional[Verdict]:
        if isinstance(invocation, BashInvocation):
            violation = find_path_violation(invocation.command, self.classify)
            if violation is not None:
                return Verdict.deny(describe_violation(violation, from_command=True))
            return None
        if isinstance(invocation, FileInvocation):
            violation = check_file_path(
                invocation.path,
                self.classify,
                allow_export=is_edit_tool(invocation.tool_name),
            )
            if violation is not None:
                return Verdict.deny(describe_violation(violation, from_command=False))
        return None

    def _check_blocklist(self, invocation: Invocation, snapshot: PolicySnapshot) -> Optional[Verdict]:
        if not isinstance(invocation, BashInvocation):
            return None
        pattern = find_blocking_pattern(invocation.command, snapshot.blocklist, snapshot.enable_blocklist)
        if pattern is None:
            return None
        return Verdict.deny(f'Command blocked by blocklist pattern "{pattern}": {invocation.command}')

    async def _check_approval(self, invocation: Invocation, snapshot: PolicySnapshot) -> Verdict:
        tool_name = invocation.tool_name
        tool_input = invocation.tool_input
        if isinstance(invocation, BashInvocation) and not invocation.command.strip():
            return Verdict.allow()

        rule = self.approvals.find_rule(tool_name, tool_input, snapshot.rules)
        if rule is not None:
            if rule.decision == ApprovalDecision.DENY:
                return Verdict.deny(f'Action denied by saved rule "{rule.pattern}" for {tool_name}.')
            return Verdict.allow()

        if snapshot.permission_mode == PermissionMode.YOLO or not requires_approval(tool_name):
            return Verdict.allow()

        response = await self.approvals.request(tool_name, tool_input)
        if response.decision == ApprovalDecision.ALLOW:
            return Verdict.allow()
        return Verdict.deny(f"User denied: {get_action_description(tool_name, tool_input)}")

    def _record(self, invocation: Invocation, stage: Optional[Stage], verdict: Optional[Verdict]) -> None:
        if verdict is None:
            self.logger.info("Evaluation of %s cancelled at %s", invocation.tool_name, stage)
        elif not verdict.allowed:
            self.logger.info("Denied %s at %s: %s", invocation.tool_name, stage, verdict.reason)
        if self.audit is None:
            return
        self.audit.add_event(
            "verdict" if verdict is not None else "cancelled",
            {
                "tool": invocation.tool_name,
                "stage": stage.value if stage else None,
                **(verdict.to_result() if verdict is not None else {}),
            },
        )


def build_orchestrator(
    config: PolicyConfig,
    logger: logging.Logger,
    prompter: Optional[Prompter] = None,
    on_pending: Optional[Callable[[PendingApproval], None]] = None,
    platform: Optional[str] = None,
) -> PolicyOrchestrator:
    store = RuleStore(config.rules_path) if config.rules_path else None
    rules = store.load() if store is not None else []
    settings = SettingsHolder(snapshot_from_config(config, rules, platform))
    boundary = VaultBoundary(
        config.vault,
        readwrite_paths=config.readwrite_paths,
        context_paths=config.context_paths,
        export_paths=config.export_paths,
    )
    approvals = ApprovalManager(
        persist=make_persist_callback(store, settings) if store is not None else None,
        prompter=prompter,
        on_pending=on_pending,
    )
    return PolicyOrchestrator(
        settings=settings,
        classify=boundary.get_path_access_type,
        approvals=approvals,
        logger=logger,
        audit=AuditTrail(log_path=config.audit_log),
    )
