from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

from dotenv import load_dotenv

from guard.approval import ApprovalResponse, PendingApproval
from guard.blocklist import validate_blocklist_pattern
from guard.config import DEFAULT_CONFIG_PATH, ConfigError, load_config
from guard.orchestrator import build_orchestrator
from guard.types import ApprovalDecision, ApprovalScope, PermissionMode
from tools.names import TOOL_BASH

ANSWERS = {
    "y": ApprovalResponse(decision=ApprovalDecision.ALLOW, scope=ApprovalScope.ONCE),
    "yes": ApprovalResponse(decision=ApprovalDecision.ALLOW, scope=ApprovalScope.ONCE),
    "s": ApprovalResponse(decision=ApprovalDecision.ALLOW, scope=ApprovalScope.SESSION),
    "a": ApprovalResponse(decision=ApprovalDecision.ALLOW, scope=ApprovalScope.ALWAYS),
    "d": ApprovalResponse(decision=ApprovalDecision.DENY, scope=ApprovalScope.ALWAYS),
}


def parse_answer(answer: str) -> ApprovalResponse:
    return ANSWERS.get(answer.strip().lower(), ApprovalResponse(decision=ApprovalDecision.DENY))


async def terminal_prompter(pending: PendingApproval) -> ApprovalResponse:
    prompt = (
        f"\nApproval required\n"
        f"- tool: {pending.tool_name}\n"
        f"- action: {pending.description}\n"
        "Approve? [y]es / [n]o / [s]ession / [a]lways allow / [d] always deny: "
    )
    answer = await asyncio.to_thread(input, prompt)
    return parse_answer(answer)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Pre-execution policy check for agent tool calls")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    p.add_argument("--log-level", default="WARNING")
    sub = p.add_subparsers(dest="cmd", required=True)

    check = sub.add_parser("check", help="Evaluate one tool invocation")
    check.add_argument("--tool", default=TOOL_BASH, help="Tool name (Bash, Read, Write, ...)")
    check.add_argument("--command", default=None, help="Command for the Bash tool")
    check.add_argument("--path", default=None, help="File path for file tools")
    check.add_argument("--stdin", action="store_true", help="Read a JSON tool descriptor from stdin")
    check.add_argument("--vault", default=None, help="Vault directory (overrides config)")
    check.add_argument("--yolo", action="store_true", help="Skip approval prompts")
    check.add_argument("--hook-output", action="store_true", help="Print the PreToolUse hook block too")

    validate = sub.add_parser("validate", help="Check blocklist patterns")
    validate.add_argument("patterns", nargs="+")
    return p


def descriptor_from_args(args: argparse.Namespace, stdin_text: Optional[str] = None) -> Any:
    if args.stdin:
        return json.loads(stdin_text if stdin_text is not None else sys.stdin.read())
    tool_input: dict[str, Any] = {}
    if args.command is not None:
        tool_input["command"] = args.command
    if args.path is not None:
        tool_input["file_path"] = args.path
    return {"tool_name": args.tool, "tool_input": tool_input}


def run_validate(patterns: list[str]) -> int:
    status = 0
    for pattern in patterns:
        result = validate_blocklist_pattern(pattern)
        if not result.is_valid:
            status = 1
            print(f"INVALID  {pattern!r}: {result.error}")
        elif result.error:
            print(f"WARNING  {pattern!r}: {result.error}")
        else:
            print(f"OK       {pattern!r}")
    return status


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = getattr(logging, str(args.log_level).upper(), logging.WARNING)
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(message)s")
    logger = logging.getLogger("vaultguard")

    if args.cmd == "validate":
        return run_validate(args.patterns)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2
    updates: dict[str, Any] = {}
    if args.vault:
        updates["vault"] = args.vault
    if args.yolo:
        updates["permission_mode"] = PermissionMode.YOLO
    if updates:
        config = config.model_copy(update=updates)

    try:
        descriptor = descriptor_from_args(args)
    except json.JSONDecodeError as exc:
        print(f"Invalid JSON on stdin: {exc}", file=sys.stderr)
        return 2

    orchestrator = build_orchestrator(config, logger, prompter=terminal_prompter)
    try:
        verdict = asyncio.run(orchestrator.evaluate(descriptor))
    finally:
        orchestrator.close()
    result = verdict.to_hook_output() if args.hook_output else verdict.to_result()
    print(json.dumps(result, ensure_ascii=True))
    return 0 if verdict.allowed else 2


if __name__ == "__main__":
    raise SystemExit(main())
