"""Detection of shell constructs that can run code or disguise a path.

Runs on the raw command before any path check: a substitution can build an
innocent-looking path at execution time, so nothing downstream can trust the
text once one is present.
"""

from __future__ import annotations

import re
from typing import Optional

from guard.normalizer import normalize_command
from guard.segmenter import extract_command_names
from guard.types import ConstructKind, DangerousConstruct

DANGEROUS_BUILTINS = frozenset({"eval", "exec", "source", "."})

_PATTERNS: list[tuple[ConstructKind, re.Pattern[str]]] = [
    (ConstructKind.COMMAND_SUBSTITUTION, re.compile(r"\$\([^)]*\)?")),
    (ConstructKind.BACKTICK_SUBSTITUTION, re.compile(r"`[^`]*`")),
    (ConstructKind.PROCESS_SUBSTITUTION, re.compile(r"[<>]\([^)]*\)?")),
    (ConstructKind.HEX_ESCAPE, re.compile(r"\\x[0-9a-fA-F]{1,2}|\\0[0-7]{1,3}")),
]


def find_dangerous_construct(command: str) -> Optional[DangerousConstruct]:
    if not command:
        return None

    for kind, pattern in _PATTERNS:
        match = pattern.search(command)
        if match:
            return DangerousConstruct(kind=kind, pattern=match.group(0))

    # Normalized names too, so e''val cannot slip past.
    names = extract_command_names(command) + extract_command_names(normalize_command(command))
    for name in names:
        if name in DANGEROUS_BUILTINS:
            return DangerousConstruct(
                kind=ConstructKind.DANGEROUS_BUILTIN,
                pattern=name,
                command=name,
            )
    return None


def describe_construct(construct: DangerousConstruct) -> str:
    kind = construct.kind
    if kind == ConstructKind.COMMAND_SUBSTITUTION:
        return (
            f'Access denied: Command substitution "{construct.pattern}" is not allowed '
            "as it could execute arbitrary code."
        )
    if kind == ConstructKind.BACKTICK_SUBSTITUTION:
        return (
            f'Access denied: Backtick substitution "{construct.pattern}" is not allowed '
            "as it could execute arbitrary code."
        )
    if kind == ConstructKind.PROCESS_SUBSTITUTION:
        return (
            f'Access denied: Process substitution "{construct.pattern}" is not allowed '
            "as it could execute arbitrary code."
        )
    if kind == ConstructKind.HEX_ESCAPE:
        return (
            f'Access denied: Hex/octal escape sequences "{construct.pattern}" are not allowed '
            "as they could obfuscate malicious paths."
        )
    return (
        f'Access denied: The "{construct.command}" command is not allowed '
        "as it could execute arbitrary code."
    )
