"""User blocklist matching for bash commands.

Patterns are case-insensitive regular expressions with a substring fallback
for patterns that do not compile. The blocklist is defense in depth; the
vault boundary is the primary control.
"""

from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from pydantic import BaseModel, Field

from guard.normalizer import normalize_command
from guard.segmenter import extract_command_names

logger = logging.getLogger(__name__)

DEFAULT_UNIX_BLOCKED = ["rm -rf", "chmod 777", "chmod -R 777"]
DEFAULT_WINDOWS_BLOCKED = [
    "Remove-Item -Recurse -Force",
    "Format-Volume",
    "Clear-Disk",
    "Initialize-Disk",
    "Remove-Partition",
    "rd /s /q",
    "rmdir /s /q",
    "del /s /q",
    "diskpart",
    "bcdedit",
    "reg delete",
]

_SIMPLE_COMMAND = re.compile(r"^[a-z0-9_-]+$", re.IGNORECASE)


@dataclass(frozen=True)
class ValidRegex:
    raw: str
    regex: re.Pattern[str]


@dataclass(frozen=True)
class InvalidPattern:
    raw: str
    error: str


CompiledPattern = Union[ValidRegex, InvalidPattern]


class PatternValidation(BaseModel):
    is_valid: bool
    error: Optional[str] = None


class PlatformBlockedCommands(BaseModel):
    unix: list[str] = Field(default_factory=lambda: list(DEFAULT_UNIX_BLOCKED))
    windows: list[str] = Field(default_factory=lambda: list(DEFAULT_WINDOWS_BLOCKED))


def get_bash_tool_blocked_commands(
    blocked: PlatformBlockedCommands,
    platform: Optional[str] = None,
) -> list[str]:
    """Patterns that apply to the bash tool on this host.

    On Windows the bash tool runs through Git Bash, which can reach both unix
    binaries and cmd/PowerShell, so both lists apply.
    """
    platform = platform or sys.platform
    if not platform.startswith("win"):
        return list(blocked.unix)
    merged: list[str] = []
    for pattern in [*blocked.unix, *blocked.windows]:
        if pattern not in merged:
            merged.append(pattern)
    return merged


def compile_pattern(pattern: str) -> Optional[CompiledPattern]:
    raw = pattern.strip()
    if not raw:
        return None
    if _SIMPLE_COMMAND.match(raw):
        # Keeps "rm" from matching inside "format".
        source = raw if "\\b" in raw else rf"\b{raw}\b"
    else:
        source = raw
    try:
        return ValidRegex(raw=raw, regex=re.compile(source, re.IGNORECASE))
    except re.error as exc:
        logger.debug("Blocklist pattern %r is not a valid regex (%s); using substring match", raw, exc)
        return InvalidPattern(raw=raw, error=str(exc))


def compile_patterns(patterns: Iterable[Union[str, CompiledPattern]]) -> tuple[CompiledPattern, ...]:
    compiled: list[CompiledPattern] = []
    for pattern in patterns:
        if isinstance(pattern, (ValidRegex, InvalidPattern)):
            compiled.append(pattern)
            continue
        item = compile_pattern(pattern)
        if item is not None:
            compiled.append(item)
    return tuple(compiled)


def _pattern_matches(pattern: CompiledPattern, normalized: str, names: list[str]) -> bool:
    lowered = pattern.raw.lower()
    for name in names:
        if name.lower() == lowered:
            return True
    if isinstance(pattern, ValidRegex):
        return pattern.regex.search(normalized) is not None
    return lowered in normalized.lower()


def find_blocking_pattern(
    command: str,
    patterns: Sequence[Union[str, CompiledPattern]],
    enabled: bool,
) -> Optional[str]:
    if not enabled or not command:
        return None
    normalized = normalize_command(command)
    names = extract_command_names(normalized)
    for pattern in compile_patterns(patterns):
        if _pattern_matches(pattern, normalized, names):
            return pattern.raw
    return None


def is_command_blocked(
    command: str,
    patterns: Sequence[Union[str, CompiledPattern]],
    enabled: bool,
) -> bool:
    return find_blocking_pattern(command, patterns, enabled) is not None


def validate_blocklist_pattern(pattern: str) -> PatternValidation:
    if not pattern.strip():
        return PatternValidation(is_valid=False, error="Pattern cannot be empty")
    try:
        re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        # Still usable: matching falls back to substring search.
        return PatternValidation(
            is_valid=True,
            error=f"Invalid regex, will use substring match: {exc}",
        )
    return PatternValidation(is_valid=True)
