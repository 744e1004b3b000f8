from __future__ import annotations

import posixpath
import re
from typing import Optional

WRAPPER_COMMANDS = frozenset({"sudo", "env", "command", "nohup", "nice", "time"})

# Two-character operators come first so "&&" is never read as two "&". A line
# break ends a command just like ";".
_SEGMENT_SEPARATOR = re.compile(r"\s*(?:\|\||&&|[|;&]|\r?\n)\s*")


def extract_command_name(token: str) -> str:
    """Basename of a command token: /usr/bin/rm -> rm, ./script.sh -> script.sh."""
    stripped = token.rstrip("/")
    if not stripped:
        return token
    return posixpath.basename(stripped)


def command_token_index(tokens: list[str]) -> int:
    """Index of the first non-wrapper token; 0 when every token is a wrapper."""
    i = 0
    while i < len(tokens) and tokens[i] in WRAPPER_COMMANDS:
        i += 1
    return i if i < len(tokens) else 0


def command_token(tokens: list[str]) -> Optional[str]:
    if not tokens:
        return None
    return tokens[command_token_index(tokens)]


def split_segments(command: str) -> list[list[str]]:
    segments: list[list[str]] = []
    if not command:
        return segments
    for part in _SEGMENT_SEPARATOR.split(command):
        tokens = part.split()
        if tokens:
            segments.append(tokens)
    return segments


def extract_command_names(command: str) -> list[str]:
    names: list[str] = []
    for tokens in split_segments(command):
        token = command_token(tokens)
        if token:
            names.append(extract_command_name(token))
    return names
