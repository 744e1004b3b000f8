from __future__ import annotations

import re

# r''m, r""m and r``m all run rm.
_EMPTY_QUOTES = re.compile(r"''|\"\"|``")
_LINE_BREAK = re.compile(r"\r?\n")
_BLANKS = re.compile(r"[^\S\n]+")


def _normalize_line(line: str) -> str:
    parts = _BLANKS.split(line.strip())
    # Backslashes only matter in the command name; arguments may escape legitimately.
    parts[0] = parts[0].replace("\\", "")
    return " ".join(parts)


def _normalize_once(command: str) -> str:
    normalized = _EMPTY_QUOTES.sub("", command)
    # Each line is its own command to the shell.
    return "\n".join(_normalize_line(line) for line in _LINE_BREAK.split(normalized))


def normalize_command(command: str) -> str:
    """Strip blocklist-evasion artifacts from a raw command.

    Removing one artifact can expose another (``'""'`` becomes ``''``), so the
    rewrite is repeated until the text stops changing.
    """
    if not command:
        return ""
    current = command
    while True:
        nxt = _normalize_once(current)
        if nxt == current:
            return current
        current = nxt
