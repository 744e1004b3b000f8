"""Path extraction from bash commands and classification against the vault boundary.

The scan is token based. Shell operators are split out of words so that
``cat</etc/passwd`` and ``ls;cat /etc/hosts`` are seen the same way as their
spaced forms, but quoting is not interpreted: a quoted path containing
spaces is split into several tokens.
"""

from __future__ import annotations

import re
from typing import Callable, Optional, Union

from guard.segmenter import command_token_index, extract_command_name
from guard.types import AccessIntent, PathAccessType, PathCandidate, PathViolation, ViolationKind

Classifier = Callable[[str], Union[PathAccessType, str]]

SEGMENT_SEPARATORS = frozenset({"|", "||", "&&", ";", "&", "\n", "\r\n"})
OUTPUT_REDIRECTS = frozenset({">", ">>", "&>", "&>>", ">|"})
INPUT_REDIRECTS = frozenset({"<"})
HEREDOC_OPERATORS = frozenset({"<<", "<<<"})
FD_DUPLICATION = ">&"

OUTPUT_OPTIONS = frozenset(
    {"-o", "--output", "--out", "--outfile", "--output-file", "--output-dir", "--log-file"}
)

# The last path argument is where these commands write.
DESTINATION_COMMANDS = frozenset({"cp", "mv", "rsync", "install", "ln", "scp"})
# Every path argument is written.
WRITE_ALL_COMMANDS = frozenset({"tee", "touch", "mkdir"})
# Output sinks that hold no data; writing to them reaches nothing.
DISCARD_TARGETS = frozenset({"/dev/null", "/dev/stdout", "/dev/stderr"})

_TOKEN = re.compile(r"\r?\n|&>>|&>|>&|>\||\|\||&&|>>|<<<|<<|[|;&<>]|[^\s|;&<>]+")
_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")
_FD = re.compile(r"^(\d+|-)$")
_QUOTE_CHARS = "'\"`(){}"


def tokenize_bash_command(command: str) -> list[str]:
    if not command:
        return []
    return _TOKEN.findall(command)


def split_tokens_into_segments(tokens: list[str]) -> list[list[str]]:
    segments: list[list[str]] = []
    current: list[str] = []
    for token in tokens:
        if token in SEGMENT_SEPARATORS:
            if current:
                segments.append(current)
            current = []
            continue
        current.append(token)
    if current:
        segments.append(current)
    return segments


def clean_path_token(token: str) -> str:
    cleaned = token.strip().strip(_QUOTE_CHARS)
    if len(cleaned) > 1:
        stripped = cleaned.rstrip("/")
        cleaned = stripped or "/"
    return cleaned


def is_path_like_token(token: str) -> bool:
    cleaned = clean_path_token(token)
    if not cleaned or cleaned.startswith("-"):
        return False
    if "://" in cleaned:
        return False
    if "/" in cleaned or cleaned.startswith((".", "~")):
        return True
    return bool(_WINDOWS_DRIVE.match(cleaned))


def get_segment_command_name(tokens: list[str]) -> str:
    if not tokens:
        return ""
    return extract_command_name(tokens[command_token_index(tokens)]).lower()


def _candidate(token: str, intent: AccessIntent) -> Optional[PathCandidate]:
    cleaned = clean_path_token(token)
    if not cleaned:
        return None
    return PathCandidate(raw=token, cleaned=cleaned, intent=intent)


def extract_segment_candidates(tokens: list[str]) -> list[PathCandidate]:
    """Collect path candidates from one segment, in left-to-right order."""
    found: list[PathCandidate] = []
    # One entry per positional argument: its index in found, or None if not a path.
    positional: list[Optional[int]] = []
    if not tokens:
        return found

    cmd_idx = command_token_index(tokens)
    cmd_name = get_segment_command_name(tokens)

    def add(token: str, intent: AccessIntent) -> Optional[int]:
        candidate = _candidate(token, intent)
        if candidate is None:
            return None
        found.append(candidate)
        return len(found) - 1

    i = 0
    while i < len(tokens):
        token = tokens[i]
        nxt = tokens[i + 1] if i + 1 < len(tokens) else None

        if token in OUTPUT_REDIRECTS or token in INPUT_REDIRECTS:
            if nxt is not None:
                intent = AccessIntent.READ if token in INPUT_REDIRECTS else AccessIntent.WRITE
                add(nxt, intent)
            i += 2
            continue
        if token == FD_DUPLICATION:
            if nxt is not None and not _FD.match(nxt):
                add(nxt, AccessIntent.WRITE)
            i += 2
            continue
        if token in HEREDOC_OPERATORS:
            i += 2
            continue

        if i == cmd_idx and "=" not in token:
            if token.startswith((".", "~")) and is_path_like_token(token):
                add(token, AccessIntent.READ)
            i += 1
            continue

        if token.startswith("-"):
            if "=" in token:
                flag, value = token.split("=", 1)
                if flag in OUTPUT_OPTIONS and value:
                    add(value, AccessIntent.WRITE)
                elif is_path_like_token(value):
                    add(value, AccessIntent.READ)
            elif token in OUTPUT_OPTIONS and nxt is not None and nxt not in OUTPUT_REDIRECTS:
                add(nxt, AccessIntent.WRITE)
                i += 2
                continue
            i += 1
            continue

        if "=" in token and not token.startswith(("'", '"', "/", ".", "~")):
            value = token.split("=", 1)[1]
            if is_path_like_token(value):
                add(value, AccessIntent.READ)
        elif is_path_like_token(token):
            positional.append(add(token, AccessIntent.READ))
        else:
            positional.append(None)
        i += 1

    targets: list[int] = []
    if cmd_name in WRITE_ALL_COMMANDS:
        targets = [idx for idx in positional if idx is not None]
    elif cmd_name in DESTINATION_COMMANDS and len(positional) > 1 and positional[-1] is not None:
        targets = [positional[-1]]
    for idx in targets:
        found[idx] = found[idx].model_copy(update={"intent": AccessIntent.WRITE})
    return found


def extract_path_candidates(command: str) -> list[PathCandidate]:
    candidates: list[PathCandidate] = []
    for segment in split_tokens_into_segments(tokenize_bash_command(command)):
        candidates.extend(extract_segment_candidates(segment))
    return candidates


def _violation_for(path: str, intent: AccessIntent, classify: Classifier) -> Optional[PathViolation]:
    access = PathAccessType(classify(path))
    if access == PathAccessType.OUTSIDE:
        return PathViolation(kind=ViolationKind.OUTSIDE_VAULT, path=path)
    if access == PathAccessType.EXPORT and intent == AccessIntent.READ:
        return PathViolation(kind=ViolationKind.EXPORT_PATH_READ, path=path)
    return None


def check_path_access(
    path: str,
    intent: AccessIntent,
    classify: Classifier,
) -> Optional[PathViolation]:
    # Variable expansion makes the real target unknowable here.
    if "$" in path:
        return PathViolation(kind=ViolationKind.OUTSIDE_VAULT, path=path)
    if intent == AccessIntent.WRITE and path in DISCARD_TARGETS:
        return None
    return _violation_for(path, intent, classify)


def find_path_violation_in_segment(
    tokens: list[str],
    classify: Classifier,
) -> Optional[PathViolation]:
    for candidate in extract_segment_candidates(tokens):
        violation = check_path_access(candidate.cleaned, candidate.intent, classify)
        if violation is not None:
            return violation
    return None


def find_path_violation(command: str, classify: Classifier) -> Optional[PathViolation]:
    if not command:
        return None
    for segment in split_tokens_into_segments(tokenize_bash_command(command)):
        violation = find_path_violation_in_segment(segment, classify)
        if violation is not None:
            return violation
    return None


def check_file_path(
    path: Optional[str],
    classify: Classifier,
    allow_export: bool,
) -> Optional[PathViolation]:
    """Direct check for file tools; only edit/write tools may land in export paths."""
    if not path:
        return None
    intent = AccessIntent.WRITE if allow_export else AccessIntent.READ
    return _violation_for(path, intent, classify)


def describe_violation(violation: PathViolation, from_command: bool = True) -> str:
    label = "Command path" if from_command else "Path"
    if violation.kind == ViolationKind.EXPORT_PATH_READ:
        return (
            f'Access denied: {label} "{violation.path}" is in an allowed export directory, '
            "but export paths are write-only."
        )
    return (
        f'Access denied: {label} "{violation.path}" is outside the vault. '
        "Agent is restricted to vault directory only."
    )
