from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from tools.inputs import get_path_from_tool_input
from tools.names import TOOL_BASH, is_file_tool


class PathAccessType(str, Enum):
    VAULT = "vault"
    READWRITE = "readwrite"
    CONTEXT = "context"
    EXPORT = "export"
    OUTSIDE = "outside"


class AccessIntent(str, Enum):
    READ = "read"
    WRITE = "write"


class ConstructKind(str, Enum):
    COMMAND_SUBSTITUTION = "command_substitution"
    BACKTICK_SUBSTITUTION = "backtick_substitution"
    PROCESS_SUBSTITUTION = "process_substitution"
    HEX_ESCAPE = "hex_escape"
    DANGEROUS_BUILTIN = "dangerous_builtin"


class ViolationKind(str, Enum):
    OUTSIDE_VAULT = "outside_vault"
    EXPORT_PATH_READ = "export_path_read"


class ApprovalDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class ApprovalScope(str, Enum):
    ONCE = "once"
    SESSION = "session"
    ALWAYS = "always"


class PermissionMode(str, Enum):
    NORMAL = "normal"
    YOLO = "yolo"


class DangerousConstruct(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ConstructKind
    pattern: str
    command: Optional[str] = None


class PathCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: str
    cleaned: str
    intent: AccessIntent = AccessIntent.READ


class PathViolation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    path: str


class ApprovalRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_name: str
    pattern: str
    decision: ApprovalDecision
    scope: ApprovalScope = ApprovalScope.ALWAYS
    created_at: Optional[str] = None


class Verdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: bool = Field(serialization_alias="continue")
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Verdict":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "Verdict":
        return cls(allowed=False, reason=reason or "Denied by policy.")

    def to_result(self) -> dict[str, Any]:
        if self.allowed:
            return {"continue": True}
        return {"continue": False, "reason": self.reason}

    def to_hook_output(self) -> dict[str, Any]:
        out = self.to_result()
        if not self.allowed:
            out["hookSpecificOutput"] = {
                "hookEventName": "PreToolUse",
                "permissionDecision": "deny",
                "permissionDecisionReason": self.reason,
            }
        return out


class ToolDescriptor(BaseModel):
    """Raw hook input as sent by the tool-execution layer."""

    model_config = ConfigDict(populate_by_name=True)

    tool_name: str = Field(validation_alias=AliasChoices("tool_name", "toolName"))
    tool_input: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("tool_input", "toolInput"),
    )


class BashInvocation(BaseModel):
    kind: Literal["bash"] = "bash"
    tool_name: str = TOOL_BASH
    tool_input: dict[str, Any] = Field(default_factory=dict)
    command: str = ""


class FileInvocation(BaseModel):
    kind: Literal["file"] = "file"
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)
    path: Optional[str] = None


class OtherInvocation(BaseModel):
    kind: Literal["other"] = "other"
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)


Invocation = Union[BashInvocation, FileInvocation, OtherInvocation]


def parse_invocation(raw: Any) -> Optional[Invocation]:
    """Validate a raw hook descriptor once and return the matching invocation.

    Returns None when the descriptor is not a tool invocation at all; the
    caller treats that as nothing to check.
    """
    if isinstance(raw, ToolDescriptor):
        descriptor = raw
    else:
        try:
            descriptor = ToolDescriptor.model_validate(raw)
        except ValidationError:
            return None

    name = descriptor.tool_name
    tool_input = descriptor.tool_input
    if name == TOOL_BASH:
        command = tool_input.get("command")
        return BashInvocation(
            tool_input=tool_input,
            command=command if isinstance(command, str) else "",
        )
    if is_file_tool(name):
        return FileInvocation(
            tool_name=name,
            tool_input=tool_input,
            path=get_path_from_tool_input(name, tool_input),
        )
    return OtherInvocation(tool_name=name, tool_input=tool_input)
