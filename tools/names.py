from __future__ import annotations

TOOL_BASH = "Bash"
TOOL_READ = "Read"
TOOL_WRITE = "Write"
TOOL_EDIT = "Edit"
TOOL_NOTEBOOK_EDIT = "NotebookEdit"
TOOL_GLOB = "Glob"
TOOL_GREP = "Grep"
TOOL_LS = "LS"

EDIT_TOOLS = frozenset({TOOL_WRITE, TOOL_EDIT, TOOL_NOTEBOOK_EDIT})
SEARCH_TOOLS = frozenset({TOOL_GLOB, TOOL_GREP})
FILE_TOOLS = frozenset({TOOL_READ, TOOL_LS}) | EDIT_TOOLS | SEARCH_TOOLS

# Tools that need an approval rule or a user decision in normal mode.
APPROVAL_TOOLS = frozenset({TOOL_BASH}) | EDIT_TOOLS


def is_edit_tool(tool_name: str) -> bool:
    return tool_name in EDIT_TOOLS


def is_file_tool(tool_name: str) -> bool:
    return tool_name in FILE_TOOLS


def is_search_tool(tool_name: str) -> bool:
    return tool_name in SEARCH_TOOLS


def requires_approval(tool_name: str) -> bool:
    return tool_name in APPROVAL_TOOLS
