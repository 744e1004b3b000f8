from __future__ import annotations

from typing import Any, Optional

from tools.names import TOOL_NOTEBOOK_EDIT, is_search_tool


def _str_value(tool_input: dict[str, Any], key: str) -> Optional[str]:
    value = tool_input.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


def get_path_from_tool_input(tool_name: str, tool_input: dict[str, Any]) -> Optional[str]:
    """Return the filesystem path a file tool operates on, if any.

    Search tools default to the working directory when no path is given,
    so they return None and are treated as nothing to check.
    """
    if tool_name == TOOL_NOTEBOOK_EDIT:
        return _str_value(tool_input, "notebook_path") or _str_value(tool_input, "file_path")
    if is_search_tool(tool_name):
        return _str_value(tool_input, "path")
    return _str_value(tool_input, "file_path") or _str_value(tool_input, "path")


def get_search_pattern(tool_input: dict[str, Any]) -> Optional[str]:
    return _str_value(tool_input, "pattern")
