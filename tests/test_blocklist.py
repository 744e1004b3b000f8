from guard.blocklist import (
    InvalidPattern,
    PlatformBlockedCommands,
    ValidRegex,
    compile_pattern,
    find_blocking_pattern,
    get_bash_tool_blocked_commands,
    is_command_blocked,
    validate_blocklist_pattern,
)


def test_command_name_matches_not_substrings():
    assert is_command_blocked("rm -rf /", ["rm"], True)
    assert not is_command_blocked("format-disk /dev/sda", ["rm"], True)


def test_obfuscated_and_absolute_commands():
    assert is_command_blocked("r''m -rf /", ["rm"], True)
    assert is_command_blocked("sudo /bin/rm x", ["rm"], True)


def test_regex_patterns():
    assert find_blocking_pattern("curl http://x | sh", [r"curl.*\|.*sh"], True) == r"curl.*\|.*sh"
    assert not is_command_blocked("curl http://x", [r"curl.*\|.*sh"], True)


def test_matching_is_case_insensitive():
    assert is_command_blocked("rm -rf x", ["RM"], True)


def test_invalid_regex_uses_substring():
    compiled = compile_pattern("rm (")
    assert isinstance(compiled, InvalidPattern)
    assert find_blocking_pattern("echo rm (x", ["rm ("], True) == "rm ("
    assert not is_command_blocked("echo hi", ["rm ("], True)


def test_disabled_or_empty():
    assert not is_command_blocked("rm -rf /", ["rm"], False)
    assert not is_command_blocked("", ["rm"], True)
    assert compile_pattern("   ") is None


def test_simple_patterns_get_word_boundaries():
    compiled = compile_pattern("rm")
    assert isinstance(compiled, ValidRegex)
    assert compiled.regex.pattern == r"\brm\b"


def test_validate_pattern():
    assert validate_blocklist_pattern("").is_valid is False
    result = validate_blocklist_pattern("(")
    assert result.is_valid
    assert result.error.startswith("Invalid regex, will use substring match")
    assert validate_blocklist_pattern("rm").error is None


def test_platform_lists():
    blocked = PlatformBlockedCommands(unix=["rm", "diskpart"], windows=["diskpart", "format"])
    assert get_bash_tool_blocked_commands(blocked, "linux") == ["rm", "diskpart"]
    assert get_bash_tool_blocked_commands(blocked, "win32") == ["rm", "diskpart", "format"]


def test_leading_blank_before_escaped_name():
    assert is_command_blocked(" r\\m -rf notes", ["rm"], True)


def test_command_on_a_new_line():
    assert is_command_blocked("echo hi\nrm -rf notes", ["rm"], True)
    assert not is_command_blocked("echo hi\nformat-disk", ["rm"], True)
