from guard.constructs import describe_construct, find_dangerous_construct
from guard.types import ConstructKind


def test_command_substitution():
    construct = find_dangerous_construct("echo $(cat /etc/passwd)")
    assert construct.kind == ConstructKind.COMMAND_SUBSTITUTION
    assert construct.pattern == "$(cat /etc/passwd)"
    assert "Command substitution" in describe_construct(construct)


def test_backticks():
    construct = find_dangerous_construct("echo `whoami`")
    assert construct.kind == ConstructKind.BACKTICK_SUBSTITUTION
    assert construct.pattern == "`whoami`"


def test_process_substitution():
    construct = find_dangerous_construct("diff <(ls a) <(ls b)")
    assert construct.kind == ConstructKind.PROCESS_SUBSTITUTION
    assert construct.pattern == "<(ls a)"


def test_hex_and_octal_escapes():
    construct = find_dangerous_construct(r"cat $'\x2fetc\x2fpasswd'")
    assert construct.kind == ConstructKind.HEX_ESCAPE
    assert construct.pattern == r"\x2f"
    assert find_dangerous_construct(r"printf \0101").kind == ConstructKind.HEX_ESCAPE


def test_dangerous_builtins_in_any_segment():
    construct = find_dangerous_construct("ls && eval rm -rf /")
    assert construct.kind == ConstructKind.DANGEROUS_BUILTIN
    assert construct.command == "eval"
    assert find_dangerous_construct("source ~/.bashrc").command == "source"
    assert find_dangerous_construct(". ./env.sh").command == "."
    assert 'The "eval" command' in describe_construct(construct)


def test_quoted_builtin_is_still_caught():
    assert find_dangerous_construct("e''val x").command == "eval"


def test_substitution_reported_before_builtin():
    assert find_dangerous_construct("eval $(x)").kind == ConstructKind.COMMAND_SUBSTITUTION


def test_plain_commands_pass():
    assert find_dangerous_construct("ls -la ./notes") is None
    assert find_dangerous_construct("echo hi > out.txt") is None
    assert find_dangerous_construct("") is None


def test_builtin_on_a_new_line():
    assert find_dangerous_construct("echo hi\neval x").command == "eval"
    assert find_dangerous_construct("echo hi\r\ne''val x").command == "eval"
