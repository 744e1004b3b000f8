import json
from pathlib import Path

import cli
from guard.types import ApprovalDecision, ApprovalScope


def test_parse_answer():
    assert cli.parse_answer("y").decision == ApprovalDecision.ALLOW
    assert cli.parse_answer(" A ").scope == ApprovalScope.ALWAYS
    assert cli.parse_answer("d").decision == ApprovalDecision.DENY
    assert cli.parse_answer("").decision == ApprovalDecision.DENY


def test_validate_command(capsys):
    assert cli.main(["validate", "rm", "("]) == 0
    out = capsys.readouterr().out
    assert "OK       'rm'" in out
    assert "WARNING  '('" in out
    assert cli.main(["validate", "  "]) == 1


def test_check_denies_outside_path(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    code = cli.main(["check", "--command", "cat /etc/passwd", "--vault", str(tmp_path)])
    assert code == 2
    result = json.loads(capsys.readouterr().out)
    assert result["continue"] is False


def test_check_yolo_allows(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert cli.main(["check", "--yolo", "--command", "ls", "--vault", str(tmp_path)]) == 0
    assert json.loads(capsys.readouterr().out) == {"continue": True}


def test_check_file_tool_with_hook_output(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    code = cli.main(["check", "--tool", "Read", "--path", "/etc/hosts", "--vault", str(tmp_path), "--hook-output"])
    assert code == 2
    result = json.loads(capsys.readouterr().out)
    assert result["hookSpecificOutput"]["permissionDecision"] == "deny"


def test_descriptor_from_stdin():
    args = cli.build_parser().parse_args(["check", "--stdin"])
    descriptor = cli.descriptor_from_args(args, stdin_text='{"tool_name": "Read", "tool_input": {}}')
    assert descriptor["tool_name"] == "Read"


def test_bad_config_exits(tmp_path: Path, capsys):
    path = tmp_path / "bad.yaml"
    path.write_text("permission_mode: reckless\n", encoding="utf-8")
    assert cli.main(["--config", str(path), "check", "--command", "ls"]) == 2
    assert "Config error" in capsys.readouterr().err
