import json
from pathlib import Path

from guard.session import AuditTrail


def test_events_are_written_as_jsonl(tmp_path: Path):
    log_path = tmp_path / "audit.jsonl"
    audit = AuditTrail(log_path=str(log_path))
    audit.add_event("verdict", {"tool": "Bash", "continue": False, "reason": "no"})
    audit.add_event("verdict", {"tool": "Read", "continue": True})
    audit.close()

    rows = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert [r["data"]["tool"] for r in rows] == ["Bash", "Read"]
    assert len(audit.denials()) == 1


def test_close_without_log_is_harmless():
    audit = AuditTrail()
    audit.add_event("verdict", {"continue": True})
    audit.close()
    assert len(audit.events) == 1


def test_event_list_is_bounded():
    audit = AuditTrail(max_events=3)
    for i in range(5):
        audit.add_event("verdict", {"n": i})
    assert [e["data"]["n"] for e in audit.events] == [2, 3, 4]


def test_recent_limit():
    audit = AuditTrail()
    for i in range(4):
        audit.add_event("verdict", {"n": i})
    assert [e["data"]["n"] for e in audit.recent(2)] == [2, 3]
    assert audit.recent(0) == []
    assert audit.recent(-1) == []
