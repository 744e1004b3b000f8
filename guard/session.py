from __future__ import annotations

import json
import logging
import queue
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


@dataclass
class AuditTrail:
    """Recent policy events in memory, optionally mirrored to a JSONL file.

    File writes go through a queue drained by a background thread, so
    ``add_event`` is safe to call from the event loop.
    """

    log_path: Optional[str] = None
    max_events: int = 500
    events: list[dict[str, Any]] = field(default_factory=list)
    _writer: Optional[logging.Logger] = field(default=None, init=False, repr=False)
    _listener: Optional[QueueListener] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.log_path:
            self._start_writer(self.log_path)

    def add_event(self, event_type: str, data: dict[str, Any]) -> None:
        row = {"type": event_type, "data": data, "ts": _utc_now_iso()}
        self.events.append(row)
        if len(self.events) > self.max_events:
            del self.events[: len(self.events) - self.max_events]
        if self._writer is not None:
            self._writer.info(json.dumps(row, ensure_ascii=True, default=str))

    def recent(self, limit: int = 10) -> list[dict[str, Any]]:
        if limit <= 0:
            return []
        return self.events[-limit:]

    def denials(self) -> list[dict[str, Any]]:
        return [e for e in self.events if e["type"] == "verdict" and not e["data"].get("continue")]

    def close(self) -> None:
        """Flush pending rows to the log file and stop the writer thread."""
        if self._listener is None:
            return
        self._listener.stop()
        for handler in self._listener.handlers:
            handler.close()
        self._listener = None
        self._writer = None

    def _start_writer(self, log_path: str) -> None:
        try:
            handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError:
            logger.warning("Cannot open audit log %s; keeping events in memory only", log_path)
            return
        handler.setFormatter(logging.Formatter("%(message)s"))
        rows: queue.SimpleQueue = queue.SimpleQueue()
        self._listener = QueueListener(rows, handler)
        self._listener.start()

        writer = logging.getLogger(f"{__name__}.jsonl.{id(self)}")
        writer.setLevel(logging.INFO)
        writer.propagate = False
        writer.handlers = [QueueHandler(rows)]
        self._writer = writer
