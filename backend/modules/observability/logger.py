"""
modules/observability/logger.py
-------------------------------
Per-request event log for the synthesis stages. Every STAGE1/2/3_COMPLETE and
PERFORMANCE event the synthesizer emits becomes one JSON object on its own
line in  <STRUCTURED_LOG_DIR>/<file name for thread_id>.jsonl.

Thread ids arrive from callers, so they are never used as paths directly:
characters outside [A-Za-z0-9_.-] become "_" and leading dots are stripped.
Two ids that map to the same file still read back separately, because every
record carries its original session_id.

    events = StructuredLogger(tmp_dir)
    events.log("thread_abc123", "STAGE1_COMPLETE", {"total_candidates": 42})
    events.read("thread_abc123", "STAGE1_COMPLETE")
"""

from __future__ import annotations

import json
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Optional

import config

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def log_file_name(session_id: str) -> str:
    """File name for a session's log, safe to join under the log directory."""
    stem = _UNSAFE_CHARS.sub("_", session_id).lstrip(".")
    return f"{stem or 'session'}.jsonl"


class StructuredLogger:
    """Append-only JSONL event log; one open handle per file, shared across threads."""

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._logs_dir = Path(logs_dir or config.STRUCTURED_LOG_DIR)
        self._lock     = threading.Lock()
        self._handles: dict[Path, IO[str]] = {}

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir

    # ── Writing ───────────────────────────────────────────────────────────────

    def log(self, session_id: str, event_type: str, payload: dict) -> None:
        record = {
            "timestamp":  datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "event_type": event_type,
            "payload":    payload,
        }
        line = json.dumps(record, default=str, ensure_ascii=False) + "\n"
        path = self.path_for(session_id)
        with self._lock:
            fh = self._handles.get(path)
            if fh is None:
                self._logs_dir.mkdir(parents=True, exist_ok=True)
                fh = self._handles[path] = path.open("a", encoding="utf-8")
            fh.write(line)
            fh.flush()

    # ── Reading ───────────────────────────────────────────────────────────────

    def read(self, session_id: str, event_type: Optional[str] = None) -> list[dict]:
        """Records for one session, oldest first, optionally of a single event type."""
        path = self.path_for(session_id)
        if not path.exists():
            return []
        with self._lock:
            lines = path.read_text(encoding="utf-8").splitlines()
        records = [json.loads(line) for line in lines if line.strip()]
        return [
            r for r in records
            if r.get("session_id") == session_id
            and (event_type is None or r.get("event_type") == event_type)
        ]

    def path_for(self, session_id: str) -> Path:
        return self._logs_dir / log_file_name(session_id)

    def close(self, session_id: Optional[str] = None) -> None:
        """Close the handle for one session, or every open handle."""
        with self._lock:
            if session_id is not None:
                fh = self._handles.pop(self.path_for(session_id), None)
                if fh is not None:
                    fh.close()
                return
            for fh in self._handles.values():
                fh.close()
            self._handles.clear()
