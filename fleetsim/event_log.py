from __future__ import annotations

import csv
import json
import logging
import os
import threading
import time
from typing import Any, Dict, Optional

from .events import Event

log = logging.getLogger("fleet-engine.event-log")


class EventLogger:
    """
    Writes engine events to an append-only file.

    Supported formats:
    - EVENT_LOG_FORMAT=csv  -> CSV with header
    - EVENT_LOG_FORMAT=json -> JSON Lines (one JSON object per line)

    Disabled unless EVENT_LOG_ENABLED is set.
    """

    FIELDS = ["ts", "sim_ts", "event", "job_id", "worker_id", "kind", "retries", "duration_s", "source", "status"]

    def __init__(self) -> None:
        self.enabled = os.environ.get("EVENT_LOG_ENABLED", "0") not in ("0", "false", "False", "")
        self.format = os.environ.get("EVENT_LOG_FORMAT", "json").lower()  # json | csv
        self.path = os.environ.get("EVENT_LOG_PATH", "logs/fleet_events.jsonl")
        self._lock = threading.Lock()
        self._csv_header_written = False

    def record(self, evt: Event) -> None:
        """Engine subscriber entry point."""

        self.emit(evt.type.value, evt.as_record())

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        if not self.enabled:
            return
        rec: Dict[str, Any] = {"ts": time.time(), "event": event, **payload}

        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with self._lock:
                if self.format == "csv":
                    self._emit_csv(rec)
                else:
                    self._emit_jsonl(rec)
        except OSError:
            # Never crash the simulation because of the event log
            log.warning("event log write failed", exc_info=True, extra={"event": event})

    def _emit_jsonl(self, rec: Dict[str, Any]) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")

    def _emit_csv(self, rec: Dict[str, Any]) -> None:
        row = {k: "" if rec.get(k) is None else rec.get(k) for k in self.FIELDS}

        file_exists = os.path.exists(self.path)
        with open(self.path, "a", encoding="utf-8", newline="") as f:
            w = csv.DictWriter(f, fieldnames=self.FIELDS)
            if (not file_exists) or (not self._csv_header_written and os.path.getsize(self.path) == 0):
                w.writeheader()
                self._csv_header_written = True
            w.writerow(row)


_EVENT_LOGGER: Optional[EventLogger] = None


def get_event_logger() -> EventLogger:
    global _EVENT_LOGGER
    if _EVENT_LOGGER is None:
        _EVENT_LOGGER = EventLogger()
    return _EVENT_LOGGER
