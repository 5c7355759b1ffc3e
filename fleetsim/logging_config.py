"""
Logging for the simulator.

The engine logs under "fleet-engine" and the API under "fleet-api", passing
simulation fields through `extra=`. In JSON mode those fields become
top-level keys so a log line can be joined with the event log on job_id or
worker_id.
"""

import logging
import json
import os
import sys
import time
from typing import Any, Dict

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# every key the engine and API pass via extra=
STRUCTURED_KEYS = (
    "event",  # engine_started | worker_created | job_assigned | job_faulted | handoff_stale | ...
    "job_id",
    "worker_id",
    "status",  # worker status at the time of the event
    "kind",  # new | retry
    "retries",
    "source",  # queue a job was drawn from
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # Common extras (if provided via logger.*(..., extra={...}))
        for k in STRUCTURED_KEYS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging():
    """Route all loggers to stdout; LOG_FORMAT=plain|json, LOG_LEVEL=DEBUG|INFO|..."""
    fmt = os.environ.get("LOG_FORMAT", "plain").lower()  # plain | json
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)
