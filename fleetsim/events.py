from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    WORKER_CREATED = "worker_created"
    WORKER_READY = "worker_ready"
    WORKER_REMOVED = "worker_removed"
    JOB_PRODUCED = "job_produced"
    JOB_ASSIGNED = "job_assigned"
    JOB_STARTED = "job_started"
    JOB_COMPLETED = "job_completed"
    JOB_FAULTED = "job_faulted"
    JOB_SAVED = "job_saved"


@dataclass(frozen=True)
class Event:
    """One lifecycle notification. Observers get values, never engine state."""

    type: EventType
    ts: float
    worker_id: Optional[int] = None
    job_id: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def as_record(self) -> Dict[str, Any]:
        rec: Dict[str, Any] = {"sim_ts": self.ts, "worker_id": self.worker_id, "job_id": self.job_id}
        rec.update(self.data)
        return rec
