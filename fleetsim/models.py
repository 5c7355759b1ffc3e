from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple


class JobKind(str, Enum):
    NEW = "new"
    RETRY = "retry"


class WorkerStatus(str, Enum):
    CREATING = "creating"
    IDLE = "idle"
    RECEIVING = "receiving"
    BUSY = "busy"
    SENDING = "sending"


# statuses in which a worker owns a job
HOLDING = frozenset({WorkerStatus.RECEIVING, WorkerStatus.BUSY, WorkerStatus.SENDING})


@dataclass(frozen=True)
class Job:
    """Represents one unit of work in the system."""

    job_id: int
    kind: JobKind
    duration_s: int
    created_at: float
    # bumped each time the job is salvaged from a removed worker
    retries: int = 0

    def as_retry(self) -> "Job":
        return replace(self, kind=JobKind.RETRY, retries=self.retries + 1)


@dataclass
class Worker:
    """Represents a simulated worker and the timed stage it is in."""

    worker_id: int
    name: str
    status: WorkerStatus = WorkerStatus.IDLE

    job: Optional[Job] = None
    # queue the current job was drawn from
    source: Optional[JobKind] = None

    ready_at: Optional[float] = None  # creating only
    stage_start: Optional[float] = None  # receiving | busy
    stage_end: Optional[float] = None

    @property
    def schedulable(self) -> bool:
        return self.status == WorkerStatus.IDLE

    def view(self) -> "WorkerView":
        return WorkerView(
            worker_id=self.worker_id,
            name=self.name,
            status=self.status,
            job=self.job,
            source=self.source,
            ready_at=self.ready_at,
            stage_start=self.stage_start,
            stage_end=self.stage_end,
        )


@dataclass(frozen=True)
class WorkerView:
    worker_id: int
    name: str
    status: WorkerStatus
    job: Optional[Job]
    source: Optional[JobKind]
    ready_at: Optional[float]
    stage_start: Optional[float]
    stage_end: Optional[float]

    def progress(self, now: float) -> Optional[float]:
        """Fraction of the current timed stage that has elapsed, 0..1."""

        if self.stage_start is None or self.stage_end is None:
            return None
        total = self.stage_end - self.stage_start
        if total <= 0:
            return 1.0
        return min(1.0, max(0.0, (now - self.stage_start) / total))


@dataclass(frozen=True)
class Counters:
    produced: int
    faulted: int
    saved: int


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of the whole simulation at one instant."""

    ts: float
    running: bool
    input_queue: Tuple[Job, ...]
    retry_queue: Tuple[Job, ...]
    workers: Tuple[WorkerView, ...]
    store: Tuple[Job, ...]
    counters: Counters

    @property
    def in_flight(self) -> int:
        return sum(1 for w in self.workers if w.job is not None)

    def accounted(self) -> int:
        """Jobs currently held anywhere; equals counters.produced at all times."""

        return len(self.input_queue) + len(self.retry_queue) + self.in_flight + len(self.store)
