from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .fleet import Fleet
from .models import Job, JobKind, Worker, WorkerStatus
from .queues import QueuePair


@dataclass(frozen=True)
class Assignment:
    worker_id: int
    job: Job
    source: JobKind


def mark_worker_ready(w: Worker, now: float) -> bool:
    """creating -> idle once the creation deadline has passed."""

    if w.status != WorkerStatus.CREATING:
        return False
    if w.ready_at is not None and now < w.ready_at:
        return False
    w.status = WorkerStatus.IDLE
    w.ready_at = None
    return True


def assign_job_to_worker(j: Job, w: Worker, source: JobKind, now: float, transfer_s: float) -> None:
    w.status = WorkerStatus.RECEIVING
    w.job = j
    w.source = source
    w.stage_start = now
    w.stage_end = now + transfer_s


def start_job_on_worker(w: Worker, now: float) -> bool:
    """receiving -> busy once the inbound transfer has landed."""

    if w.status != WorkerStatus.RECEIVING or w.job is None:
        return False
    if w.stage_end is not None and now < w.stage_end:
        return False
    w.status = WorkerStatus.BUSY
    w.stage_start = now
    w.stage_end = now + w.job.duration_s
    return True


def begin_handoff(w: Worker, now: float) -> Optional[Job]:
    """busy -> sending once processing time is up. Returns the job being handed off."""

    if w.status != WorkerStatus.BUSY or w.job is None:
        return None
    if w.stage_end is not None and now < w.stage_end:
        return None
    w.status = WorkerStatus.SENDING
    w.stage_start = None
    w.stage_end = None
    return w.job


def finish_handoff(w: Worker, job_id: int) -> Optional[Job]:
    """sending -> idle. Only applies if the worker still holds job_id."""

    if w.status != WorkerStatus.SENDING:
        return None
    if w.job is None or w.job.job_id != job_id:
        return None
    job = w.job
    _clear(w)
    w.status = WorkerStatus.IDLE
    return job


def salvage_job(w: Worker) -> Optional[Job]:
    """
    Take the job away from a worker that is being removed.

    The returned copy is already flagged as a retry with its retry count
    bumped; the caller owns putting it back into circulation.
    """

    if w.job is None:
        return None
    job = w.job.as_retry()
    _clear(w)
    return job


def schedule(fleet: Fleet, queues: QueuePair, now: float, transfer_s: float) -> List[Assignment]:
    """Give every idle worker, in fleet order, at most one queued job. Retries first."""

    out: List[Assignment] = []
    for w in fleet:
        if not queues:
            break
        if not w.schedulable:
            # creating workers are never schedulable
            continue
        source = queues.next_source()
        j = queues.dequeue_next()
        if j is None or source is None:
            continue
        assign_job_to_worker(j, w, source, now, transfer_s)
        out.append(Assignment(worker_id=w.worker_id, job=j, source=source))
    return out


def _clear(w: Worker) -> None:
    w.job = None
    w.source = None
    w.stage_start = None
    w.stage_end = None
