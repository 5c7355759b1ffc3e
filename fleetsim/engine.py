from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .clock import Clock
from .config import EngineConfig
from .events import Event, EventType
from .fleet import Fleet
from .models import Counters, Job, JobKind, Snapshot, Worker, WorkerStatus
from .producer import Producer
from .queues import QueuePair
from .scheduler import (
    Assignment,
    begin_handoff,
    finish_handoff,
    mark_worker_ready,
    salvage_job,
    schedule,
    start_job_on_worker,
)
from .store import Store

log = logging.getLogger("fleet-engine")

EventListener = Callable[[Event], None]
SnapshotListener = Callable[[Snapshot], None]


@dataclass(frozen=True)
class Handoff:
    """A pending worker -> store transfer, keyed by (worker_id, job_id)."""

    worker_id: int
    job_id: int
    due_at: float


class Engine:
    """
    Owns the whole simulation: queues, fleet, store, producer and counters.

    Everything runs on the caller's thread. tick() advances timed stages;
    the other public operations are serialized mutations the caller may
    interleave with ticks. Operations that make no sense while stopped are
    silent no-ops.
    """

    def __init__(self, config: Optional[EngineConfig] = None, clock: Optional[Clock] = None) -> None:
        self.config = config or EngineConfig()
        self.clock = clock or Clock()
        self.running = False
        self._event_listeners: List[EventListener] = []
        self._snapshot_listeners: List[SnapshotListener] = []
        self.reset()

    # -----------------------
    # Observers
    # -----------------------

    def subscribe(
        self,
        on_event: Optional[EventListener] = None,
        on_snapshot: Optional[SnapshotListener] = None,
    ) -> Callable[[], None]:
        if on_event is not None:
            self._event_listeners.append(on_event)
        if on_snapshot is not None:
            self._snapshot_listeners.append(on_snapshot)

        def unsubscribe() -> None:
            if on_event is not None and on_event in self._event_listeners:
                self._event_listeners.remove(on_event)
            if on_snapshot is not None and on_snapshot in self._snapshot_listeners:
                self._snapshot_listeners.remove(on_snapshot)

        return unsubscribe

    def _emit(self, etype: EventType, ts: float, worker_id: Optional[int] = None, job: Optional[Job] = None, **data) -> None:
        if not self._event_listeners:
            return
        if job is not None:
            data.setdefault("kind", job.kind.value)
            data.setdefault("retries", job.retries)
            data.setdefault("duration_s", job.duration_s)
            data.setdefault("created_at", job.created_at)
        evt = Event(type=etype, ts=ts, worker_id=worker_id, job_id=job.job_id if job else None, data=data)
        for listener in list(self._event_listeners):
            try:
                listener(evt)
            except Exception:
                log.exception("event listener failed", extra={"event": etype.value})

    def _publish_snapshot(self) -> None:
        if not self._snapshot_listeners:
            return
        snap = self.snapshot()
        for listener in list(self._snapshot_listeners):
            try:
                listener(snap)
            except Exception:
                log.exception("snapshot listener failed")

    # -----------------------
    # Lifecycle
    # -----------------------

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.producer.arm(self.clock.now())
        log.info("engine started", extra={"event": "engine_started"})

    def stop(self) -> None:
        """Stop production and timers, then return to the initial state."""

        was_running = self.running
        self.running = False
        self.producer.disarm()
        self._handoffs.clear()
        self.reset()
        if was_running:
            log.info("engine stopped", extra={"event": "engine_stopped"})

    def reset(self) -> None:
        self._handoffs: Dict[int, Handoff] = {}
        self.queues = QueuePair()
        self.fleet = Fleet()
        self.store = Store()
        self.producer = Producer(
            self.config.produce_interval_s,
            self.config.job_duration_min_s,
            self.config.job_duration_max_s,
            seed=self.config.seed,
        )
        self.faults = 0

        t = self.clock.now()
        if self.running:
            self.producer.arm(t)
        for _ in range(self.config.initial_workers):
            w = self.fleet.add(t, creating=False, create_s=self.config.worker_create_s)
            self._emit(EventType.WORKER_CREATED, t, worker_id=w.worker_id, status=w.status.value)
        log.debug("engine reset", extra={"event": "engine_reset"})

    def teardown(self) -> None:
        self.stop()
        self._event_listeners.clear()
        self._snapshot_listeners.clear()

    # -----------------------
    # Fleet sizing
    # -----------------------

    def add_worker(self) -> Optional[Worker]:
        if not self.running:
            return None
        t = self.clock.now()
        w = self.fleet.add(t, creating=True, create_s=self.config.worker_create_s)
        log.info("worker added", extra={"event": "worker_created", "worker_id": w.worker_id, "status": w.status.value})
        self._emit(EventType.WORKER_CREATED, t, worker_id=w.worker_id, status=w.status.value, ready_at=w.ready_at)
        return w

    def remove_worker(self, worker_id: Optional[int] = None) -> Optional[Worker]:
        """
        Remove a worker (the most recently added one by default).

        A job held by the worker is salvaged to the front of the retry queue
        and any pending hand-off for it is dropped before this returns.
        """

        if not self.running:
            return None
        w = self.fleet.remove(worker_id)
        if w is None:
            return None

        t = self.clock.now()
        status = w.status
        self._handoffs.pop(w.worker_id, None)
        job = salvage_job(w)
        if job is not None:
            self.queues.enqueue_retry(job)
            self.faults += 1
            log.info(
                "job faulted",
                extra={"event": "job_faulted", "job_id": job.job_id, "worker_id": w.worker_id, "status": status.value, "retries": job.retries},
            )
            self._emit(EventType.JOB_FAULTED, t, worker_id=w.worker_id, job=job, status=status.value)

        log.info("worker removed", extra={"event": "worker_removed", "worker_id": w.worker_id, "status": status.value})
        self._emit(EventType.WORKER_REMOVED, t, worker_id=w.worker_id, status=status.value)
        self.schedule(t)
        return w

    # -----------------------
    # Jobs
    # -----------------------

    def submit_job(self, duration_s: Optional[int] = None) -> Optional[Job]:
        """Enqueue one new job out of band from the producer. Non-positive durations are ignored."""

        if not self.running:
            return None
        if duration_s is not None and duration_s < 1:
            return None
        t = self.clock.now()
        job = self.producer.make_job(t, duration_s)
        self._enqueue_new(job, t)
        self.schedule(t)
        return job

    def _enqueue_new(self, job: Job, t: float) -> None:
        self.queues.enqueue_new(job)
        log.debug("job produced", extra={"event": "job_produced", "job_id": job.job_id, "kind": job.kind.value})
        self._emit(EventType.JOB_PRODUCED, t, job=job)

    def schedule(self, now: Optional[float] = None) -> List[Assignment]:
        t = self.clock.now() if now is None else now
        assignments = schedule(self.fleet, self.queues, t, self.config.transfer_s)
        for a in assignments:
            log.debug(
                "job assigned",
                extra={"event": "job_assigned", "job_id": a.job.job_id, "worker_id": a.worker_id, "source": a.source.value},
            )
            self._emit(EventType.JOB_ASSIGNED, t, worker_id=a.worker_id, job=a.job, source=a.source.value)
        return assignments

    # -----------------------
    # Tick loop
    # -----------------------

    def tick(self, now: Optional[float] = None) -> None:
        if not self.running:
            return
        t = self.clock.now() if now is None else now

        for job in self.producer.poll(t):
            self._enqueue_new(job, t)

        for w in self.fleet.with_status(WorkerStatus.CREATING):
            if mark_worker_ready(w, t):
                log.debug("worker ready", extra={"event": "worker_ready", "worker_id": w.worker_id})
                self._emit(EventType.WORKER_READY, t, worker_id=w.worker_id)

        for w in self.fleet.with_status(WorkerStatus.RECEIVING):
            if start_job_on_worker(w, t):
                self._emit(EventType.JOB_STARTED, t, worker_id=w.worker_id, job=w.job, ends_at=w.stage_end)

        for w in self.fleet.with_status(WorkerStatus.BUSY):
            job = begin_handoff(w, t)
            if job is None:
                continue
            self._handoffs[w.worker_id] = Handoff(worker_id=w.worker_id, job_id=job.job_id, due_at=t + self.config.transfer_s)
            log.debug("job completed", extra={"event": "job_completed", "job_id": job.job_id, "worker_id": w.worker_id})
            self._emit(EventType.JOB_COMPLETED, t, worker_id=w.worker_id, job=job)

        for h in [h for h in self._handoffs.values() if t >= h.due_at]:
            self.complete_handoff(h, t)

        self.schedule(t)
        self._publish_snapshot()

    def complete_handoff(self, handoff: Handoff, now: Optional[float] = None) -> bool:
        """
        Commit a finished hand-off to the store.

        Returns False without touching any state if the worker is gone or no
        longer holds the job the hand-off was started for.
        """

        if self._handoffs.get(handoff.worker_id) == handoff:
            del self._handoffs[handoff.worker_id]

        w = self.fleet.get(handoff.worker_id)
        job = finish_handoff(w, handoff.job_id) if w is not None else None
        if job is None:
            log.debug(
                "stale hand-off ignored",
                extra={"event": "handoff_stale", "job_id": handoff.job_id, "worker_id": handoff.worker_id},
            )
            return False

        t = self.clock.now() if now is None else now
        self.store.append(job)
        log.debug("job saved", extra={"event": "job_saved", "job_id": job.job_id, "worker_id": handoff.worker_id})
        self._emit(EventType.JOB_SAVED, t, worker_id=handoff.worker_id, job=job)
        return True

    def pending_handoffs(self) -> Tuple[Handoff, ...]:
        return tuple(self._handoffs.values())

    # -----------------------
    # Read side
    # -----------------------

    def counters(self) -> Counters:
        return Counters(produced=self.producer.produced, faulted=self.faults, saved=len(self.store))

    def snapshot(self) -> Snapshot:
        input_q, retry_q = self.queues.contents()
        return Snapshot(
            ts=self.clock.now(),
            running=self.running,
            input_queue=input_q,
            retry_queue=retry_q,
            workers=tuple(w.view() for w in self.fleet),
            store=self.store.jobs(),
            counters=self.counters(),
        )

    def find_job(self, job_id: int) -> Optional[Tuple[str, Job]]:
        """Where a job currently lives: 'input', 'retry', 'worker:<id>' or 'store'."""

        hit = self.queues.find(job_id)
        if hit is not None:
            kind, job = hit
            return ("retry" if kind == JobKind.RETRY else "input"), job
        for w in self.fleet:
            if w.job is not None and w.job.job_id == job_id:
                return f"worker:{w.worker_id}", w.job
        job = self.store.find(job_id)
        if job is not None:
            return "store", job
        return None
