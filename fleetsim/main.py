from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Response
from pydantic import BaseModel, Field
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from .config import load_config
from .engine import Engine
from .event_log import get_event_logger
from .events import Event, EventType
from .exceptions import EngineNotRunning, JobNotFound, WorkerNotFound, register_exception_handlers
from .logging_config import configure_logging
from .models import Job, JobKind, Snapshot, WorkerStatus, WorkerView

log = logging.getLogger("fleet-api")

METRICS_INTERVAL_S = 2.0

# -----------------------
# Prometheus metrics
# -----------------------
JOBS_PRODUCED = Counter("fleet_jobs_produced_total", "Total jobs produced")
JOBS_SAVED = Counter("fleet_jobs_saved_total", "Total jobs committed to the store", ["kind"])  # new|retry
JOB_FAULTS = Counter("fleet_job_faults_total", "Jobs salvaged from removed workers", ["status"])  # receiving|busy|sending
WORKER_EVENTS = Counter("fleet_worker_events_total", "Worker lifecycle events", ["action"])  # created|ready|removed
QUEUE_DEPTH = Gauge("fleet_queue_depth", "Jobs waiting in queue", ["queue"])  # input|retry
WORKERS = Gauge("fleet_workers", "Workers by status", ["status"])
JOBS_INFLIGHT = Gauge("fleet_jobs_inflight", "Jobs currently held by workers")
JOB_DURATION_S = Histogram("fleet_job_duration_seconds", "Processing duration of saved jobs")
QUEUE_DELAY_S = Histogram("fleet_job_queue_delay_seconds", "Time from production to first assignment (seconds)")


# -----------------------
# API models
# -----------------------


class SubmitJobReq(BaseModel):
    duration_s: Optional[int] = Field(default=None, ge=1, le=3600, description="random when omitted")


# -----------------------
# Observers
# -----------------------


def record_metrics(evt: Event) -> None:
    if evt.type == EventType.JOB_PRODUCED:
        JOBS_PRODUCED.inc()
    elif evt.type == EventType.JOB_ASSIGNED:
        if evt.data.get("source") == JobKind.NEW.value and "created_at" in evt.data:
            QUEUE_DELAY_S.observe(max(0.0, evt.ts - evt.data["created_at"]))
    elif evt.type == EventType.JOB_SAVED:
        JOBS_SAVED.labels(kind=evt.data.get("kind", JobKind.NEW.value)).inc()
        JOB_DURATION_S.observe(evt.data.get("duration_s", 0))
    elif evt.type == EventType.JOB_FAULTED:
        JOB_FAULTS.labels(status=evt.data.get("status", "unknown")).inc()
    elif evt.type == EventType.WORKER_CREATED:
        WORKER_EVENTS.labels(action="created").inc()
    elif evt.type == EventType.WORKER_READY:
        WORKER_EVENTS.labels(action="ready").inc()
    elif evt.type == EventType.WORKER_REMOVED:
        WORKER_EVENTS.labels(action="removed").inc()


def update_gauges(snap: Snapshot) -> None:
    QUEUE_DEPTH.labels(queue="input").set(len(snap.input_queue))
    QUEUE_DEPTH.labels(queue="retry").set(len(snap.retry_queue))
    JOBS_INFLIGHT.set(snap.in_flight)
    for status in WorkerStatus:
        WORKERS.labels(status=status.value).set(sum(1 for w in snap.workers if w.status == status))


# -----------------------
# Serialization
# -----------------------


def job_dict(j: Job) -> Dict[str, Any]:
    return {
        "job_id": j.job_id,
        "kind": j.kind.value,
        "duration_s": j.duration_s,
        "created_at": j.created_at,
        "retries": j.retries,
    }


def worker_dict(w: WorkerView, now: Optional[float] = None) -> Dict[str, Any]:
    return {
        "worker_id": w.worker_id,
        "name": w.name,
        "status": w.status.value,
        "job": job_dict(w.job) if w.job else None,
        "source": w.source.value if w.source else None,
        "ready_at": w.ready_at,
        "stage_start": w.stage_start,
        "stage_end": w.stage_end,
        "progress": w.progress(now) if now is not None else None,
    }


def snapshot_dict(snap: Snapshot, queue_limit: int, saved_limit: int) -> Dict[str, Any]:
    """Queues are cut to their heads and the store to its tail; lengths stay exact."""

    return {
        "ts": snap.ts,
        "running": snap.running,
        "input_queue": {"len": len(snap.input_queue), "head": [job_dict(j) for j in snap.input_queue[:queue_limit]]},
        "retry_queue": {"len": len(snap.retry_queue), "head": [job_dict(j) for j in snap.retry_queue[:queue_limit]]},
        "workers": [worker_dict(w, snap.ts) for w in snap.workers],
        "store": {
            "len": len(snap.store),
            "tail": [job_dict(j) for j in (snap.store[-saved_limit:] if saved_limit > 0 else ())],
        },
        "counters": {
            "produced": snap.counters.produced,
            "faulted": snap.counters.faulted,
            "saved": snap.counters.saved,
            "in_flight": snap.in_flight,
        },
    }


# -----------------------
# Background tasks
# -----------------------


async def engine_loop(engine: Engine) -> None:
    """Drive the engine at its refresh cadence."""

    while True:
        try:
            engine.tick()
        except Exception:
            log.exception("engine tick failed")
        await asyncio.sleep(engine.config.tick_interval_s)


async def metrics_loop(engine: Engine) -> None:
    """Continuously update gauges from engine snapshots."""

    while True:
        try:
            update_gauges(engine.snapshot())
        except Exception:
            # Metrics must never crash the service
            log.exception("metrics update failed")
        await asyncio.sleep(METRICS_INTERVAL_S)


# -----------------------
# App
# -----------------------


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    if engine is None:
        engine = Engine(load_config())
    event_log = get_event_logger()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        # observers live exactly as long as the serving lifespan
        unsubscribe = [engine.subscribe(on_event=record_metrics), engine.subscribe(on_event=event_log.record)]
        tasks = [asyncio.create_task(engine_loop(engine)), asyncio.create_task(metrics_loop(engine))]
        try:
            yield
        finally:
            for t in tasks:
                t.cancel()
            for off in unsubscribe:
                off()
            engine.stop()

    app = FastAPI(title="Fleet Simulator - Engine", lifespan=lifespan)
    app.state.engine = engine
    register_exception_handlers(app)
    cfg = engine.config

    def require_running() -> None:
        if not engine.running:
            raise EngineNotRunning()

    # -----------------------
    # Routes
    # -----------------------
    # Anything touching engine state is async so it runs on the event loop,
    # serialized with engine_loop.

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "running": engine.running}

    @app.get("/metrics")
    async def metrics() -> Response:
        update_gauges(engine.snapshot())
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.post("/engine/start")
    async def start_engine():
        engine.start()
        return {"running": engine.running}

    @app.post("/engine/stop")
    async def stop_engine():
        engine.stop()
        return {"running": engine.running}

    @app.post("/engine/reset")
    async def reset_engine():
        engine.reset()
        return {"running": engine.running}

    @app.get("/snapshot")
    async def get_snapshot():
        return snapshot_dict(engine.snapshot(), cfg.max_queue_render, cfg.max_saved_render)

    @app.post("/workers")
    async def add_worker():
        require_running()
        w = engine.add_worker()
        return worker_dict(w.view())

    @app.delete("/workers")
    async def remove_last_worker():
        require_running()
        w = engine.remove_worker()
        return {"removed": w.worker_id if w else None, "faults": engine.faults}

    @app.delete("/workers/{worker_id}")
    async def remove_worker(worker_id: int):
        require_running()
        w = engine.remove_worker(worker_id)
        if w is None:
            raise WorkerNotFound(worker_id)
        return {"removed": w.worker_id, "faults": engine.faults}

    @app.post("/jobs")
    async def submit_job(req: SubmitJobReq):
        require_running()
        j = engine.submit_job(req.duration_s)
        log.info("job submitted", extra={"event": "job_submitted", "job_id": j.job_id, "kind": j.kind.value})
        return job_dict(j)

    @app.get("/jobs/{job_id}")
    async def get_job(job_id: int):
        hit = engine.find_job(job_id)
        if hit is None:
            raise JobNotFound(job_id)
        location, j = hit
        return {**job_dict(j), "location": location}

    return app


app = create_app()
