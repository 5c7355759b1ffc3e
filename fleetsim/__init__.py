from .clock import Clock, ManualClock
from .config import EngineConfig, load_config
from .engine import Engine, Handoff
from .events import Event, EventType
from .models import Job, JobKind, Snapshot, Worker, WorkerStatus

__all__ = [
    "Clock",
    "Engine",
    "EngineConfig",
    "Event",
    "EventType",
    "Handoff",
    "Job",
    "JobKind",
    "ManualClock",
    "Snapshot",
    "Worker",
    "WorkerStatus",
    "load_config",
]
