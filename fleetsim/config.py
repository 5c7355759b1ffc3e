from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .exceptions import ConfigurationError

ENV_PREFIX = "FLEET_"


class EngineConfig(BaseModel):
    """Simulation constants. Fixed for the lifetime of an engine."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    initial_workers: int = Field(default=3, ge=0, description="idle workers seeded by reset()")
    worker_create_s: float = Field(default=5.0, ge=0, description="creating -> idle delay for added workers")
    produce_interval_s: float = Field(default=0.85, gt=0)
    transfer_s: float = Field(default=0.52, ge=0, description="queue -> worker and worker -> store transfer time")
    job_duration_min_s: int = Field(default=1, ge=1)
    job_duration_max_s: int = Field(default=10, ge=1)
    tick_interval_s: float = Field(default=1 / 60, gt=0, description="refresh cadence of the real-time loop")

    # presentation only
    max_queue_render: int = Field(default=18, ge=0)
    max_saved_render: int = Field(default=22, ge=0)

    seed: Optional[int] = None

    @model_validator(mode="after")
    def _duration_bounds(self) -> "EngineConfig":
        if self.job_duration_min_s > self.job_duration_max_s:
            raise ValueError("job_duration_min_s must not exceed job_duration_max_s")
        return self


def build_config(**overrides: Any) -> EngineConfig:
    try:
        return EngineConfig(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def load_config(environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """Build the config from FLEET_* variables, e.g. FLEET_INITIAL_WORKERS=5."""

    env = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for name in EngineConfig.model_fields:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is None or raw == "":
            continue
        overrides[name] = raw
    return build_config(**overrides)
