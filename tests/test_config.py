import pytest
from pydantic import ValidationError

from fleetsim import Engine, EngineConfig, load_config
from fleetsim.config import build_config
from fleetsim.exceptions import ConfigurationError


def test_defaults():
    cfg = EngineConfig()
    assert cfg.initial_workers == 3
    assert cfg.worker_create_s == 5.0
    assert cfg.produce_interval_s == 0.85
    assert cfg.transfer_s == 0.52
    assert (cfg.job_duration_min_s, cfg.job_duration_max_s) == (1, 10)


def test_config_is_frozen():
    cfg = EngineConfig()
    with pytest.raises(ValidationError):
        cfg.initial_workers = 9


def test_inverted_duration_bounds_fail_fast():
    with pytest.raises(ConfigurationError):
        build_config(job_duration_min_s=5, job_duration_max_s=2)


def test_load_from_environment():
    cfg = load_config({"FLEET_INITIAL_WORKERS": "5", "FLEET_SEED": "3", "FLEET_TRANSFER_S": "0.25", "UNRELATED": "x"})
    assert cfg.initial_workers == 5
    assert cfg.seed == 3
    assert cfg.transfer_s == 0.25
    assert len(Engine(cfg).fleet) == 5


@pytest.mark.parametrize(
    "env",
    [
        {"FLEET_PRODUCE_INTERVAL_S": "0"},
        {"FLEET_INITIAL_WORKERS": "-1"},
        {"FLEET_JOB_DURATION_MIN_S": "abc"},
    ],
)
def test_bad_environment_is_rejected(env):
    with pytest.raises(ConfigurationError):
        load_config(env)
