import pytest

from fleetsim import Engine, EngineConfig, ManualClock


@pytest.fixture
def clock():
    return ManualClock(100.0)


@pytest.fixture
def config():
    # production effectively off so tests control every job
    return EngineConfig(produce_interval_s=3600, transfer_s=0.5, worker_create_s=5.0, seed=7)


@pytest.fixture
def engine(config, clock):
    e = Engine(config, clock)
    e.start()
    yield e
    e.teardown()
