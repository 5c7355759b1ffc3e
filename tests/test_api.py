import threading
import time

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from fleetsim import Engine, EngineConfig, EventType, ManualClock
from fleetsim.main import create_app


@pytest.fixture
def setup():
    clock = ManualClock(100.0)
    engine = Engine(EngineConfig(produce_interval_s=3600, seed=1), clock)
    # no `with` block: background tick/metrics loops stay off, time only moves via the clock
    client = TestClient(create_app(engine))
    return client, engine, clock


def test_healthz(setup):
    client, _, _ = setup
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "running": False}


def test_fleet_changes_require_running_engine(setup):
    client, _, _ = setup
    assert client.post("/workers").status_code == 409
    assert client.delete("/workers").status_code == 409
    assert client.post("/jobs", json={}).status_code == 409


def test_fault_round_trip(setup):
    client, engine, _ = setup
    assert client.post("/engine/start").json() == {"running": True}

    job = client.post("/jobs", json={"duration_s": 5}).json()
    assert job["job_id"] == 1 and job["kind"] == "new"
    assert client.get("/jobs/1").json()["location"] == "worker:1"

    r = client.delete("/workers/1")
    assert r.status_code == 200
    assert r.json() == {"removed": 1, "faults": 1}

    moved = client.get("/jobs/1").json()
    assert moved["location"] == "worker:2"
    assert moved["kind"] == "retry" and moved["retries"] == 1


def test_snapshot_shape(setup):
    client, engine, _ = setup
    client.post("/engine/start")
    for _ in range(5):
        client.post("/jobs", json={"duration_s": 3})
    added = client.post("/workers").json()
    assert added["status"] == "creating"

    snap = client.get("/snapshot").json()
    assert snap["running"] is True
    assert snap["input_queue"]["len"] == 2
    assert [j["job_id"] for j in snap["input_queue"]["head"]] == [4, 5]
    assert [w["status"] for w in snap["workers"]] == ["receiving", "receiving", "receiving", "creating"]
    assert snap["counters"] == {"produced": 5, "faulted": 0, "saved": 0, "in_flight": 3}


def test_unknown_ids(setup):
    client, _, _ = setup
    client.post("/engine/start")
    assert client.delete("/workers/99").status_code == 404
    assert client.get("/jobs/42").status_code == 404


def test_invalid_duration_rejected(setup):
    client, _, _ = setup
    client.post("/engine/start")
    assert client.post("/jobs", json={"duration_s": 0}).status_code == 422


def test_stop_resets(setup):
    client, engine, _ = setup
    client.post("/engine/start")
    client.post("/jobs", json={"duration_s": 2})
    client.delete("/workers")
    assert client.post("/engine/stop").json() == {"running": False}
    snap = client.get("/snapshot").json()
    assert len(snap["workers"]) == 3
    assert snap["counters"]["produced"] == 0


def test_metrics_exposed(setup):
    client, _, _ = setup
    client.post("/engine/start")
    client.post("/jobs", json={"duration_s": 2})
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "fleet_jobs_produced_total" in r.text
    assert 'fleet_workers{status="receiving"} 1.0' in r.text


def test_routes_and_tick_loop_share_one_thread():
    engine = Engine(EngineConfig(produce_interval_s=3600, seed=1), ManualClock(100.0))
    tick_threads, route_threads = set(), set()

    def on_event(evt):
        if evt.type in (EventType.WORKER_CREATED, EventType.WORKER_REMOVED, EventType.JOB_ASSIGNED):
            route_threads.add(threading.get_ident())

    def on_snapshot(snap):
        tick_threads.add(threading.get_ident())

    engine.subscribe(on_event=on_event, on_snapshot=on_snapshot)

    with TestClient(create_app(engine)) as client:
        client.post("/engine/start")
        deadline = time.time() + 5.0
        while not tick_threads and time.time() < deadline:
            time.sleep(0.01)
        assert tick_threads, "tick loop never ran"

        assert client.post("/workers").status_code == 200
        assert client.post("/jobs", json={"duration_s": 2}).status_code == 200
        assert client.delete("/workers/1").status_code == 200
        assert client.delete("/workers").status_code == 200

        assert route_threads
        assert route_threads == tick_threads


def test_observers_survive_a_second_lifespan():
    engine = Engine(EngineConfig(produce_interval_s=3600, seed=1), ManualClock(100.0))
    app = create_app(engine)

    for _ in range(2):
        with TestClient(app) as client:
            before = REGISTRY.get_sample_value("fleet_jobs_produced_total") or 0.0
            client.post("/engine/start")
            client.post("/jobs", json={"duration_s": 2})
            assert REGISTRY.get_sample_value("fleet_jobs_produced_total") == before + 1
        assert not engine.running
