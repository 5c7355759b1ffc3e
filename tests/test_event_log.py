import csv
import json
import logging

from fleetsim import Engine, EngineConfig, ManualClock
from fleetsim.event_log import EventLogger
from fleetsim.logging_config import JsonFormatter


def _engine():
    e = Engine(EngineConfig(produce_interval_s=3600), ManualClock(100.0))
    e.start()
    return e


def test_disabled_by_default(tmp_path, monkeypatch):
    monkeypatch.delenv("EVENT_LOG_ENABLED", raising=False)
    monkeypatch.setenv("EVENT_LOG_PATH", str(tmp_path / "events.jsonl"))
    e = _engine()
    e.subscribe(on_event=EventLogger().record)
    e.submit_job(2)
    assert not (tmp_path / "events.jsonl").exists()


def test_jsonl_log(tmp_path, monkeypatch):
    path = tmp_path / "events.jsonl"
    monkeypatch.setenv("EVENT_LOG_ENABLED", "1")
    monkeypatch.setenv("EVENT_LOG_FORMAT", "json")
    monkeypatch.setenv("EVENT_LOG_PATH", str(path))
    e = _engine()
    e.subscribe(on_event=EventLogger().record)

    e.submit_job(2)
    e.remove_worker(1)

    recs = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["event"] for r in recs] == ["job_produced", "job_assigned", "job_faulted", "worker_removed", "job_assigned"]
    assert recs[2]["job_id"] == 1 and recs[2]["retries"] == 1 and recs[2]["status"] == "receiving"
    assert recs[4]["worker_id"] == 2 and recs[4]["source"] == "retry"


def test_csv_log(tmp_path, monkeypatch):
    path = tmp_path / "events.csv"
    monkeypatch.setenv("EVENT_LOG_ENABLED", "1")
    monkeypatch.setenv("EVENT_LOG_FORMAT", "csv")
    monkeypatch.setenv("EVENT_LOG_PATH", str(path))
    e = _engine()
    e.subscribe(on_event=EventLogger().record)

    e.submit_job(3)

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["event"] for r in rows] == ["job_produced", "job_assigned"]
    assert rows[1]["worker_id"] == "1"
    assert rows[1]["duration_s"] == "3"
    assert rows[0]["worker_id"] == ""


def test_json_formatter_keeps_structured_extras():
    record = logging.LogRecord("fleet-engine", logging.INFO, __file__, 1, "job faulted", None, None)
    record.event = "job_faulted"
    record.job_id = 4
    record.worker_id = 2
    out = json.loads(JsonFormatter().format(record))
    assert out["msg"] == "job faulted"
    assert (out["event"], out["job_id"], out["worker_id"]) == ("job_faulted", 4, 2)
    assert "retries" not in out
