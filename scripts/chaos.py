import argparse
import random
import time
from typing import Any, Dict

import requests

DEFAULT_URL = "http://localhost:8000"


def snapshot(base_url: str) -> Dict[str, Any]:
    r = requests.get(f"{base_url}/snapshot", timeout=10)
    r.raise_for_status()
    return r.json()


def accounted(snap: Dict[str, Any]) -> int:
    c = snap["counters"]
    return snap["input_queue"]["len"] + snap["retry_queue"]["len"] + c["in_flight"] + snap["store"]["len"]


def churn(base_url: str, seconds: float, rate: float, rng: random.Random) -> Dict[str, int]:
    """Randomly add and remove workers for `seconds`, checking job conservation as we go."""

    actions = {"added": 0, "removed": 0, "violations": 0}
    deadline = time.time() + seconds
    while time.time() < deadline:
        snap = snapshot(base_url)
        if accounted(snap) != snap["counters"]["produced"]:
            actions["violations"] += 1
        workers = snap["workers"]
        if len(workers) < 2 or rng.random() < 0.5:
            requests.post(f"{base_url}/workers", timeout=10).raise_for_status()
            actions["added"] += 1
        else:
            busy = [w["worker_id"] for w in workers if w["job"] is not None]
            target = rng.choice(busy) if busy else None
            url = f"{base_url}/workers/{target}" if target is not None else f"{base_url}/workers"
            requests.delete(url, timeout=10).raise_for_status()
            actions["removed"] += 1
        time.sleep(1.0 / rate)
    return actions


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--url", default=DEFAULT_URL)
    ap.add_argument("--seconds", type=float, default=30.0)
    ap.add_argument("--rate", type=float, default=2.0, help="fleet changes per second")
    ap.add_argument("--seed", type=int, default=None)
    args = ap.parse_args()

    rng = random.Random(args.seed)
    requests.post(f"{args.url}/engine/start", timeout=10).raise_for_status()

    t0 = time.time()
    actions = churn(args.url, args.seconds, args.rate, rng)
    dt = max(1e-9, time.time() - t0)
    snap = snapshot(args.url)
    c = snap["counters"]

    print("=== CHAOS RESULTS ===")
    print(f"wall_time_s: {dt:.2f}")
    print(f"workers_added: {actions['added']} workers_removed: {actions['removed']}")
    print(f"produced: {c['produced']} saved: {c['saved']} faulted: {c['faulted']} in_flight: {c['in_flight']}")
    print(f"throughput_saved_per_s: {c['saved'] / dt:.2f}")
    print(f"conservation: {'ok' if accounted(snap) == c['produced'] and not actions['violations'] else 'VIOLATED'}")


if __name__ == "__main__":
    main()
