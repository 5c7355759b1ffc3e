from __future__ import annotations

import random
from typing import List, Optional

from .models import Job, JobKind


class Producer:
    """Creates one new job per production period."""

    def __init__(self, interval_s: float, min_duration_s: int, max_duration_s: int, seed: Optional[int] = None) -> None:
        self.interval_s = interval_s
        self.min_duration_s = min_duration_s
        self.max_duration_s = max_duration_s
        self.rng = random.Random(seed)
        self.next_job_id = 1
        self.produced = 0
        self.next_due: Optional[float] = None

    def arm(self, now: float) -> None:
        self.next_due = now + self.interval_s

    def disarm(self) -> None:
        self.next_due = None

    def make_job(self, now: float, duration_s: Optional[int] = None) -> Job:
        if duration_s is None:
            duration_s = self.rng.randint(self.min_duration_s, self.max_duration_s)
        job = Job(
            job_id=self.next_job_id,
            kind=JobKind.NEW,
            duration_s=duration_s,
            created_at=now,
        )
        self.next_job_id += 1
        self.produced += 1
        return job

    def poll(self, now: float) -> List[Job]:
        """Jobs for every period that has elapsed since the last poll."""

        jobs: List[Job] = []
        while self.next_due is not None and now >= self.next_due:
            jobs.append(self.make_job(now))
            self.next_due += self.interval_s
        return jobs
