from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from .models import Job


class Store:
    """Append-only record of committed jobs."""

    def __init__(self) -> None:
        self._jobs: List[Job] = []

    def append(self, job: Job) -> None:
        self._jobs.append(job)

    def jobs(self) -> Tuple[Job, ...]:
        return tuple(self._jobs)

    def find(self, job_id: int) -> Optional[Job]:
        for j in self._jobs:
            if j.job_id == job_id:
                return j
        return None

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(self._jobs)
