from __future__ import annotations

from collections import deque
from typing import Deque, Optional, Tuple

from .models import Job, JobKind


class QueuePair:
    """
    Pending jobs waiting for a worker.

    - input: FIFO of freshly produced jobs
    - retry: jobs salvaged from removed workers; pushed at the front so the
      most recently faulted job is redelivered first, and always drained
      before the input queue
    """

    def __init__(self) -> None:
        self.input: Deque[Job] = deque()
        self.retry: Deque[Job] = deque()

    def enqueue_new(self, job: Job) -> None:
        self.input.append(job)

    def enqueue_retry(self, job: Job) -> None:
        self.retry.appendleft(job)

    def next_source(self) -> Optional[JobKind]:
        if self.retry:
            return JobKind.RETRY
        if self.input:
            return JobKind.NEW
        return None

    def dequeue_next(self) -> Optional[Job]:
        if self.retry:
            return self.retry.popleft()
        if self.input:
            return self.input.popleft()
        return None

    def clear(self) -> None:
        self.input.clear()
        self.retry.clear()

    def contents(self) -> Tuple[Tuple[Job, ...], Tuple[Job, ...]]:
        return tuple(self.input), tuple(self.retry)

    def find(self, job_id: int) -> Optional[Tuple[JobKind, Job]]:
        for kind, q in ((JobKind.RETRY, self.retry), (JobKind.NEW, self.input)):
            for j in q:
                if j.job_id == job_id:
                    return kind, j
        return None

    def __len__(self) -> int:
        return len(self.input) + len(self.retry)

    def __bool__(self) -> bool:
        return bool(self.input) or bool(self.retry)
