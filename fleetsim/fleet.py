from __future__ import annotations

from typing import Iterator, List, Optional

from .models import Worker, WorkerStatus


class Fleet:
    """Workers in insertion order. Ids are never reused until clear()."""

    def __init__(self) -> None:
        self._workers: List[Worker] = []
        self._next_id = 1

    def add(self, now: float, creating: bool, create_s: float) -> Worker:
        worker_id = self._next_id
        self._next_id += 1
        w = Worker(worker_id=worker_id, name=f"worker {worker_id}")
        if creating:
            w.status = WorkerStatus.CREATING
            w.ready_at = now + create_s
        self._workers.append(w)
        return w

    def get(self, worker_id: int) -> Optional[Worker]:
        for w in self._workers:
            if w.worker_id == worker_id:
                return w
        return None

    def remove(self, worker_id: Optional[int] = None) -> Optional[Worker]:
        """Remove worker_id, or the most recently added worker when no id is given."""

        if not self._workers:
            return None
        if worker_id is None:
            return self._workers.pop()
        for idx, w in enumerate(self._workers):
            if w.worker_id == worker_id:
                return self._workers.pop(idx)
        return None

    def with_status(self, status: WorkerStatus) -> List[Worker]:
        return [w for w in self._workers if w.status == status]

    def clear(self) -> None:
        self._workers = []
        self._next_id = 1

    def __iter__(self) -> Iterator[Worker]:
        return iter(list(self._workers))

    def __len__(self) -> int:
        return len(self._workers)
