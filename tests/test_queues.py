from fleetsim.models import Job, JobKind
from fleetsim.queues import QueuePair


def _job(job_id, kind=JobKind.NEW):
    return Job(job_id=job_id, kind=kind, duration_s=1, created_at=0.0)


def test_input_queue_is_fifo():
    q = QueuePair()
    for i in (1, 2, 3):
        q.enqueue_new(_job(i))
    assert [q.dequeue_next().job_id for _ in range(3)] == [1, 2, 3]


def test_retry_queue_served_first():
    q = QueuePair()
    q.enqueue_new(_job(1))
    q.enqueue_retry(_job(2, JobKind.RETRY))
    assert q.next_source() == JobKind.RETRY
    assert q.dequeue_next().job_id == 2
    assert q.next_source() == JobKind.NEW
    assert q.dequeue_next().job_id == 1


def test_latest_retry_goes_to_the_front():
    q = QueuePair()
    q.enqueue_retry(_job(1, JobKind.RETRY))
    q.enqueue_retry(_job(2, JobKind.RETRY))
    q.enqueue_retry(_job(3, JobKind.RETRY))
    assert [j.job_id for j in q.retry] == [3, 2, 1]


def test_empty_pair():
    q = QueuePair()
    assert not q
    assert len(q) == 0
    assert q.next_source() is None
    assert q.dequeue_next() is None


def test_find_reports_queue():
    q = QueuePair()
    q.enqueue_new(_job(1))
    q.enqueue_retry(_job(2, JobKind.RETRY))
    assert q.find(1) == (JobKind.NEW, _job(1))
    assert q.find(2)[0] == JobKind.RETRY
    assert q.find(3) is None
