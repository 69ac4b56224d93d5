"""
Tests for the bounded work queue: state machine, FIFO claims, failure capture
and the parallelism cap, both per process and through the shared Redis
in-flight counter.
"""
import threading
import time
from datetime import timedelta

import fakeredis
import pytest

from core.config import settings
from core.database import SessionLocal, utcnow
from core.exceptions import NotFoundError, ValidationError
from models import WorkQueueJob
from services.work_queue import (
    FAILED,
    FINISHED,
    INFLIGHT_KEY,
    PENDING,
    RUNNING,
    BoundedWorkQueue,
    fail_stale_jobs,
)


@pytest.fixture
def queue():
    q = BoundedWorkQueue(max_parallelism=3, idle_poll_s=0.01)
    yield q
    q.shutdown(timeout=5)


def _wait_until_terminal(job_ids, timeout_s=20.0):
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        db = SessionLocal()
        try:
            states = [row[0] for row in db.query(WorkQueueJob.state).filter(WorkQueueJob.id.in_(job_ids)).all()]
        finally:
            db.close()
        if len(states) == len(job_ids) and all(s in (FINISHED, FAILED) for s in states):
            return
        time.sleep(0.02)
    raise AssertionError("jobs did not finish in time")


def test_enqueue_creates_pending_job(db_session, queue):
    queue.register("echo", lambda db, **args: args)
    job_id = queue.enqueue(db_session, "echo", {"x": 1})
    db_session.commit()

    status = queue.status(db_session, job_id)
    assert status.state == PENDING
    assert status.result is None
    assert not status.is_terminal


def test_enqueue_unknown_job_type(db_session, queue):
    with pytest.raises(ValidationError):
        queue.enqueue(db_session, "nope", {})


def test_status_unknown_job(db_session, queue):
    with pytest.raises(NotFoundError):
        queue.status(db_session, "missing")


def test_run_next_finishes_job_with_result(db_session, queue):
    queue.register("echo", lambda db, **args: {"echo": args["x"]})
    job_id = queue.enqueue(db_session, "echo", {"x": 42})
    db_session.commit()

    assert queue.run_next() is True
    assert queue.run_next() is False

    db_session.rollback()
    status = queue.status(db_session, job_id)
    assert status.state == FINISHED
    assert status.result == {"echo": 42}
    assert status.error is None


def test_failing_handler_marks_job_failed(db_session, queue):
    def boom(db, **args):
        raise RuntimeError("provider exploded")

    queue.register("boom", boom)
    job_id = queue.enqueue(db_session, "boom", {})
    db_session.commit()

    queue.run_next()

    db_session.rollback()
    status = queue.status(db_session, job_id)
    assert status.state == FAILED
    assert status.result is None
    assert "provider exploded" in status.error


def test_jobs_are_claimed_oldest_first(db_session, queue):
    seen = []
    queue.register("record", lambda db, **args: seen.append(args["n"]) or {})
    for n in range(4):
        queue.enqueue(db_session, "record", {"n": n})
        db_session.commit()

    while queue.run_next():
        pass

    assert seen == [0, 1, 2, 3]


def test_terminal_state_is_permanent(db_session, queue):
    queue.register("echo", lambda db, **args: {})
    job_id = queue.enqueue(db_session, "echo", {})
    db_session.commit()
    queue.run_next()

    # A late failure report for an already finished job is ignored.
    queue._finish(job_id, FAILED, error="late")
    db_session.rollback()
    assert queue.status(db_session, job_id).state == FINISHED


def test_running_jobs_never_exceed_parallelism(db_session):
    max_parallelism = 3
    queue = BoundedWorkQueue(max_parallelism=max_parallelism, idle_poll_s=0.01)
    lock = threading.Lock()
    counters = {"running": 0, "peak": 0}

    def slow(db, **args):
        with lock:
            counters["running"] += 1
            counters["peak"] = max(counters["peak"], counters["running"])
        time.sleep(0.05)
        with lock:
            counters["running"] -= 1
        return {"n": args["n"]}

    queue.register("slow", slow)
    job_ids = [queue.enqueue(db_session, "slow", {"n": n}) for n in range(12)]
    db_session.commit()

    queue.start()
    try:
        _wait_until_terminal(job_ids)
    finally:
        queue.shutdown(timeout=5)

    assert counters["peak"] <= max_parallelism
    assert counters["peak"] > 1
    db_session.rollback()
    assert all(queue.status(db_session, job_id).state == FINISHED for job_id in job_ids)


def test_fail_stale_jobs(db_session):
    stale = WorkQueueJob(name="x", args={}, state=RUNNING, started_at=utcnow() - timedelta(hours=2))
    fresh = WorkQueueJob(name="x", args={}, state=RUNNING, started_at=utcnow())
    db_session.add_all([stale, fresh])
    db_session.commit()

    assert fail_stale_jobs(db_session, older_than_s=1800) == 1
    db_session.commit()

    db_session.refresh(stale)
    db_session.refresh(fresh)
    assert stale.state == FAILED
    assert stale.error
    assert fresh.state == RUNNING


# ---------------------------------------------------------------------------
# Shared in-flight counter (runs the real Lua scripts)
# ---------------------------------------------------------------------------

@pytest.fixture
def lua_redis(fake_redis, monkeypatch):
    """A Lua-capable fake Redis shared by every queue instance in the test."""
    server = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr("services.work_queue.get_redis_client", lambda: server)
    return server


def test_cap_holds_across_queue_instances(db_session, lua_redis):
    first = BoundedWorkQueue(max_parallelism=2, idle_poll_s=0.01)
    second = BoundedWorkQueue(max_parallelism=2, idle_poll_s=0.01)
    lock = threading.Lock()
    counters = {"running": 0, "peak": 0}

    def slow(db, **args):
        with lock:
            counters["running"] += 1
            counters["peak"] = max(counters["peak"], counters["running"])
        time.sleep(0.05)
        with lock:
            counters["running"] -= 1
        return {}

    for q in (first, second):
        q.register("slow", slow)
    job_ids = [first.enqueue(db_session, "slow", {"n": n}) for n in range(10)]
    db_session.commit()

    first.start()
    second.start()
    try:
        _wait_until_terminal(job_ids)
    finally:
        first.shutdown(timeout=5)
        second.shutdown(timeout=5)

    # Four worker threads in total, two slots in Redis.
    assert counters["peak"] <= 2
    assert lua_redis.get(INFLIGHT_KEY) is None


def test_slot_released_when_handler_fails(db_session, lua_redis, queue):
    def boom(db, **args):
        raise RuntimeError("provider exploded")

    queue.register("boom", boom)
    job_id = queue.enqueue(db_session, "boom", {})
    db_session.commit()

    assert queue.run_next() is True

    db_session.rollback()
    assert queue.status(db_session, job_id).state == FAILED
    assert lua_redis.get(INFLIGHT_KEY) is None


def test_first_acquire_sets_expiry(lua_redis, queue):
    assert queue._acquire_slot() is True
    assert lua_redis.get(INFLIGHT_KEY) == "1"
    assert 0 < lua_redis.ttl(INFLIGHT_KEY) <= max(60, settings.WORK_QUEUE_STALE_JOB_S)


def test_leaked_slots_expire_despite_retries(db_session, lua_redis):
    crashed = BoundedWorkQueue(max_parallelism=2, idle_poll_s=0.01)
    survivor = BoundedWorkQueue(max_parallelism=2, idle_poll_s=0.01)

    # Two runners took slots and died without releasing them.
    assert crashed._acquire_slot() is True
    assert crashed._acquire_slot() is True
    lua_redis.pexpire(INFLIGHT_KEY, 300)

    survivor.register("echo", lambda db, **args: {"ok": True})
    job_id = survivor.enqueue(db_session, "echo", {})
    db_session.commit()

    # Rejected attempts must not push the expiry back out.
    for _ in range(5):
        assert survivor.run_next() is False
    assert 0 < lua_redis.pttl(INFLIGHT_KEY) <= 300

    time.sleep(0.4)
    assert survivor.run_next() is True

    db_session.rollback()
    assert survivor.status(db_session, job_id).state == FINISHED
    assert lua_redis.get(INFLIGHT_KEY) is None
