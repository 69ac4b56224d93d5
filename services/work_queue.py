"""
Bounded Work Queue

Caps simultaneous AI generation calls. Jobs are rows in work_queue_job;
callers enqueue inside their own transaction and poll status by id.

Runner model:
    - max_parallelism worker threads per process, each running one job at a time.
    - Jobs are claimed oldest-first with a conditional update
      (pending -> running), so two workers never run the same job.
    - When Redis is available, a global in-flight counter additionally caps
      running jobs across every process at max_parallelism. Without Redis
      the per-process thread count is the only bound.

State machine: pending -> running -> finished | failed. Terminal states are
permanent; result is only set on finished.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from core.cache import get_redis_client
from core.config import settings
from core.database import SessionLocal, utcnow
from core.exceptions import NotFoundError, ValidationError
from models import WorkQueueJob

logger = logging.getLogger(__name__)

PENDING = "pending"
RUNNING = "running"
FINISHED = "finished"
FAILED = "failed"
TERMINAL_STATES = (FINISHED, FAILED)

INFLIGHT_KEY = "throttle:work_queue:inflight"

# Lua: increment, set expiry only on first acquire, enforce limit.
_ACQUIRE_LUA = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local ttl = tonumber(ARGV[2])
local v = redis.call('INCR', key)
if v == 1 then
  redis.call('EXPIRE', key, ttl)
end
if v > limit then
  redis.call('DECR', key)
  return 0
end
return v
"""

_RELEASE_LUA = """
local key = KEYS[1]
local v = redis.call('GET', key)
if not v then
  return 0
end
if tonumber(v) <= 1 then
  redis.call('DEL', key)
  return 0
end
return redis.call('DECR', key)
"""


@dataclass(frozen=True)
class JobStatus:
    job_id: str
    state: str
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


Handler = Callable[..., Optional[Dict[str, Any]]]


class BoundedWorkQueue:
    def __init__(
        self,
        max_parallelism: Optional[int] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        idle_poll_s: Optional[float] = None,
    ):
        self.max_parallelism = max_parallelism or settings.WORK_QUEUE_MAX_PARALLELISM
        self.session_factory = session_factory
        self.idle_poll_s = settings.WORK_QUEUE_IDLE_POLL_S if idle_poll_s is None else idle_poll_s
        self._handlers: Dict[str, Handler] = {}
        self._threads: List[threading.Thread] = []
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._lock = threading.Lock()
        self._active = 0

    # -----------------------------------------------------------------------
    # Registration and client API
    # -----------------------------------------------------------------------

    def register(self, name: str, handler: Optional[Handler] = None):
        """Register a handler called as handler(db, **args). Usable as a decorator."""
        def decorator(fn: Handler) -> Handler:
            self._handlers[name] = fn
            return fn

        if handler is not None:
            return decorator(handler)
        return decorator

    def enqueue(self, db: Session, name: str, args: Dict[str, Any]) -> str:
        """Insert a pending job. The job becomes visible to workers when the caller commits."""
        if name not in self._handlers:
            raise ValidationError(f"Unknown job type: {name}", field="name")
        job = WorkQueueJob(name=name, args=args, state=PENDING)
        db.add(job)
        db.flush()
        logger.info(f"Enqueued job {job.id} ({name})")
        self.notify()
        return job.id

    def status(self, db: Session, job_id: str) -> JobStatus:
        job = db.query(WorkQueueJob).filter(WorkQueueJob.id == job_id).first()
        if job is None:
            raise NotFoundError("Job", job_id)
        return JobStatus(
            job_id=job.id,
            state=job.state,
            result=job.result if job.state == FINISHED else None,
            error=job.error if job.state == FAILED else None,
        )

    def notify(self) -> None:
        """Wake idle workers."""
        self._wake.set()

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    # -----------------------------------------------------------------------
    # Runner lifecycle
    # -----------------------------------------------------------------------

    def start(self) -> None:
        if self._threads:
            return
        self._stop.clear()
        for i in range(self.max_parallelism):
            thread = threading.Thread(target=self._worker_loop, name=f"work-queue-{i}", daemon=True)
            thread.start()
            self._threads.append(thread)
        logger.info(f"Work queue started with {self.max_parallelism} workers")

    def shutdown(self, timeout: Optional[float] = 10.0) -> None:
        self._stop.set()
        self._wake.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
        logger.info("Work queue stopped")

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            ran = False
            try:
                ran = self.run_next()
            except Exception as e:
                logger.error(f"Work queue worker error: {e}", exc_info=True)
            if not ran:
                self._wake.wait(self.idle_poll_s)
                self._wake.clear()

    # -----------------------------------------------------------------------
    # Job execution
    # -----------------------------------------------------------------------

    def run_next(self) -> bool:
        """Claim and run the oldest pending job. Returns False when nothing ran."""
        if not self._acquire_slot():
            return False
        try:
            job = self._claim_next()
            if job is None:
                return False
            self._execute(job)
            return True
        finally:
            self._release_slot()

    def _claim_next(self) -> Optional[WorkQueueJob]:
        db = self.session_factory()
        try:
            candidates = (
                db.query(WorkQueueJob.id)
                .filter(WorkQueueJob.state == PENDING)
                .order_by(WorkQueueJob.enqueued_at.asc())
                .limit(self.max_parallelism)
                .all()
            )
            for (job_id,) in candidates:
                claimed = (
                    db.query(WorkQueueJob)
                    .filter(WorkQueueJob.id == job_id, WorkQueueJob.state == PENDING)
                    .update({"state": RUNNING, "started_at": utcnow()}, synchronize_session=False)
                )
                db.commit()
                if claimed == 1:
                    return db.query(WorkQueueJob).filter(WorkQueueJob.id == job_id).first()
            return None
        finally:
            db.close()

    def _execute(self, job: WorkQueueJob) -> None:
        with self._lock:
            self._active += 1
        handler = self._handlers.get(job.name)
        db = self.session_factory()
        start = time.monotonic()
        try:
            if handler is None:
                raise ValidationError(f"Unknown job type: {job.name}", field="name")
            result = handler(db, **(job.args or {}))
            db.commit()
            self._finish(job.id, FINISHED, result=result or {})
            logger.info(
                f"Job {job.id} ({job.name}) finished",
                extra={"extra_fields": {"job_id": job.id, "duration_ms": int((time.monotonic() - start) * 1000)}},
            )
        except Exception as e:
            db.rollback()
            error = getattr(e, "detail", None) or str(e) or e.__class__.__name__
            self._finish(job.id, FAILED, error=str(error))
            logger.warning(f"Job {job.id} ({job.name}) failed: {error}")
        finally:
            db.close()
            with self._lock:
                self._active -= 1

    def _finish(self, job_id: str, state: str, result: Optional[Dict[str, Any]] = None, error: Optional[str] = None) -> None:
        db = self.session_factory()
        try:
            db.query(WorkQueueJob).filter(WorkQueueJob.id == job_id, WorkQueueJob.state == RUNNING).update(
                {"state": state, "result": result, "error": error, "finished_at": utcnow()},
                synchronize_session=False,
            )
            db.commit()
        finally:
            db.close()

    # -----------------------------------------------------------------------
    # Global in-flight cap (Redis)
    # -----------------------------------------------------------------------

    def _acquire_slot(self) -> bool:
        client = get_redis_client()
        if not client:
            return True
        ttl_s = max(60, int(settings.WORK_QUEUE_STALE_JOB_S))
        try:
            return int(client.eval(_ACQUIRE_LUA, 1, INFLIGHT_KEY, str(self.max_parallelism), str(ttl_s))) > 0
        except Exception as e:
            logger.warning(f"Work queue slot acquire failed, using per-process cap only: {e}")
            return True

    def _release_slot(self) -> None:
        client = get_redis_client()
        if not client:
            return
        try:
            client.eval(_RELEASE_LUA, 1, INFLIGHT_KEY)
        except Exception as e:
            # Best-effort release; the key expires on its own.
            logger.warning(f"Work queue slot release failed: {e}")


def fail_stale_jobs(db: Session, older_than_s: Optional[int] = None) -> int:
    """
    Fail jobs stuck in running past the threshold (their runner died).

    Lets pollers waiting on those jobs reach a terminal state. Caller commits.
    """
    older_than_s = settings.WORK_QUEUE_STALE_JOB_S if older_than_s is None else older_than_s
    cutoff = utcnow() - timedelta(seconds=older_than_s)
    count = (
        db.query(WorkQueueJob)
        .filter(WorkQueueJob.state == RUNNING, WorkQueueJob.started_at < cutoff)
        .update(
            {"state": FAILED, "error": "Job abandoned: runner stopped before completion", "finished_at": utcnow()},
            synchronize_session=False,
        )
    )
    if count:
        logger.warning(f"Marked {count} stale work queue jobs as failed")
    return count


work_queue = BoundedWorkQueue()
