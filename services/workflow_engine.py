"""
Durable workflow engine.

A workflow is a plain function handler(ctx, **args). Every side effect goes
through a named step on the StepContext; completed steps are journaled in
workflow_step and, when a run is resumed after a crash, replayed from the
journal instead of executed again.

Step kinds:
    run_mutation(name, fn)  fn(db) writes to the database. The write and the
                            journal row commit in one transaction, so the
                            effect happens at most once per run.
    run_action(name, fn)    fn(db) talks to the outside world. Its output is
                            journaled after it returns; a crash between the
                            call and the journal write repeats the call.
    run_query(fn)           fn(db) read-only, not journaled.
    poll_until(name, fn)    run_query in a loop until fn returns a value,
                            then journal that value. Bounded by a timeout.
    sleep(seconds)

Run status: running -> completed | failed | timed_out. Only Exception
subclasses end a run; anything else (process shutdown) leaves it running
so it can be resumed.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.database import SessionLocal, utcnow
from core.exceptions import NotFoundError, WorkflowTimeoutError
from models import WorkflowRun, WorkflowStep

logger = logging.getLogger(__name__)

RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
TIMED_OUT = "timed_out"


class StepContext:
    def __init__(self, engine: "WorkflowEngine", db: Session, run: WorkflowRun):
        self.engine = engine
        self.db = db
        self.run_id = run.id
        self._journal: Dict[str, Any] = {
            step.name: step.output
            for step in db.query(WorkflowStep).filter(WorkflowStep.run_id == run.id).all()
        }

    def _replayed(self, name: str) -> bool:
        if name in self._journal:
            logger.info(f"Workflow {self.run_id}: replaying step {name}")
            return True
        return False

    def _touch_run(self) -> None:
        self.db.query(WorkflowRun).filter(WorkflowRun.id == self.run_id).update(
            {"updated_at": utcnow()}, synchronize_session=False
        )

    def _record(self, name: str, output: Any) -> Any:
        """Journal a step and commit together with anything pending in the session."""
        try:
            self.db.add(WorkflowStep(run_id=self.run_id, name=name, output=output))
            self._touch_run()
            self.db.commit()
        except IntegrityError:
            # Another driver journaled this step first; its effect wins and ours is rolled back.
            self.db.rollback()
            existing = (
                self.db.query(WorkflowStep)
                .filter(WorkflowStep.run_id == self.run_id, WorkflowStep.name == name)
                .first()
            )
            if existing is None:
                raise
            logger.warning(f"Workflow {self.run_id}: step {name} already recorded by another driver")
            output = existing.output
        except Exception:
            self.db.rollback()
            raise

        self._journal[name] = output
        logger.info(
            f"Workflow {self.run_id}: step {name} completed",
            extra={"extra_fields": {"workflow_id": self.run_id, "step": name}},
        )
        return output

    def run_mutation(self, name: str, fn: Callable[[Session], Any]) -> Any:
        if self._replayed(name):
            return self._journal[name]
        try:
            output = fn(self.db)
        except Exception:
            self.db.rollback()
            raise
        return self._record(name, output)

    def run_action(self, name: str, fn: Callable[[Session], Any]) -> Any:
        if self._replayed(name):
            return self._journal[name]
        output = fn(self.db)
        # Actions must not leave writes behind; only the journal row commits here.
        self.db.rollback()
        return self._record(name, output)

    def run_query(self, fn: Callable[[Session], Any]) -> Any:
        # End the previous read transaction so each query sees fresh commits.
        self.db.rollback()
        return fn(self.db)

    def poll_until(
        self,
        name: str,
        fn: Callable[[Session], Optional[Any]],
        interval_s: float,
        timeout_s: float,
        on_timeout: Optional[Callable[[float], Exception]] = None,
    ) -> Any:
        if self._replayed(name):
            return self._journal[name]

        started = time.monotonic()
        while True:
            value = self.run_query(fn)
            if value is not None:
                return self._record(name, value)
            waited = time.monotonic() - started
            if waited >= timeout_s:
                if on_timeout is not None:
                    raise on_timeout(waited)
                raise WorkflowTimeoutError(name, waited)
            self.sleep(interval_s)

    def sleep(self, seconds: float) -> None:
        self.engine.sleep(seconds)


Handler = Callable[..., Any]


class WorkflowEngine:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.sleep = sleep
        self._definitions: Dict[str, Handler] = {}

    def define(self, name: str, handler: Optional[Handler] = None):
        """Register a workflow definition. Usable as a decorator."""
        def decorator(fn: Handler) -> Handler:
            self._definitions[name] = fn
            return fn

        if handler is not None:
            return decorator(handler)
        return decorator

    def start(self, db: Session, name: str, args: Dict[str, Any], user_id: Optional[str] = None) -> str:
        """Create a running workflow row. The caller commits, then dispatches resume(run_id)."""
        if name not in self._definitions:
            raise ValueError(f"Unknown workflow: {name}")
        run = WorkflowRun(name=name, args=args, user_id=user_id, status=RUNNING)
        db.add(run)
        db.flush()
        logger.info(f"Started workflow {run.id} ({name})")
        return run.id

    def resume(self, run_id: str) -> Any:
        """
        Drive a run from its last journaled step to a terminal status.

        Idempotent on finished runs: returns the stored result without doing
        anything. Re-raises the error that failed or timed out the run.
        """
        db = self.session_factory()
        try:
            run = db.query(WorkflowRun).filter(WorkflowRun.id == run_id).first()
            if run is None:
                raise NotFoundError("WorkflowRun", run_id)
            if run.status != RUNNING:
                return run.result

            handler = self._definitions[run.name]
            ctx = StepContext(self, db, run)
            try:
                result = handler(ctx, **(run.args or {}))
            except WorkflowTimeoutError as e:
                self._finish(db, run_id, TIMED_OUT, error=str(e))
                raise
            except Exception as e:
                self._finish(db, run_id, FAILED, error=str(getattr(e, "detail", None) or e))
                raise

            self._finish(db, run_id, COMPLETED, result=result)
            return result
        finally:
            db.close()

    def _finish(self, db: Session, run_id: str, status: str, result: Any = None, error: Optional[str] = None) -> None:
        db.rollback()
        db.query(WorkflowRun).filter(WorkflowRun.id == run_id, WorkflowRun.status == RUNNING).update(
            {
                "status": status,
                "result": result,
                "error": error,
                "updated_at": utcnow(),
                "completed_at": utcnow(),
            },
            synchronize_session=False,
        )
        db.commit()
        log = logger.info if status == COMPLETED else logger.warning
        log(
            f"Workflow {run_id} {status}" + (f": {error}" if error else ""),
            extra={"extra_fields": {"workflow_id": run_id, "status": status}},
        )

    def get_run(self, db: Session, run_id: str) -> Optional[WorkflowRun]:
        return db.query(WorkflowRun).filter(WorkflowRun.id == run_id).first()

    def get_steps(self, db: Session, run_id: str) -> Dict[str, Any]:
        return {
            step.name: step.output
            for step in db.query(WorkflowStep).filter(WorkflowStep.run_id == run_id).all()
        }


workflow_engine = WorkflowEngine()
