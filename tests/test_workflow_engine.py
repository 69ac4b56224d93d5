"""
Tests for the durable workflow engine on toy workflows.
"""
import pytest

from core.database import SessionLocal
from core.exceptions import NotFoundError
from models import SystemConfig, WorkflowRun
from services.workflow_engine import COMPLETED, FAILED, RUNNING, StepContext, WorkflowEngine


class Crash(BaseException):
    pass


@pytest.fixture
def engine():
    return WorkflowEngine(sleep=lambda _seconds: None)


def _start(engine, db, name, args=None):
    run_id = engine.start(db, name, args or {})
    db.commit()
    return run_id


def test_start_unknown_workflow(engine, db_session):
    with pytest.raises(ValueError):
        engine.start(db_session, "nope", {})


def test_resume_unknown_run(engine):
    with pytest.raises(NotFoundError):
        engine.resume("missing")


def test_completed_run_stores_result(engine, db_session):
    @engine.define("add")
    def add(ctx, a, b):
        return {"sum": ctx.run_mutation("compute", lambda db: a + b)}

    run_id = _start(engine, db_session, "add", {"a": 2, "b": 3})
    assert engine.resume(run_id) == {"sum": 5}

    db_session.rollback()
    run = engine.get_run(db_session, run_id)
    assert run.status == COMPLETED
    assert run.result == {"sum": 5}
    assert run.completed_at is not None
    assert engine.get_steps(db_session, run_id) == {"compute": 5}


def test_mutation_commits_with_journal_and_replays(engine, db_session):
    calls = []
    drives = []

    @engine.define("write_then_crash")
    def write_then_crash(ctx):
        drives.append(1)

        def write(db):
            calls.append(1)
            db.add(SystemConfig(key="written", value=len(calls)))
            return "ok"

        ctx.run_mutation("write", write)
        if len(drives) == 1:
            raise Crash()
        return "done"

    run_id = _start(engine, db_session, "write_then_crash")
    with pytest.raises(Crash):
        engine.resume(run_id)

    db_session.rollback()
    assert engine.get_run(db_session, run_id).status == RUNNING
    assert engine.resume(run_id) == "done"
    assert calls == [1]
    assert db_session.query(SystemConfig).filter(SystemConfig.key == "written").one().value == 1


def test_failed_mutation_leaves_nothing_behind(engine, db_session):
    @engine.define("bad_write")
    def bad_write(ctx):
        def write(db):
            db.add(SystemConfig(key="half", value=1))
            db.flush()
            raise RuntimeError("constraint")

        ctx.run_mutation("write", write)

    run_id = _start(engine, db_session, "bad_write")
    with pytest.raises(RuntimeError):
        engine.resume(run_id)

    db_session.rollback()
    run = engine.get_run(db_session, run_id)
    assert run.status == FAILED
    assert run.error == "constraint"
    assert db_session.query(SystemConfig).count() == 0
    assert engine.get_steps(db_session, run_id) == {}


def test_action_does_not_persist_writes(engine, db_session):
    @engine.define("act")
    def act(ctx):
        def action(db):
            db.add(SystemConfig(key="stray", value=1))
            return {"sent": True}

        return ctx.run_action("notify", action)

    run_id = _start(engine, db_session, "act")
    assert engine.resume(run_id) == {"sent": True}
    assert db_session.query(SystemConfig).count() == 0


def test_poll_until_journals_first_value(engine, db_session):
    answers = iter([None, None, 7])

    @engine.define("poll")
    def poll(ctx):
        return ctx.poll_until("wait", lambda db: next(answers), interval_s=0.01, timeout_s=60)

    run_id = _start(engine, db_session, "poll")
    assert engine.resume(run_id) == 7
    assert engine.get_steps(db_session, run_id) == {"wait": 7}


def test_second_driver_adopts_recorded_step(engine, db_session):
    @engine.define("noop")
    def noop(ctx):
        return None

    run_id = _start(engine, db_session, "noop")

    first_db, second_db = SessionLocal(), SessionLocal()
    try:
        run = first_db.query(WorkflowRun).filter(WorkflowRun.id == run_id).one()
        first = StepContext(engine, first_db, run)
        second = StepContext(engine, second_db, run)

        assert first.run_mutation("step", lambda db: "first") == "first"
        assert second.run_mutation("step", lambda db: "second") == "first"
    finally:
        first_db.close()
        second_db.close()
