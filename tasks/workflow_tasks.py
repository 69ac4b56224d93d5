"""
Workflow Tasks

Drive check-in workflows and keep the work queue healthy.
"""

from datetime import timedelta
from typing import Dict
from celery import Task
from sqlalchemy.orm import Session
from core.config import settings
from core.database import get_db_sync, utcnow
from tasks import celery_app
from models import WorkflowRun
from services import checkin_workflow  # noqa: F401  (registers the workflow definition)
from services.notifier import send_check_in_reminder, users_due_for_reminder
from services.work_queue import fail_stale_jobs
from services.workflow_engine import RUNNING, workflow_engine
import logging

logger = logging.getLogger(__name__)

# A run polls two generation jobs back to back, each for up to
# WORKFLOW_POLL_TIMEOUT_S; the global task limits are shorter than that.
WORKFLOW_SOFT_TIME_LIMIT_S = 2 * settings.WORKFLOW_POLL_TIMEOUT_S + 10 * 60
WORKFLOW_TIME_LIMIT_S = WORKFLOW_SOFT_TIME_LIMIT_S + 5 * 60


@celery_app.task(
    name="tasks.run_check_in_workflow",
    bind=True,
    soft_time_limit=WORKFLOW_SOFT_TIME_LIMIT_S,
    time_limit=WORKFLOW_TIME_LIMIT_S,
)
def run_check_in_workflow(self: Task, run_id: str) -> Dict:
    """
    Drive one workflow run to a terminal status.

    Safe to run more than once for the same run: completed steps replay
    from the journal.
    """
    try:
        result = workflow_engine.resume(run_id)
        return {"status": "success", "workflow_id": run_id, "result": result}
    except Exception as e:
        logger.error(f"Workflow {run_id} did not complete: {e}")
        return {"status": "error", "workflow_id": run_id, "message": str(e)}


@celery_app.task(name="tasks.resume_stalled_workflows", bind=True)
def resume_stalled_workflows_task(self: Task) -> Dict:
    """Re-dispatch runs that have made no progress for WORKFLOW_STALLED_AFTER_S."""
    db: Session = get_db_sync()
    try:
        cutoff = utcnow() - timedelta(seconds=settings.WORKFLOW_STALLED_AFTER_S)
        run_ids = [
            row[0]
            for row in db.query(WorkflowRun.id)
            .filter(WorkflowRun.status == RUNNING, WorkflowRun.updated_at < cutoff)
            .all()
        ]
        for run_id in run_ids:
            logger.info(f"Re-dispatching stalled workflow {run_id}")
            run_check_in_workflow.delay(run_id)
        return {"status": "success", "resumed": len(run_ids)}
    finally:
        db.close()


@celery_app.task(name="tasks.fail_stale_jobs", bind=True)
def fail_stale_jobs_task(self: Task) -> Dict:
    db: Session = get_db_sync()
    try:
        count = fail_stale_jobs(db)
        db.commit()
        return {"status": "success", "failed": count}
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to sweep stale work queue jobs: {e}")
        raise
    finally:
        db.close()


@celery_app.task(name="tasks.send_check_in_reminders", bind=True)
def send_check_in_reminders_task(self: Task) -> Dict:
    """Send reminders to every client whose reminder hour is now and whose check-in is open."""
    db: Session = get_db_sync()
    sent = 0
    try:
        user_ids = users_due_for_reminder(db)
        for user_id in user_ids:
            outcome = send_check_in_reminder(db, user_id)
            if outcome.get("sent"):
                sent += 1
        logger.info(f"Check-in reminders: {sent}/{len(user_ids)} delivered")
        return {"status": "success", "due": len(user_ids), "sent": sent}
    finally:
        db.close()
