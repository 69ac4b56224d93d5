"""
Check-in -> plan generation workflow.

Steps, in order, each journaled by the workflow engine:

    record_check_in         mutation: insert the CheckIn
    enqueue_meal_plan       mutation: insert the meal generation job
    enqueue_workout_plan    mutation: insert the workout generation job
    await_meal_plan         poll the meal job until terminal
    await_workout_plan      poll the workout job until terminal
    notify_push             action: plans-ready push
    notify_email_fallback   action: email only if no push subscription

Both generation jobs run concurrently on the bounded work queue. If either
job fails or finishes without a plan id the run fails with
PlanGenerationError; the check-in stays recorded either way.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import (
    NotFoundError,
    PlanGenerationError,
    UnauthorizedError,
    WorkflowTimeoutError,
)
from schemas import CheckInFields, CheckInSubmission
from services.check_ins import record_check_in
from services.notifier import notify_plans_ready, send_fallback_email
from services.plan_jobs import GENERATE_MEAL_PLAN, GENERATE_WORKOUT_PLAN, job_args
from services.rate_gate import RateGate, rate_gate
from services.system_config import get_check_in_frequency_days
from services.work_queue import FINISHED, work_queue
from services.workflow_engine import (
    COMPLETED,
    RUNNING,
    StepContext,
    workflow_engine,
)

logger = logging.getLogger(__name__)

CHECK_IN_WORKFLOW = "check_in_and_generate_plans"
GENERATION_FAILED_MESSAGE = "AI plan generation failed in workpool"


def _await_job(ctx: StepContext, step_name: str, job_id: str) -> Dict[str, Any]:
    def check(db: Session) -> Optional[Dict[str, Any]]:
        status = work_queue.status(db, job_id)
        if not status.is_terminal:
            return None
        return {"state": status.state, "result": status.result, "error": status.error}

    return ctx.poll_until(
        step_name,
        check,
        interval_s=settings.WORKFLOW_POLL_INTERVAL_S,
        timeout_s=settings.WORKFLOW_POLL_TIMEOUT_S,
        on_timeout=lambda waited: WorkflowTimeoutError(job_id, waited),
    )


def _plan_id(outcome: Dict[str, Any]) -> Optional[str]:
    if outcome.get("state") != FINISHED:
        return None
    return (outcome.get("result") or {}).get("plan_id")


@workflow_engine.define(CHECK_IN_WORKFLOW)
def check_in_and_generate_plans(
    ctx: StepContext,
    user_id: str,
    fields: Dict[str, Any],
    language: str = "en",
    plan_duration: int = 14,
) -> Dict[str, str]:
    check_in_id = ctx.run_mutation("record_check_in", lambda db: record_check_in(db, user_id, fields))

    args = job_args(user_id, check_in_id, language, plan_duration)
    meal_job_id = ctx.run_mutation(
        "enqueue_meal_plan", lambda db: work_queue.enqueue(db, GENERATE_MEAL_PLAN, args)
    )
    workout_job_id = ctx.run_mutation(
        "enqueue_workout_plan", lambda db: work_queue.enqueue(db, GENERATE_WORKOUT_PLAN, args)
    )

    meal = _await_job(ctx, "await_meal_plan", meal_job_id)
    workout = _await_job(ctx, "await_workout_plan", workout_job_id)

    meal_plan_id = _plan_id(meal)
    workout_plan_id = _plan_id(workout)
    if not meal_plan_id or not workout_plan_id:
        logger.warning(
            f"Plan generation failed for check-in {check_in_id}",
            extra={"extra_fields": {
                "meal_error": meal.get("error"),
                "workout_error": workout.get("error"),
            }},
        )
        raise PlanGenerationError(GENERATION_FAILED_MESSAGE)

    ctx.run_action(
        "notify_push",
        lambda db: notify_plans_ready(db, user_id, meal_plan_id, workout_plan_id),
    )
    ctx.run_action("notify_email_fallback", lambda db: send_fallback_email(db, user_id))

    return {
        "checkInId": check_in_id,
        "mealPlanId": meal_plan_id,
        "workoutPlanId": workout_plan_id,
    }


def _celery_dispatch(run_id: str) -> None:
    from tasks.workflow_tasks import run_check_in_workflow

    run_check_in_workflow.delay(run_id)


def start_check_in_workflow(
    db: Session,
    user_id: Optional[str],
    submission: CheckInSubmission,
    dispatch: Optional[Callable[[str], None]] = None,
    gate: Optional[RateGate] = None,
    now: Optional[float] = None,
) -> str:
    """
    Gate, then start a check-in workflow and hand it to a worker.

    Rejections (unauthenticated, rate limited, over quota) happen before any
    record is written. Commits the new run before dispatching it.
    """
    if not user_id:
        raise UnauthorizedError()

    (gate or rate_gate).enforce(db, user_id, now=now if now is not None else time.time())

    plan_duration = submission.plan_duration or get_check_in_frequency_days(db)
    fields = CheckInFields.model_validate(submission.model_dump(include=set(CheckInFields.model_fields)))
    run_id = workflow_engine.start(
        db,
        CHECK_IN_WORKFLOW,
        args={
            "user_id": user_id,
            "fields": fields.model_dump(mode="json"),
            "language": submission.language,
            "plan_duration": plan_duration,
        },
        user_id=user_id,
    )
    db.commit()

    try:
        (dispatch or _celery_dispatch)(run_id)
    except Exception as e:
        # The run stays "running" and is picked up by resume_stalled_workflows.
        logger.warning(f"Could not dispatch workflow {run_id}: {e}")
    return run_id


def get_workflow_status(db: Session, run_id: str, user_id: str) -> Dict[str, Any]:
    """
    Client-facing view of a run.

    A failed or timed-out run whose check-in was recorded reports
    check_in_saved with a warning instead of a hard error.
    """
    run = workflow_engine.get_run(db, run_id)
    if run is None or run.user_id != user_id:
        raise NotFoundError("Workflow", run_id)

    steps = workflow_engine.get_steps(db, run_id)
    check_in_id = steps.get("record_check_in")
    result = run.result or {}

    status = {
        "workflow_id": run.id,
        "status": run.status,
        "check_in_saved": check_in_id is not None,
        "check_in_id": check_in_id,
        "meal_plan_id": result.get("mealPlanId"),
        "workout_plan_id": result.get("workoutPlanId"),
        "warning": None,
        "error": None,
    }
    if run.status not in (RUNNING, COMPLETED):
        status["error"] = run.error
        if check_in_id is not None:
            status["warning"] = "Check-in saved, but plan generation failed. Your coach can regenerate your plans."
    return status
