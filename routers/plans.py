"""
Meal / Workout Plan API Router

Reads of the user's plans, on-demand generation through the work queue,
job status and the in-flight text stream.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from core.database import get_db
from core.auth import get_current_user_id
from core.exceptions import NotFoundError
from models import WorkQueueJob
from schemas import JobStatusResponse, PlanGenerateRequest, PlanResponse, PlanStreamResponse
from services.check_ins import get_check_in
from services.plan_jobs import JOB_NAMES, job_args
from services.plan_stream import read_stream
from services.plans import get_current_plan, list_plans
from services.rate_gate import rate_gate
from services.work_queue import work_queue

router = APIRouter(prefix="/v1", tags=["plans"])


def _current(kind: str, user_id: str, db: Session):
    plan = get_current_plan(db, kind, user_id)
    if plan is None:
        raise NotFoundError(f"{kind.capitalize()}Plan", "current")
    return plan


def _generate(kind: str, request: PlanGenerateRequest, user_id: str, db: Session):
    rate_gate.enforce_quota(db, user_id)
    if request.check_in_id and get_check_in(db, user_id, request.check_in_id) is None:
        raise NotFoundError("CheckIn", request.check_in_id)
    args = job_args(user_id, request.check_in_id, request.language, request.plan_duration)
    job_id = work_queue.enqueue(db, JOB_NAMES[kind], args)
    return {"job_id": job_id, "state": "pending"}


@router.get("/meal-plans/current", response_model=PlanResponse)
def current_meal_plan(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """The plan whose window contains today, else the newest plan."""
    return _current("meal", user_id, db)


@router.get("/meal-plans", response_model=List[PlanResponse])
def get_meal_plans(
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return list_plans(db, "meal", user_id, limit=limit)


@router.post("/meal-plans/generate", response_model=JobStatusResponse, status_code=status.HTTP_202_ACCEPTED)
def generate_meal_plan(
    request: PlanGenerateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return _generate("meal", request, user_id, db)


@router.get("/workout-plans/current", response_model=PlanResponse)
def current_workout_plan(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return _current("workout", user_id, db)


@router.get("/workout-plans", response_model=List[PlanResponse])
def get_workout_plans(
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return list_plans(db, "workout", user_id, limit=limit)


@router.post("/workout-plans/generate", response_model=JobStatusResponse, status_code=status.HTTP_202_ACCEPTED)
def generate_workout_plan(
    request: PlanGenerateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return _generate("workout", request, user_id, db)


@router.get("/plans/jobs/{job_id}", response_model=JobStatusResponse)
def plan_job_status(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    job = db.query(WorkQueueJob).filter(WorkQueueJob.id == job_id).first()
    if job is None or (job.args or {}).get("user_id") != user_id:
        raise NotFoundError("Job", job_id)
    job_status = work_queue.status(db, job_id)
    return {
        "job_id": job_status.job_id,
        "state": job_status.state,
        "result": job_status.result,
        "error": job_status.error,
    }


@router.get("/plans/streams/{stream_id}", response_model=PlanStreamResponse)
def plan_stream(stream_id: str, user_id: str = Depends(get_current_user_id)):
    """Partial text of a plan still being generated."""
    stream = read_stream(stream_id)
    if stream is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stream not found or expired")
    return {"stream_id": stream_id, "text": stream.get("text", ""), "done": bool(stream.get("done"))}
