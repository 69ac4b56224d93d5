"""
Check-In API Router

Submitting a check-in starts the durable check-in workflow (record, generate
both plans, notify) and returns immediately with the workflow id.
"""
from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from core.database import get_db
from core.auth import get_current_user_id
from core.exceptions import NotFoundError
from schemas import (
    CheckInResponse,
    CheckInSubmission,
    LockStatusResponse,
    WorkflowStartedResponse,
    WorkflowStatusResponse,
)
from services.check_ins import get_latest_check_in, get_lock_status, list_check_ins
from services.checkin_workflow import get_workflow_status, start_check_in_workflow

router = APIRouter(prefix="/v1/check-ins", tags=["check-ins"])


@router.post("", response_model=WorkflowStartedResponse, status_code=status.HTTP_202_ACCEPTED)
def submit_check_in(
    submission: CheckInSubmission,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Submit a check-in.

    Rejected with 429 when the daily submission limit or the per-cycle plan
    generation quota is exhausted; nothing is recorded in that case.
    """
    run_id = start_check_in_workflow(db, user_id, submission)
    return {"workflow_id": run_id, "status": "running"}


@router.get("", response_model=List[CheckInResponse])
def get_check_ins(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return list_check_ins(db, user_id, limit=limit)


@router.get("/latest", response_model=CheckInResponse)
def get_latest(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    check_in = get_latest_check_in(db, user_id)
    if check_in is None:
        raise NotFoundError("CheckIn", "latest")
    return check_in


@router.get("/lock-status", response_model=LockStatusResponse)
def lock_status(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_lock_status(db, user_id)


@router.get("/workflows/{run_id}", response_model=WorkflowStatusResponse)
def workflow_status(
    run_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_workflow_status(db, run_id, user_id)
