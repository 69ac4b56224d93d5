"""
Initial Assessment API Router
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from core.database import get_db
from core.auth import get_current_user_id
from core.exceptions import NotFoundError
from schemas import AssessmentIn, AssessmentResponse
from services.profiles import get_assessment, submit_assessment

router = APIRouter(prefix="/v1/assessment", tags=["assessment"])


@router.get("", response_model=AssessmentResponse)
def read_assessment(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    assessment = get_assessment(db, user_id)
    if assessment is None:
        raise NotFoundError("Assessment", user_id)
    return assessment


@router.put("", response_model=AssessmentResponse)
def put_assessment(
    data: AssessmentIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create or overwrite the caller's assessment."""
    return submit_assessment(db, user_id, data)
