"""
Profile and assessment access.

Both are read-only inputs to plan generation. The assessment is upserted:
a resubmission overwrites the previous answers.
"""
from typing import Optional

from sqlalchemy.orm import Session

from core.database import utcnow
from models import Assessment, Profile
from schemas import AssessmentIn


def get_profile(db: Session, user_id: str) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.user_id == user_id).first()


def get_assessment(db: Session, user_id: str) -> Optional[Assessment]:
    return db.query(Assessment).filter(Assessment.user_id == user_id).first()


def submit_assessment(db: Session, user_id: str, data: AssessmentIn) -> Assessment:
    """Create or overwrite the user's assessment. Caller commits."""
    values = data.model_dump()
    assessment = get_assessment(db, user_id)
    if assessment is None:
        assessment = Assessment(user_id=user_id, **values)
        db.add(assessment)
    else:
        for field, value in values.items():
            setattr(assessment, field, value)
        assessment.updated_at = utcnow()
    db.flush()
    return assessment
