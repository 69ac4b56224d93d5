"""
Check-In Recorder.

record_check_in performs exactly one insert and nothing else. Range checks
beyond type shape (e.g. plausible body weight) belong to the client.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from core.database import utcnow
from models import CheckIn
from schemas import CheckInFields
from services.system_config import get_check_in_frequency_days

logger = logging.getLogger(__name__)


def record_check_in(db: Session, user_id: str, fields: Union[CheckInFields, Dict[str, Any]]) -> str:
    """Validate shape, insert one CheckIn row, return its id. Caller commits."""
    if not isinstance(fields, CheckInFields):
        fields = CheckInFields.model_validate(fields)

    check_in = CheckIn(
        user_id=user_id,
        weight=fields.weight,
        measurements=fields.measurements.model_dump(exclude_none=True) if fields.measurements else None,
        workout_performance=fields.workout_performance,
        energy_level=fields.energy_level,
        sleep_quality=fields.sleep_quality,
        dietary_adherence=fields.dietary_adherence,
        new_injuries=fields.new_injuries,
        notes=fields.notes,
        progress_photo_refs=list(fields.progress_photo_refs),
    )
    db.add(check_in)
    db.flush()
    logger.info(f"Recorded check-in {check_in.id} for user {user_id}")
    return check_in.id


def list_check_ins(db: Session, user_id: str, limit: int = 50) -> List[CheckIn]:
    return (
        db.query(CheckIn)
        .filter(CheckIn.user_id == user_id)
        .order_by(CheckIn.created_at.desc())
        .limit(limit)
        .all()
    )


def get_check_in(db: Session, user_id: str, check_in_id: str) -> Optional[CheckIn]:
    """A check-in by id, only if it belongs to the user."""
    return db.query(CheckIn).filter(CheckIn.id == check_in_id, CheckIn.user_id == user_id).first()


def get_latest_check_in(db: Session, user_id: str) -> Optional[CheckIn]:
    return (
        db.query(CheckIn)
        .filter(CheckIn.user_id == user_id)
        .order_by(CheckIn.created_at.desc())
        .first()
    )


def get_lock_status(db: Session, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Whether the user is between check-ins.

    The next check-in opens frequency_days after the latest one. A user with
    no check-ins is never locked.
    """
    now = now or utcnow()
    frequency_days = get_check_in_frequency_days(db)
    latest = get_latest_check_in(db, user_id)
    if latest is None:
        return {
            "is_locked": False,
            "next_check_in_date": None,
            "last_check_in_date": None,
            "frequency_days": frequency_days,
        }

    next_date = latest.created_at + timedelta(days=frequency_days)
    return {
        "is_locked": now < next_date,
        "next_check_in_date": next_date,
        "last_check_in_date": latest.created_at,
        "frequency_days": frequency_days,
    }
