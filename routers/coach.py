"""
Coach API Router

Coach-only endpoints: knowledge base management, the check-in cycle
setting, read access to any client's plans and repair of plans stored
as raw text.
"""
from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from core.database import get_db
from core.auth import require_coach
from core.exceptions import NotFoundError
from models import Profile
from schemas import CheckInFrequency, KnowledgeEntryIn, KnowledgeEntryResponse, PlanRepairResponse, PlanResponse
from services.knowledge_base import add_text_entry, delete_entry, list_entries
from services.plan_generator import repair_plan_content
from services.plans import get_plan, list_plans
from services.system_config import (
    CHECK_IN_FREQUENCY_KEY,
    get_check_in_frequency_days,
    set_config_value,
)

router = APIRouter(prefix="/v1/coach", tags=["coach"])


# ---------------------------------------------------------------------------
# Knowledge base
# ---------------------------------------------------------------------------

@router.get("/knowledge", response_model=List[KnowledgeEntryResponse])
def get_knowledge(coach: Profile = Depends(require_coach), db: Session = Depends(get_db)):
    return list_entries(db)


@router.post("/knowledge", response_model=KnowledgeEntryResponse, status_code=status.HTTP_201_CREATED)
def post_knowledge(
    data: KnowledgeEntryIn,
    coach: Profile = Depends(require_coach),
    db: Session = Depends(get_db),
):
    entry = add_text_entry(db, data.title, data.content, created_by=coach.user_id)
    return next(e for e in list_entries(db) if e["id"] == entry.id)


@router.delete("/knowledge/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_knowledge(entry_id: str, coach: Profile = Depends(require_coach), db: Session = Depends(get_db)):
    if not delete_entry(db, entry_id):
        raise NotFoundError("KnowledgeEntry", entry_id)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@router.get("/settings/check-in-frequency", response_model=CheckInFrequency)
def get_frequency(coach: Profile = Depends(require_coach), db: Session = Depends(get_db)):
    return {"frequency_days": get_check_in_frequency_days(db)}


@router.put("/settings/check-in-frequency", response_model=CheckInFrequency)
def put_frequency(
    data: CheckInFrequency,
    coach: Profile = Depends(require_coach),
    db: Session = Depends(get_db),
):
    """Takes effect on the next quota check and lock-status read."""
    set_config_value(db, CHECK_IN_FREQUENCY_KEY, data.frequency_days)
    return {"frequency_days": data.frequency_days}


# ---------------------------------------------------------------------------
# Client plans
# ---------------------------------------------------------------------------

@router.get("/clients/{user_id}/meal-plans", response_model=List[PlanResponse])
def client_meal_plans(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    coach: Profile = Depends(require_coach),
    db: Session = Depends(get_db),
):
    return list_plans(db, "meal", user_id, limit=limit)


@router.get("/clients/{user_id}/workout-plans", response_model=List[PlanResponse])
def client_workout_plans(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    coach: Profile = Depends(require_coach),
    db: Session = Depends(get_db),
):
    return list_plans(db, "workout", user_id, limit=limit)


@router.post("/plans/{kind}/{plan_id}/repair", response_model=PlanRepairResponse)
def repair_plan(
    kind: str,
    plan_id: str,
    coach: Profile = Depends(require_coach),
    db: Session = Depends(get_db),
):
    """Re-parse a plan stored as raw text. A no-op for plans that already parsed."""
    repaired = repair_plan_content(db, kind, plan_id)
    return {"repaired": repaired, "plan": get_plan(db, kind, plan_id)}
