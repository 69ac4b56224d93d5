"""
Meal and workout plan reads.

A plan is "current" when its [start_date, end_date] window contains today.
Lookup walks the user's plans newest first and returns the first such plan;
if none matches, the most recently created plan; if there are none, None.
"""
from datetime import date
from typing import List, Optional, Type, Union

from sqlalchemy.orm import Session

from core.database import utcnow
from core.exceptions import ValidationError
from models import MealPlan, WorkoutPlan

Plan = Union[MealPlan, WorkoutPlan]

PLAN_MODELS = {
    "meal": MealPlan,
    "workout": WorkoutPlan,
}


def plan_model(kind: str) -> Type[Plan]:
    try:
        return PLAN_MODELS[kind]
    except KeyError:
        raise ValidationError(f"Unknown plan kind: {kind}", field="kind")


def list_plans(db: Session, kind: str, user_id: str, limit: Optional[int] = None) -> List[Plan]:
    model = plan_model(kind)
    query = (
        db.query(model)
        .filter(model.user_id == user_id)
        .order_by(model.created_at.desc(), model.start_date.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def get_plan(db: Session, kind: str, plan_id: str) -> Optional[Plan]:
    model = plan_model(kind)
    return db.query(model).filter(model.id == plan_id).first()


def get_current_plan(db: Session, kind: str, user_id: str, today: Optional[date] = None) -> Optional[Plan]:
    today = today or utcnow().date()
    plans = list_plans(db, kind, user_id)
    for plan in plans:
        if plan.start_date <= today <= plan.end_date:
            return plan
    return plans[0] if plans else None
