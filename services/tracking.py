"""
Daily adherence tracking against the client's plans.

Clients tick meals and workouts of a plan as done for a given day and leave
one free-text reflection per day. Completions are keyed by
(plan, date, index); toggling again updates the same row.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Type, Union

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import DailyReflection, MealCompletion, MealPlan, WorkoutCompletion, WorkoutPlan

logger = logging.getLogger(__name__)

Completion = Union[MealCompletion, WorkoutCompletion]


def _owned_plan(db: Session, model, plan_id: str, user_id: str):
    plan = db.query(model).filter(model.id == plan_id, model.user_id == user_id).first()
    if plan is None:
        raise NotFoundError(model.__name__, plan_id)
    return plan


def _toggle(
    db: Session,
    model: Type[Completion],
    plan_column: str,
    index_column: str,
    user_id: str,
    plan_id: str,
    day: date,
    index: int,
    completed: bool,
    notes: Optional[str],
) -> Completion:
    row = (
        db.query(model)
        .filter(
            getattr(model, plan_column) == plan_id,
            model.date == day,
            getattr(model, index_column) == index,
        )
        .first()
    )
    if row is None:
        row = model(user_id=user_id, date=day, completed=completed, notes=notes,
                    **{plan_column: plan_id, index_column: index})
        db.add(row)
    else:
        row.completed = completed
        if notes is not None:
            row.notes = notes
    db.flush()
    return row


def toggle_meal_completion(
    db: Session,
    user_id: str,
    meal_plan_id: str,
    day: date,
    meal_index: int,
    completed: bool,
    notes: Optional[str] = None,
) -> MealCompletion:
    """Mark one meal of the user's own plan done or not done. Caller commits."""
    _owned_plan(db, MealPlan, meal_plan_id, user_id)
    return _toggle(db, MealCompletion, "meal_plan_id", "meal_index",
                   user_id, meal_plan_id, day, meal_index, completed, notes)


def toggle_workout_completion(
    db: Session,
    user_id: str,
    workout_plan_id: str,
    day: date,
    workout_index: int,
    completed: bool,
    notes: Optional[str] = None,
) -> WorkoutCompletion:
    _owned_plan(db, WorkoutPlan, workout_plan_id, user_id)
    return _toggle(db, WorkoutCompletion, "workout_plan_id", "workout_index",
                   user_id, workout_plan_id, day, workout_index, completed, notes)


def _for_day(db: Session, model, user_id: str, day: date) -> List[Any]:
    return db.query(model).filter(model.user_id == user_id, model.date == day).all()


def get_reflection(db: Session, user_id: str, day: date) -> Optional[DailyReflection]:
    return (
        db.query(DailyReflection)
        .filter(DailyReflection.user_id == user_id, DailyReflection.date == day)
        .first()
    )


def save_reflection(db: Session, user_id: str, day: date, reflection: str) -> DailyReflection:
    """Upsert the user's reflection for a day. Caller commits."""
    row = get_reflection(db, user_id, day)
    if row is None:
        row = DailyReflection(user_id=user_id, date=day, reflection=reflection)
        db.add(row)
    else:
        row.reflection = reflection
    db.flush()
    return row


def get_tracking_data(db: Session, user_id: str, day: date) -> Dict[str, Any]:
    """Everything the client tracked on one day."""
    return {
        "date": day,
        "meal_completions": _for_day(db, MealCompletion, user_id, day),
        "workout_completions": _for_day(db, WorkoutCompletion, user_id, day),
        "reflection": get_reflection(db, user_id, day),
    }
