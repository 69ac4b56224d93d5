"""
Daily Tracking API Router

Meal and workout completions for the client's plans, and the daily
reflection.
"""
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from core.database import get_db
from core.auth import get_current_user_id
from core.exceptions import NotFoundError
from schemas import (
    CompletionToggle,
    MealCompletionResponse,
    ReflectionIn,
    ReflectionResponse,
    TrackingDayResponse,
    WorkoutCompletionResponse,
)
from services.tracking import (
    get_reflection,
    get_tracking_data,
    save_reflection,
    toggle_meal_completion,
    toggle_workout_completion,
)

router = APIRouter(prefix="/v1/tracking", tags=["tracking"])


@router.get("", response_model=TrackingDayResponse)
def tracking_day(
    day: date = Query(..., alias="date"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_tracking_data(db, user_id, day)


@router.put("/meal-plans/{meal_plan_id}", response_model=MealCompletionResponse)
def put_meal_completion(
    meal_plan_id: str,
    data: CompletionToggle,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return toggle_meal_completion(db, user_id, meal_plan_id, data.date, data.index, data.completed, data.notes)


@router.put("/workout-plans/{workout_plan_id}", response_model=WorkoutCompletionResponse)
def put_workout_completion(
    workout_plan_id: str,
    data: CompletionToggle,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return toggle_workout_completion(db, user_id, workout_plan_id, data.date, data.index, data.completed, data.notes)


@router.get("/reflection", response_model=ReflectionResponse)
def read_reflection(
    day: date = Query(..., alias="date"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    reflection = get_reflection(db, user_id, day)
    if reflection is None:
        raise NotFoundError("DailyReflection", day.isoformat())
    return reflection


@router.put("/reflection", response_model=ReflectionResponse)
def put_reflection(
    data: ReflectionIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return save_reflection(db, user_id, data.date, data.reflection)
