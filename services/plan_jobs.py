"""
Plan generation jobs on the bounded work queue.

Both the check-in workflow and the direct "generate" endpoints go through
these handlers, so every AI call counts against the same concurrency cap.
"""
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from services.plan_generator import meal_plan_generator, workout_plan_generator
from services.work_queue import work_queue

GENERATE_MEAL_PLAN = "generate_meal_plan"
GENERATE_WORKOUT_PLAN = "generate_workout_plan"

JOB_NAMES = {
    "meal": GENERATE_MEAL_PLAN,
    "workout": GENERATE_WORKOUT_PLAN,
}


def job_args(user_id: str, check_in_id: Optional[str], language: str, plan_duration: int) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "check_in_id": check_in_id,
        "language": language,
        "plan_duration": plan_duration,
    }


@work_queue.register(GENERATE_MEAL_PLAN)
def generate_meal_plan(db: Session, user_id: str, check_in_id: Optional[str] = None,
                       language: str = "en", plan_duration: int = 14) -> Dict[str, Any]:
    plan_id = meal_plan_generator.generate(
        db, user_id, check_in_id=check_in_id, language=language, plan_duration=plan_duration,
    )
    return {"plan_id": plan_id}


@work_queue.register(GENERATE_WORKOUT_PLAN)
def generate_workout_plan(db: Session, user_id: str, check_in_id: Optional[str] = None,
                          language: str = "en", plan_duration: int = 14) -> Dict[str, Any]:
    plan_id = workout_plan_generator.generate(
        db, user_id, check_in_id=check_in_id, language=language, plan_duration=plan_duration,
    )
    return {"plan_id": plan_id}
