"""
Tests for daily tracking: meal and workout completions and reflections.
"""
from datetime import date

import pytest

from core.exceptions import NotFoundError
from models import MealCompletion, MealPlan, WorkoutPlan
from services.tracking import (
    get_reflection,
    get_tracking_data,
    save_reflection,
    toggle_meal_completion,
    toggle_workout_completion,
)

DAY = date(2025, 10, 3)


@pytest.fixture
def meal_plan(db_session):
    plan = MealPlan(user_id="user_a", plan_data={}, start_date=date(2025, 10, 1), end_date=date(2025, 10, 15))
    db_session.add(plan)
    db_session.commit()
    return plan


@pytest.fixture
def workout_plan(db_session):
    plan = WorkoutPlan(user_id="user_a", plan_data={}, start_date=date(2025, 10, 1), end_date=date(2025, 10, 15))
    db_session.add(plan)
    db_session.commit()
    return plan


def test_toggle_meal_creates_then_updates_one_row(db_session, meal_plan):
    first = toggle_meal_completion(db_session, "user_a", meal_plan.id, DAY, 2, True, notes="ate it all")
    db_session.commit()

    second = toggle_meal_completion(db_session, "user_a", meal_plan.id, DAY, 2, False)
    db_session.commit()

    assert second.id == first.id
    assert second.completed is False
    # Toggling without notes keeps the earlier ones.
    assert second.notes == "ate it all"
    assert db_session.query(MealCompletion).count() == 1


def test_meal_indexes_and_days_are_separate(db_session, meal_plan):
    toggle_meal_completion(db_session, "user_a", meal_plan.id, DAY, 0, True)
    toggle_meal_completion(db_session, "user_a", meal_plan.id, DAY, 1, True)
    toggle_meal_completion(db_session, "user_a", meal_plan.id, date(2025, 10, 4), 0, True)
    db_session.commit()

    assert db_session.query(MealCompletion).count() == 3


def test_toggle_on_another_users_plan(db_session, meal_plan, workout_plan):
    with pytest.raises(NotFoundError):
        toggle_meal_completion(db_session, "user_b", meal_plan.id, DAY, 0, True)
    with pytest.raises(NotFoundError):
        toggle_workout_completion(db_session, "user_b", workout_plan.id, DAY, 0, True)
    assert db_session.query(MealCompletion).count() == 0


def test_save_reflection_upserts(db_session):
    first = save_reflection(db_session, "user_a", DAY, "tired")
    db_session.commit()
    second = save_reflection(db_session, "user_a", DAY, "better after dinner")
    db_session.commit()

    assert second.id == first.id
    assert get_reflection(db_session, "user_a", DAY).reflection == "better after dinner"
    assert get_reflection(db_session, "user_b", DAY) is None


def test_tracking_data_is_per_user_and_day(db_session, meal_plan, workout_plan):
    toggle_meal_completion(db_session, "user_a", meal_plan.id, DAY, 0, True)
    toggle_workout_completion(db_session, "user_a", workout_plan.id, DAY, 1, True)
    toggle_meal_completion(db_session, "user_a", meal_plan.id, date(2025, 10, 4), 0, True)
    save_reflection(db_session, "user_a", DAY, "solid")
    db_session.commit()

    data = get_tracking_data(db_session, "user_a", DAY)
    assert data["date"] == DAY
    assert [c.meal_index for c in data["meal_completions"]] == [0]
    assert [c.workout_index for c in data["workout_completions"]] == [1]
    assert data["reflection"].reflection == "solid"

    other = get_tracking_data(db_session, "user_b", DAY)
    assert other["meal_completions"] == []
    assert other["reflection"] is None
