"""
Tests for current-plan lookup.
"""
from datetime import date, datetime

import pytest

from core.exceptions import ValidationError
from models import MealPlan, WorkoutPlan
from services.plans import get_current_plan, list_plans


def _plan(db, model, created_at, start, end, user_id="user_a"):
    plan = model(
        user_id=user_id,
        created_at=created_at,
        plan_data={"notes": f"{start}"},
        start_date=start,
        end_date=end,
    )
    db.add(plan)
    db.commit()
    return plan


def test_current_plan_window_contains_today(db_session):
    older = _plan(db_session, MealPlan, datetime(2025, 10, 1), date(2025, 10, 1), date(2025, 10, 15))
    _plan(db_session, MealPlan, datetime(2025, 10, 16), date(2025, 10, 16), date(2025, 10, 30))

    assert get_current_plan(db_session, "meal", "user_a", today=date(2025, 10, 10)).id == older.id


def test_newest_matching_plan_wins_when_windows_overlap(db_session):
    _plan(db_session, WorkoutPlan, datetime(2025, 10, 1), date(2025, 10, 1), date(2025, 10, 15))
    regenerated = _plan(db_session, WorkoutPlan, datetime(2025, 10, 5), date(2025, 10, 5), date(2025, 10, 19))

    assert get_current_plan(db_session, "workout", "user_a", today=date(2025, 10, 10)).id == regenerated.id


def test_falls_back_to_most_recent_when_none_cover_today(db_session):
    _plan(db_session, MealPlan, datetime(2025, 9, 1), date(2025, 9, 1), date(2025, 9, 15))
    latest = _plan(db_session, MealPlan, datetime(2025, 9, 16), date(2025, 9, 16), date(2025, 9, 30))

    assert get_current_plan(db_session, "meal", "user_a", today=date(2025, 12, 1)).id == latest.id


def test_no_plans_returns_none(db_session):
    _plan(db_session, MealPlan, datetime(2025, 10, 1), date(2025, 10, 1), date(2025, 10, 15), user_id="user_b")
    assert get_current_plan(db_session, "meal", "user_a") is None


def test_window_bounds_are_inclusive(db_session):
    plan = _plan(db_session, MealPlan, datetime(2025, 10, 1), date(2025, 10, 1), date(2025, 10, 15))
    assert get_current_plan(db_session, "meal", "user_a", today=date(2025, 10, 1)).id == plan.id
    assert get_current_plan(db_session, "meal", "user_a", today=date(2025, 10, 15)).id == plan.id


def test_list_plans_newest_first_with_limit(db_session):
    for day in (1, 5, 9):
        _plan(db_session, MealPlan, datetime(2025, 10, day), date(2025, 10, day), date(2025, 10, day + 7))

    plans = list_plans(db_session, "meal", "user_a", limit=2)
    assert [p.start_date.day for p in plans] == [9, 5]


def test_unknown_plan_kind(db_session):
    with pytest.raises(ValidationError):
        list_plans(db_session, "snack", "user_a")
