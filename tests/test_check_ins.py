"""
Tests for the check-in recorder and lock status.
"""
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from models import CheckIn
from schemas import CheckInFields
from services.check_ins import get_latest_check_in, get_lock_status, list_check_ins, record_check_in
from services.system_config import (
    CHECK_IN_FREQUENCY_KEY,
    get_check_in_frequency_days,
    set_config_value,
)


def test_record_check_in_inserts_one_row(db_session):
    check_in_id = record_check_in(
        db_session,
        "user_a",
        CheckInFields(weight=80, energy_level=7, sleep_quality=6, dietary_adherence=8),
    )
    db_session.commit()

    rows = db_session.query(CheckIn).all()
    assert len(rows) == 1
    assert rows[0].id == check_in_id
    assert rows[0].user_id == "user_a"
    assert rows[0].weight == 80
    assert rows[0].energy_level == 7
    assert rows[0].progress_photo_refs == []


def test_record_check_in_accepts_plain_dict(db_session):
    check_in_id = record_check_in(
        db_session,
        "user_a",
        {"weight": 72.5, "measurements": {"waist": 80}, "notes": "felt good", "progress_photo_refs": ["p/1.jpg"]},
    )
    db_session.commit()

    row = db_session.query(CheckIn).filter(CheckIn.id == check_in_id).one()
    assert row.measurements == {"waist": 80}
    assert row.notes == "felt good"
    assert row.progress_photo_refs == ["p/1.jpg"]


def test_record_check_in_all_fields_optional(db_session):
    check_in_id = record_check_in(db_session, "user_a", {})
    db_session.commit()
    row = db_session.query(CheckIn).filter(CheckIn.id == check_in_id).one()
    assert row.weight is None
    assert row.energy_level is None


@pytest.mark.parametrize("fields", [
    {"energy_level": 11},
    {"sleep_quality": 0},
    {"weight": -3},
    {"dietary_adherence": "lots"},
])
def test_record_check_in_rejects_bad_shapes(db_session, fields):
    with pytest.raises(PydanticValidationError):
        record_check_in(db_session, "user_a", fields)
    assert db_session.query(CheckIn).count() == 0


def test_list_and_latest_are_newest_first(db_session):
    base = datetime(2025, 10, 1, 9, 0, 0)
    for days in (0, 14, 28):
        db_session.add(CheckIn(user_id="user_a", created_at=base + timedelta(days=days), weight=80 - days / 14))
    db_session.add(CheckIn(user_id="user_b", created_at=base + timedelta(days=40)))
    db_session.commit()

    rows = list_check_ins(db_session, "user_a")
    assert [r.created_at for r in rows] == [base + timedelta(days=d) for d in (28, 14, 0)]
    assert get_latest_check_in(db_session, "user_a").created_at == base + timedelta(days=28)
    assert get_latest_check_in(db_session, "user_c") is None


def test_lock_status_without_check_ins(db_session):
    status = get_lock_status(db_session, "user_a")
    assert status["is_locked"] is False
    assert status["next_check_in_date"] is None
    assert status["frequency_days"] == 14


def test_lock_status_follows_cycle_length(db_session):
    last = datetime(2025, 10, 1, 9, 0, 0)
    db_session.add(CheckIn(user_id="user_a", created_at=last))
    db_session.commit()

    now = last + timedelta(days=10)
    status = get_lock_status(db_session, "user_a", now=now)
    assert status["is_locked"] is True
    assert status["next_check_in_date"] == last + timedelta(days=14)

    set_config_value(db_session, CHECK_IN_FREQUENCY_KEY, 7)
    db_session.commit()
    status = get_lock_status(db_session, "user_a", now=now)
    assert status["is_locked"] is False
    assert status["frequency_days"] == 7


@pytest.mark.parametrize("value", [0, -5, "weekly", None])
def test_invalid_frequency_falls_back_to_default(db_session, value):
    set_config_value(db_session, CHECK_IN_FREQUENCY_KEY, value)
    db_session.commit()
    assert get_check_in_frequency_days(db_session) == 14
