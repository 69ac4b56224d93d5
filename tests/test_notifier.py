"""
Tests for notifications: OneSignal push, email fallback and check-in reminders.
"""
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
import requests

from models import CheckIn, Profile, PushSubscription
from services.email_service import EmailService
from services.notifier import (
    PushDeliveryError,
    deactivate_push_subscriptions,
    has_active_push_subscription,
    notify_plans_ready,
    save_push_subscription,
    send_check_in_reminder,
    send_fallback_email,
    send_push,
    users_due_for_reminder,
)


# ---------------------------------------------------------------------------
# OneSignal
# ---------------------------------------------------------------------------

def test_send_push_posts_to_onesignal():
    response = MagicMock(status_code=200, text="{}")
    with patch("services.notifier.requests.post", return_value=response) as post:
        send_push("sub-1", {"en": "hello"}, data={"mealPlanId": "m1"})

    _, kwargs = post.call_args
    assert kwargs["json"] == {
        "app_id": "test-app",
        "include_subscription_ids": ["sub-1"],
        "contents": {"en": "hello"},
        "data": {"mealPlanId": "m1"},
    }
    assert kwargs["headers"]["Authorization"] == "Basic test-key"


def test_send_push_raises_on_error_status():
    response = MagicMock(status_code=400, text='{"errors": ["invalid"]}')
    with patch("services.notifier.requests.post", return_value=response):
        with pytest.raises(PushDeliveryError):
            send_push("sub-1", {"en": "hello"})


def test_send_push_raises_on_network_error():
    with patch("services.notifier.requests.post", side_effect=requests.ConnectionError("down")):
        with pytest.raises(PushDeliveryError):
            send_push("sub-1", {"en": "hello"})


def test_send_push_requires_configuration(monkeypatch):
    from core.config import settings

    monkeypatch.setattr(settings, "ONESIGNAL_APP_ID", None)
    with pytest.raises(PushDeliveryError):
        send_push("sub-1", {"en": "hello"})


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

def test_save_subscription_is_upsert(db_session):
    first = save_push_subscription(db_session, "user_a", "sub-1", "web")
    again = save_push_subscription(db_session, "user_a", "sub-1")
    db_session.commit()

    assert first.id == again.id
    assert again.device_type == "web"
    assert db_session.query(PushSubscription).count() == 1
    assert has_active_push_subscription(db_session, "user_a")


def test_deactivate_subscriptions(db_session):
    save_push_subscription(db_session, "user_a", "sub-1")
    save_push_subscription(db_session, "user_a", "sub-2")
    db_session.commit()

    assert deactivate_push_subscriptions(db_session, "user_a") == 2
    db_session.commit()
    assert not has_active_push_subscription(db_session, "user_a")


# ---------------------------------------------------------------------------
# Plans ready
# ---------------------------------------------------------------------------

def test_plans_ready_push_in_arabic(db_session, sent_pushes):
    db_session.add(Profile(user_id="user_ar", language="ar", status="active"))
    save_push_subscription(db_session, "user_ar", "sub-ar")
    db_session.commit()

    outcome = notify_plans_ready(db_session, "user_ar", "m1", "w1")

    assert outcome == {"sent": True, "channel": "push"}
    assert set(sent_pushes[0]["contents"]) == {"en", "ar"}


def test_plans_ready_push_failure_is_reported_not_raised(db_session):
    save_push_subscription(db_session, "user_a", "sub-1")
    db_session.commit()

    with patch("services.notifier.send_push", side_effect=PushDeliveryError("boom")):
        outcome = notify_plans_ready(db_session, "user_a", "m1", "w1")

    assert outcome == {"sent": False, "reason": "delivery_failed"}


def test_failed_push_does_not_trigger_email(db_session):
    db_session.add(Profile(user_id="user_a", email="a@example.com", status="active"))
    save_push_subscription(db_session, "user_a", "sub-1")
    db_session.commit()

    with patch("services.notifier.email_service.send_plans_ready") as send_email:
        outcome = send_fallback_email(db_session, "user_a")

    assert outcome == {"sent": False, "reason": "push_subscribed"}
    send_email.assert_not_called()


def test_fallback_email_without_subscription(db_session):
    db_session.add(Profile(user_id="user_a", email="a@example.com", full_name="A", language="ar", status="active"))
    db_session.commit()

    with patch("services.notifier.email_service.send_plans_ready", return_value=True) as send_email:
        outcome = send_fallback_email(db_session, "user_a")

    assert outcome == {"sent": True, "channel": "email"}
    send_email.assert_called_once_with("a@example.com", "A", "ar")


def test_fallback_email_without_address(db_session):
    db_session.add(Profile(user_id="user_a", status="active"))
    db_session.commit()
    assert send_fallback_email(db_session, "user_a") == {"sent": False, "reason": "no_email"}


def test_email_service_disabled_returns_false():
    service = EmailService()
    service.enabled = False
    assert service.send_plans_ready("a@example.com", "A") is False


def test_email_service_logs_without_smtp_credentials():
    service = EmailService()
    service.enabled = True
    service.smtp_username = None
    with patch("services.email_service.smtplib.SMTP") as smtp:
        assert service.send_check_in_reminder("a@example.com", None, "ar") is True
    smtp.assert_not_called()


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------

def test_users_due_for_reminder(db_session):
    now = datetime(2025, 10, 9, 8, 0, 0)
    db_session.add_all([
        Profile(user_id="due", status="active", notification_reminder_time="08:00"),
        Profile(user_id="other_hour", status="active", notification_reminder_time="09:30"),
        Profile(user_id="inactive", status="pending_approval", notification_reminder_time="08:00"),
        Profile(user_id="coach", status="active", is_coach=True, notification_reminder_time="08:00"),
        Profile(user_id="locked", status="active", notification_reminder_time="08:15"),
        CheckIn(user_id="locked", created_at=now - timedelta(days=3)),
    ])
    db_session.commit()

    assert users_due_for_reminder(db_session, now=now) == ["due"]


def test_reminder_prefers_push(db_session, sent_pushes):
    db_session.add(Profile(user_id="user_a", email="a@example.com", status="active"))
    save_push_subscription(db_session, "user_a", "sub-1")
    db_session.commit()

    with patch("services.notifier.email_service.send_check_in_reminder") as send_email:
        assert send_check_in_reminder(db_session, "user_a") == {"sent": True, "channel": "push"}
    send_email.assert_not_called()
    assert sent_pushes[0]["contents"] == {"en": "Time for your check-in! Track your progress today."}


def test_reminder_falls_back_to_email(db_session):
    db_session.add(Profile(user_id="user_a", email="a@example.com", status="active"))
    db_session.commit()

    with patch("services.notifier.email_service.send_check_in_reminder", return_value=True):
        assert send_check_in_reminder(db_session, "user_a") == {"sent": True, "channel": "email"}
