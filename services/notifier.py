"""
Notifier

Push first (OneSignal), email only when the user has no active push
channel. Push delivery is not observable, so a failed push never triggers
the email; only the absence of a subscription does.

Every function here is best-effort: failures are logged and reported in the
returned dict, never raised.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from sqlalchemy.orm import Session

from core.config import settings
from core.database import utcnow
from models import Profile, PushSubscription
from services.check_ins import get_lock_status
from services.email_service import email_service
from services.profiles import get_profile

logger = logging.getLogger(__name__)

PLANS_READY_MESSAGE = {
    "en": "Your new meal and workout plans are ready!",
    "ar": "خطط الوجبات والتمارين الجديدة جاهزة!",
}
REMINDER_MESSAGE = {
    "en": "Time for your check-in! Track your progress today.",
    "ar": "حان وقت المتابعة! سجّل تقدمك اليوم.",
}


class PushDeliveryError(Exception):
    pass


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

def get_active_subscription(db: Session, user_id: str) -> Optional[PushSubscription]:
    return (
        db.query(PushSubscription)
        .filter(
            PushSubscription.user_id == user_id,
            PushSubscription.is_active.is_(True),
        )
        .order_by(PushSubscription.updated_at.desc())
        .first()
    )


def has_active_push_subscription(db: Session, user_id: str) -> bool:
    subscription = get_active_subscription(db, user_id)
    return bool(subscription and subscription.onesignal_subscription_id)


def save_push_subscription(
    db: Session, user_id: str, onesignal_subscription_id: str, device_type: Optional[str] = None
) -> PushSubscription:
    """Upsert by OneSignal id and make it the user's active subscription. Caller commits."""
    subscription = (
        db.query(PushSubscription)
        .filter(
            PushSubscription.user_id == user_id,
            PushSubscription.onesignal_subscription_id == onesignal_subscription_id,
        )
        .first()
    )
    if subscription is None:
        subscription = PushSubscription(
            user_id=user_id,
            onesignal_subscription_id=onesignal_subscription_id,
            device_type=device_type,
        )
        db.add(subscription)
    subscription.is_active = True
    subscription.device_type = device_type or subscription.device_type
    subscription.updated_at = utcnow()
    db.flush()
    return subscription


def deactivate_push_subscriptions(db: Session, user_id: str) -> int:
    count = (
        db.query(PushSubscription)
        .filter(PushSubscription.user_id == user_id, PushSubscription.is_active.is_(True))
        .update({"is_active": False, "updated_at": utcnow()}, synchronize_session=False)
    )
    db.flush()
    return count


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

def send_push(subscription_id: str, contents: Dict[str, str], data: Optional[Dict[str, Any]] = None) -> None:
    """POST one notification to OneSignal. Raises PushDeliveryError on any failure."""
    if not settings.ONESIGNAL_APP_ID or not settings.ONESIGNAL_REST_API_KEY:
        raise PushDeliveryError("OneSignal env vars not configured")

    body: Dict[str, Any] = {
        "app_id": settings.ONESIGNAL_APP_ID,
        "include_subscription_ids": [subscription_id],
        "contents": contents,
    }
    if data:
        body["data"] = data

    try:
        response = requests.post(
            settings.ONESIGNAL_API_URL,
            json=body,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Basic {settings.ONESIGNAL_REST_API_KEY}",
            },
            timeout=settings.EXTERNAL_API_TIMEOUT,
        )
    except requests.RequestException as e:
        raise PushDeliveryError(f"OneSignal request failed: {e}") from e

    if response.status_code >= 400:
        raise PushDeliveryError(f"OneSignal error {response.status_code}: {response.text[:200]}")


def _contents(messages: Dict[str, str], language: str) -> Dict[str, str]:
    contents = {"en": messages["en"]}
    if language == "ar":
        contents["ar"] = messages["ar"]
    return contents


def notify_plans_ready(db: Session, user_id: str, meal_plan_id: str, workout_plan_id: str) -> Dict[str, Any]:
    subscription = get_active_subscription(db, user_id)
    if not subscription or not subscription.onesignal_subscription_id:
        return {"sent": False, "reason": "no_active_subscription"}

    profile = get_profile(db, user_id)
    language = profile.language if profile else "en"
    try:
        send_push(
            subscription.onesignal_subscription_id,
            _contents(PLANS_READY_MESSAGE, language),
            data={"mealPlanId": meal_plan_id, "workoutPlanId": workout_plan_id},
        )
    except PushDeliveryError as e:
        logger.warning(f"Plans-ready push failed for user {user_id}: {e}")
        return {"sent": False, "reason": "delivery_failed"}

    logger.info(f"Plans-ready push sent to user {user_id}")
    return {"sent": True, "channel": "push"}


def send_fallback_email(db: Session, user_id: str) -> Dict[str, Any]:
    """Email the user only when no active push subscription exists."""
    if has_active_push_subscription(db, user_id):
        return {"sent": False, "reason": "push_subscribed"}

    profile = get_profile(db, user_id)
    if not profile or not profile.email:
        return {"sent": False, "reason": "no_email"}

    sent = email_service.send_plans_ready(profile.email, profile.full_name, profile.language)
    if not sent:
        logger.warning(f"Plans-ready email not delivered to user {user_id}")
    return {"sent": sent, "channel": "email"}


def send_check_in_reminder(db: Session, user_id: str) -> Dict[str, Any]:
    """Push reminder when subscribed, otherwise email."""
    profile = get_profile(db, user_id)
    language = profile.language if profile else "en"

    subscription = get_active_subscription(db, user_id)
    if subscription and subscription.onesignal_subscription_id:
        try:
            send_push(subscription.onesignal_subscription_id, _contents(REMINDER_MESSAGE, language))
            return {"sent": True, "channel": "push"}
        except PushDeliveryError as e:
            logger.warning(f"Reminder push failed for user {user_id}: {e}")
            return {"sent": False, "channel": "push"}

    if not profile or not profile.email:
        return {"sent": False, "reason": "no_email"}
    sent = email_service.send_check_in_reminder(profile.email, profile.full_name, language)
    return {"sent": sent, "channel": "email"}


def users_due_for_reminder(db: Session, now: Optional[datetime] = None) -> List[str]:
    """
    Active clients whose reminder hour is now and whose next check-in is open.

    notification_reminder_time is "HH:MM" in UTC; reminders go out hourly.
    """
    now = now or utcnow()
    hour_prefix = f"{now.hour:02d}:"
    profiles = (
        db.query(Profile)
        .filter(
            Profile.status == "active",
            Profile.is_coach.is_(False),
            Profile.notification_reminder_time.isnot(None),
        )
        .all()
    )
    due = []
    for profile in profiles:
        if not (profile.notification_reminder_time or "").startswith(hour_prefix):
            continue
        if get_lock_status(db, profile.user_id, now=now)["is_locked"]:
            continue
        due.append(profile.user_id)
    return due
