"""
Push Subscription API Router
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from core.database import get_db
from core.auth import get_current_user_id
from schemas import PushSubscriptionIn, PushSubscriptionResponse
from services.notifier import deactivate_push_subscriptions, save_push_subscription

router = APIRouter(prefix="/v1/push-subscriptions", tags=["push"])


@router.post("", response_model=PushSubscriptionResponse, status_code=status.HTTP_201_CREATED)
def subscribe(
    data: PushSubscriptionIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return save_push_subscription(db, user_id, data.onesignal_subscription_id, data.device_type)


@router.delete("")
def unsubscribe(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    count = deactivate_push_subscriptions(db, user_id)
    return {"deactivated": count}
