"""
Push device registration endpoints (Web Push / FCM).
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flowmoney.api.deps import get_db, get_current_user
from flowmoney.application.profile import subscribe_vapid, subscribe_fcm, unsubscribe, send_test_push
from flowmoney.config import get_settings
from flowmoney.domain.errors import InvariantViolation
from flowmoney.infrastructure.db.models import User

router = APIRouter(prefix="/api/v1/push", tags=["push"])


class PushKeys(BaseModel):
    p256dh: str
    auth: str


class WebPushSubscription(BaseModel):
    endpoint: str
    keys: PushKeys


class SubscribeRequest(BaseModel):
    """Either a browser ``subscription`` or an FCM ``token``."""
    subscription: WebPushSubscription | None = None
    token: str | None = None
    platform: str | None = None


class UnsubscribeRequest(BaseModel):
    endpoint: str | None = None
    token: str | None = None


@router.get("/vapid-public-key")
def vapid_public_key():
    settings = get_settings()
    if not settings.vapid_configured:
        raise HTTPException(status_code=503, detail="Push notifications not configured")
    return {"public_key": settings.VAPID_PUBLIC_KEY}


@router.post("/subscribe")
def subscribe(body: SubscribeRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if body.token:
        sub = subscribe_fcm(db, user, body.token, body.platform)
    elif body.subscription:
        sub = subscribe_vapid(
            db, user, body.subscription.endpoint, body.subscription.keys.p256dh, body.subscription.keys.auth
        )
    else:
        raise InvariantViolation("Either token or subscription is required")
    return {"success": True, "provider": sub.provider}


@router.post("/unsubscribe")
def unsubscribe_device(
    body: UnsubscribeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted = unsubscribe(db, user, endpoint=body.endpoint, token=body.token)
    return {"success": True, "deleted": deleted}


@router.post("/test")
def test_push(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Send a test push to verify the setup."""
    sent = send_test_push(db, user)
    return {"success": True, "sent": sent}
