"""
Push notification service.

Delivers a NotificationPayload to every stored device of a user: browsers via
pywebpush (VAPID), native apps via FCM HTTP v1. Stale subscriptions are
deleted as soon as the provider reports them gone.
"""
import json
import logging

from pywebpush import webpush, WebPushException
from sqlalchemy.orm import Session

from flowmoney.config import get_settings
from flowmoney.domain.errors import DeliveryFailure, StaleEndpoint
from flowmoney.domain.notification import NotificationPayload
from flowmoney.infrastructure.db.models import PushSubscription, User
from flowmoney.infrastructure.push.fcm import FcmClient

logger = logging.getLogger(__name__)

_fcm_client: FcmClient | None = None


def get_fcm_client() -> FcmClient:
    global _fcm_client
    if _fcm_client is None:
        _fcm_client = FcmClient(get_settings())
    return _fcm_client


def _raw_vapid_key(value: str) -> str:
    """
    .env may store the key as PEM (with literal \\n or real newlines) or as
    raw base64url; pywebpush wants the raw body.
    """
    if "\\n" in value:
        value = value.replace("\\n", "\n")
    if "BEGIN" in value:
        lines = [l.strip() for l in value.strip().splitlines()
                 if l.strip() and not l.strip().startswith("-----")]
        value = "".join(lines)
    return value


def _remove_subscription(db: Session, subscription: PushSubscription) -> None:
    db.query(PushSubscription).filter(PushSubscription.id == subscription.id).delete()
    db.commit()


def send_web_push(db: Session, subscription: PushSubscription, payload: NotificationPayload) -> bool:
    """
    Send a push notification to a single VAPID subscription.

    Returns True on success, False on failure.
    Automatically deletes stale subscriptions (410/404).
    """
    settings = get_settings()
    if not settings.vapid_configured:
        logger.warning("VAPID keys not configured, skipping push")
        return False

    subscription_info = {
        "endpoint": subscription.endpoint,
        "keys": {
            "p256dh": subscription.p256dh,
            "auth": subscription.auth,
        },
    }
    message = payload.as_dict()
    message.setdefault("icon", settings.icon_url())

    try:
        webpush(
            subscription_info=subscription_info,
            data=json.dumps(message, ensure_ascii=False),
            vapid_private_key=_raw_vapid_key(settings.VAPID_PRIVATE_KEY),
            vapid_claims={"sub": settings.VAPID_MAILTO},
            timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
        )
        return True
    except WebPushException as e:
        status_code = e.response.status_code if e.response is not None else 0
        if status_code in (404, 410):
            logger.info("Subscription expired (HTTP %d), removing: %s", status_code, subscription.endpoint[:60])
            _remove_subscription(db, subscription)
        else:
            logger.error("WebPush error (HTTP %d): %s", status_code, e)
        return False


def send_fcm_push(
    db: Session,
    subscription: PushSubscription,
    payload: NotificationPayload,
    client: FcmClient | None = None,
) -> bool:
    """Same contract as send_web_push, for an FCM device token."""
    settings = get_settings()
    if not settings.fcm_configured:
        logger.warning("Firebase not configured, skipping FCM push")
        return False

    client = client or get_fcm_client()
    try:
        client.send(subscription.fcm_token, payload)
        return True
    except StaleEndpoint as e:
        logger.info("%s, removing token %s...", e, subscription.fcm_token[:20])
        _remove_subscription(db, subscription)
        return False
    except DeliveryFailure as e:
        logger.error("FCM delivery failed: %s", e)
        return False


def send_push_to_user(db: Session, user_id: str, payload: NotificationPayload) -> int:
    """
    Send push notification to all subscriptions of a user.

    Users with notifications disabled are skipped. One failing device never
    stops delivery to the others.

    Returns the number of successful deliveries.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.notifications_enabled:
        return 0

    subs = db.query(PushSubscription).filter(PushSubscription.user_id == user_id).all()
    sent = 0
    for sub in subs:
        try:
            if sub.provider == "fcm":
                ok = send_fcm_push(db, sub, payload)
            else:
                ok = send_web_push(db, sub, payload)
        except Exception:
            logger.exception("Push to subscription %s failed", sub.id)
            db.rollback()
            ok = False
        if ok:
            sent += 1
    return sent
