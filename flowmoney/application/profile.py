"""
Profile service: registration, preferences, password change and push device registration.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flowmoney.application.push_service import send_push_to_user
from flowmoney.auth import hash_password, verify_password, get_user_by_email
from flowmoney.domain import events
from flowmoney.domain.errors import InvalidCredentials, InvariantViolation
from flowmoney.domain.invite import normalize_email
from flowmoney.domain.notification import NotificationPayload
from flowmoney.infrastructure.db.models import PushSubscription, User
from flowmoney.utils.validation import validate_currency

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _check_password_length(password: str | None) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise InvariantViolation(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def register_user(
    db: Session, email: str, name: str, password: str, primary_currency: str = "USD"
) -> User:
    email = normalize_email(email or "")
    name = (name or "").strip()
    if "@" not in email:
        raise InvariantViolation("Valid email is required")
    if not name:
        raise InvariantViolation("Name is required")
    _check_password_length(password)
    if get_user_by_email(db, email) is not None:
        raise InvariantViolation("Email is already registered")

    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        primary_currency=validate_currency(primary_currency),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvariantViolation("Email is already registered")
    logger.info("User %s registered", user.id)
    return user


def update_preferences(
    db: Session,
    user: User,
    name: str | None = None,
    primary_currency: str | None = None,
    notifications_enabled: bool | None = None,
) -> User:
    if name is not None:
        name = name.strip()
        if not name:
            raise InvariantViolation("Name is required")
        user.name = name
    if primary_currency is not None:
        user.primary_currency = validate_currency(primary_currency)
    if notifications_enabled is not None:
        user.notifications_enabled = notifications_enabled
    db.commit()
    return user


def change_password(db: Session, user: User, current_password: str | None, new_password: str) -> None:
    """
    Raises:
        InvariantViolation: new password too short, current one missing
        InvalidCredentials: current password does not match
    """
    _check_password_length(new_password)
    if not current_password:
        raise InvariantViolation("Current password is required")
    if not verify_password(current_password, user.password_hash):
        raise InvalidCredentials("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.commit()
    logger.info("User %s changed password", user.id)


# ============================================================================
# Push devices
# ============================================================================


def subscribe_vapid(db: Session, user: User, endpoint: str, p256dh: str, auth: str) -> PushSubscription:
    """Upsert by endpoint (a browser re-subscribing may switch users)."""
    sub = db.query(PushSubscription).filter(PushSubscription.endpoint == endpoint).first()
    if sub is None:
        sub = PushSubscription(provider="vapid", endpoint=endpoint)
        db.add(sub)
    sub.user_id = user.id
    sub.p256dh = p256dh
    sub.auth = auth
    user.notifications_enabled = True
    db.commit()
    return sub


def subscribe_fcm(db: Session, user: User, token: str, platform: str | None = None) -> PushSubscription:
    sub = db.query(PushSubscription).filter(PushSubscription.fcm_token == token).first()
    if sub is None:
        sub = PushSubscription(provider="fcm", fcm_token=token)
        db.add(sub)
    sub.user_id = user.id
    sub.platform = platform or "web"
    user.notifications_enabled = True
    db.commit()
    return sub


def unsubscribe(db: Session, user: User, endpoint: str | None = None, token: str | None = None) -> int:
    """
    Remove one device (by endpoint or token) or all of them.

    Notifications are switched off once no device is left.
    """
    query = db.query(PushSubscription).filter(PushSubscription.user_id == user.id)
    if endpoint:
        query = query.filter(PushSubscription.endpoint == endpoint)
    elif token:
        query = query.filter(PushSubscription.fcm_token == token)
    deleted = query.delete(synchronize_session=False)

    remaining = db.query(PushSubscription).filter(PushSubscription.user_id == user.id).count()
    if remaining == 0:
        user.notifications_enabled = False
    db.commit()
    return deleted


def send_test_push(db: Session, user: User) -> int:
    """Returns the number of devices reached."""
    has_devices = db.query(PushSubscription.id).filter(PushSubscription.user_id == user.id).first()
    if not has_devices:
        raise InvariantViolation("No push subscription found. Please enable notifications in settings first.")
    return send_push_to_user(db, user.id, NotificationPayload(
        title="FlowMoney Test 🎉",
        body="Push notifications are working! You will receive alerts for joint account activity.",
        tag="test",
        data={"type": events.NOTIFY_TEST, "url": "/"},
    ))
