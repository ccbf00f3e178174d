"""
Persisted in-app notifications of the current user, and answering invites from them.
"""
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.invites import RespondToInviteUseCase
from flowmoney.domain import events
from flowmoney.domain.errors import InvariantViolation, NotFound
from flowmoney.infrastructure.db.models import JointAccountInvite, NotificationModel, User

LIST_LIMIT = 50


def list_notifications(db: Session, user_id: str, limit: int = LIST_LIMIT) -> tuple[list[NotificationModel], int]:
    """Newest ``limit`` notifications and the total unread count."""
    items = db.query(NotificationModel).filter(
        NotificationModel.user_id == user_id
    ).order_by(NotificationModel.created_at.desc()).limit(limit).all()
    unread = db.query(NotificationModel).filter(
        NotificationModel.user_id == user_id,
        NotificationModel.read.is_(False),
    ).count()
    return items, unread


def mark_notification_read(db: Session, notification_id: str, user_id: str) -> NotificationModel:
    notification = db.query(NotificationModel).filter(
        NotificationModel.id == notification_id,
        NotificationModel.user_id == user_id,
    ).first()
    if notification is None:
        raise NotFound("Notification not found")
    if not notification.read:
        notification.read = True
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
    return notification


def mark_all_notifications_read(db: Session, user_id: str) -> int:
    updated = db.query(NotificationModel).filter(
        NotificationModel.user_id == user_id,
        NotificationModel.read.is_(False),
    ).update({"read": True, "read_at": datetime.now(timezone.utc)}, synchronize_session=False)
    db.commit()
    return updated


def delete_notification(db: Session, notification_id: str, user_id: str) -> None:
    deleted = db.query(NotificationModel).filter(
        NotificationModel.id == notification_id,
        NotificationModel.user_id == user_id,
    ).delete(synchronize_session=False)
    if not deleted:
        raise NotFound("Notification not found")
    db.commit()


NOTIFICATION_ACTIONS = ("accept", "decline")


class NotificationActionUseCase:
    """Answer an invitation straight from its notification."""

    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, notification_id: str, user: User, action: str) -> JointAccountInvite:
        """
        Raises:
            InvariantViolation: unknown action, already acted on, or the invite
                itself can no longer be answered (expired, responded to)
            NotFound: no invite notification of this user, or its invite is gone
        """
        action = (action or "").lower()
        if action not in NOTIFICATION_ACTIONS:
            raise InvariantViolation("Invalid action. Must be accept or decline")

        notification = self.db.query(NotificationModel).filter(
            NotificationModel.id == notification_id,
            NotificationModel.user_id == user.id,
            NotificationModel.type == events.NOTIFY_INVITE,
        ).first()
        if notification is None:
            raise NotFound("Notification not found")
        if notification.action_taken:
            raise InvariantViolation("Action already taken on this invite")

        invite_id = (notification.data_json or {}).get("invite_id")
        if not invite_id:
            raise NotFound("Invitation not found")
        invite = RespondToInviteUseCase(self.db, self.broadcaster).execute(
            invite_id, user, accept=action == "accept"
        )

        notification.action_taken = action
        if not notification.read:
            notification.read = True
            notification.read_at = datetime.now(timezone.utc)
        self.db.commit()
        return invite
