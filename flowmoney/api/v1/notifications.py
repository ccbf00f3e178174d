"""
In-app notification endpoints
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flowmoney.api.deps import get_db, get_current_user, get_broadcaster
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.notifications import (
    LIST_LIMIT, list_notifications, mark_notification_read, mark_all_notifications_read, delete_notification,
    NotificationActionUseCase,
)
from flowmoney.application.views import invite_view, notification_view
from flowmoney.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


class NotificationActionRequest(BaseModel):
    action: str


@router.get("")
def get_notifications(
    limit: int = Query(LIST_LIMIT, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, unread = list_notifications(db, user.id, limit)
    return {"notifications": [notification_view(n) for n in items], "unread_count": unread}


@router.post("/read-all")
def read_all(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "updated": mark_all_notifications_read(db, user.id)}


@router.post("/{notification_id}/read")
def read_one(notification_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return notification_view(mark_notification_read(db, notification_id, user.id))


@router.post("/{notification_id}/action")
def take_action(
    notification_id: str,
    req: NotificationActionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    """accept / decline the invitation a notification is about"""
    invite = NotificationActionUseCase(db, broadcaster).execute(notification_id, user, req.action)
    return {"success": True, "action": req.action.lower(), "invite": invite_view(invite)}


@router.delete("/{notification_id}")
def delete_one(notification_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    delete_notification(db, notification_id, user.id)
    return {"success": True}
