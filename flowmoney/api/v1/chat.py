"""
Joint-account chat endpoints: conversations, messages, read receipts, split requests, leaderboard and recap
"""
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flowmoney.api.deps import get_db, get_current_user, get_broadcaster
from flowmoney.application.chat import (
    SendMessageUseCase, ShareTransactionUseCase, DeleteMessageUseCase, ClearConversationUseCase,
    list_conversations, list_messages, unread_count, mark_read,
)
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.recaps import (
    PostLeaderboardUseCase, PostRecapUseCase, leaderboard, monthly_recap, period_label,
)
from flowmoney.application.split_requests import (
    CreateSplitRequestUseCase, RespondToSplitRequestUseCase, get_split_request,
)
from flowmoney.application.views import message_view, split_view
from flowmoney.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


# === Request models ===

class SendMessageRequest(BaseModel):
    content: str
    type: str = "text"


class ShareTransactionRequest(BaseModel):
    transaction_id: str
    comment: str | None = None


class CreateSplitRequest(BaseModel):
    amount: str
    description: str | None = None
    split_with: list[str] | None = None
    transaction_id: str | None = None


class RespondSplitRequest(BaseModel):
    action: str


class PostLeaderboardRequest(BaseModel):
    period: str = "month"


# === Messages ===

@router.get("/conversations")
def get_conversations(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Chat entry point: every account with its last message and unread count"""
    conversations, total_unread = list_conversations(db, user.id)
    return {"conversations": conversations, "total_unread": total_unread}


@router.get("/unread-count")
def get_unread_count(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"count": unread_count(db, user.id)}


@router.get("/{joint_account_id}/messages")
def get_messages(
    joint_account_id: str,
    before: datetime | None = None,
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    messages, has_more = list_messages(db, joint_account_id, user.id, before=before, limit=limit)
    return {"messages": messages, "has_more": has_more}


@router.post("/{joint_account_id}/messages", status_code=201)
def send_message(
    joint_account_id: str,
    req: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    message = SendMessageUseCase(db, broadcaster).execute(joint_account_id, user, req.content, req.type)
    return message_view(message, is_read=True)


@router.post("/{joint_account_id}/read")
def read_all(joint_account_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "marked": mark_read(db, joint_account_id, user.id)}


@router.delete("/{joint_account_id}/messages/{message_id}")
def delete_message(
    joint_account_id: str,
    message_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    DeleteMessageUseCase(db, broadcaster).execute(joint_account_id, message_id, user.id)
    return {"success": True}


@router.delete("/{joint_account_id}/messages")
def clear_conversation(
    joint_account_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    deleted = ClearConversationUseCase(db, broadcaster).execute(joint_account_id, user.id)
    return {"success": True, "deleted": deleted}


@router.post("/{joint_account_id}/share-transaction", status_code=201)
def share_transaction(
    joint_account_id: str,
    req: ShareTransactionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    message = ShareTransactionUseCase(db, broadcaster).execute(
        joint_account_id, user, req.transaction_id, req.comment
    )
    return message_view(message, is_read=True)


# === Split requests ===

@router.post("/{joint_account_id}/split-requests", status_code=201)
def create_split_request(
    joint_account_id: str,
    req: CreateSplitRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    split = CreateSplitRequestUseCase(db, broadcaster).execute(
        joint_account_id, user,
        amount=req.amount,
        description=req.description,
        split_with=req.split_with,
        transaction_id=req.transaction_id,
    )
    return split_view(split)


@router.get("/split-requests/{split_request_id}")
def get_split(split_request_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return split_view(get_split_request(db, split_request_id, user.id))


@router.post("/split-requests/{split_request_id}/respond")
def respond_split(
    split_request_id: str,
    req: RespondSplitRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    split = RespondToSplitRequestUseCase(db, broadcaster).execute(split_request_id, user, req.action)
    return split_view(split)


# === Leaderboard / recap ===

@router.get("/{joint_account_id}/leaderboard")
def get_leaderboard(
    joint_account_id: str,
    period: str = "month",
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    entries = leaderboard(db, joint_account_id, user.id, period)
    return {"period": period, "period_label": period_label(period, date.today()), "entries": entries}


@router.post("/{joint_account_id}/leaderboard", status_code=201)
def post_leaderboard(
    joint_account_id: str,
    req: PostLeaderboardRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    message = PostLeaderboardUseCase(db, broadcaster).execute(joint_account_id, user, req.period)
    return message_view(message, is_read=True)


@router.get("/{joint_account_id}/monthly-recap")
def get_monthly_recap(
    joint_account_id: str,
    year: int | None = None,
    month: int | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return monthly_recap(db, joint_account_id, user.id, year=year, month=month)


@router.post("/{joint_account_id}/monthly-recap", status_code=201)
def post_monthly_recap(
    joint_account_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    message = PostRecapUseCase(db, broadcaster).execute(joint_account_id, user)
    return message_view(message, is_read=True)
