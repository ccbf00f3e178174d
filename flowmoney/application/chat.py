"""
Joint-account chat: messages, read receipts, moderation, transaction sharing.

Split requests live in ``split_requests.py``, leaderboard/recap in ``recaps.py``.
"""
import logging
from datetime import datetime

from sqlalchemy import or_, select, func
from sqlalchemy.orm import Session

from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.membership import get_joint_account, require_membership
from flowmoney.application.views import member_view, message_view
from flowmoney.domain import events
from flowmoney.domain.errors import InsufficientRole, InvariantViolation, NotFound
from flowmoney.domain.invite import as_utc
from flowmoney.domain.notification import NotificationPayload
from flowmoney.domain.roles import Capability, has_capability
from flowmoney.infrastructure.db.models import (
    ChatMessage, ChatMessageRead, JointAccountMember, SplitParticipant, TransactionModel, User,
)
from flowmoney.utils.money import format_money

logger = logging.getLogger(__name__)

SYSTEM_SENDER = "FlowMoney"
USER_MESSAGE_TYPES = ("text", "image")
PREVIEW_LENGTH = 100


def _preview(content: str, message_type: str) -> str:
    if message_type == "image":
        return "📷 Sent an image"
    if len(content) > PREVIEW_LENGTH:
        return content[:PREVIEW_LENGTH] + "..."
    return content


def post_system_message(
    db: Session,
    broadcaster: FanoutBroadcaster,
    joint_account_id: str,
    content: str,
    message_type: str = "system",
    payload: dict | None = None,
) -> ChatMessage:
    """Announcement without a human sender. Live rooms only, no push."""
    message = ChatMessage(
        joint_account_id=joint_account_id,
        sender_id=None,
        sender_name=SYSTEM_SENDER,
        content=content,
        type=message_type,
        payload_json=payload,
    )
    db.add(message)
    db.commit()
    broadcaster.publish_to_account(joint_account_id, None, events.CHAT_MESSAGE, message_view(message))
    return message


def post_member_message(
    db: Session,
    broadcaster: FanoutBroadcaster,
    joint_account_id: str,
    sender: User,
    content: str,
    message_type: str = "text",
    payload: dict | None = None,
    split_request_id: str | None = None,
    push_body: str | None = None,
) -> ChatMessage:
    """
    Store a message from ``sender`` (already authorized), mark it read for the
    sender and fan it out to the other members.
    """
    message = ChatMessage(
        joint_account_id=joint_account_id,
        sender_id=sender.id,
        sender_name=sender.name,
        content=content,
        type=message_type,
        payload_json=payload,
        split_request_id=split_request_id,
    )
    db.add(message)
    db.flush()
    db.add(ChatMessageRead(message_id=message.id, user_id=sender.id))
    db.commit()

    account = get_joint_account(db, joint_account_id)
    broadcaster.publish_to_account(
        joint_account_id, sender.id, events.CHAT_MESSAGE, message_view(message),
        NotificationPayload(
            title=f"{sender.name} in {account.name}",
            body=push_body or _preview(content, message_type),
            tag=f"chat-{joint_account_id}",
            data={"type": events.NOTIFY_CHAT, "joint_account_id": joint_account_id,
                  "message_id": message.id},
        ),
    )
    return message


# ============================================================================
# Queries
# ============================================================================


def _read_by(user_id: str):
    return select(ChatMessageRead.message_id).where(ChatMessageRead.user_id == user_id)


def _not_sent_by(user_id: str):
    return or_(ChatMessage.sender_id.is_(None), ChatMessage.sender_id != user_id)


def list_messages(
    db: Session,
    joint_account_id: str,
    user_id: str,
    before: datetime | None = None,
    limit: int = 50,
) -> tuple[list[dict], bool]:
    """
    Newest first, ``before`` for paging back. Returns (messages, has_more).

    Split-request messages carry the caller's participant status.
    """
    require_membership(db, joint_account_id, user_id, Capability.READ)
    limit = max(1, min(limit, 200))

    query = db.query(ChatMessage).filter(ChatMessage.joint_account_id == joint_account_id)
    if before is not None:
        query = query.filter(ChatMessage.created_at < before)
    messages = query.order_by(ChatMessage.created_at.desc()).limit(limit + 1).all()
    has_more = len(messages) > limit
    messages = messages[:limit]

    read_ids = set(db.execute(
        _read_by(user_id).where(ChatMessageRead.message_id.in_([m.id for m in messages]))
    ).scalars())
    split_ids = [m.split_request_id for m in messages if m.split_request_id]
    my_split_status = {}
    if split_ids:
        rows = db.query(SplitParticipant).filter(
            SplitParticipant.split_request_id.in_(split_ids),
            SplitParticipant.user_id == user_id,
        ).all()
        my_split_status = {p.split_request_id: p.status for p in rows}

    result = []
    for message in messages:
        view = message_view(message, is_read=message.sender_id == user_id or message.id in read_ids)
        if message.split_request_id:
            view["my_split_status"] = my_split_status.get(message.split_request_id)
        result.append(view)
    return result, has_more


def unread_count(db: Session, user_id: str) -> int:
    """Unread messages from others across every account the user belongs to."""
    account_ids = select(JointAccountMember.joint_account_id).where(JointAccountMember.user_id == user_id)
    return db.query(func.count(ChatMessage.id)).filter(
        ChatMessage.joint_account_id.in_(account_ids),
        _not_sent_by(user_id),
        ChatMessage.id.not_in(_read_by(user_id)),
    ).scalar() or 0


def list_conversations(db: Session, user_id: str) -> tuple[list[dict], int]:
    """
    One entry per account the user belongs to, most recently active first.

    Returns (conversations, total_unread).
    """
    memberships = db.query(JointAccountMember).filter(JointAccountMember.user_id == user_id).all()
    conversations = []
    for membership in memberships:
        account = membership.joint_account
        last = db.query(ChatMessage).filter(
            ChatMessage.joint_account_id == account.id
        ).order_by(ChatMessage.created_at.desc()).first()
        unread = db.query(func.count(ChatMessage.id)).filter(
            ChatMessage.joint_account_id == account.id,
            _not_sent_by(user_id),
            ChatMessage.id.not_in(_read_by(user_id)),
        ).scalar() or 0
        conversations.append({
            "joint_account_id": account.id,
            "name": account.name,
            "role": membership.role,
            "members": [member_view(m) for m in sorted(account.members, key=lambda m: m.joined_at)],
            "last_message": message_view(last) if last else None,
            "unread_count": unread,
            "updated_at": last.created_at if last else account.updated_at,
        })

    conversations.sort(key=lambda c: as_utc(c["updated_at"]), reverse=True)
    return conversations, sum(c["unread_count"] for c in conversations)


# ============================================================================
# Commands
# ============================================================================


def mark_read(db: Session, joint_account_id: str, user_id: str) -> int:
    """Mark every message in the account as read by the user. Returns how many."""
    require_membership(db, joint_account_id, user_id, Capability.READ)
    unread_ids = [row[0] for row in db.query(ChatMessage.id).filter(
        ChatMessage.joint_account_id == joint_account_id,
        _not_sent_by(user_id),
        ChatMessage.id.not_in(_read_by(user_id)),
    ).all()]
    for message_id in unread_ids:
        db.add(ChatMessageRead(message_id=message_id, user_id=user_id))
    db.commit()
    return len(unread_ids)


class SendMessageUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, sender: User, content: str, message_type: str = "text") -> ChatMessage:
        require_membership(self.db, joint_account_id, sender.id, Capability.CHAT)
        content = (content or "").strip()
        if not content:
            raise InvariantViolation("Content is required")
        if message_type not in USER_MESSAGE_TYPES:
            raise InvariantViolation(f"Message type must be one of: {', '.join(USER_MESSAGE_TYPES)}")
        return post_member_message(self.db, self.broadcaster, joint_account_id, sender, content, message_type)


class ShareTransactionUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, sender: User, transaction_id: str, comment: str | None = None) -> ChatMessage:
        require_membership(self.db, joint_account_id, sender.id, Capability.CHAT)
        tx = self.db.query(TransactionModel).filter(
            TransactionModel.id == transaction_id,
            TransactionModel.joint_account_id == joint_account_id,
        ).first()
        if tx is None:
            raise NotFound("Transaction not found")

        emoji = "💰" if tx.type == "INCOME" else "💸"
        return post_member_message(
            self.db, self.broadcaster, joint_account_id, sender,
            content=(comment or "").strip(),
            message_type="transaction_share",
            payload={
                "transaction_id": tx.id,
                "amount": str(tx.amount),
                "currency": tx.currency,
                "type": tx.type,
                "category": tx.category,
                "note": tx.note,
                "date": tx.date.isoformat(),
            },
            push_body=f"{emoji} Shared {format_money(tx.amount, tx.currency)} {tx.type.lower()}: {tx.category}",
        )


class DeleteMessageUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, message_id: str, actor_user_id: str) -> None:
        """Sender, or a role that can moderate chat."""
        membership = require_membership(self.db, joint_account_id, actor_user_id, Capability.CHAT)
        message = self.db.query(ChatMessage).filter(
            ChatMessage.id == message_id,
            ChatMessage.joint_account_id == joint_account_id,
        ).first()
        if message is None:
            raise NotFound("Message not found")
        if message.sender_id != actor_user_id and not has_capability(membership.role, Capability.MODERATE_CHAT):
            raise InsufficientRole("Not authorized to delete this message")

        self.db.delete(message)
        self.db.commit()
        self.broadcaster.publish_to_account(
            joint_account_id, actor_user_id, events.CHAT_MESSAGE_DELETED,
            {"joint_account_id": joint_account_id, "message_id": message_id},
        )


class ClearConversationUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, actor_user_id: str) -> int:
        require_membership(self.db, joint_account_id, actor_user_id, Capability.MODERATE_CHAT)
        message_ids = select(ChatMessage.id).where(ChatMessage.joint_account_id == joint_account_id)
        self.db.query(ChatMessageRead).filter(
            ChatMessageRead.message_id.in_(message_ids)
        ).delete(synchronize_session=False)
        deleted = self.db.query(ChatMessage).filter(
            ChatMessage.joint_account_id == joint_account_id
        ).delete(synchronize_session=False)
        self.db.commit()

        self.broadcaster.publish_to_account(
            joint_account_id, actor_user_id, events.CHAT_CLEARED,
            {"joint_account_id": joint_account_id},
        )
        return deleted
