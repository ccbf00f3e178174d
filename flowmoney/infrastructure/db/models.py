"""
SQLAlchemy ORM models
"""
import uuid
from datetime import date as date_type, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    String, Text, Integer, Boolean, Numeric, Date, DateTime, ForeignKey,
    UniqueConstraint, Index, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB

from flowmoney.infrastructure.db.session import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# NUMERIC(14, 2) for every money column
Money = Numeric(precision=14, scale=2)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)  # stored lowercase
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    primary_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class PushSubscription(Base):
    """
    Push target of a user device.

    provider="vapid": endpoint/p256dh/auth (browser Web Push)
    provider="fcm":   fcm_token/platform (native apps)
    """
    __tablename__ = "push_subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(10), nullable=False, default="vapid")
    endpoint: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    p256dh: Mapped[str | None] = mapped_column(Text, nullable=True)
    auth: Mapped[str | None] = mapped_column(Text, nullable=True)
    fcm_token: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    platform: Mapped[str | None] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


# ============================================================================
# Joint accounts
# ============================================================================


class JointAccount(Base):
    """
    Shared ledger. ``admin_user_id`` is the creator and never changes.
    """
    __tablename__ = "joint_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    primary_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    admin_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    invite_code: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # ORM-side cascades so deletes work on SQLite as well
    members: Mapped[list["JointAccountMember"]] = relationship(
        back_populates="joint_account", cascade="all, delete-orphan"
    )
    invites: Mapped[list["JointAccountInvite"]] = relationship(
        back_populates="joint_account", cascade="all, delete-orphan"
    )
    transactions: Mapped[list["TransactionModel"]] = relationship(
        back_populates="joint_account", cascade="all, delete-orphan"
    )
    goals: Mapped[list["GoalModel"]] = relationship(
        back_populates="joint_account", cascade="all, delete-orphan"
    )
    subscriptions: Mapped[list["SubscriptionModel"]] = relationship(
        back_populates="joint_account", cascade="all, delete-orphan"
    )
    split_requests: Mapped[list["SplitRequest"]] = relationship(
        back_populates="joint_account", cascade="all, delete-orphan"
    )
    chat_messages: Mapped[list["ChatMessage"]] = relationship(
        back_populates="joint_account", cascade="all, delete-orphan"
    )


class JointAccountMember(Base):
    __tablename__ = "joint_account_members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    joint_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("joint_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(10), nullable=False)  # ADMIN, MEMBER, VIEWER
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    joint_account: Mapped[JointAccount] = relationship(back_populates="members")
    user: Mapped[User] = relationship()

    __table_args__ = (
        UniqueConstraint("joint_account_id", "user_id", name="uq_joint_account_member"),
    )


class JointAccountInvite(Base):
    __tablename__ = "joint_account_invites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    joint_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("joint_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invited_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)  # lowercase
    invited_by_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="PENDING")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    joint_account: Mapped[JointAccount] = relationship(back_populates="invites")
    invited_by: Mapped[User] = relationship()

    __table_args__ = (
        # At most one PENDING invite per (account, email)
        Index(
            "uq_joint_account_invite_pending",
            "joint_account_id", "invited_email",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )


# ============================================================================
# Financial records
# ============================================================================


class TransactionModel(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    joint_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("joint_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)  # positive magnitude
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)  # INCOME, EXPENSE
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    added_by_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    added_by_user_name: Mapped[str] = mapped_column(String(255), nullable=False)  # snapshot at write time

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    joint_account: Mapped[JointAccount] = relationship(back_populates="transactions")


class GoalModel(Base):
    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    joint_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("joint_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    target_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    current_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    deadline: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    # Highest 25%-multiple already announced
    milestone_reached: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    joint_account: Mapped[JointAccount] = relationship(back_populates="goals")


class SubscriptionModel(Base):
    """Recurring bill, descriptive only (nothing is charged)."""
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    joint_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("joint_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    cycle: Mapped[str] = mapped_column(String(10), nullable=False)  # Monthly, Yearly
    next_billing_date: Mapped[date_type] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    joint_account: Mapped[JointAccount] = relationship(back_populates="subscriptions")


# ============================================================================
# Chat
# ============================================================================


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    joint_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("joint_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[str | None] = mapped_column(String(36), nullable=True)  # null for system messages
    sender_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="text")
    payload_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    split_request_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    joint_account: Mapped[JointAccount] = relationship(back_populates="chat_messages")
    reads: Mapped[list["ChatMessageRead"]] = relationship(
        cascade="all, delete-orphan"
    )


class ChatMessageRead(Base):
    __tablename__ = "chat_message_reads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    message_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("chat_messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    read_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_chat_message_read"),
    )


class SplitRequest(Base):
    __tablename__ = "split_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    joint_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("joint_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requester_id: Mapped[str] = mapped_column(String(36), nullable=False)
    requester_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    split_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="active")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    joint_account: Mapped[JointAccount] = relationship(back_populates="split_requests")
    participants: Mapped[list["SplitParticipant"]] = relationship(
        cascade="all, delete-orphan", order_by="SplitParticipant.user_name"
    )


class SplitParticipant(Base):
    __tablename__ = "split_participants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    split_request_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("split_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="pending")
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("split_request_id", "user_id", name="uq_split_participant"),
    )


# ============================================================================
# Notifications
# ============================================================================


class NotificationModel(Base):
    """Persisted in-app notification (one row per recipient)."""
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    data_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # accept / decline, for invite notifications answered in place
    action_taken: Mapped[str | None] = mapped_column(String(16), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
