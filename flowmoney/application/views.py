"""
Plain-dict views of ORM rows.

Used for HTTP responses and for live-room/fan-out data, so both sides of the
wire see the same shape.
"""
from flowmoney.infrastructure.db.models import (
    User, JointAccount, JointAccountMember, JointAccountInvite,
    TransactionModel, GoalModel, SubscriptionModel,
    ChatMessage, SplitRequest, NotificationModel,
)
from flowmoney.domain.goal import progress_percent


def user_view(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "primary_currency": user.primary_currency,
        "notifications_enabled": user.notifications_enabled,
        "created_at": user.created_at,
    }


def member_view(member: JointAccountMember) -> dict:
    return {
        "id": member.id,
        "joint_account_id": member.joint_account_id,
        "user_id": member.user_id,
        "role": member.role,
        "joined_at": member.joined_at,
        "user_name": member.user.name if member.user else "Unknown",
        "user_email": member.user.email if member.user else "",
    }


def account_view(account: JointAccount, role: str | None = None, with_members: bool = True) -> dict:
    result = {
        "id": account.id,
        "name": account.name,
        "primary_currency": account.primary_currency,
        "admin_user_id": account.admin_user_id,
        "invite_code": account.invite_code,
        "created_at": account.created_at,
        "updated_at": account.updated_at,
        "role": role,
    }
    if with_members:
        members = sorted(account.members, key=lambda m: m.joined_at)
        result["members"] = [member_view(m) for m in members]
        admin = next((m for m in members if m.user_id == account.admin_user_id), None)
        result["admin_name"] = admin.user.name if admin and admin.user else "Unknown"
    return result


def invite_view(invite: JointAccountInvite) -> dict:
    account = invite.joint_account
    inviter = invite.invited_by
    return {
        "id": invite.id,
        "joint_account_id": invite.joint_account_id,
        "invited_email": invite.invited_email,
        "invited_by_user_id": invite.invited_by_user_id,
        "status": invite.status,
        "created_at": invite.created_at,
        "expires_at": invite.expires_at,
        "responded_at": invite.responded_at,
        "account_name": account.name if account else "Unknown Account",
        "inviter_name": inviter.name if inviter else "Someone",
        "inviter_email": inviter.email if inviter else "",
    }


def transaction_view(tx: TransactionModel) -> dict:
    return {
        "id": tx.id,
        "joint_account_id": tx.joint_account_id,
        "amount": tx.amount,
        "currency": tx.currency,
        "type": tx.type,
        "category": tx.category,
        "date": tx.date,
        "note": tx.note,
        "added_by_user_id": tx.added_by_user_id,
        "added_by_user_name": tx.added_by_user_name,
        "created_at": tx.created_at,
        "updated_at": tx.updated_at,
    }


def goal_view(goal: GoalModel) -> dict:
    return {
        "id": goal.id,
        "joint_account_id": goal.joint_account_id,
        "name": goal.name,
        "target_amount": goal.target_amount,
        "current_amount": goal.current_amount,
        "currency": goal.currency,
        "deadline": goal.deadline,
        "progress": round(float(progress_percent(goal.current_amount, goal.target_amount)), 1),
        "milestone_reached": goal.milestone_reached,
        "created_at": goal.created_at,
        "updated_at": goal.updated_at,
    }


def subscription_view(sub: SubscriptionModel) -> dict:
    return {
        "id": sub.id,
        "joint_account_id": sub.joint_account_id,
        "name": sub.name,
        "amount": sub.amount,
        "currency": sub.currency,
        "cycle": sub.cycle,
        "next_billing_date": sub.next_billing_date,
        "created_at": sub.created_at,
        "updated_at": sub.updated_at,
    }


def split_view(split: SplitRequest) -> dict:
    return {
        "id": split.id,
        "joint_account_id": split.joint_account_id,
        "requester_id": split.requester_id,
        "requester_name": split.requester_name,
        "total_amount": split.total_amount,
        "split_amount": split.split_amount,
        "description": split.description,
        "transaction_id": split.transaction_id,
        "status": split.status,
        "created_at": split.created_at,
        "participants": [
            {
                "user_id": p.user_id,
                "user_name": p.user_name,
                "amount": p.amount,
                "status": p.status,
                "responded_at": p.responded_at,
            }
            for p in split.participants
        ],
    }


def message_view(message: ChatMessage, is_read: bool | None = None) -> dict:
    result = {
        "id": message.id,
        "joint_account_id": message.joint_account_id,
        "sender_id": message.sender_id,
        "sender_name": message.sender_name,
        "content": message.content,
        "type": message.type,
        "payload": message.payload_json,
        "split_request_id": message.split_request_id,
        "created_at": message.created_at,
    }
    if is_read is not None:
        result["is_read"] = is_read
    return result


def notification_view(notification: NotificationModel) -> dict:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "body": notification.body,
        "data": notification.data_json,
        "read": notification.read,
        "read_at": notification.read_at,
        "action_taken": notification.action_taken,
        "created_at": notification.created_at,
    }
