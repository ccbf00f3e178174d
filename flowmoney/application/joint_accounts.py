"""
Joint account use cases: create, read, update, delete, members, invite code.

Invitations by email live in ``invites.py``.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.membership import (
    get_joint_account, get_membership, require_membership, list_member_ids,
)
from flowmoney.application.views import account_view, member_view
from flowmoney.domain import events
from flowmoney.domain.errors import InvariantViolation, NotFound
from flowmoney.domain.invite import generate_invite_code
from flowmoney.domain.notification import NotificationPayload
from flowmoney.domain.roles import (
    Role, Capability, DEFAULT_JOIN_ROLE, parse_role, check_role_change, check_removal,
)
from flowmoney.infrastructure.db.models import JointAccount, JointAccountMember, User
from flowmoney.utils.validation import validate_currency

logger = logging.getLogger(__name__)


def _unique_invite_code(db: Session) -> str:
    while True:
        code = generate_invite_code()
        if not db.query(JointAccount.id).filter(JointAccount.invite_code == code).first():
            return code


def _find_member(db: Session, joint_account_id: str, member_ref: str) -> JointAccountMember:
    """``member_ref`` may be the membership id or the member's user id."""
    member = db.query(JointAccountMember).filter(
        JointAccountMember.joint_account_id == joint_account_id,
        (JointAccountMember.id == member_ref) | (JointAccountMember.user_id == member_ref),
    ).first()
    if member is None:
        raise NotFound("Member not found")
    return member


# ============================================================================
# Queries
# ============================================================================


def list_joint_accounts(db: Session, user_id: str) -> list[dict]:
    """Every account the user belongs to, with the user's role and all members."""
    memberships = db.query(JointAccountMember).filter(
        JointAccountMember.user_id == user_id
    ).order_by(JointAccountMember.joined_at).all()
    result = []
    for membership in memberships:
        view = account_view(membership.joint_account, role=membership.role)
        view["joined_at"] = membership.joined_at
        result.append(view)
    return result


def get_joint_account_detail(db: Session, joint_account_id: str, user_id: str) -> dict:
    membership = require_membership(db, joint_account_id, user_id, Capability.READ)
    return account_view(get_joint_account(db, joint_account_id), role=membership.role)


# ============================================================================
# Commands
# ============================================================================


class CreateJointAccountUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, user_id: str, name: str, primary_currency: str = "USD") -> JointAccount:
        """Creator becomes the single ADMIN."""
        name = (name or "").strip()
        if not name:
            raise InvariantViolation("Account name is required")
        validate_currency(primary_currency)

        account = JointAccount(
            name=name,
            primary_currency=primary_currency,
            admin_user_id=user_id,
            invite_code=_unique_invite_code(self.db),
        )
        account.members.append(JointAccountMember(user_id=user_id, role=Role.ADMIN.value))
        self.db.add(account)
        self.db.commit()
        logger.info("Joint account %s created by %s", account.id, user_id)
        return account


class UpdateJointAccountUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(
        self,
        joint_account_id: str,
        actor_user_id: str,
        name: str | None = None,
        primary_currency: str | None = None,
    ) -> JointAccount:
        require_membership(self.db, joint_account_id, actor_user_id, Capability.MANAGE_ACCOUNT)
        account = get_joint_account(self.db, joint_account_id)

        if name is not None:
            name = name.strip()
            if not name:
                raise InvariantViolation("Account name is required")
            account.name = name
        if primary_currency is not None:
            account.primary_currency = validate_currency(primary_currency)
        self.db.commit()

        self.broadcaster.publish_to_account(
            joint_account_id, actor_user_id, events.JOINT_ACCOUNT_UPDATED,
            account_view(account, with_members=False),
        )
        return account


class DeleteJointAccountUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, actor_user_id: str) -> None:
        """Cascades to members, invites, records, chat and split requests."""
        require_membership(self.db, joint_account_id, actor_user_id, Capability.MANAGE_ACCOUNT)
        account = get_joint_account(self.db, joint_account_id)
        member_ids = list_member_ids(self.db, joint_account_id)
        others = [uid for uid in member_ids if uid != actor_user_id]
        account_name = account.name

        self.db.delete(account)
        self.db.commit()
        logger.info("Joint account %s deleted by %s", joint_account_id, actor_user_id)
        self.broadcaster.revoke_live_access(joint_account_id, member_ids)

        self.broadcaster.publish_to_users(
            others,
            events.JOINT_ACCOUNT_DELETED,
            {"joint_account_id": joint_account_id, "name": account_name},
            NotificationPayload(
                title="🗑️ Joint account deleted",
                body=f'"{account_name}" was deleted by its admin',
                tag=f"joint-account-deleted-{joint_account_id}",
                data={"type": events.NOTIFY_ACCOUNT, "joint_account_id": joint_account_id},
            ),
        )


class RegenerateInviteCodeUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, joint_account_id: str, actor_user_id: str) -> str:
        require_membership(self.db, joint_account_id, actor_user_id, Capability.MANAGE_MEMBERS)
        account = get_joint_account(self.db, joint_account_id)
        account.invite_code = _unique_invite_code(self.db)
        self.db.commit()
        return account.invite_code


class JoinByCodeUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, user: User, invite_code: str) -> JointAccountMember:
        code = (invite_code or "").strip().upper()
        if not code:
            raise InvariantViolation("Invite code is required")

        account = self.db.query(JointAccount).filter(JointAccount.invite_code == code).first()
        if account is None:
            raise NotFound("Invalid invite code")
        if get_membership(self.db, account.id, user.id) is not None:
            raise InvariantViolation("You are already a member of this joint account")

        member = JointAccountMember(
            joint_account_id=account.id, user_id=user.id, role=DEFAULT_JOIN_ROLE.value
        )
        self.db.add(member)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise InvariantViolation("You are already a member of this joint account")

        self.broadcaster.publish_to_account(
            account.id, user.id, events.MEMBER_JOINED,
            {"joint_account_id": account.id, "member": member_view(member)},
            NotificationPayload(
                title="✅ New Member Joined",
                body=f'{user.name} joined "{account.name}"',
                tag=f"member-joined-{member.id}",
                data={"type": events.NOTIFY_MEMBER, "joint_account_id": account.id},
            ),
        )
        return member


class ChangeMemberRoleUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(
        self, joint_account_id: str, actor_user_id: str, member_ref: str, role: str
    ) -> JointAccountMember:
        actor = require_membership(self.db, joint_account_id, actor_user_id, Capability.READ)
        new_role = parse_role(role)
        target = _find_member(self.db, joint_account_id, member_ref)
        check_role_change(actor.role, target.role, new_role)

        target.role = new_role.value
        self.db.commit()

        account = get_joint_account(self.db, joint_account_id)
        self.broadcaster.publish_to_account(
            joint_account_id, actor_user_id, events.MEMBER_ROLE_CHANGED,
            {"joint_account_id": joint_account_id, "member": member_view(target)},
            NotificationPayload(
                title="🔑 Role updated",
                body=f'{target.user.name} is now {new_role.value.lower()} in "{account.name}"',
                tag=f"member-role-{target.id}",
                data={"type": events.NOTIFY_MEMBER, "joint_account_id": joint_account_id},
            ),
        )
        return target


class RemoveMemberUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, actor_user_id: str, member_ref: str) -> bool:
        """
        Remove a member, or leave when ``member_ref`` is the actor.

        Returns True when the actor left.
        """
        actor = require_membership(self.db, joint_account_id, actor_user_id, Capability.READ)
        target = _find_member(self.db, joint_account_id, member_ref)
        check_removal(actor_user_id, actor.role, target.user_id, target.role)

        account = get_joint_account(self.db, joint_account_id)
        is_self = target.user_id == actor_user_id
        target_user_id = target.user_id
        target_name = target.user.name if target.user else "A member"
        data = {"joint_account_id": joint_account_id, "user_id": target_user_id, "member_id": target.id}

        self.db.delete(target)
        self.db.commit()
        self.broadcaster.revoke_live_access(joint_account_id, [target_user_id])

        if is_self:
            self.broadcaster.publish_to_account(
                joint_account_id, actor_user_id, events.MEMBER_LEFT, data,
                NotificationPayload(
                    title="👋 Member Left",
                    body=f'{target_name} has left "{account.name}"',
                    tag=f"member-left-{data['member_id']}",
                    data={"type": events.NOTIFY_MEMBER, "joint_account_id": joint_account_id},
                ),
            )
        else:
            self.broadcaster.publish_to_account(
                joint_account_id, actor_user_id, events.MEMBER_REMOVED, data
            )
            self.broadcaster.publish_to_users(
                [target_user_id], events.MEMBER_REMOVED, data,
                NotificationPayload(
                    title="🚪 Removed from joint account",
                    body=f'You were removed from "{account.name}"',
                    tag=f"member-removed-{data['member_id']}",
                    data={"type": events.NOTIFY_MEMBER, "joint_account_id": joint_account_id},
                ),
            )
        return is_self
