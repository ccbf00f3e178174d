"""
Invite/join workflow by email.

PENDING -> ACCEPTED | DECLINED; an invite past ``expires_at`` is treated as
expired without any stored transition.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flowmoney.application.email_service import send_email, invite_email
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.membership import get_joint_account, get_membership, require_membership
from flowmoney.application.views import invite_view, member_view
from flowmoney.auth import get_user_by_email
from flowmoney.config import get_settings
from flowmoney.domain import events
from flowmoney.domain.errors import (
    InvariantViolation, NotFound, NotInvitee, UpstreamUnavailable,
)
from flowmoney.domain.invite import InviteStatus, normalize_email, expires_at, is_expired
from flowmoney.domain.notification import NotificationPayload
from flowmoney.domain.roles import Capability, DEFAULT_JOIN_ROLE
from flowmoney.infrastructure.db.models import JointAccountInvite, JointAccountMember, User

logger = logging.getLogger(__name__)


def _pending_invite(db: Session, joint_account_id: str, email: str) -> JointAccountInvite | None:
    return db.query(JointAccountInvite).filter(
        JointAccountInvite.joint_account_id == joint_account_id,
        JointAccountInvite.invited_email == email,
        JointAccountInvite.status == InviteStatus.PENDING.value,
    ).first()


class CreateInviteUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, inviter: User, email: str) -> JointAccountInvite:
        """
        Raises:
            NotAMember / InsufficientRole: inviter is not the admin
            InvariantViolation: already a member, or a live invite is pending
        """
        require_membership(self.db, joint_account_id, inviter.id, Capability.MANAGE_MEMBERS)
        if not email or not email.strip():
            raise InvariantViolation("Email is required")
        email = normalize_email(email)

        invitee = get_user_by_email(self.db, email)
        if invitee is not None and get_membership(self.db, joint_account_id, invitee.id) is not None:
            raise InvariantViolation("User is already a member")

        existing = _pending_invite(self.db, joint_account_id, email)
        if existing is not None:
            if not is_expired(existing.expires_at):
                raise InvariantViolation("Invitation already pending")
            # superseded in the same commit as the new invite
            self.db.delete(existing)
            self.db.flush()

        settings = get_settings()
        now = datetime.now(timezone.utc)
        invite = JointAccountInvite(
            joint_account_id=joint_account_id,
            invited_email=email,
            invited_by_user_id=inviter.id,
            status=InviteStatus.PENDING.value,
            created_at=now,
            expires_at=expires_at(now, settings.INVITE_TTL_DAYS),
        )
        self.db.add(invite)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise InvariantViolation("Invitation already pending")

        account = get_joint_account(self.db, joint_account_id)
        logger.info("Invite %s to %s for joint account %s", invite.id, email, joint_account_id)

        if invitee is not None:
            self.broadcaster.publish_to_users(
                [invitee.id],
                events.INVITE_RECEIVED,
                invite_view(invite),
                NotificationPayload(
                    title="🤝 Joint Account Invitation",
                    body=f'{inviter.name} invited you to join "{account.name}"',
                    tag=f"invite-{invite.id}",
                    data={"type": events.NOTIFY_INVITE, "invite_id": invite.id,
                          "joint_account_id": joint_account_id},
                ),
            )

        subject, text, html = invite_email(
            inviter.name, account.name, settings.FRONTEND_URL, settings.INVITE_TTL_DAYS
        )
        try:
            send_email(email, subject, text, html)
        except UpstreamUnavailable as e:
            logger.warning("Invite email to %s not sent: %s", email, e)

        return invite


class RespondToInviteUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, invite_id: str, user: User, accept: bool) -> JointAccountInvite:
        """
        Check order: unknown -> wrong addressee -> expired -> already responded.

        Accept writes the status and the MEMBER row in one commit.
        """
        invite = self.db.query(JointAccountInvite).filter(JointAccountInvite.id == invite_id).first()
        if invite is None:
            raise NotFound("Invitation not found")
        if invite.invited_email != normalize_email(user.email):
            raise NotInvitee("This invitation is not for you")
        if is_expired(invite.expires_at):
            raise InvariantViolation("Invitation has expired")
        if invite.status != InviteStatus.PENDING.value:
            raise InvariantViolation("Invitation already responded to")

        account = get_joint_account(self.db, invite.joint_account_id)
        invite.status = (InviteStatus.ACCEPTED if accept else InviteStatus.DECLINED).value
        invite.responded_at = datetime.now(timezone.utc)

        member = None
        if accept:
            if get_membership(self.db, account.id, user.id) is not None:
                self.db.rollback()
                raise InvariantViolation("User is already a member")
            member = JointAccountMember(
                joint_account_id=account.id, user_id=user.id, role=DEFAULT_JOIN_ROLE.value
            )
            self.db.add(member)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise InvariantViolation("User is already a member")

        if member is not None:
            data = {"joint_account_id": account.id, "account_name": account.name,
                    "member": member_view(member)}
            self.broadcaster.publish_to_account(
                account.id, user.id, events.MEMBER_JOINED, data,
                NotificationPayload(
                    title="✅ New Member Joined",
                    body=f'{user.name} accepted the invitation to "{account.name}"',
                    tag=f"member-joined-{member.id}",
                    data={"type": events.NOTIFY_INVITE_RESPONSE, "joint_account_id": account.id},
                ),
            )
        else:
            self.broadcaster.publish_to_users(
                [account.admin_user_id],
                events.INVITE_DECLINED,
                {"invite_id": invite.id, "joint_account_id": account.id,
                 "invited_email": invite.invited_email},
                NotificationPayload(
                    title="❌ Invitation Declined",
                    body=f'{invite.invited_email} declined to join "{account.name}"',
                    tag=f"invite-declined-{invite.id}",
                    data={"type": events.NOTIFY_INVITE_RESPONSE, "joint_account_id": account.id},
                ),
            )
        return invite


class CancelInviteUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, invite_id: str, actor_user_id: str) -> None:
        require_membership(self.db, joint_account_id, actor_user_id, Capability.MANAGE_MEMBERS)
        invite = self.db.query(JointAccountInvite).filter(
            JointAccountInvite.id == invite_id,
            JointAccountInvite.joint_account_id == joint_account_id,
        ).first()
        if invite is None:
            raise NotFound("Invitation not found")

        invitee = get_user_by_email(self.db, invite.invited_email)
        self.db.delete(invite)
        self.db.commit()

        if invitee is not None:
            self.broadcaster.publish_to_users(
                [invitee.id], events.INVITE_CANCELLED,
                {"invite_id": invite_id, "joint_account_id": joint_account_id},
            )


def list_my_pending_invites(db: Session, user: User) -> list[dict]:
    """Live (unexpired) PENDING invites addressed to the user."""
    invites = db.query(JointAccountInvite).filter(
        JointAccountInvite.invited_email == normalize_email(user.email),
        JointAccountInvite.status == InviteStatus.PENDING.value,
    ).order_by(JointAccountInvite.created_at.desc()).all()
    return [invite_view(i) for i in invites if not is_expired(i.expires_at)]


def list_account_invites(db: Session, joint_account_id: str, actor_user_id: str) -> list[dict]:
    require_membership(db, joint_account_id, actor_user_id, Capability.MANAGE_MEMBERS)
    invites = db.query(JointAccountInvite).filter(
        JointAccountInvite.joint_account_id == joint_account_id,
        JointAccountInvite.status == InviteStatus.PENDING.value,
    ).order_by(JointAccountInvite.created_at.desc()).all()
    return [invite_view(i) for i in invites]
