"""
Membership authority: the single answer to "is this user in this joint account,
and with which role".

Every use case touching joint-account data calls ``require_membership`` before
reading or writing anything else.
"""
from sqlalchemy.orm import Session

from flowmoney.domain.errors import NotAMember, InsufficientRole, NotFound
from flowmoney.domain.roles import Capability, has_capability
from flowmoney.infrastructure.db.models import JointAccount, JointAccountMember


def get_membership(db: Session, joint_account_id: str, user_id: str) -> JointAccountMember | None:
    return db.query(JointAccountMember).filter(
        JointAccountMember.joint_account_id == joint_account_id,
        JointAccountMember.user_id == user_id,
    ).first()


def require_membership(
    db: Session,
    joint_account_id: str,
    user_id: str,
    capability: Capability = Capability.READ,
) -> JointAccountMember:
    """
    Raises:
        NotAMember: no membership edge
        InsufficientRole: role lacks ``capability``
    """
    membership = get_membership(db, joint_account_id, user_id)
    if membership is None:
        raise NotAMember()
    if not has_capability(membership.role, capability):
        raise InsufficientRole(
            f"Your role ({membership.role}) does not allow this action"
        )
    return membership


def get_joint_account(db: Session, joint_account_id: str) -> JointAccount:
    account = db.query(JointAccount).filter(JointAccount.id == joint_account_id).first()
    if account is None:
        raise NotFound("Joint account not found")
    return account


def list_member_ids(db: Session, joint_account_id: str) -> list[str]:
    rows = db.query(JointAccountMember.user_id).filter(
        JointAccountMember.joint_account_id == joint_account_id
    ).all()
    return [row[0] for row in rows]
