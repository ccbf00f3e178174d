"""
Joint account API endpoints (accounts, members, invites, invite code)
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flowmoney.api.deps import get_db, get_current_user, get_broadcaster
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.invites import (
    CreateInviteUseCase, RespondToInviteUseCase, CancelInviteUseCase,
    list_my_pending_invites, list_account_invites,
)
from flowmoney.application.joint_accounts import (
    CreateJointAccountUseCase, UpdateJointAccountUseCase, DeleteJointAccountUseCase,
    RegenerateInviteCodeUseCase, JoinByCodeUseCase, ChangeMemberRoleUseCase, RemoveMemberUseCase,
    list_joint_accounts, get_joint_account_detail,
)
from flowmoney.application.views import account_view, invite_view, member_view
from flowmoney.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/joint-accounts", tags=["joint-accounts"])


# === Request models ===

class CreateJointAccountRequest(BaseModel):
    name: str
    primary_currency: str = "USD"


class UpdateJointAccountRequest(BaseModel):
    name: str | None = None
    primary_currency: str | None = None


class InviteRequest(BaseModel):
    email: str


class RespondInviteRequest(BaseModel):
    accept: bool


class JoinRequest(BaseModel):
    invite_code: str


class ChangeRoleRequest(BaseModel):
    role: str


# === Accounts ===

@router.get("")
def get_accounts(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Accounts of the current user with role and members"""
    return list_joint_accounts(db, user.id)


@router.post("", status_code=201)
def create_account(
    req: CreateJointAccountRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    account = CreateJointAccountUseCase(db).execute(user.id, req.name, req.primary_currency)
    return account_view(account, role="ADMIN")


@router.get("/invites/pending")
def my_pending_invites(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return list_my_pending_invites(db, user)


@router.post("/invites/{invite_id}/respond")
def respond_invite(
    invite_id: str,
    req: RespondInviteRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    invite = RespondToInviteUseCase(db, broadcaster).execute(invite_id, user, req.accept)
    message = "Successfully joined the account" if req.accept else "Invitation declined"
    return {"success": True, "message": message, "invite": invite_view(invite)}


@router.post("/join", status_code=201)
def join_by_code(
    req: JoinRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    member = JoinByCodeUseCase(db, broadcaster).execute(user, req.invite_code)
    return member_view(member)


@router.get("/{joint_account_id}")
def get_account(joint_account_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_joint_account_detail(db, joint_account_id, user.id)


@router.put("/{joint_account_id}")
def update_account(
    joint_account_id: str,
    req: UpdateJointAccountRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    account = UpdateJointAccountUseCase(db, broadcaster).execute(
        joint_account_id, user.id, name=req.name, primary_currency=req.primary_currency
    )
    return account_view(account, role="ADMIN")


@router.delete("/{joint_account_id}")
def delete_account(
    joint_account_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    DeleteJointAccountUseCase(db, broadcaster).execute(joint_account_id, user.id)
    return {"success": True, "message": "Joint account deleted successfully"}


@router.post("/{joint_account_id}/invite-code")
def regenerate_invite_code(
    joint_account_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    code = RegenerateInviteCodeUseCase(db).execute(joint_account_id, user.id)
    return {"invite_code": code}


# === Invites ===

@router.post("/{joint_account_id}/invite", status_code=201)
def create_invite(
    joint_account_id: str,
    req: InviteRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    invite = CreateInviteUseCase(db, broadcaster).execute(joint_account_id, user, req.email)
    return invite_view(invite)


@router.get("/{joint_account_id}/invites")
def account_invites(joint_account_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return list_account_invites(db, joint_account_id, user.id)


@router.delete("/{joint_account_id}/invites/{invite_id}")
def cancel_invite(
    joint_account_id: str,
    invite_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    CancelInviteUseCase(db, broadcaster).execute(joint_account_id, invite_id, user.id)
    return {"success": True, "message": "Invitation cancelled"}


# === Members ===

@router.put("/{joint_account_id}/members/{member_id}")
def change_member_role(
    joint_account_id: str,
    member_id: str,
    req: ChangeRoleRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    member = ChangeMemberRoleUseCase(db, broadcaster).execute(joint_account_id, user.id, member_id, req.role)
    return member_view(member)


@router.delete("/{joint_account_id}/members/{member_id}")
def remove_member(
    joint_account_id: str,
    member_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    left = RemoveMemberUseCase(db, broadcaster).execute(joint_account_id, user.id, member_id)
    message = "Successfully left the account" if left else "Member removed successfully"
    return {"success": True, "message": message}


@router.post("/{joint_account_id}/leave")
def leave(
    joint_account_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    RemoveMemberUseCase(db, broadcaster).execute(joint_account_id, user.id, user.id)
    return {"success": True, "message": "Successfully left the account"}
