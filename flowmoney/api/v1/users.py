"""
Current user profile endpoints
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flowmoney.api.deps import get_db, get_current_user
from flowmoney.application.profile import update_preferences, change_password
from flowmoney.application.views import user_view
from flowmoney.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/users", tags=["users"])


class PreferencesRequest(BaseModel):
    name: str | None = None
    primary_currency: str | None = None
    notifications_enabled: bool | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str | None = None
    new_password: str


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return user_view(user)


@router.put("/preferences")
def put_preferences(
    req: PreferencesRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    update_preferences(
        db, user,
        name=req.name,
        primary_currency=req.primary_currency,
        notifications_enabled=req.notifications_enabled,
    )
    return user_view(user)


@router.put("/password")
def put_password(
    req: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    change_password(db, user, req.current_password, req.new_password)
    return {"success": True, "message": "Password updated successfully"}
