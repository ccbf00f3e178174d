"""
Authentication routes (register, login, logout)

The session cookie carries ``user_id``; token issuance is out of scope.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flowmoney.api.deps import get_db
from flowmoney.application.profile import register_user
from flowmoney.application.views import user_view
from flowmoney.auth import get_user_by_email, verify_password


router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: str
    name: str
    password: str
    primary_currency: str = "USD"


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/register", status_code=201)
def register(req: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    """Create an account and log in"""
    user = register_user(db, req.email, req.name, req.password, req.primary_currency)
    request.session["user_id"] = user.id
    return user_view(user)


@router.post("/login")
def login(req: LoginRequest, request: Request, db: Session = Depends(get_db)):
    user = get_user_by_email(db, req.email)
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    request.session["user_id"] = user.id
    return user_view(user)


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"success": True}
