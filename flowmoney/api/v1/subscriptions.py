"""
Recurring bill (subscription) endpoints
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flowmoney.api.deps import get_db, get_current_user, get_broadcaster
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.subscriptions import (
    CreateSubscriptionUseCase, UpdateSubscriptionUseCase, DeleteSubscriptionUseCase, list_subscriptions,
)
from flowmoney.application.views import subscription_view
from flowmoney.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1", tags=["subscriptions"])


class CreateSubscriptionRequest(BaseModel):
    name: str
    amount: str
    cycle: str
    next_billing_date: str
    currency: str | None = None


class UpdateSubscriptionRequest(BaseModel):
    name: str | None = None
    amount: str | None = None
    cycle: str | None = None
    next_billing_date: str | None = None
    currency: str | None = None


@router.get("/joint-accounts/{joint_account_id}/subscriptions")
def get_subscriptions(joint_account_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [subscription_view(sub) for sub in list_subscriptions(db, joint_account_id, user.id)]


@router.post("/joint-accounts/{joint_account_id}/subscriptions", status_code=201)
def create_subscription(
    joint_account_id: str,
    req: CreateSubscriptionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    sub = CreateSubscriptionUseCase(db, broadcaster).execute(
        joint_account_id, user,
        name=req.name,
        amount=req.amount,
        cycle=req.cycle,
        next_billing_date=req.next_billing_date,
        currency=req.currency,
    )
    return subscription_view(sub)


@router.put("/subscriptions/{subscription_id}")
def update_subscription(
    subscription_id: str,
    req: UpdateSubscriptionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    sub = UpdateSubscriptionUseCase(db, broadcaster).execute(
        subscription_id, user.id, **req.model_dump(exclude_unset=True)
    )
    return subscription_view(sub)


@router.delete("/subscriptions/{subscription_id}")
def delete_subscription(
    subscription_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    DeleteSubscriptionUseCase(db, broadcaster).execute(subscription_id, user.id)
    return {"success": True, "message": "Subscription deleted successfully"}
