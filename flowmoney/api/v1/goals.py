"""
Shared savings goal endpoints
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flowmoney.api.deps import get_db, get_current_user, get_broadcaster
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.goals import (
    CreateGoalUseCase, UpdateGoalUseCase, ContributeToGoalUseCase, DeleteGoalUseCase,
    list_goals, get_goal,
)
from flowmoney.application.views import goal_view
from flowmoney.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1", tags=["goals"])


class CreateGoalRequest(BaseModel):
    name: str
    target_amount: str
    current_amount: str | None = None
    currency: str | None = None
    deadline: str | None = None


class UpdateGoalRequest(BaseModel):
    name: str | None = None
    target_amount: str | None = None
    current_amount: str | None = None
    currency: str | None = None
    deadline: str | None = None


class ContributeRequest(BaseModel):
    amount: str


@router.get("/joint-accounts/{joint_account_id}/goals")
def get_goals(joint_account_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [goal_view(goal) for goal in list_goals(db, joint_account_id, user.id)]


@router.post("/joint-accounts/{joint_account_id}/goals", status_code=201)
def create_goal(
    joint_account_id: str,
    req: CreateGoalRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    goal = CreateGoalUseCase(db, broadcaster).execute(
        joint_account_id, user,
        name=req.name,
        target_amount=req.target_amount,
        current_amount=req.current_amount or 0,
        currency=req.currency,
        deadline=req.deadline,
    )
    return goal_view(goal)


@router.get("/goals/{goal_id}")
def get_one(goal_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return goal_view(get_goal(db, goal_id, user.id))


@router.put("/goals/{goal_id}")
def update_goal(
    goal_id: str,
    req: UpdateGoalRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    goal = UpdateGoalUseCase(db, broadcaster).execute(goal_id, user.id, **req.model_dump(exclude_unset=True))
    return goal_view(goal)


@router.post("/goals/{goal_id}/contribute")
def contribute(
    goal_id: str,
    req: ContributeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    goal = ContributeToGoalUseCase(db, broadcaster).execute(goal_id, user, req.amount)
    return goal_view(goal)


@router.delete("/goals/{goal_id}")
def delete_goal(
    goal_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    DeleteGoalUseCase(db, broadcaster).execute(goal_id, user.id)
    return {"success": True, "message": "Goal deleted successfully"}
