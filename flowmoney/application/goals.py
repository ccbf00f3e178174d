"""
Savings goal use cases, with 25% milestone announcements.

``GoalModel.milestone_reached`` remembers the highest announced band, so a
milestone is announced once no matter how the amount moves afterwards.
"""
import logging

from sqlalchemy.orm import Session

from flowmoney.application.chat import post_system_message
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.membership import require_membership
from flowmoney.application.views import goal_view
from flowmoney.domain import events
from flowmoney.domain.errors import InvariantViolation, NotFound
from flowmoney.domain.goal import GOAL_ACHIEVED, crossed_milestone, milestone_for, milestone_text
from flowmoney.domain.notification import NotificationPayload
from flowmoney.domain.roles import Capability
from flowmoney.infrastructure.db.models import GoalModel, User
from flowmoney.utils.money import format_money
from flowmoney.utils.validation import parse_amount, parse_calendar_date, validate_currency

logger = logging.getLogger(__name__)


def _load(db: Session, goal_id: str) -> GoalModel:
    goal = db.query(GoalModel).filter(GoalModel.id == goal_id).first()
    if goal is None:
        raise NotFound("Goal not found")
    return goal


def _parse_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvariantViolation("Goal name is required")
    return name


def list_goals(db: Session, joint_account_id: str, user_id: str) -> list[GoalModel]:
    require_membership(db, joint_account_id, user_id, Capability.READ)
    return db.query(GoalModel).filter(
        GoalModel.joint_account_id == joint_account_id
    ).order_by(GoalModel.created_at).all()


def get_goal(db: Session, goal_id: str, user_id: str) -> GoalModel:
    goal = _load(db, goal_id)
    require_membership(db, goal.joint_account_id, user_id, Capability.READ)
    return goal


class _GoalCommand:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def _stage_milestone(self, goal: GoalModel) -> int | None:
        """Raise ``milestone_reached`` in the pending write; returns the band to announce."""
        milestone = crossed_milestone(goal.milestone_reached, goal.current_amount, goal.target_amount)
        if milestone is not None:
            goal.milestone_reached = milestone
        return milestone

    def _announce_milestone(self, goal: GoalModel, milestone: int, actor_user_id: str) -> None:
        text = milestone_text(milestone, goal.name)
        data = {"goal_id": goal.id, "goal_name": goal.name, "milestone": milestone,
                "current_amount": str(goal.current_amount), "target_amount": str(goal.target_amount)}
        try:
            post_system_message(
                self.db, self.broadcaster, goal.joint_account_id,
                content=text, message_type="goal_milestone", payload=data,
            )
        except Exception:
            self.db.rollback()
            logger.exception("Could not post milestone message for goal %s", goal.id)

        title = "🏆 Goal achieved!" if milestone >= GOAL_ACHIEVED else f"🎯 {milestone}% milestone"
        self.broadcaster.publish_to_account(
            goal.joint_account_id, actor_user_id, events.GOAL_MILESTONE, data,
            NotificationPayload(
                title=title,
                body=text,
                tag=f"goal-milestone-{goal.id}-{milestone}",
                data={"type": events.NOTIFY_GOAL_MILESTONE, "goal_id": goal.id,
                      "joint_account_id": goal.joint_account_id, "milestone": milestone},
            ),
        )


class CreateGoalUseCase(_GoalCommand):
    def execute(
        self,
        joint_account_id: str,
        actor: User,
        name: str,
        target_amount,
        current_amount=0,
        currency: str | None = None,
        deadline=None,
    ) -> GoalModel:
        require_membership(self.db, joint_account_id, actor.id, Capability.WRITE_RECORDS)
        target = parse_amount(target_amount, field="target_amount")
        current = parse_amount(current_amount or 0, field="current_amount", allow_zero=True)

        goal = GoalModel(
            joint_account_id=joint_account_id,
            name=_parse_name(name),
            target_amount=target,
            current_amount=current,
            currency=validate_currency(currency or actor.primary_currency or "USD"),
            deadline=parse_calendar_date(deadline, field="deadline") if deadline else None,
            # progress made before the goal existed is not announced
            milestone_reached=milestone_for(current, target),
        )
        self.db.add(goal)
        self.db.commit()

        self.broadcaster.publish_to_account(
            joint_account_id, actor.id, events.GOAL_ADDED, goal_view(goal),
            NotificationPayload(
                title=f"🎯 {actor.name} created a goal",
                body=f'"{goal.name}": {format_money(goal.target_amount, goal.currency)}',
                tag=f"goal-{goal.id}",
                data={"type": events.NOTIFY_GOAL, "goal_id": goal.id, "joint_account_id": joint_account_id},
            ),
        )
        return goal


class UpdateGoalUseCase(_GoalCommand):
    def execute(self, goal_id: str, actor_user_id: str, **changes) -> GoalModel:
        """Generic edit; a change of ``current_amount`` runs the milestone check too."""
        goal = _load(self.db, goal_id)
        require_membership(self.db, goal.joint_account_id, actor_user_id, Capability.WRITE_RECORDS)

        if changes.get("name") is not None:
            goal.name = _parse_name(changes["name"])
        if changes.get("target_amount") is not None:
            goal.target_amount = parse_amount(changes["target_amount"], field="target_amount")
        if changes.get("current_amount") is not None:
            goal.current_amount = parse_amount(changes["current_amount"], field="current_amount", allow_zero=True)
        if changes.get("currency"):
            goal.currency = validate_currency(changes["currency"])
        if "deadline" in changes:
            deadline = changes["deadline"]
            goal.deadline = parse_calendar_date(deadline, field="deadline") if deadline else None

        milestone = self._stage_milestone(goal)
        self.db.commit()

        self.broadcaster.publish_to_account(
            goal.joint_account_id, actor_user_id, events.GOAL_UPDATED, goal_view(goal)
        )
        if milestone is not None:
            self._announce_milestone(goal, milestone, actor_user_id)
        return goal


class ContributeToGoalUseCase(_GoalCommand):
    def execute(self, goal_id: str, actor: User, amount) -> GoalModel:
        goal = _load(self.db, goal_id)
        require_membership(self.db, goal.joint_account_id, actor.id, Capability.WRITE_RECORDS)
        contribution = parse_amount(amount)

        goal.current_amount = goal.current_amount + contribution
        milestone = self._stage_milestone(goal)
        self.db.commit()
        logger.info("Goal %s +%s by %s", goal.id, contribution, actor.id)

        self.broadcaster.publish_to_account(
            goal.joint_account_id, actor.id, events.GOAL_UPDATED, goal_view(goal),
            NotificationPayload(
                title=f"💰 {actor.name} contributed",
                body=f'{format_money(contribution, goal.currency)} to "{goal.name}"',
                tag=f"goal-{goal.id}",
                data={"type": events.NOTIFY_GOAL, "goal_id": goal.id,
                      "joint_account_id": goal.joint_account_id},
            ),
        )
        if milestone is not None:
            self._announce_milestone(goal, milestone, actor.id)
        return goal


class DeleteGoalUseCase(_GoalCommand):
    def execute(self, goal_id: str, actor_user_id: str) -> None:
        goal = _load(self.db, goal_id)
        joint_account_id = goal.joint_account_id
        require_membership(self.db, joint_account_id, actor_user_id, Capability.WRITE_RECORDS)

        self.db.delete(goal)
        self.db.commit()
        self.broadcaster.publish_to_account(
            joint_account_id, actor_user_id, events.GOAL_DELETED,
            {"goal_id": goal_id, "joint_account_id": joint_account_id},
        )
