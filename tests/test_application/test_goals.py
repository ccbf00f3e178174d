"""
Tests for shared savings goals: CRUD, contributions, milestone announcements
"""
from decimal import Decimal

import pytest

from flowmoney.application.goals import (
    CreateGoalUseCase, UpdateGoalUseCase, ContributeToGoalUseCase, DeleteGoalUseCase, list_goals,
)
from flowmoney.domain import events
from flowmoney.domain.errors import InsufficientRole, InvariantViolation
from flowmoney.infrastructure.db.models import ChatMessage, GoalModel


def _goal(db_session, broadcaster, account, actor, target="1000", current="0", name="Trip"):
    goal = CreateGoalUseCase(db_session, broadcaster).execute(
        account.id, actor, name=name, target_amount=target, current_amount=current
    )
    broadcaster.published.clear()
    return goal


# ============================================================================
# Goal CRUD
# ============================================================================


class TestCreateGoal:
    def test_create_goal_basic(self, db_session, broadcaster, account, member):
        """Создание цели с базовыми параметрами"""
        goal = CreateGoalUseCase(db_session, broadcaster).execute(
            account.id, member, name="Vacation", target_amount="5000", deadline="2026-12-31"
        )

        assert goal.target_amount == Decimal("5000")
        assert goal.current_amount == Decimal("0")
        assert goal.currency == "USD"
        assert goal.milestone_reached == 0
        assert broadcaster.events() == [events.GOAL_ADDED]

    def test_initial_progress_is_not_announced(self, db_session, broadcaster, account, member):
        goal = CreateGoalUseCase(db_session, broadcaster).execute(
            account.id, member, name="Car", target_amount="1000", current_amount="600"
        )
        assert goal.milestone_reached == 50
        assert broadcaster.of(events.GOAL_MILESTONE) == []

    def test_empty_name_rejected(self, db_session, broadcaster, account, member):
        with pytest.raises(InvariantViolation, match="Goal name is required"):
            CreateGoalUseCase(db_session, broadcaster).execute(account.id, member, name=" ", target_amount="10")

    def test_zero_target_rejected(self, db_session, broadcaster, account, member):
        with pytest.raises(InvariantViolation):
            CreateGoalUseCase(db_session, broadcaster).execute(account.id, member, name="X", target_amount="0")

    def test_viewer_cannot_create(self, db_session, broadcaster, account, viewer):
        with pytest.raises(InsufficientRole):
            CreateGoalUseCase(db_session, broadcaster).execute(account.id, viewer, name="X", target_amount="10")

    def test_list(self, db_session, broadcaster, account, member, viewer):
        _goal(db_session, broadcaster, account, member, name="A")
        _goal(db_session, broadcaster, account, member, name="B")
        assert [g.name for g in list_goals(db_session, account.id, viewer.id)] == ["A", "B"]


class TestMilestones:
    def test_crossing_25_percent_announced_once(self, db_session, broadcaster, account, admin, member):
        """240 → 260 из 1000: один GOAL_MILESTONE, автор исключён"""
        goal = _goal(db_session, broadcaster, account, admin, target="1000", current="240")

        ContributeToGoalUseCase(db_session, broadcaster).execute(goal.id, member, "20")

        milestones = broadcaster.of(events.GOAL_MILESTONE)
        assert len(milestones) == 1
        assert milestones[0].target == account.id
        assert milestones[0].exclude_user_id == member.id
        assert milestones[0].data["milestone"] == 25
        assert milestones[0].payload.data["type"] == events.NOTIFY_GOAL_MILESTONE
        assert goal.milestone_reached == 25

        message = db_session.query(ChatMessage).filter(ChatMessage.type == "goal_milestone").one()
        assert "25% milestone" in message.content

    def test_same_band_is_silent(self, db_session, broadcaster, account, member):
        goal = _goal(db_session, broadcaster, account, member, target="1000", current="260")
        ContributeToGoalUseCase(db_session, broadcaster).execute(goal.id, member, "10")
        assert broadcaster.of(events.GOAL_MILESTONE) == []

    def test_decrease_and_recross_is_silent(self, db_session, broadcaster, account, member):
        goal = _goal(db_session, broadcaster, account, member, target="1000", current="240")
        ContributeToGoalUseCase(db_session, broadcaster).execute(goal.id, member, "20")
        UpdateGoalUseCase(db_session, broadcaster).execute(goal.id, member.id, current_amount="100")
        ContributeToGoalUseCase(db_session, broadcaster).execute(goal.id, member, "200")

        assert len(broadcaster.of(events.GOAL_MILESTONE)) == 1
        assert goal.milestone_reached == 25

    def test_jump_announces_highest_band(self, db_session, broadcaster, account, member):
        goal = _goal(db_session, broadcaster, account, member, target="1000")
        ContributeToGoalUseCase(db_session, broadcaster).execute(goal.id, member, "1000")

        milestones = broadcaster.of(events.GOAL_MILESTONE)
        assert [m.data["milestone"] for m in milestones] == [100]
        assert milestones[0].payload.title == "🏆 Goal achieved!"

    def test_generic_update_runs_milestone_check(self, db_session, broadcaster, account, admin):
        goal = _goal(db_session, broadcaster, account, admin, target="1000")
        UpdateGoalUseCase(db_session, broadcaster).execute(goal.id, admin.id, current_amount="500")
        assert [m.data["milestone"] for m in broadcaster.of(events.GOAL_MILESTONE)] == [50]


class TestUpdateAndDelete:
    def test_update_name_and_deadline(self, db_session, broadcaster, account, member):
        goal = _goal(db_session, broadcaster, account, member)
        UpdateGoalUseCase(db_session, broadcaster).execute(goal.id, member.id, name="Japan", deadline="2027-04-01")
        assert goal.name == "Japan"
        assert goal.deadline.isoformat() == "2027-04-01"
        assert broadcaster.events() == [events.GOAL_UPDATED]

    def test_contribution_must_be_positive(self, db_session, broadcaster, account, member):
        goal = _goal(db_session, broadcaster, account, member)
        with pytest.raises(InvariantViolation):
            ContributeToGoalUseCase(db_session, broadcaster).execute(goal.id, member, "0")

    def test_viewer_cannot_contribute(self, db_session, broadcaster, account, member, viewer):
        goal = _goal(db_session, broadcaster, account, member)
        with pytest.raises(InsufficientRole):
            ContributeToGoalUseCase(db_session, broadcaster).execute(goal.id, viewer, "10")

    def test_delete(self, db_session, broadcaster, account, member):
        goal = _goal(db_session, broadcaster, account, member)
        DeleteGoalUseCase(db_session, broadcaster).execute(goal.id, member.id)
        assert db_session.query(GoalModel).count() == 0
        assert broadcaster.events() == [events.GOAL_DELETED]
