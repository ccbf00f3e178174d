"""
Tests for goal progress and 25% milestones
"""
from decimal import Decimal

from flowmoney.domain.goal import progress_percent, milestone_for, crossed_milestone, milestone_text


def test_progress_percent():
    assert progress_percent(Decimal("250"), Decimal("1000")) == Decimal("25")


def test_progress_with_zero_target_is_zero():
    assert progress_percent(Decimal("10"), Decimal("0")) == Decimal("0")


def test_milestone_bands():
    target = Decimal("1000")
    assert milestone_for(Decimal("0"), target) == 0
    assert milestone_for(Decimal("249.99"), target) == 0
    assert milestone_for(Decimal("250"), target) == 25
    assert milestone_for(Decimal("740"), target) == 50
    assert milestone_for(Decimal("999"), target) == 75
    assert milestone_for(Decimal("1000"), target) == 100


def test_overfunded_goal_capped_at_100():
    assert milestone_for(Decimal("5000"), Decimal("1000")) == 100


def test_crossing_25_announced_once():
    """240 → 260 из 1000: ровно один порог 25%"""
    assert crossed_milestone(0, Decimal("260"), Decimal("1000")) == 25
    assert crossed_milestone(25, Decimal("270"), Decimal("1000")) is None


def test_jump_over_several_bands_reports_highest():
    assert crossed_milestone(0, Decimal("800"), Decimal("1000")) == 75


def test_recrossing_after_decrease_is_silent():
    assert crossed_milestone(50, Decimal("510"), Decimal("1000")) is None


def test_milestone_text():
    assert "25% milestone" in milestone_text(25, "Trip")
    assert "GOAL REACHED" in milestone_text(100, "Trip")
