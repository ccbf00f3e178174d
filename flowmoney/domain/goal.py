"""
Goal progress and milestone rules
"""
from decimal import Decimal, ROUND_FLOOR

MILESTONE_STEP = 25
GOAL_ACHIEVED = 100


def progress_percent(current_amount: Decimal, target_amount: Decimal) -> Decimal:
    """currentAmount / targetAmount * 100 (0 for a non-positive target)."""
    if target_amount <= 0:
        return Decimal("0")
    return Decimal(current_amount) / Decimal(target_amount) * 100


def milestone_for(current_amount: Decimal, target_amount: Decimal) -> int:
    """
    Highest 25%-multiple reached, capped at 100.

    >>> milestone_for(Decimal("260"), Decimal("1000"))
    25
    >>> milestone_for(Decimal("1500"), Decimal("1000"))
    100
    """
    percent = progress_percent(current_amount, target_amount)
    band = int((percent / MILESTONE_STEP).to_integral_value(rounding=ROUND_FLOOR))
    return max(0, min(band * MILESTONE_STEP, GOAL_ACHIEVED))


def crossed_milestone(already_reached: int, current_amount: Decimal, target_amount: Decimal) -> int | None:
    """
    Milestone to announce after an amount change, or None.

    Only a band above ``already_reached`` counts, so moving within a band or
    re-crossing a band after a decrease announces nothing.
    """
    reached = milestone_for(current_amount, target_amount)
    if reached > already_reached:
        return reached
    return None


def milestone_text(milestone: int, goal_name: str) -> str:
    if milestone >= GOAL_ACHIEVED:
        return f'🎉🏆 GOAL REACHED! "{goal_name}" is now 100% funded!'
    emoji = {75: "🔥", 50: "⭐"}.get(milestone, "✨")
    return f'{emoji} {milestone}% milestone reached for "{goal_name}"!'
