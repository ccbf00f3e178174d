"""
Split expense arithmetic
"""
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

CENTS = Decimal("0.01")


class SplitStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class ParticipantStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    DECLINED = "declined"


SPLIT_ACTIONS = {"pay": ParticipantStatus.PAID, "decline": ParticipantStatus.DECLINED}


def equal_share(total_amount: Decimal, participant_count: int) -> Decimal:
    """Requester pays a share too: total / (participants + 1), 2 decimals."""
    return (Decimal(total_amount) / (participant_count + 1)).quantize(CENTS, rounding=ROUND_HALF_UP)


def all_responded(statuses) -> bool:
    return all(ParticipantStatus(s) != ParticipantStatus.PENDING for s in statuses)
