"""
Transaction and recurring-bill vocabulary
"""
from enum import Enum


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class BillingCycle(str, Enum):
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


# Built-in categories; custom strings are accepted as well
DEFAULT_CATEGORIES = (
    "Food",
    "Transport",
    "Housing",
    "Freelance",
    "Salary",
    "Entertainment",
    "Travel",
    "Shopping",
    "Health",
    "Investment",
    "Other",
)


def announcement(user_name: str, tx_type: str, amount_label: str, category: str) -> tuple[str, str]:
    """(title, body) used for both the chat announcement and the push."""
    if TransactionType(tx_type) == TransactionType.INCOME:
        return f"💰 {user_name} added income", f"+{amount_label} from {category}"
    return f"💸 {user_name} added an expense", f"{amount_label} on {category}"
