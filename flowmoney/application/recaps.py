"""
Contribution leaderboard and monthly recap, optionally posted into chat.
"""
import calendar
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from flowmoney.application.chat import post_member_message
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.membership import require_membership
from flowmoney.domain.errors import InvariantViolation
from flowmoney.domain.roles import Capability
from flowmoney.domain.transaction import TransactionType
from flowmoney.infrastructure.db.models import ChatMessage, TransactionModel, User

PERIODS = ("week", "month", "all")
POSTED_LEADERBOARD_SIZE = 5
MIN_YEAR, MAX_YEAR = date.min.year, date.max.year


def period_start(period: str, today: date) -> date | None:
    if period == "week":
        return today - timedelta(days=7)
    if period == "month":
        return today.replace(day=1)
    if period == "all":
        return None
    raise InvariantViolation(f"period must be one of: {', '.join(PERIODS)}")


def period_label(period: str, today: date) -> str:
    return {"week": "This Week", "month": today.strftime("%B"), "all": "All Time"}[period]


def _transactions(db: Session, joint_account_id: str, start: date | None, end: date | None = None):
    query = db.query(TransactionModel).filter(TransactionModel.joint_account_id == joint_account_id)
    if start is not None:
        query = query.filter(TransactionModel.date >= start)
    if end is not None:
        query = query.filter(TransactionModel.date <= end)
    return query.all()


def leaderboard(
    db: Session, joint_account_id: str, user_id: str, period: str = "month", today: date | None = None
) -> list[dict]:
    """Per-member income/expense totals, ranked by income."""
    require_membership(db, joint_account_id, user_id, Capability.READ)
    today = today or date.today()
    rows = _transactions(db, joint_account_id, period_start(period, today))

    totals = defaultdict(lambda: {"income": Decimal("0"), "expense": Decimal("0"), "count": 0, "name": None})
    for tx in rows:
        entry = totals[tx.added_by_user_id]
        key = "income" if tx.type == TransactionType.INCOME.value else "expense"
        entry[key] += tx.amount
        entry["count"] += 1
        entry["name"] = entry["name"] or tx.added_by_user_name

    names = dict(db.query(User.id, User.name).filter(User.id.in_(list(totals))).all()) if totals else {}
    ranked = sorted(totals.items(), key=lambda item: item[1]["income"], reverse=True)
    return [
        {
            "rank": index + 1,
            "user_id": uid,
            "name": names.get(uid) or entry["name"] or "Unknown",
            "total_income": entry["income"],
            "total_expense": entry["expense"],
            "net_contribution": entry["income"] - entry["expense"],
            "transaction_count": entry["count"],
        }
        for index, (uid, entry) in enumerate(ranked)
    ]


def monthly_recap(
    db: Session,
    joint_account_id: str,
    user_id: str,
    year: int | None = None,
    month: int | None = None,
    today: date | None = None,
) -> dict:
    """Totals, top income contributor and top expense category for one calendar month (1-12)."""
    require_membership(db, joint_account_id, user_id, Capability.READ)
    today = today or date.today()
    year = today.year if year is None else year
    month = today.month if month is None else month
    if not 1 <= month <= 12:
        raise InvariantViolation("month must be between 1 and 12")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvariantViolation(f"year must be between {MIN_YEAR} and {MAX_YEAR}")

    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    rows = _transactions(db, joint_account_id, start, end)

    income = sum((tx.amount for tx in rows if tx.type == TransactionType.INCOME.value), Decimal("0"))
    expense = sum((tx.amount for tx in rows if tx.type == TransactionType.EXPENSE.value), Decimal("0"))

    contributors = defaultdict(Decimal)
    contributor_names = {}
    categories = defaultdict(Decimal)
    for tx in rows:
        if tx.type == TransactionType.INCOME.value:
            contributors[tx.added_by_user_id] += tx.amount
            contributor_names[tx.added_by_user_id] = tx.added_by_user_name
        else:
            categories[tx.category] += tx.amount

    top_contributor = None
    if contributors:
        uid, amount = max(contributors.items(), key=lambda item: item[1])
        top_contributor = {"user_id": uid, "name": contributor_names[uid], "amount": amount}
    top_category = None
    if categories:
        category, amount = max(categories.items(), key=lambda item: item[1])
        top_category = {"category": category, "amount": amount}

    return {
        "month": start.strftime("%B %Y"),
        "total_income": income,
        "total_expense": expense,
        "balance": income - expense,
        "transaction_count": len(rows),
        "top_contributor": top_contributor,
        "top_expense_category": top_category,
    }


def _json_amounts(value):
    """Decimal -> str so the chat payload can live in a JSON column."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_amounts(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_amounts(v) for v in value]
    return value


class PostLeaderboardUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, sender: User, period: str = "month", today: date | None = None) -> ChatMessage:
        require_membership(self.db, joint_account_id, sender.id, Capability.CHAT)
        today = today or date.today()
        entries = leaderboard(self.db, joint_account_id, sender.id, period, today)[:POSTED_LEADERBOARD_SIZE]
        label = period_label(period, today)
        return post_member_message(
            self.db, self.broadcaster, joint_account_id, sender,
            content=f"🏆 Contribution Leaderboard - {label}",
            message_type="leaderboard",
            payload=_json_amounts({"period": period, "period_label": label, "entries": entries}),
        )


class PostRecapUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, sender: User, today: date | None = None) -> ChatMessage:
        """Current month's recap."""
        require_membership(self.db, joint_account_id, sender.id, Capability.CHAT)
        recap = monthly_recap(self.db, joint_account_id, sender.id, today=today)
        return post_member_message(
            self.db, self.broadcaster, joint_account_id, sender,
            content=f"📊 Monthly Recap - {recap['month']}",
            message_type="monthly_recap",
            payload=_json_amounts(recap),
        )
