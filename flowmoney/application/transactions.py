"""
Transaction use cases (joint-account ledger).

Every write: membership + role check, one row, commit, then fan-out.
"""
import logging
from datetime import date

from sqlalchemy.orm import Session

from flowmoney.application.chat import post_system_message
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.membership import require_membership
from flowmoney.application.views import transaction_view
from flowmoney.domain import events
from flowmoney.domain.errors import InvariantViolation, NotFound
from flowmoney.domain.notification import NotificationPayload
from flowmoney.domain.roles import Capability
from flowmoney.domain.transaction import TransactionType, announcement
from flowmoney.infrastructure.db.models import TransactionModel, User
from flowmoney.utils.money import format_money
from flowmoney.utils.validation import parse_amount, validate_currency, parse_calendar_date

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


def _parse_type(value: str) -> str:
    try:
        return TransactionType((value or "").upper()).value
    except ValueError:
        raise InvariantViolation("type must be INCOME or EXPENSE")


def _parse_category(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvariantViolation("category is required")
    return value


def _load(db: Session, transaction_id: str) -> TransactionModel:
    tx = db.query(TransactionModel).filter(TransactionModel.id == transaction_id).first()
    if tx is None:
        raise NotFound("Transaction not found")
    return tx


# ============================================================================
# Queries
# ============================================================================


def list_transactions(
    db: Session,
    joint_account_id: str,
    user_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    tx_type: str | None = None,
    category: str | None = None,
    limit: int = 100,
    skip: int = 0,
) -> tuple[list[TransactionModel], int]:
    """Newest first. Returns (page, total matching)."""
    require_membership(db, joint_account_id, user_id, Capability.READ)

    query = db.query(TransactionModel).filter(TransactionModel.joint_account_id == joint_account_id)
    if start_date:
        query = query.filter(TransactionModel.date >= start_date)
    if end_date:
        query = query.filter(TransactionModel.date <= end_date)
    if tx_type:
        query = query.filter(TransactionModel.type == _parse_type(tx_type))
    if category:
        query = query.filter(TransactionModel.category == category)

    total = query.count()
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    items = query.order_by(
        TransactionModel.date.desc(), TransactionModel.created_at.desc()
    ).offset(max(skip, 0)).limit(limit).all()
    return items, total


def get_transaction(db: Session, transaction_id: str, user_id: str) -> TransactionModel:
    tx = _load(db, transaction_id)
    require_membership(db, tx.joint_account_id, user_id, Capability.READ)
    return tx


# ============================================================================
# Commands
# ============================================================================


class CreateTransactionUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(
        self,
        joint_account_id: str,
        actor: User,
        amount,
        tx_type: str,
        category: str,
        currency: str | None = None,
        tx_date=None,
        note: str | None = None,
    ) -> TransactionModel:
        require_membership(self.db, joint_account_id, actor.id, Capability.WRITE_RECORDS)

        tx = TransactionModel(
            joint_account_id=joint_account_id,
            amount=parse_amount(amount),
            currency=validate_currency(currency or actor.primary_currency or "USD"),
            type=_parse_type(tx_type),
            category=_parse_category(category),
            date=parse_calendar_date(tx_date) if tx_date else date.today(),
            note=note,
            added_by_user_id=actor.id,
            added_by_user_name=actor.name,
        )
        self.db.add(tx)
        self.db.commit()
        logger.info("Transaction %s added to %s by %s", tx.id, joint_account_id, actor.id)

        title, body = announcement(actor.name, tx.type, format_money(tx.amount, tx.currency), tx.category)
        self.broadcaster.publish_to_account(
            joint_account_id, actor.id, events.TRANSACTION_ADDED, transaction_view(tx),
            NotificationPayload(
                title=title,
                body=body,
                tag=f"transaction-{tx.id}",
                data={"type": events.NOTIFY_TRANSACTION, "transaction_id": tx.id,
                      "joint_account_id": joint_account_id, "url": "/transactions"},
            ),
        )

        # Chat announcement is a side effect; the transaction stands on its own
        try:
            post_system_message(
                self.db, self.broadcaster, joint_account_id,
                content=f"{title}: {body}",
                payload={"transaction_id": tx.id},
            )
        except Exception:
            self.db.rollback()
            logger.exception("Could not post chat announcement for transaction %s", tx.id)
        return tx


class UpdateTransactionUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, transaction_id: str, actor_user_id: str, **changes) -> TransactionModel:
        """Last write wins; only the given fields change."""
        tx = _load(self.db, transaction_id)
        require_membership(self.db, tx.joint_account_id, actor_user_id, Capability.WRITE_RECORDS)

        if changes.get("amount") is not None:
            tx.amount = parse_amount(changes["amount"])
        if changes.get("currency"):
            tx.currency = validate_currency(changes["currency"])
        if changes.get("type"):
            tx.type = _parse_type(changes["type"])
        if changes.get("category"):
            tx.category = _parse_category(changes["category"])
        if changes.get("date"):
            tx.date = parse_calendar_date(changes["date"])
        if "note" in changes:
            tx.note = changes["note"]
        self.db.commit()

        self.broadcaster.publish_to_account(
            tx.joint_account_id, actor_user_id, events.TRANSACTION_UPDATED, transaction_view(tx)
        )
        return tx


class DeleteTransactionUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, transaction_id: str, actor_user_id: str) -> None:
        tx = _load(self.db, transaction_id)
        joint_account_id = tx.joint_account_id
        require_membership(self.db, joint_account_id, actor_user_id, Capability.WRITE_RECORDS)

        self.db.delete(tx)
        self.db.commit()

        self.broadcaster.publish_to_account(
            joint_account_id, actor_user_id, events.TRANSACTION_DELETED,
            {"transaction_id": transaction_id, "joint_account_id": joint_account_id},
        )


class BulkDeleteTransactionsUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, joint_account_id: str, actor_user_id: str, transaction_ids: list[str]) -> int:
        """Ids from other accounts are ignored. Returns the number deleted."""
        require_membership(self.db, joint_account_id, actor_user_id, Capability.WRITE_RECORDS)
        if not transaction_ids:
            raise InvariantViolation("transaction_ids must not be empty")

        found = [row[0] for row in self.db.query(TransactionModel.id).filter(
            TransactionModel.joint_account_id == joint_account_id,
            TransactionModel.id.in_(transaction_ids),
        ).all()]
        if found:
            self.db.query(TransactionModel).filter(
                TransactionModel.id.in_(found)
            ).delete(synchronize_session=False)
            self.db.commit()

        for transaction_id in found:
            self.broadcaster.publish_to_account(
                joint_account_id, actor_user_id, events.TRANSACTION_DELETED,
                {"transaction_id": transaction_id, "joint_account_id": joint_account_id,
                 "deleted_by": actor_user_id},
            )
        return len(found)
