"""
Subscription use cases: CRUD of recurring bills of a joint account.

Descriptive only, nothing is charged.
"""
from sqlalchemy.orm import Session

from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.membership import require_membership
from flowmoney.application.views import subscription_view
from flowmoney.domain import events
from flowmoney.domain.errors import InvariantViolation, NotFound
from flowmoney.domain.notification import NotificationPayload
from flowmoney.domain.roles import Capability
from flowmoney.domain.transaction import BillingCycle
from flowmoney.infrastructure.db.models import SubscriptionModel, User
from flowmoney.utils.money import format_money
from flowmoney.utils.validation import parse_amount, parse_calendar_date, validate_currency


def _load(db: Session, subscription_id: str) -> SubscriptionModel:
    sub = db.query(SubscriptionModel).filter(SubscriptionModel.id == subscription_id).first()
    if sub is None:
        raise NotFound("Subscription not found")
    return sub


def _parse_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvariantViolation("Subscription name is required")
    return name


def _parse_cycle(value: str) -> str:
    for cycle in BillingCycle:
        if (value or "").lower() == cycle.value.lower():
            return cycle.value
    raise InvariantViolation("cycle must be Monthly or Yearly")


def list_subscriptions(db: Session, joint_account_id: str, user_id: str) -> list[SubscriptionModel]:
    require_membership(db, joint_account_id, user_id, Capability.READ)
    return db.query(SubscriptionModel).filter(
        SubscriptionModel.joint_account_id == joint_account_id
    ).order_by(SubscriptionModel.next_billing_date).all()


class CreateSubscriptionUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(
        self,
        joint_account_id: str,
        actor: User,
        name: str,
        amount,
        cycle: str,
        next_billing_date,
        currency: str | None = None,
    ) -> SubscriptionModel:
        require_membership(self.db, joint_account_id, actor.id, Capability.WRITE_RECORDS)
        sub = SubscriptionModel(
            joint_account_id=joint_account_id,
            name=_parse_name(name),
            amount=parse_amount(amount),
            currency=validate_currency(currency or actor.primary_currency or "USD"),
            cycle=_parse_cycle(cycle),
            next_billing_date=parse_calendar_date(next_billing_date, field="next_billing_date"),
        )
        self.db.add(sub)
        self.db.commit()

        self.broadcaster.publish_to_account(
            joint_account_id, actor.id, events.SUBSCRIPTION_ADDED, subscription_view(sub),
            NotificationPayload(
                title=f"🔁 {actor.name} added a subscription",
                body=f"{sub.name}: {format_money(sub.amount, sub.currency)} {sub.cycle.lower()}",
                tag=f"subscription-{sub.id}",
                data={"type": events.NOTIFY_SUBSCRIPTION, "subscription_id": sub.id,
                      "joint_account_id": joint_account_id},
            ),
        )
        return sub


class UpdateSubscriptionUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, subscription_id: str, actor_user_id: str, **changes) -> SubscriptionModel:
        sub = _load(self.db, subscription_id)
        require_membership(self.db, sub.joint_account_id, actor_user_id, Capability.WRITE_RECORDS)

        if changes.get("name") is not None:
            sub.name = _parse_name(changes["name"])
        if changes.get("amount") is not None:
            sub.amount = parse_amount(changes["amount"])
        if changes.get("currency"):
            sub.currency = validate_currency(changes["currency"])
        if changes.get("cycle"):
            sub.cycle = _parse_cycle(changes["cycle"])
        if changes.get("next_billing_date"):
            sub.next_billing_date = parse_calendar_date(changes["next_billing_date"], field="next_billing_date")
        self.db.commit()

        self.broadcaster.publish_to_account(
            sub.joint_account_id, actor_user_id, events.SUBSCRIPTION_UPDATED, subscription_view(sub)
        )
        return sub


class DeleteSubscriptionUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, subscription_id: str, actor_user_id: str) -> None:
        sub = _load(self.db, subscription_id)
        joint_account_id = sub.joint_account_id
        require_membership(self.db, joint_account_id, actor_user_id, Capability.WRITE_RECORDS)

        self.db.delete(sub)
        self.db.commit()
        self.broadcaster.publish_to_account(
            joint_account_id, actor_user_id, events.SUBSCRIPTION_DELETED,
            {"subscription_id": subscription_id, "joint_account_id": joint_account_id},
        )
