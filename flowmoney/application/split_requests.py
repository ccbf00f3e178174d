"""
Split expense requests posted into chat.

The requester pays an equal share too: every participant owes
round(total / (participants + 1), 2).
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from flowmoney.application.chat import post_member_message
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.membership import get_joint_account, list_member_ids, require_membership
from flowmoney.application.views import split_view
from flowmoney.domain import events
from flowmoney.domain.errors import InvariantViolation, NotFound, NotInvitee
from flowmoney.domain.notification import NotificationPayload
from flowmoney.domain.roles import Capability
from flowmoney.domain.split import (
    SplitStatus, ParticipantStatus, SPLIT_ACTIONS, equal_share, all_responded,
)
from flowmoney.infrastructure.db.models import SplitRequest, SplitParticipant, TransactionModel, User
from flowmoney.utils.money import format_money
from flowmoney.utils.validation import parse_amount

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Split expense"


class CreateSplitRequestUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(
        self,
        joint_account_id: str,
        requester: User,
        amount,
        description: str | None = None,
        split_with: list[str] | None = None,
        transaction_id: str | None = None,
    ) -> SplitRequest:
        """
        ``split_with`` defaults to every other member; each id must be a member.
        """
        require_membership(self.db, joint_account_id, requester.id, Capability.WRITE_RECORDS)
        total = parse_amount(amount)
        description = (description or "").strip() or DEFAULT_DESCRIPTION
        account = get_joint_account(self.db, joint_account_id)

        members = set(list_member_ids(self.db, joint_account_id))
        if split_with is None:
            participant_ids = [uid for uid in list_member_ids(self.db, joint_account_id) if uid != requester.id]
        else:
            participant_ids = [uid for uid in dict.fromkeys(split_with) if uid != requester.id]
            outsiders = [uid for uid in participant_ids if uid not in members]
            if outsiders:
                raise InvariantViolation("Split participants must be members of this joint account")
        if not participant_ids:
            raise InvariantViolation("Nobody to split with")

        if transaction_id is not None:
            exists = self.db.query(TransactionModel.id).filter(
                TransactionModel.id == transaction_id,
                TransactionModel.joint_account_id == joint_account_id,
            ).first()
            if not exists:
                raise NotFound("Transaction not found")

        share = equal_share(total, len(participant_ids))
        names = dict(
            self.db.query(User.id, User.name).filter(User.id.in_(participant_ids)).all()
        )
        split = SplitRequest(
            joint_account_id=joint_account_id,
            requester_id=requester.id,
            requester_name=requester.name,
            total_amount=total,
            split_amount=share,
            description=description,
            transaction_id=transaction_id,
            status=SplitStatus.ACTIVE.value,
        )
        for uid in participant_ids:
            split.participants.append(SplitParticipant(
                user_id=uid,
                user_name=names.get(uid, "Unknown"),
                amount=share,
                status=ParticipantStatus.PENDING.value,
            ))
        self.db.add(split)
        self.db.commit()
        logger.info("Split request %s: %s into %d shares of %s", split.id, total, len(participant_ids) + 1, share)

        share_label = format_money(share, account.primary_currency)
        # Chat card is a side effect; the split request stands on its own
        try:
            post_member_message(
                self.db, self.broadcaster, joint_account_id, requester,
                content=description,
                message_type="split_request",
                payload={
                    "total_amount": str(total),
                    "split_amount": str(share),
                    "participant_count": len(participant_ids),
                    "description": description,
                },
                split_request_id=split.id,
                push_body=f"💳 Split request: {share_label} each for {description}",
            )
        except Exception:
            self.db.rollback()
            logger.exception("Could not post chat card for split request %s", split.id)

        # Everybody who owes a share gets a personal notification
        self.broadcaster.publish_to_users(
            participant_ids,
            events.SPLIT_REQUEST_UPDATED,
            split_view(split),
            NotificationPayload(
                title=f"💳 {requester.name} requested {share_label}",
                body=f"Your share for: {description}",
                tag=f"split-{split.id}",
                data={"type": events.NOTIFY_SPLIT_REQUEST, "split_request_id": split.id,
                      "joint_account_id": joint_account_id},
            ),
        )
        return split


class RespondToSplitRequestUseCase:
    def __init__(self, db: Session, broadcaster: FanoutBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def execute(self, split_request_id: str, user: User, action: str) -> SplitRequest:
        """action: "pay" | "decline". Completed once nobody is pending."""
        new_status = SPLIT_ACTIONS.get((action or "").lower())
        if new_status is None:
            raise InvariantViolation("Invalid action (pay or decline)")

        split = self.db.query(SplitRequest).filter(SplitRequest.id == split_request_id).first()
        if split is None:
            raise NotFound("Split request not found")
        require_membership(self.db, split.joint_account_id, user.id, Capability.CHAT)

        participant = next((p for p in split.participants if p.user_id == user.id), None)
        if participant is None:
            raise NotInvitee("You are not part of this split request")
        if participant.status != ParticipantStatus.PENDING.value:
            raise InvariantViolation("You already responded to this split request")

        participant.status = new_status.value
        participant.responded_at = datetime.now(timezone.utc)
        if all_responded(p.status for p in split.participants):
            split.status = SplitStatus.COMPLETED.value
        self.db.commit()

        account = get_joint_account(self.db, split.joint_account_id)
        if new_status == ParticipantStatus.PAID:
            content = (f'✅ {user.name} paid {format_money(split.split_amount, account.primary_currency)} '
                       f'for "{split.description}"')
        else:
            content = f'❌ {user.name} declined the split request for "{split.description}"'
        try:
            post_member_message(
                self.db, self.broadcaster, split.joint_account_id, user,
                content=content, message_type="system",
                payload={"split_request_id": split.id, "action": action.lower()},
            )
        except Exception:
            self.db.rollback()
            logger.exception("Could not post chat reply for split request %s", split.id)
        self.broadcaster.publish_to_account(
            split.joint_account_id, user.id, events.SPLIT_REQUEST_UPDATED, split_view(split)
        )
        return split


def get_split_request(db: Session, split_request_id: str, user_id: str) -> SplitRequest:
    split = db.query(SplitRequest).filter(SplitRequest.id == split_request_id).first()
    if split is None:
        raise NotFound("Split request not found")
    require_membership(db, split.joint_account_id, user_id, Capability.READ)
    return split
