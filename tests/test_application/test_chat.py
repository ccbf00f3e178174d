"""
Tests for joint-account chat: messages, read receipts, moderation, sharing
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from flowmoney.application.chat import (
    SendMessageUseCase, ShareTransactionUseCase, DeleteMessageUseCase, ClearConversationUseCase,
    post_system_message, list_conversations, list_messages, unread_count, mark_read,
)
from flowmoney.application.joint_accounts import CreateJointAccountUseCase
from flowmoney.application.transactions import CreateTransactionUseCase
from flowmoney.domain import events
from flowmoney.domain.errors import InsufficientRole, InvariantViolation, NotAMember, NotFound
from flowmoney.infrastructure.db.models import ChatMessage, ChatMessageRead


def _send(db_session, broadcaster, account, sender, content="hi", message_type="text"):
    return SendMessageUseCase(db_session, broadcaster).execute(account.id, sender, content, message_type)


class TestSendMessage:
    def test_viewer_can_chat(self, db_session, broadcaster, account, viewer):
        message = _send(db_session, broadcaster, account, viewer, "hello all")

        assert message.sender_name == "Carol"
        published = broadcaster.of(events.CHAT_MESSAGE)[0]
        assert published.exclude_user_id == viewer.id
        assert published.payload.title == "Carol in Rent"
        assert published.payload.body == "hello all"

    def test_sender_has_read_own_message(self, db_session, broadcaster, account, member):
        message = _send(db_session, broadcaster, account, member)
        reads = db_session.query(ChatMessageRead).filter(ChatMessageRead.message_id == message.id).all()
        assert [r.user_id for r in reads] == [member.id]

    def test_long_message_preview_truncated(self, db_session, broadcaster, account, member):
        _send(db_session, broadcaster, account, member, "x" * 150)
        body = broadcaster.of(events.CHAT_MESSAGE)[0].payload.body
        assert body == "x" * 100 + "..."

    def test_image_preview(self, db_session, broadcaster, account, member):
        _send(db_session, broadcaster, account, member, "https://img.example/1.png", "image")
        assert broadcaster.of(events.CHAT_MESSAGE)[0].payload.body == "📷 Sent an image"

    def test_empty_content_rejected(self, db_session, broadcaster, account, member):
        with pytest.raises(InvariantViolation, match="Content is required"):
            _send(db_session, broadcaster, account, member, "   ")

    def test_unknown_type_rejected(self, db_session, broadcaster, account, member):
        with pytest.raises(InvariantViolation):
            _send(db_session, broadcaster, account, member, "x", "system")

    def test_outsider_cannot_chat(self, db_session, broadcaster, account, outsider):
        with pytest.raises(NotAMember):
            _send(db_session, broadcaster, account, outsider)

    def test_system_message_goes_live_only(self, db_session, broadcaster, account):
        message = post_system_message(db_session, broadcaster, account.id, "hello")
        published = broadcaster.published[0]
        assert message.sender_name == "FlowMoney"
        assert published.exclude_user_id is None
        assert published.payload is None


class TestReadingMessages:
    def test_unread_count_and_mark_read(self, db_session, broadcaster, account, admin, member):
        _send(db_session, broadcaster, account, member, "one")
        _send(db_session, broadcaster, account, member, "two")

        assert unread_count(db_session, admin.id) == 2
        assert unread_count(db_session, member.id) == 0

        assert mark_read(db_session, account.id, admin.id) == 2
        assert unread_count(db_session, admin.id) == 0
        assert mark_read(db_session, account.id, admin.id) == 0

    def test_system_messages_count_as_unread(self, db_session, broadcaster, account, member):
        post_system_message(db_session, broadcaster, account.id, "announcement")
        assert unread_count(db_session, member.id) == 1

    def test_list_newest_first_with_paging(self, db_session, broadcaster, account, admin, member):
        base = datetime(2026, 3, 1, tzinfo=timezone.utc)
        for i in range(3):
            message = _send(db_session, broadcaster, account, member, f"m{i}")
            message.created_at = base + timedelta(minutes=i)
        db_session.commit()

        page, has_more = list_messages(db_session, account.id, admin.id, limit=2)
        assert [m["content"] for m in page] == ["m2", "m1"]
        assert has_more is True
        assert page[0]["is_read"] is False

        older, has_more = list_messages(
            db_session, account.id, admin.id, before=base + timedelta(minutes=1), limit=2
        )
        assert [m["content"] for m in older] == ["m0"]
        assert has_more is False

    def test_own_messages_are_read(self, db_session, broadcaster, account, member):
        _send(db_session, broadcaster, account, member)
        page, _ = list_messages(db_session, account.id, member.id)
        assert page[0]["is_read"] is True


class TestConversations:
    def test_latest_activity_first_with_unread(
        self, db_session, broadcaster, account, admin, member, outsider, add_member
    ):
        trip = CreateJointAccountUseCase(db_session).execute(outsider.id, "Trip", "EUR")
        add_member(trip, admin, "VIEWER")
        _send(db_session, broadcaster, account, member, "rent is due")
        message = _send(db_session, broadcaster, trip, outsider, "tickets booked")
        message.created_at = datetime.now(timezone.utc) + timedelta(minutes=5)
        db_session.commit()

        conversations, total_unread = list_conversations(db_session, admin.id)

        assert [c["name"] for c in conversations] == ["Trip", "Rent"]
        assert conversations[0]["last_message"]["content"] == "tickets booked"
        assert conversations[0]["role"] == "VIEWER"
        assert conversations[1]["unread_count"] == 1
        assert {m["user_id"] for m in conversations[0]["members"]} == {outsider.id, admin.id}
        assert total_unread == 2

    def test_own_messages_are_not_unread(self, db_session, broadcaster, account, member):
        _send(db_session, broadcaster, account, member)
        [conversation], total_unread = list_conversations(db_session, member.id)
        assert conversation["unread_count"] == 0
        assert total_unread == 0

    def test_quiet_account_has_no_last_message(self, db_session, account, viewer):
        [conversation], _ = list_conversations(db_session, viewer.id)
        assert conversation["last_message"] is None
        assert conversation["updated_at"] is not None

    def test_no_accounts(self, db_session, outsider):
        assert list_conversations(db_session, outsider.id) == ([], 0)


class TestModeration:
    def test_sender_deletes_own(self, db_session, broadcaster, account, member):
        message = _send(db_session, broadcaster, account, member)
        message_id = message.id
        DeleteMessageUseCase(db_session, broadcaster).execute(account.id, message_id, member.id)

        assert db_session.query(ChatMessage).count() == 0
        assert db_session.query(ChatMessageRead).count() == 0
        assert broadcaster.of(events.CHAT_MESSAGE_DELETED)[0].data["message_id"] == message_id

    def test_admin_deletes_anyones(self, db_session, broadcaster, account, admin, viewer):
        message = _send(db_session, broadcaster, account, viewer)
        DeleteMessageUseCase(db_session, broadcaster).execute(account.id, message.id, admin.id)
        assert db_session.query(ChatMessage).count() == 0

    def test_member_cannot_delete_others(self, db_session, broadcaster, account, member, viewer):
        message = _send(db_session, broadcaster, account, viewer)
        with pytest.raises(InsufficientRole, match="Not authorized"):
            DeleteMessageUseCase(db_session, broadcaster).execute(account.id, message.id, member.id)

    def test_delete_unknown(self, db_session, broadcaster, account, member):
        with pytest.raises(NotFound):
            DeleteMessageUseCase(db_session, broadcaster).execute(account.id, "missing", member.id)

    def test_clear_conversation(self, db_session, broadcaster, account, admin, member):
        _send(db_session, broadcaster, account, member, "one")
        _send(db_session, broadcaster, account, admin, "two")

        deleted = ClearConversationUseCase(db_session, broadcaster).execute(account.id, admin.id)

        assert deleted == 2
        assert db_session.query(ChatMessage).count() == 0
        assert db_session.query(ChatMessageRead).count() == 0
        assert broadcaster.of(events.CHAT_CLEARED)

    def test_member_cannot_clear(self, db_session, broadcaster, account, member):
        with pytest.raises(InsufficientRole):
            ClearConversationUseCase(db_session, broadcaster).execute(account.id, member.id)


class TestShareTransaction:
    def test_share(self, db_session, broadcaster, account, member):
        tx = CreateTransactionUseCase(db_session, broadcaster).execute(
            account.id, member, amount="42", tx_type="EXPENSE", category="Food"
        )
        broadcaster.published.clear()

        message = ShareTransactionUseCase(db_session, broadcaster).execute(account.id, member, tx.id, "lunch")

        assert message.type == "transaction_share"
        assert message.payload_json["transaction_id"] == tx.id
        assert Decimal(message.payload_json["amount"]) == Decimal("42")
        assert broadcaster.of(events.CHAT_MESSAGE)[0].payload.body == "💸 Shared $42 expense: Food"

    def test_share_foreign_transaction(self, db_session, broadcaster, account, member):
        with pytest.raises(NotFound):
            ShareTransactionUseCase(db_session, broadcaster).execute(account.id, member, "missing")
