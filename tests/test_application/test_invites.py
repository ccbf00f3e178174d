"""
Tests for email invitations: uniqueness, expiry, accept/decline, cancel
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from flowmoney.application.invites import (
    CreateInviteUseCase, RespondToInviteUseCase, CancelInviteUseCase,
    list_my_pending_invites, list_account_invites,
)
from flowmoney.application.joint_accounts import CreateJointAccountUseCase
from flowmoney.application.membership import get_membership
from flowmoney.domain import events
from flowmoney.domain.errors import InsufficientRole, InvariantViolation, NotFound, NotInvitee, UpstreamUnavailable
from flowmoney.infrastructure.db.models import JointAccountInvite


@pytest.fixture
def dave(make_user):
    return make_user("Dave", email="dave@example.com")


def _invite(db_session, broadcaster, account, admin, email="dave@example.com"):
    return CreateInviteUseCase(db_session, broadcaster).execute(account.id, admin, email)


def _expire(db_session, invite):
    invite.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db_session.commit()


class TestCreateInvite:
    def test_pending_invite_created(self, db_session, broadcaster, account, admin, dave):
        invite = _invite(db_session, broadcaster, account, admin, "  Dave@Example.com ")

        assert invite.status == "PENDING"
        assert invite.invited_email == "dave@example.com"
        published = broadcaster.of(events.INVITE_RECEIVED)[0]
        assert published.target == [dave.id]
        assert published.payload.data["type"] == events.NOTIFY_INVITE

    def test_unregistered_email_gets_no_live_event(self, db_session, broadcaster, account, admin):
        invite = _invite(db_session, broadcaster, account, admin, "stranger@example.com")
        assert invite.status == "PENDING"
        assert broadcaster.published == []

    def test_duplicate_pending_rejected(self, db_session, broadcaster, account, admin, dave):
        """Повторное приглашение → "Invitation already pending", одна строка"""
        _invite(db_session, broadcaster, account, admin)
        with pytest.raises(InvariantViolation, match="Invitation already pending"):
            _invite(db_session, broadcaster, account, admin, "DAVE@example.com")

        pending = db_session.query(JointAccountInvite).filter(
            JointAccountInvite.status == "PENDING").count()
        assert pending == 1

    def test_expired_invite_is_superseded(self, db_session, broadcaster, account, admin, dave):
        first = _invite(db_session, broadcaster, account, admin)
        first_id = first.id
        _expire(db_session, first)

        second = _invite(db_session, broadcaster, account, admin)

        assert second.id != first_id
        assert db_session.query(JointAccountInvite).count() == 1

    def test_existing_member_rejected(self, db_session, broadcaster, account, admin, member):
        with pytest.raises(InvariantViolation, match="User is already a member"):
            _invite(db_session, broadcaster, account, admin, member.email)

    def test_only_admin_invites(self, db_session, broadcaster, account, member, dave):
        with pytest.raises(InsufficientRole):
            _invite(db_session, broadcaster, account, member)

    def test_email_failure_does_not_fail_invite(self, db_session, broadcaster, account, admin, dave):
        with patch("flowmoney.application.invites.send_email", side_effect=UpstreamUnavailable("down")):
            invite = _invite(db_session, broadcaster, account, admin)
        assert invite.status == "PENDING"


class TestRespondToInvite:
    def test_accept_adds_member(self, db_session, broadcaster, account, admin, dave):
        invite = _invite(db_session, broadcaster, account, admin)
        broadcaster.published.clear()

        RespondToInviteUseCase(db_session, broadcaster).execute(invite.id, dave, accept=True)

        assert invite.status == "ACCEPTED"
        assert invite.responded_at is not None
        assert get_membership(db_session, account.id, dave.id).role == "MEMBER"
        joined = broadcaster.of(events.MEMBER_JOINED)[0]
        assert joined.target == account.id
        assert joined.exclude_user_id == dave.id

    def test_second_accept_rejected(self, db_session, broadcaster, account, admin, dave):
        invite = _invite(db_session, broadcaster, account, admin)
        RespondToInviteUseCase(db_session, broadcaster).execute(invite.id, dave, accept=True)

        with pytest.raises(InvariantViolation, match="already responded to"):
            RespondToInviteUseCase(db_session, broadcaster).execute(invite.id, dave, accept=True)

    def test_decline_tells_admin(self, db_session, broadcaster, account, admin, dave):
        invite = _invite(db_session, broadcaster, account, admin)
        RespondToInviteUseCase(db_session, broadcaster).execute(invite.id, dave, accept=False)

        assert invite.status == "DECLINED"
        assert get_membership(db_session, account.id, dave.id) is None
        assert broadcaster.of(events.INVITE_DECLINED)[0].target == [admin.id]

    def test_wrong_user(self, db_session, broadcaster, account, admin, dave, outsider):
        invite = _invite(db_session, broadcaster, account, admin)
        with pytest.raises(NotInvitee, match="not for you"):
            RespondToInviteUseCase(db_session, broadcaster).execute(invite.id, outsider, accept=True)

    def test_expired_cannot_be_accepted(self, db_session, broadcaster, account, admin, dave):
        invite = _invite(db_session, broadcaster, account, admin)
        _expire(db_session, invite)

        with pytest.raises(InvariantViolation, match="expired"):
            RespondToInviteUseCase(db_session, broadcaster).execute(invite.id, dave, accept=True)
        assert get_membership(db_session, account.id, dave.id) is None

    def test_expired_cannot_be_declined(self, db_session, broadcaster, account, admin, dave):
        invite = _invite(db_session, broadcaster, account, admin)
        _expire(db_session, invite)
        broadcaster.published.clear()

        with pytest.raises(InvariantViolation, match="expired"):
            RespondToInviteUseCase(db_session, broadcaster).execute(invite.id, dave, accept=False)
        db_session.refresh(invite)
        assert invite.status == "PENDING"
        assert invite.responded_at is None
        assert broadcaster.published == []

    def test_unknown_invite(self, db_session, broadcaster, dave):
        with pytest.raises(NotFound):
            RespondToInviteUseCase(db_session, broadcaster).execute("missing", dave, accept=True)


class TestListAndCancel:
    def test_my_pending_skips_expired(self, db_session, broadcaster, account, admin, dave, make_user):
        other_account_admin = make_user("Erin")
        other = CreateJointAccountUseCase(db_session).execute(other_account_admin.id, "Trip")

        live = _invite(db_session, broadcaster, account, admin)
        stale = _invite(db_session, broadcaster, other, other_account_admin)
        _expire(db_session, stale)

        pending = list_my_pending_invites(db_session, dave)
        assert [i["id"] for i in pending] == [live.id]
        assert pending[0]["account_name"] == "Rent"
        assert pending[0]["inviter_name"] == "Alice"

    def test_cancel(self, db_session, broadcaster, account, admin, dave):
        invite = _invite(db_session, broadcaster, account, admin)
        invite_id = invite.id
        CancelInviteUseCase(db_session, broadcaster).execute(account.id, invite_id, admin.id)

        assert list_account_invites(db_session, account.id, admin.id) == []
        assert broadcaster.of(events.INVITE_CANCELLED)[0].target == [dave.id]

    def test_cancel_unknown(self, db_session, broadcaster, account, admin):
        with pytest.raises(NotFound):
            CancelInviteUseCase(db_session, broadcaster).execute(account.id, "missing", admin.id)
