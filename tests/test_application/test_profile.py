"""
Tests for registration, preferences, password change and push device registration
"""
from unittest.mock import patch

import pytest

from flowmoney.application.profile import (
    register_user, update_preferences, change_password, subscribe_vapid, subscribe_fcm, unsubscribe, send_test_push,
)
from flowmoney.auth import hash_password, verify_password
from flowmoney.domain.errors import InvalidCredentials, InvariantViolation
from flowmoney.infrastructure.db.models import PushSubscription


class TestRegister:
    def test_register(self, db_session):
        user = register_user(db_session, " Dave@Example.com ", "Dave", "correct-horse", "EUR")

        assert user.email == "dave@example.com"
        assert user.primary_currency == "EUR"
        assert verify_password("correct-horse", user.password_hash)

    def test_duplicate_email(self, db_session, member):
        with pytest.raises(InvariantViolation, match="already registered"):
            register_user(db_session, member.email.upper(), "Bob again", "correct-horse")

    def test_short_password(self, db_session):
        with pytest.raises(InvariantViolation, match="at least 8"):
            register_user(db_session, "x@example.com", "X", "short")

    def test_bad_currency(self, db_session):
        with pytest.raises(InvariantViolation, match="Invalid currency"):
            register_user(db_session, "x@example.com", "X", "correct-horse", "usd")


class TestPreferences:
    def test_update(self, db_session, member):
        update_preferences(db_session, member, name="Robert", primary_currency="PHP", notifications_enabled=False)
        assert member.name == "Robert"
        assert member.primary_currency == "PHP"
        assert member.notifications_enabled is False

    def test_blank_name(self, db_session, member):
        with pytest.raises(InvariantViolation):
            update_preferences(db_session, member, name="  ")


class TestChangePassword:
    @pytest.fixture
    def bob(self, db_session, member):
        member.password_hash = hash_password("correct-horse")
        db_session.commit()
        return member

    def test_change(self, db_session, bob):
        change_password(db_session, bob, "correct-horse", "battery-staple")

        db_session.refresh(bob)
        assert verify_password("battery-staple", bob.password_hash)
        assert not verify_password("correct-horse", bob.password_hash)

    def test_wrong_current_password(self, db_session, bob):
        with pytest.raises(InvalidCredentials, match="incorrect"):
            change_password(db_session, bob, "wrong-horse", "battery-staple")
        assert verify_password("correct-horse", bob.password_hash)

    def test_current_password_required(self, db_session, bob):
        with pytest.raises(InvariantViolation, match="Current password is required"):
            change_password(db_session, bob, None, "battery-staple")

    def test_new_password_too_short(self, db_session, bob):
        with pytest.raises(InvariantViolation, match="at least 8"):
            change_password(db_session, bob, "correct-horse", "short")


class TestPushDevices:
    def test_subscribe_vapid_upserts_by_endpoint(self, db_session, member, admin):
        subscribe_vapid(db_session, member, "https://push.example/abc", "key1", "auth1")
        sub = subscribe_vapid(db_session, admin, "https://push.example/abc", "key2", "auth2")

        assert db_session.query(PushSubscription).count() == 1
        assert sub.user_id == admin.id
        assert sub.p256dh == "key2"
        assert admin.notifications_enabled is True

    def test_subscribe_fcm(self, db_session, member):
        sub = subscribe_fcm(db_session, member, "fcm-token-1", "android")
        assert sub.provider == "fcm"
        assert sub.platform == "android"

    def test_unsubscribe_last_device_disables_notifications(self, db_session, member):
        subscribe_vapid(db_session, member, "https://push.example/1", "k", "a")
        subscribe_fcm(db_session, member, "fcm-token-1")

        assert unsubscribe(db_session, member, endpoint="https://push.example/1") == 1
        assert member.notifications_enabled is True

        assert unsubscribe(db_session, member, token="fcm-token-1") == 1
        assert member.notifications_enabled is False

    def test_unsubscribe_all(self, db_session, member):
        subscribe_vapid(db_session, member, "https://push.example/1", "k", "a")
        subscribe_vapid(db_session, member, "https://push.example/2", "k", "a")
        assert unsubscribe(db_session, member) == 2

    def test_test_push_needs_device(self, db_session, member):
        with pytest.raises(InvariantViolation, match="No push subscription found"):
            send_test_push(db_session, member)

    def test_test_push(self, db_session, member):
        subscribe_fcm(db_session, member, "fcm-token-1")
        with patch("flowmoney.application.profile.send_push_to_user", return_value=1) as send:
            assert send_test_push(db_session, member) == 1
        payload = send.call_args.args[2]
        assert payload.data["type"] == "test"
