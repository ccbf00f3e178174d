"""
Tests for the joint-account role lattice
"""
import pytest

from flowmoney.domain.errors import InsufficientRole, InvariantViolation
from flowmoney.domain.roles import (
    Role, Capability, ASSIGNABLE_ROLES, has_capability, parse_role, check_role_change, check_removal,
)


class TestCapabilities:
    def test_admin_has_everything(self):
        for capability in Capability:
            assert has_capability(Role.ADMIN, capability)

    def test_member_writes_but_does_not_manage(self):
        assert has_capability("MEMBER", Capability.WRITE_RECORDS)
        assert has_capability("MEMBER", Capability.CHAT)
        assert not has_capability("MEMBER", Capability.MANAGE_MEMBERS)
        assert not has_capability("MEMBER", Capability.MODERATE_CHAT)

    def test_viewer_reads_and_chats_only(self):
        assert has_capability("VIEWER", Capability.READ)
        assert has_capability("VIEWER", Capability.CHAT)
        assert not has_capability("VIEWER", Capability.WRITE_RECORDS)

    def test_unknown_role_has_nothing(self):
        assert not has_capability("OWNER", Capability.READ)


class TestParseRole:
    def test_case_insensitive(self):
        assert parse_role("viewer") is Role.VIEWER

    def test_garbage_rejected(self):
        with pytest.raises(InvariantViolation, match="Valid role"):
            parse_role("boss")

    def test_admin_not_assignable(self):
        assert Role.ADMIN not in ASSIGNABLE_ROLES


class TestRoleChange:
    def test_admin_demotes_member(self):
        check_role_change("ADMIN", "MEMBER", Role.VIEWER)

    def test_member_cannot_change_roles(self):
        with pytest.raises(InsufficientRole):
            check_role_change("MEMBER", "VIEWER", Role.MEMBER)

    def test_admin_role_is_fixed(self):
        with pytest.raises(InvariantViolation, match="admin's role"):
            check_role_change("ADMIN", "ADMIN", Role.MEMBER)

    def test_promotion_to_admin_rejected(self):
        """Ровно один ADMIN на счёт"""
        with pytest.raises(InvariantViolation, match="Ownership transfer"):
            check_role_change("ADMIN", "MEMBER", Role.ADMIN)


class TestRemoval:
    def test_member_may_leave(self):
        check_removal("u2", "MEMBER", "u2", "MEMBER")

    def test_admin_cannot_leave(self):
        with pytest.raises(InvariantViolation, match="Admin cannot leave their own account"):
            check_removal("u1", "ADMIN", "u1", "ADMIN")

    def test_member_cannot_remove_others(self):
        with pytest.raises(InsufficientRole):
            check_removal("u2", "MEMBER", "u3", "VIEWER")

    def test_member_cannot_remove_the_admin(self):
        with pytest.raises(InsufficientRole):
            check_removal("u2", "MEMBER", "u1", "ADMIN")

    def test_admin_row_is_never_removable(self):
        with pytest.raises(InvariantViolation, match="admin cannot be removed"):
            check_removal("u1", "ADMIN", "u9", "ADMIN")

    def test_admin_removes_viewer(self):
        check_removal("u1", "ADMIN", "u3", "VIEWER")
