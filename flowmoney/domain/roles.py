"""
Role policy for joint accounts.

One lattice (ADMIN > MEMBER > VIEWER), each role mapped to a capability set.
Membership management rules live here as pure functions so use cases only
have to load rows and call them.
"""
from enum import Enum

from flowmoney.domain.errors import InsufficientRole, InvariantViolation


class Role(str, Enum):
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class Capability(str, Enum):
    READ = "read"
    WRITE_RECORDS = "write_records"
    CHAT = "chat"
    MODERATE_CHAT = "moderate_chat"
    MANAGE_MEMBERS = "manage_members"
    MANAGE_ACCOUNT = "manage_account"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.MEMBER: frozenset({Capability.READ, Capability.WRITE_RECORDS, Capability.CHAT}),
    Role.VIEWER: frozenset({Capability.READ, Capability.CHAT}),
}

# Roles an admin can hand out; ADMIN itself is never assignable
ASSIGNABLE_ROLES = (Role.MEMBER, Role.VIEWER)

DEFAULT_JOIN_ROLE = Role.MEMBER

ADMIN_CANNOT_LEAVE = (
    "Admin cannot leave their own account. "
    "Transfer ownership or delete the account instead."
)


def parse_role(value: str) -> Role:
    """Parse a role name case-insensitively."""
    try:
        return Role(value.upper())
    except (ValueError, AttributeError):
        raise InvariantViolation(
            f"Valid role is required ({', '.join(r.value for r in ASSIGNABLE_ROLES)})"
        )


def has_capability(role: str | Role, capability: Capability) -> bool:
    try:
        role = Role(role)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES[role]


def check_role_change(actor_role: str, target_role: str, new_role: Role) -> None:
    """
    Validate that ``actor_role`` may move a member from ``target_role`` to ``new_role``.

    Raises:
        InsufficientRole: actor cannot manage members
        InvariantViolation: target is the admin, or new_role is ADMIN
    """
    if not has_capability(actor_role, Capability.MANAGE_MEMBERS):
        raise InsufficientRole("Only the admin can change member roles")
    if Role(target_role) == Role.ADMIN:
        raise InvariantViolation("Cannot change the admin's role")
    if new_role not in ASSIGNABLE_ROLES:
        raise InvariantViolation("Ownership transfer is not supported")


def check_removal(
    actor_user_id: str,
    actor_role: str,
    target_user_id: str,
    target_role: str,
) -> None:
    """
    Validate a member removal (or a self-removal, i.e. leaving).

    Raises:
        InvariantViolation: admin leaving, or anybody removing the admin
        InsufficientRole: non-admin removing somebody else
    """
    is_self = actor_user_id == target_user_id
    is_admin = Role(actor_role) == Role.ADMIN

    if is_self and is_admin:
        raise InvariantViolation(ADMIN_CANNOT_LEAVE)
    if not is_self and not has_capability(actor_role, Capability.MANAGE_MEMBERS):
        raise InsufficientRole("You do not have permission to remove this member")
    if Role(target_role) == Role.ADMIN:
        raise InvariantViolation("The admin cannot be removed. Delete the joint account instead.")
