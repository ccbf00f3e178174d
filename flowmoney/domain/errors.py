"""Domain error taxonomy shared by use cases and the HTTP layer.

Every ``DomainError`` carries the HTTP status it maps to and a short
machine-checkable ``reason`` so clients can tell "not a member" apart from
"insufficient role".
"""


class DomainError(ValueError):
    """Base class for errors raised before any write happens."""

    status_code = 400
    reason = "domain_error"


class Forbidden(DomainError):
    status_code = 403
    reason = "forbidden"


class NotAMember(Forbidden):
    """Actor has no membership row for the target joint account."""

    reason = "not_a_member"

    def __init__(self, message: str = "You are not a member of this joint account"):
        super().__init__(message)


class InsufficientRole(Forbidden):
    """Actor is a member but their role lacks the required capability."""

    reason = "insufficient_role"


class NotInvitee(Forbidden):
    """Invite (or split request) is addressed to somebody else."""

    reason = "not_invitee"


class NotFound(DomainError):
    """Entity does not exist or does not belong to the stated account."""

    status_code = 404
    reason = "not_found"


class InvalidCredentials(DomainError):
    """Password check failed for an otherwise authenticated request."""

    status_code = 401
    reason = "invalid_credentials"


class InvariantViolation(DomainError):
    """Request would break a stored invariant (duplicates, admin removal...)."""

    status_code = 400
    reason = "invariant_violation"


class DeliveryFailure(Exception):
    """A fan-out channel could not deliver. Logged, never surfaced."""


class StaleEndpoint(DeliveryFailure):
    """Provider reported the push endpoint/token as gone."""


class UpstreamUnavailable(Exception):
    """Optional provider (email) unreachable; callers degrade gracefully."""
