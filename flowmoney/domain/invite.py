"""
Invite state machine: PENDING -> ACCEPTED | DECLINED, EXPIRED by time only.
"""
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum


class InviteStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def expires_at(created_at: datetime, ttl_days: int) -> datetime:
    return as_utc(created_at) + timedelta(days=ttl_days)


def is_expired(expires: datetime, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return as_utc(now) > as_utc(expires)


def generate_invite_code() -> str:
    """8 uppercase hex characters."""
    return secrets.token_hex(4).upper()
