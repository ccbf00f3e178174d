"""
Pytest fixtures for testing
"""
from dataclasses import dataclass, field
from typing import Any

import pytest
from sqlalchemy import create_engine, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from flowmoney.application.joint_accounts import CreateJointAccountUseCase
from flowmoney.infrastructure.db import models  # noqa: F401  registers tables
from flowmoney.infrastructure.db.models import JointAccountMember, User
from flowmoney.infrastructure.db.session import Base


@pytest.fixture
def db_engine():
    """In-memory SQLite shared across threads (TestClient, fan-out), JSONB→JSON."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # SQLite doesn't support JSONB — remap to JSON for tests
    for table in Base.metadata.tables.values():
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory) -> Session:
    """Create database session for tests"""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Broadcaster double
# ============================================================================


@dataclass
class Published:
    channel: str  # "account" | "users"
    target: Any  # joint account id or list of user ids
    exclude_user_id: str | None
    event: str
    data: dict
    payload: Any = None
    notification_type: str | None = None


@dataclass
class RecordingBroadcaster:
    """Stands in for FanoutBroadcaster: remembers every publish, delivers nothing."""
    published: list[Published] = field(default_factory=list)
    revoked: list[tuple[str, list[str]]] = field(default_factory=list)

    def publish_to_account(self, joint_account_id, exclude_user_id, event, data, payload=None,
                           notification_type=None):
        self.published.append(Published("account", joint_account_id, exclude_user_id, event, data,
                                        payload, notification_type))

    def publish_to_users(self, user_ids, event, data, payload=None, notification_type=None):
        self.published.append(Published("users", list(user_ids), None, event, data,
                                        payload, notification_type))

    def revoke_live_access(self, joint_account_id, user_ids):
        self.revoked.append((joint_account_id, list(user_ids)))

    def shutdown(self, wait=True):
        pass

    def events(self) -> list[str]:
        return [p.event for p in self.published]

    def of(self, event: str) -> list[Published]:
        return [p for p in self.published if p.event == event]


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


# ============================================================================
# Users and accounts
# ============================================================================


@pytest.fixture
def make_user(db_session):
    def _make(name: str, email: str | None = None, currency: str = "USD") -> User:
        user = User(
            email=email or f"{name.lower()}@example.com",
            name=name,
            password_hash="not-a-real-hash",
            primary_currency=currency,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def admin(make_user) -> User:
    return make_user("Alice")


@pytest.fixture
def member(make_user) -> User:
    return make_user("Bob")


@pytest.fixture
def viewer(make_user) -> User:
    return make_user("Carol")


@pytest.fixture
def outsider(make_user) -> User:
    return make_user("Mallory")


@pytest.fixture
def add_member(db_session):
    def _add(account, user: User, role: str = "MEMBER") -> JointAccountMember:
        membership = JointAccountMember(joint_account_id=account.id, user_id=user.id, role=role)
        db_session.add(membership)
        db_session.commit()
        return membership
    return _add


@pytest.fixture
def account(db_session, admin, member, viewer, add_member):
    """"Rent" (USD): Alice ADMIN, Bob MEMBER, Carol VIEWER."""
    joint_account = CreateJointAccountUseCase(db_session).execute(admin.id, "Rent", "USD")
    add_member(joint_account, member, "MEMBER")
    add_member(joint_account, viewer, "VIEWER")
    return joint_account
