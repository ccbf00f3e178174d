"""
HTTP-level fixtures: app wired to the test database and a recording broadcaster
"""
import pytest
from fastapi.testclient import TestClient

from flowmoney.infrastructure.db.session import get_db
from flowmoney.main import create_app


@pytest.fixture
def app(db_session, session_factory, broadcaster):
    application = create_app()
    application.state.broadcaster = broadcaster
    application.state.session_factory = session_factory
    application.dependency_overrides[get_db] = lambda: db_session
    return application


@pytest.fixture
def client(app):
    """Anonymous client (no session cookie)"""
    return TestClient(app)


@pytest.fixture
def login_as(app):
    """Register a user through the API; returns a client holding their session cookie."""
    def _login(name: str, email: str | None = None) -> TestClient:
        client = TestClient(app)
        response = client.post("/api/v1/auth/register", json={
            "email": email or f"{name.lower()}@example.com",
            "name": name,
            "password": "correct-horse",
        })
        assert response.status_code == 201, response.text
        client.user = response.json()
        return client
    return _login


@pytest.fixture
def alice(login_as):
    return login_as("Alice")


@pytest.fixture
def bob(login_as):
    return login_as("Bob")


@pytest.fixture
def rent(alice) -> dict:
    response = alice.post("/api/v1/joint-accounts", json={"name": "Rent", "primary_currency": "USD"})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def join(rent):
    """Bring a logged-in client into "Rent" through an accepted email invite."""
    def _join(owner: TestClient, client: TestClient, role: str = "MEMBER") -> None:
        invite = owner.post(f"/api/v1/joint-accounts/{rent['id']}/invite",
                            json={"email": client.user["email"]}).json()
        response = client.post(f"/api/v1/joint-accounts/invites/{invite['id']}/respond", json={"accept": True})
        assert response.status_code == 200, response.text
        if role != "MEMBER":
            response = owner.put(f"/api/v1/joint-accounts/{rent['id']}/members/{client.user['id']}",
                                 json={"role": role})
            assert response.status_code == 200, response.text
    return _join
