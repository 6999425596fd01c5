"""
Shared fixtures for backend tests.

The app runs against a SqliteDataService on a temporary file, swapped in
through app.dependency_overrides. TestClient is used without a context
manager so the startup hook (hosted-service env check) does not run.
"""

import pytest
from fastapi.testclient import TestClient

from backend.auth_context import get_data_service
from backend.data_service import SqliteDataService
from backend.main import app

PASSWORD = "secret123"


@pytest.fixture
def data(tmp_path):
    return SqliteDataService(str(tmp_path / "crowdfund_test.db"))


@pytest.fixture
def client(data):
    app.dependency_overrides[get_data_service] = lambda: data
    yield TestClient(app)
    app.dependency_overrides.clear()


def sign_up(client, email):
    """Register a user; return (auth headers, user id)."""
    resp = client.post("/auth/signup", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, f"Sign up failed: {resp.text}"
    body = resp.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]["id"]


@pytest.fixture
def register(client):
    """Factory fixture: register(email) -> (auth headers, user id)."""
    return lambda email: sign_up(client, email)


@pytest.fixture
def owner(client):
    return sign_up(client, "owner@example.com")


@pytest.fixture
def backer(client):
    return sign_up(client, "backer@example.com")


@pytest.fixture
def project(client, owner):
    """A 1000-dollar project owned by `owner`."""
    headers, _ = owner
    resp = client.post(
        "/api/projects",
        json={
            "title": "Solar Kettle",
            "description": "Boil water with sunlight",
            "goal_amount": 1000,
            "end_date": "2030-01-01",
        },
        headers=headers,
    )
    assert resp.status_code == 200, f"Create failed: {resp.text}"
    return resp.json()
