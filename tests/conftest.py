"""Shared fixtures: an in-memory database and an API client bound to it."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_SAMPLE_DATA"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_USERNAME"] = "mandirjan"
os.environ["ADMIN_DEFAULT_PASSWORD"] = "admin123"

from typing import Callable, Iterator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from database import Base, SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402

ADMIN_USERNAME = "mandirjan"
ADMIN_PASSWORD = "admin123"


@pytest.fixture
def db_session() -> Iterator[Session]:
    """Fresh schema for every test.

    Yields:
        A session on the in-memory database.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session: Session) -> Iterator[TestClient]:
    """API client with the lifespan (default settings row) already run."""
    with TestClient(app) as test_client:
        yield test_client


def login(client: TestClient, username: str, password: str) -> dict:
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client: TestClient) -> dict:
    return login(client, ADMIN_USERNAME, ADMIN_PASSWORD)


@pytest.fixture
def make_category(client: TestClient, admin_headers: dict) -> Callable[[str], dict]:
    """Factory that creates a category through the API and returns its JSON."""

    def _make(name: str) -> dict:
        response = client.post("/api/categories", json={"name": name}, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def make_subadmin(client: TestClient, admin_headers: dict) -> Callable[..., dict]:
    """Factory that creates a sub-admin and returns its id plus auth headers."""
    counter = {"n": 0}

    def _make(**permissions) -> dict:
        counter["n"] += 1
        username = f"helper{counter['n']}"
        password = "sevak-pass-123"
        response = client.post(
            "/api/subadmins",
            json={"username": username, "password": password, "permissions": permissions},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return {
            "id": response.json()["id"],
            "username": username,
            "headers": login(client, username, password),
        }

    return _make


@pytest.fixture
def add_donation(client: TestClient, admin_headers: dict) -> Callable[..., dict]:
    """Factory that records an approved donation as the main admin."""

    def _add(donor_name: str, category_id: int, amount=None, date: str = "2024-01-15", notes: str = "") -> dict:
        body = {"donor_name": donor_name, "category_id": category_id, "date": date, "notes": notes}
        if amount is not None:
            body["amount"] = amount
        response = client.post("/api/donations", json=body, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _add
