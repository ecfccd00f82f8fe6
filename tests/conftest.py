import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db, ensure_indexes
from main import app


@pytest.fixture
def db():
    """Fresh in-memory database for each test."""
    mock_db = mongomock.MongoClient()["drive-test"]
    ensure_indexes(mock_db)
    return mock_db


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email, name="Test User", password="secret123"):
    """Sign up and log in, returning the auth header for the new user."""
    res = client.post("/api/signup", json={"email": email, "name": name, "password": password})
    assert res.status_code == 201, res.text
    res = client.post("/api/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


def create_item(client, headers, **fields):
    body = {"name": "report", "type": "doc"}
    body.update(fields)
    res = client.post("/api/files", json=body, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


@pytest.fixture
def alice(client):
    return register(client, "alice@example.com", name="Alice")


@pytest.fixture
def bob(client):
    return register(client, "bob@example.com", name="Bob")
