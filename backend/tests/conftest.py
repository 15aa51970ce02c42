"""
Pytest configuration and shared test helpers for backend tests.
"""
import os

# Skip MongoDB connection and scheduler startup when running under pytest.
os.environ.setdefault("PYTEST_RUNNING", "1")

import copy
import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from database import database


def _matches(doc, query):
    for key, expected in query.items():
        if isinstance(expected, dict) and "$in" in expected:
            if doc.get(key) not in expected["$in"]:
                return False
        elif doc.get(key) != expected:
            return False
    return True


def _project(doc, projection):
    if projection:
        include = [k for k, v in projection.items() if v and k != "_id"]
        if include:
            return {k: copy.deepcopy(doc[k]) for k in include if k in doc}
    return {k: copy.deepcopy(v) for k, v in doc.items() if k != "_id"}


class FakeCursor:
    """Async cursor over a list (stands in for a Motor find() cursor)."""

    def __init__(self, docs):
        self._docs = list(docs)

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: d.get(key) or "", reverse=direction == -1)
        return self

    def limit(self, n):
        self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        return list(self._docs if length is None else self._docs[:length])

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._docs:
            raise StopAsyncIteration
        return self._docs.pop(0)


class FakeCollection:
    """The slice of the Motor collection API the service uses, kept in memory."""

    def __init__(self):
        self.docs = []

    async def insert_one(self, doc):
        doc.setdefault("_id", uuid.uuid4().hex)
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query, projection=None):
        for doc in self.docs:
            if _matches(doc, query):
                return _project(doc, projection)
        return None

    def find(self, query=None, projection=None):
        return FakeCursor(_project(d, projection) for d in self.docs if _matches(d, query or {}))

    async def update_one(self, query, update, upsert=False):
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def count_documents(self, query):
        return sum(1 for d in self.docs if _matches(d, query))


class FakeDatabase:
    def __init__(self):
        self._collections = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self._collections.setdefault(name, FakeCollection())

    def __getitem__(self, name):
        return getattr(self, name)


@pytest.fixture
def fake_db(monkeypatch):
    """In-memory database installed behind database.get_db()."""
    db = FakeDatabase()
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture
def client(fake_db):
    """TestClient for the main FastAPI app (server:app), backed by fake_db."""
    from server import app
    return TestClient(app)


@pytest.fixture
def make_client(fake_db):
    """Factory for extra clients, each with its own cookie jar, sharing fake_db."""
    from server import app

    def _make():
        return TestClient(app)
    return _make


def _register(client, username="alice", email=None, password="Secret123!", **extra):
    payload = {
        "username": username,
        "email": email or f"{username}@example.com",
        "password": password,
        **extra,
    }
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def register_user():
    """register_user(client, username, ...) -> response body; the client keeps the session cookie."""
    return _register


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    from utils.rate_limiter import rate_limiter
    rate_limiter.attempts.clear()
    yield
    rate_limiter.attempts.clear()


@pytest.fixture
def auth_client(client):
    """Client with a registered, logged-in user "alice"."""
    _register(client, "alice", full_name="Alice Cooper")
    return client
