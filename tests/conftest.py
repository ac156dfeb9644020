# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Provides a fake MongoDB client so no database server is needed
# - Provides factories for settings and test clients
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================

os.environ.setdefault("DATABASE", "mongodb://db.test:27017/webserver")
os.environ.setdefault("SECRET_KEY_ONE", "test-secret-key")
os.environ.setdefault("SESSION_NAME", "test.sid")
os.environ.setdefault("NODE_ENV", "development")
os.environ.setdefault("PORT", "0")

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from app.config import Settings
from app.main import create_app
from lib.database import DatabaseConnection
from lib.session_store import MemoryStore

TEST_SECRET = "test-secret-key"


# =============================================================================
# Fake MongoDB client
# =============================================================================

class FakeAdmin:
    """Stands in for ``client.admin``."""

    def __init__(self, client):
        self._client = client

    async def command(self, name):
        self._client.commands.append(name)
        if self._client.fail:
            raise ServerSelectionTimeoutError("No servers available")
        return {"ok": 1.0}


class FakeMongoClient:
    """Records how the driver client was built and used."""

    def __init__(self, uri, fail=False, **kwargs):
        self.uri = uri
        self.kwargs = kwargs
        self.fail = fail
        self.commands = []
        self.close_calls = 0
        self.admin = FakeAdmin(self)

    @property
    def listener(self):
        return self.kwargs["event_listeners"][0]

    async def close(self):
        self.close_calls += 1


class FakeMongoFactory:
    """Callable passed as ``client_factory``; keeps every client it built."""

    def __init__(self, fail=False):
        self.fail = fail
        self.clients = []

    def __call__(self, uri, **kwargs):
        client = FakeMongoClient(uri, fail=self.fail, **kwargs)
        self.clients.append(client)
        return client

    @property
    def client(self):
        return self.clients[-1]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def mongo_factory():
    """Fake driver factory whose pings succeed."""
    return FakeMongoFactory()


@pytest.fixture
def failing_mongo_factory():
    """Fake driver factory whose pings fail."""
    return FakeMongoFactory(fail=True)


@pytest.fixture
def database(mongo_factory):
    """Unopened database handle backed by the fake driver."""
    return DatabaseConnection("mongodb://user:pw@db.test:27017/webserver", client_factory=mongo_factory)


@pytest.fixture
def static_dir(tmp_path):
    """Static directory with one file in it."""
    public = tmp_path / "public"
    public.mkdir()
    (public / "hello.txt").write_text("hello from disk")
    return public


@pytest.fixture
def make_settings(static_dir):
    """Build Settings with test defaults; keyword overrides use field names."""

    def _make(**overrides):
        values = {
            "database_uri": "mongodb://db.test:27017/webserver",
            "session_secret": TEST_SECRET,
            "session_cookie_name": "test.sid",
            "static_dir": str(static_dir),
            "hostname": "127.0.0.1",
            "port": 0,
            "environment": "development",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def session_store():
    return MemoryStore()


@pytest.fixture
def make_app(make_settings, database, session_store):
    """Build an application; keyword overrides go to Settings."""

    def _make(**overrides):
        return create_app(make_settings(**overrides), database, session_store=session_store)

    return _make


@pytest.fixture
def client(make_app):
    """Test client for a development-mode application."""
    return TestClient(make_app())
