"""
tests/conftest.py -- Shared test fixtures for BugTracker unit and integration tests.

This module provides:
  - user_store / bug_store / lifecycle: fresh in-memory stores per test
  - make_user(): insert a user with a known password, bypassing the API
  - api: module-scoped TestClient with a seeded cast of users and their tokens

Design: the integration fixture uses named shared-memory SQLite URIs (not
plain :memory:) because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format (file:name?mode=memory&cache=shared
&uri=true) shares one in-memory instance across all connections in the
process. Unit tests call the stores from one thread, so plain :memory: works.

Environment must be set before any auth/core import: DEBUG lets
get_settings() auto-generate SECRET_KEY, BCRYPT_ROUNDS=4 keeps hashing fast,
RATE_LIMIT_ENABLED=false stops the shared limiter from throttling the suite,
and ALLOWED_HOSTS admits TestClient's "testserver" host.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# CRITICAL: Set env before any auth/core import -- get_settings() is cached
# on first use and auth/tokens.py reads it at import time.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from bugs.lifecycle import BugLifecycle
from bugs.store import BugStore

DEFAULT_PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_user(store: UserStore, name: str, role: Role, email: str | None = None) -> User:
    """Insert a user with DEFAULT_PASSWORD and return the stored record."""
    email = email or f"{name.lower()}@example.com"
    uid = store.create_user(User(name=name, email=email, role=role, hashed_password=hash_password(DEFAULT_PASSWORD)))
    return store.get_by_id(uid)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Unit-test fixtures -- fresh in-memory stores per test
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def bug_store() -> Generator[BugStore, None, None]:
    store = BugStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def lifecycle(bug_store: BugStore, user_store: UserStore) -> BugLifecycle:
    return BugLifecycle(bug_store, user_store)


@pytest.fixture
def cast(user_store: UserStore) -> dict[str, User]:
    """A small team: two developers, a manager, and an admin.

    rita is a developer who files bugs; dev is the developer bugs get
    assigned to.
    """
    return {
        "rita": make_user(user_store, "Rita", Role.developer),
        "dev": make_user(user_store, "Dev", Role.developer),
        "manager": make_user(user_store, "Mona", Role.manager),
        "admin": make_user(user_store, "Ada", Role.admin),
    }


# ---------------------------------------------------------------------------
# Integration fixture -- one TestClient per test module
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    """Everything an integration test needs: the client plus seeded users."""

    client: TestClient
    user_store: UserStore
    users: dict[str, User] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)

    def headers(self, who: str) -> dict[str, str]:
        return auth_header(self.tokens[who])


def _patch_lifespan(user_store: UserStore, bug_store: BugStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the default SQLite files.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.bug_store = bug_store
        app.state.bug_lifecycle = BugLifecycle(bug_store, user_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext backed by stores private to the requesting module.

    Seeded users (all with DEFAULT_PASSWORD): rita (developer, reporter),
    dev (developer, assignee), other_dev (developer), manager, admin.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store = UserStore(f"sqlite:///file:test_users_{suffix}?mode=memory&cache=shared&uri=true")
    bug_store = BugStore(f"sqlite:///file:test_bugs_{suffix}?mode=memory&cache=shared&uri=true")

    users = {
        "rita": make_user(user_store, "Rita", Role.developer),
        "dev": make_user(user_store, "Dev", Role.developer),
        "other_dev": make_user(user_store, "Otto", Role.developer),
        "manager": make_user(user_store, "Mona", Role.manager),
        "admin": make_user(user_store, "Ada", Role.admin),
    }
    tokens = {key: create_access_token(user) for key, user in users.items()}

    app.router.lifespan_context = _patch_lifespan(user_store, bug_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client=client, user_store=user_store, users=users, tokens=tokens)

    bug_store.close()
    user_store.close()


# ---------------------------------------------------------------------------
# Factory fixtures -- expose the helpers without importing conftest directly
# ---------------------------------------------------------------------------


@pytest.fixture
def user_factory(user_store: UserStore):
    """Return make_user bound to the per-test user_store."""

    def _make(name: str, role: Role, email: str | None = None) -> User:
        return make_user(user_store, name, role, email)

    return _make


@pytest.fixture
def default_password() -> str:
    return DEFAULT_PASSWORD
