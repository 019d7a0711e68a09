"""
tests/conftest.py -- Shared test fixtures for metricboard integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + metrics
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient running the real app against those stores
  - register_user(): helper that registers + logs in and returns credentials

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

Environment must be set before any app import: DEBUG so get_settings()
auto-generates JWT_SECRET, a cheap bcrypt cost so registration is fast, a
generous rate limit so the suite never trips it, and a temp upload dir.
"""

from __future__ import annotations

import os
import tempfile
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

# CRITICAL: Set before any auth/core/api import -- settings are read at import time.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_RATE_LIMIT", "1000/minute")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="metricboard-uploads-"))

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from auth.tokens import user_id_from_token
from core.config import get_settings
from metrics.store import MetricStore
from realtime.fanout import ConnectionHub

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, MetricStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules don't
                   share state.
    """
    users_url = f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true"
    metrics_url = f"sqlite:///file:test_metrics_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=users_url), MetricStore(db_url=metrics_url)


def _patch_lifespan(user_store: UserStore, metric_store: MetricStore, hub: ConnectionHub):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        upload_dir = Path(get_settings().upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)
        app.state.upload_dir = upload_dir
        app.state.user_store = user_store
        app.state.metric_store = metric_store
        app.state.hub = hub
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient for the real app with isolated stores and a broadcast hub.

    Module-scoped: one client (and one event loop) per test module, which is
    also what lets WebSocket sessions and HTTP calls share the hub.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, metric_store = _make_test_stores(suffix)
    hub = ConnectionHub("broadcast")

    app.router.lifespan_context = _patch_lifespan(user_store, metric_store, hub)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client

    user_store.close()
    metric_store.close()


@dataclass
class Registered:
    username: str
    email: str
    password: str
    token: str
    user_id: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def register_user(client: TestClient, prefix: str = "user") -> Registered:
    """Register a fresh account through the API, log in, and return its credentials."""
    tag = uuid.uuid4().hex[:8]
    username = f"{prefix}_{tag}"
    email = f"{username}@example.com"
    password = "s3cret-pass"
    resp = client.post(
        "/register",
        json={
            "username": username,
            "email": email,
            "password": password,
            "fullName": f"{prefix.title()} Tester",
            "dateOfBirth": "1990-04-01",
        },
    )
    assert resp.status_code == 201, resp.text
    login = client.post("/login", json={"login": username, "password": password})
    assert login.status_code == 200, login.text
    token = login.json()["token"]
    return Registered(
        username=username,
        email=email,
        password=password,
        token=token,
        user_id=user_id_from_token(token),
    )


@pytest.fixture
def alice(api_client: TestClient) -> Registered:
    return register_user(api_client, "alice")


@pytest.fixture
def bob(api_client: TestClient) -> Registered:
    return register_user(api_client, "bob")


@pytest.fixture
def make_user(api_client: TestClient):
    """Factory fixture: make_user("carol") registers and logs in another account."""

    def _make(prefix: str = "user") -> Registered:
        return register_user(api_client, prefix)

    return _make
