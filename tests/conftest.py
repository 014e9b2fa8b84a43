"""
tests/conftest.py -- Shared fixtures for the CondoSwift auth tests.

This module provides:
  - settings:        Settings with DEBUG on and a cheap bcrypt cost
  - gateway:         a fresh AuthGateway per test (fresh stores and limiter)
  - client_factory:  builds a TestClient around the real app with a patched
                     lifespan, optionally with Settings overrides
  - client:          client_factory() with the default test settings
  - register_payload: a valid registration body

Each test gets its own gateway so rate-limit windows and users never leak
between tests. TestClient always reports the client address "testclient",
so every request in a test shares one rate-limit identity.

DEBUG, BCRYPT_ROUNDS, and ALLOWED_HOSTS must be set before any api/ import:
api/main.py reads get_settings() at import time for the middleware stack.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
# TestClient sends "Host: testserver".
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_gateway
from auth.gateway import AuthGateway
from core.config import Settings

TEST_SECRET = "test-secret-key-with-at-least-32-characters"


def make_settings(**overrides) -> Settings:
    values = {"debug": True, "secret_key": TEST_SECRET, "bcrypt_rounds": 4}
    values.update(overrides)
    return Settings(**values)


def _patch_lifespan(settings: Settings, gateway: AuthGateway):
    """Return a lifespan that wires the test gateway into app.state.

    No purge task: tests drive SessionRegistry.purge_expired() directly.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.gateway = gateway
        yield

    return test_lifespan


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def gateway(settings: Settings) -> Generator[AuthGateway, None, None]:
    gw = build_gateway(settings)
    yield gw
    gw.close()


@pytest.fixture
def client_factory() -> Generator[Callable[..., TestClient], None, None]:
    """Yield a factory: client_factory(**settings_overrides) -> started TestClient."""
    opened: list[tuple[TestClient, AuthGateway]] = []

    def factory(**overrides) -> TestClient:
        test_settings = make_settings(**overrides)
        gw = build_gateway(test_settings)
        app.router.lifespan_context = _patch_lifespan(test_settings, gw)
        client = TestClient(app, raise_server_exceptions=False)
        client.__enter__()
        opened.append((client, gw))
        return client

    yield factory

    for client, gw in opened:
        client.__exit__(None, None, None)
        gw.close()


@pytest.fixture
def client(client_factory: Callable[..., TestClient]) -> TestClient:
    return client_factory()


@pytest.fixture
def register_payload() -> dict:
    return {
        "fullName": "Somchai",
        "phone": "0812345678",
        "email": "a@b.com",
        "password": "longenough1",
        "userType": "ผู้ซื้อ/เช่า",
    }
