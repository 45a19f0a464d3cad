# This project was developed with assistance from AI tools.
"""Shared fixtures for API tests.

The real app from ``buddy.main`` is a module singleton. ``_clean_overrides``
clears dependency_overrides after every test so the user and session set
up by one test never leak into the next.
"""

from unittest.mock import AsyncMock

import pytest
from buddy_db import get_db
from fastapi.testclient import TestClient

from buddy.main import app as real_app
from buddy.middleware.auth import get_current_user
from buddy.schemas.auth import UserContext
from tests.factories import make_mock_session, make_user


@pytest.fixture(autouse=True)
def _clean_overrides():
    """Clear app dependency overrides after each test."""
    yield
    real_app.dependency_overrides.clear()


@pytest.fixture
def app():
    """Return the real FastAPI app with all routers mounted."""
    return real_app


@pytest.fixture
def make_client(app):
    """Factory fixture: override user + DB session, return a TestClient."""

    def _make(user: UserContext | None = None, session: AsyncMock | None = None) -> TestClient:
        user = user or make_user()
        session = session or make_mock_session()

        async def fake_user():
            return user

        async def fake_db():
            yield session

        app.dependency_overrides[get_current_user] = fake_user
        app.dependency_overrides[get_db] = fake_db
        return TestClient(app, raise_server_exceptions=False)

    return _make


@pytest.fixture
def client(make_client):
    """Admin client with an empty mock session."""
    return make_client()
