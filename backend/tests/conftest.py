"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

from pathlib import Path

import sys

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
WORKSPACE_ROOT = ROOT.parent
for path in (ROOT, WORKSPACE_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from app.dependencies import (  # noqa: E402
    get_oauth_providers,
    get_profile_repository,
    get_tmdb_client,
)
from app.main import create_app  # noqa: E402
from app.repositories import MongoProfileRepository  # noqa: E402
from backend.tests.utils import StubDatabase, StubOAuthProvider, StubTmdbClient  # noqa: E402


@pytest.fixture()
def anyio_backend() -> str:
    """Force AnyIO tests to run against asyncio to avoid optional dependencies."""
    return "asyncio"


@pytest.fixture()
def stub_db() -> StubDatabase:
    return StubDatabase()


@pytest.fixture()
def api_client(stub_db: StubDatabase) -> TestClient:
    """Provide a FastAPI TestClient with dependency overrides reset after use.

    The profile store is a Mongo repository over an in-memory database; the
    TMDB client and OAuth providers are stubs that tests may replace through
    ``app.state``.
    """
    app = create_app()
    repository = MongoProfileRepository(stub_db)
    app.state.stub_db = stub_db
    app.state.repository = repository
    app.state.tmdb_stub = StubTmdbClient()
    app.state.providers_stub = {
        "tiktok": StubOAuthProvider("tiktok"),
        "letterboxd": StubOAuthProvider("letterboxd", open_id="auth0|lb-user"),
    }
    app.dependency_overrides[get_profile_repository] = lambda: repository
    app.dependency_overrides[get_tmdb_client] = lambda: app.state.tmdb_stub
    app.dependency_overrides[get_oauth_providers] = lambda: app.state.providers_stub
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.clear()
