"""
Catalog Backend: Test Configuration (conftest.py)
=================================================

What:  Shared pytest fixtures for the test suite.
How:   Every test gets its own SQLite database file under tmp_path, a fake
       decision service, and an httpx AsyncClient bound to a fresh app.

Fixture Hierarchy:
    make_settings     → Settings factory (no .env, SQLite, tmp frontend dir)
    settings          → development Settings
    database          → Database with the products table created
    decision_service  → FakeDecisionService (allows everything by default)
    app / client      → FastAPI app and HTTPX AsyncClient over ASGITransport
"""

import os
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from catalog.config import Settings
from catalog.database import Database
from catalog.main import create_app
from catalog.services.decision import Decision, DecisionService

os.environ["LOG_LEVEL"] = "WARNING"


class FakeDecisionService(DecisionService):
    """Returns a canned decision (or raises) and records every call."""

    def __init__(self, decision: Optional[Decision] = None, error: Optional[Exception] = None):
        self.decision = decision or Decision()
        self.error = error
        self.calls = []
        self.closed = False

    async def protect(self, request: Request, requested: int = 1) -> Decision:
        self.calls.append((request.method, request.url.path, requested))
        if self.error is not None:
            raise self.error
        return self.decision

    async def aclose(self) -> None:
        self.closed = True


def make_request(
    path: str = "/api/products",
    method: str = "GET",
    user_agent: Optional[str] = "Mozilla/5.0 (X11; Linux x86_64)",
    client_host: str = "203.0.113.7",
) -> Request:
    """Builds a bare Starlette Request for unit-testing services and stages."""
    headers = []
    if user_agent is not None:
        headers.append((b"user-agent", user_agent.encode()))
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "headers": headers,
        "client": (client_host, 52000),
        "server": ("test", 80),
        "scheme": "http",
    }
    return Request(scope)


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        values = {
            "database_url": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
            "environment": "development",
            "frontend_dist": str(tmp_path / "dist"),
            "log_level": "WARNING",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def database(settings):
    db = Database.from_settings(settings)
    await db.init_schema()
    yield db
    await db.dispose()


@pytest.fixture
def decision_service() -> FakeDecisionService:
    return FakeDecisionService()


@pytest.fixture
def app(settings, database, decision_service):
    return create_app(settings=settings, database=database, decision_service=decision_service)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def frontend_build(tmp_path):
    """A minimal frontend build: index.html plus one asset."""
    dist = tmp_path / "dist"
    (dist / "assets").mkdir(parents=True)
    (dist / "index.html").write_text("<!doctype html><div id=\"root\"></div>")
    (dist / "assets" / "app.js").write_text("console.log('catalog');")
    return dist
