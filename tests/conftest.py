"""Shared test fixtures: in-memory database, app with services, async client."""

import os
from datetime import datetime, timezone

# Force test config BEFORE any app imports
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ESCALATION_RULES_PATH"] = "/nonexistent/escalation_rules.yaml"
os.environ["SESSION_SLA_POLL_INTERVAL"] = "0"
os.environ.pop("EMAIL_FUNCTION_URL", None)
os.environ.pop("SLACK_WEBHOOK_URL", None)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from itsm_portal.infrastructure import database as db_mod


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test (shared via StaticPool)."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db_mod.bind_engine(test_engine)
    await db_mod.create_tables()

    yield test_engine

    await db_mod.close_database()


@pytest_asyncio.fixture
async def db_session(engine):
    async with db_mod.get_session_context() as session:
        yield session


@pytest_asyncio.fixture
async def app(engine):
    """The FastAPI app with services built (ASGITransport skips the lifespan)."""
    from itsm_portal.main import app as fastapi_app, init_services

    init_services(fastapi_app)
    yield fastapi_app
    fastapi_app.state.change_feed.close_all()


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
