"""
Shared test fixtures for the Timekeeper test suite.

Every test gets its own in-memory SQLite database (aiosqlite + StaticPool),
a frozen clock, and dependency overrides wiring the app to both.
"""

import os
from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["TIMEZONE_OFFSET"] = "+00:00"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production-use-0123456789abcdef"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from timekeeper.api.v1.deps import (
    actor_for,
    get_audit_sink,
    get_clock,
    get_current_active_user,
    get_db,
    get_flag_policy,
)
from timekeeper.db.registry import configure_models
from timekeeper.main import app
from timekeeper.models.user import User
from timekeeper.services.attendance import AttendanceService
from timekeeper.services.audit import SqlAuditSink
from timekeeper.services.backfill import AdminBackfill
from timekeeper.services.clock import FixedClock
from timekeeper.services.flags import FlagPolicy
from timekeeper.services.stores import SqlLeaveApprovalLookup, SqlRecordStore, SqlUserDirectory

Base = configure_models()

START = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
POLICY = FlagPolicy(full_day_seconds=8 * 3600, half_day_seconds=4 * 3600)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def accounts(session_factory) -> dict[str, User]:
    """An admin and two employees, persisted."""
    users = {
        "admin": User(id=1, email="admin@example.com", hashed_password="x", full_name="Ada Admin", role="admin"),
        "alice": User(id=2, email="alice@example.com", hashed_password="x", full_name="Alice", role="employee"),
        "bob": User(id=3, email="bob@example.com", hashed_password="x", full_name="Bob", role="employee"),
    }
    async with session_factory() as session:
        session.add_all(users.values())
        await session.commit()
    return users


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START, tz=timezone.utc)


@pytest.fixture
def audit_sink(session_factory) -> SqlAuditSink:
    return SqlAuditSink(session_factory)


@pytest.fixture
def service(db_session, audit_sink, clock) -> AttendanceService:
    return AttendanceService(
        SqlRecordStore(db_session),
        SqlLeaveApprovalLookup(db_session),
        audit_sink,
        clock,
        POLICY,
    )


@pytest.fixture
def backfill(db_session, audit_sink, clock) -> AdminBackfill:
    return AdminBackfill(
        SqlRecordStore(db_session),
        SqlLeaveApprovalLookup(db_session),
        audit_sink,
        clock,
        SqlUserDirectory(db_session),
        POLICY,
    )


@pytest.fixture
def actors(accounts):
    return {name: actor_for(user) for name, user in accounts.items()}


class _Auth:
    """Holder for the user the overridden auth dependency returns."""

    user: User | None = None


@pytest.fixture
def auth(accounts) -> _Auth:
    holder = _Auth()
    holder.user = accounts["alice"]
    return holder


@pytest.fixture
async def async_client(session_factory, clock, auth) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def _override_current_user() -> User:
        return auth.user

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_audit_sink] = lambda: SqlAuditSink(session_factory)
    app.dependency_overrides[get_flag_policy] = lambda: POLICY
    app.dependency_overrides[get_current_active_user] = _override_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
