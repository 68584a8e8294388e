"""
Shared test fixtures for the YaManager test suite (aiosqlite + AsyncSession).
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SERVER_TIMEZONE"] = "UTC"
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"
os.environ["OIDC_SIGNING_KEY"] = "test-signing-key"
os.environ["OIDC_ALGORITHMS"] = '["HS256"]'
os.environ["ADMIN_BOOTSTRAP_EMAIL"] = "boss@yamanager.test"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from yamanager.api.deps import get_clock, get_db
from yamanager.core.security import create_id_token
from yamanager.db.base import Base
from yamanager.main import app
from yamanager.models.enums import Role, Status
from yamanager.models.user import User, UserPolicy
from yamanager.services.guard import Principal
from yamanager.services.policy import seed_defaults

# Wednesday 2024-03-13 10:00 UTC
FIXED_NOW = datetime(2024, 3, 13, 10, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables and seed role defaults before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with TestingSessionLocal() as session:
        await seed_defaults(session)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # each test runs on its own event loop; the pooled connection must not outlive it
    await test_engine.dispose()


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db
app.dependency_overrides[get_clock] = lambda: fixed_clock


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Identity helpers ────────────────────────────────────────────────
def auth_headers(user: User) -> dict[str, str]:
    token = create_id_token(user.external_subject, email=user.email, name=user.name)
    return {"Authorization": f"Bearer {token}"}


def token_headers(subject: str, email: str | None, name: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_id_token(subject, email=email, name=name)}"}


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Insert an ACCEPTED user with a finalized policy and commit it."""
    counter = {"n": 0}

    async def _make(
        role: Role = Role.EMPLOYEE,
        status: Status = Status.ACCEPTED,
        supervisor: User | None = None,
        vacation_days: float = 20.0,
        overtime_budget: float = 40.0,
        lead_time: timedelta = timedelta(days=1),
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            external_subject=f"subject-{n}",
            name=f"User {n}",
            email=f"user{n}@yamanager.test",
            role=role.value,
            status=status.value,
            supervisor_id=supervisor.id if supervisor else None,
        )
        db_session.add(user)
        await db_session.flush()
        db_session.add(
            UserPolicy(
                user_id=user.id,
                vacation_days_total=vacation_days,
                overtime_hours_taken_budget=overtime_budget,
                notification_lead_time=lead_time,
                finalized=True,
            )
        )
        await db_session.commit()
        return user

    return _make


@pytest.fixture
async def team(make_user):
    """An admin, a manager and an employee supervised by the manager."""
    admin = await make_user(role=Role.ADMIN)
    manager = await make_user(role=Role.MANAGER)
    employee = await make_user(supervisor=manager)
    return {"admin": admin, "manager": manager, "employee": employee}


def principal(user: User) -> Principal:
    return Principal.of(user)
