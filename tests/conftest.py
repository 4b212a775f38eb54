"""Shared test fixtures: async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
Every fanned-out view opens its own session on the single StaticPool
connection, so seed data is committed (not just flushed) and the fan-out
runs one view at a time.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("AGGREGATION_MAX_CONCURRENCY", "1")
os.environ.setdefault("LOG_JSON", "false")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional
from zoneinfo import ZoneInfo

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrscope.auth.dependencies import get_now
from hrscope.common.constants import UserRole
from hrscope.config import settings
from hrscope.database import Base, get_db, get_session_factory
from hrscope.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hrscope.core_hr.models  # noqa: F401
import hrscope.attendance.models  # noqa: F401
import hrscope.leave.models  # noqa: F401
import hrscope.assets.models  # noqa: F401
import hrscope.payroll.models  # noqa: F401
import hrscope.notices.models  # noqa: F401

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Fixed clock ─────────────────────────────────────────────────────

IST = ZoneInfo("Asia/Kolkata")

# Friday afternoon, mid-month
NOW = datetime(2026, 2, 20, 15, 30, tzinfo=IST)
TODAY = NOW.date()


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hrscope.common.rate_limit import limiter

    limiter._storage.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def _override_get_session_factory() -> async_sessionmaker:
    return TestSessionFactory


def _override_get_now() -> datetime:
    return NOW


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB, session factory and clock overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_session_factory] = _override_get_session_factory
    application.dependency_overrides[get_now] = _override_get_now
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_department(*, name: str = "Engineering", code: str = "ENG") -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        code=code,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    first_name: str = "Test",
    last_name: str = "User",
    role: UserRole = UserRole.employee,
    added_by_id: Optional[uuid.UUID] = None,
    manager_id: Optional[uuid.UUID] = None,
    department_id: Optional[uuid.UUID] = None,
    date_of_joining: date = date(2024, 1, 15),
    salary: Decimal = Decimal("50000"),
    is_active: bool = True,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"HR-{code}",
        first_name=first_name,
        last_name=last_name,
        email=f"{first_name.lower()}.{code.lower()}@example.com",
        role=role,
        added_by_id=added_by_id,
        manager_id=manager_id,
        department_id=department_id,
        date_of_joining=date_of_joining,
        salary=salary,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
    )


async def create_employee(db: AsyncSession, **kwargs) -> dict:
    """Insert an employee and commit; returns its data dict."""
    from hrscope.core_hr.models import Employee

    data = _make_employee(**kwargs)
    db.add(Employee(**data))
    await db.commit()
    return data


async def create_attendance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    status,
    *,
    day: date = TODAY,
    hours: float = 8.0,
    overtime: float = 0.0,
) -> None:
    from hrscope.attendance.models import AttendanceRecord

    db.add(AttendanceRecord(
        id=uuid.uuid4(),
        employee_id=employee_id,
        date=day,
        status=status,
        total_work_hours=hours,
        overtime_hours=overtime,
    ))
    await db.commit()


async def create_leave(
    db: AsyncSession,
    employee_id: uuid.UUID,
    status,
    *,
    leave_type=None,
    start: date = TODAY,
    days: int = 1,
    created_at: datetime = NOW - timedelta(days=1),
) -> None:
    from hrscope.common.constants import LeaveType
    from hrscope.leave.models import LeaveRequest

    db.add(LeaveRequest(
        id=uuid.uuid4(),
        employee_id=employee_id,
        leave_type=leave_type or LeaveType.casual,
        start_date=start,
        end_date=start + timedelta(days=days - 1),
        status=status,
        reason="Personal",
        created_at=created_at,
    ))
    await db.commit()


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole | str = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "role": role.value if isinstance(role, UserRole) else role,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(employee_id: uuid.UUID, role: UserRole | str = UserRole.employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}


# ── Scenario fixtures ───────────────────────────────────────────────

@pytest.fixture
async def org(db) -> dict[str, dict]:
    """A small organisation.

    admin onboarded hr; hr onboarded leader, a, b and c; leader manages a
    and b; c is inactive; outsider was onboarded by admin directly.
    """
    from hrscope.core_hr.models import Department

    dept = _make_department()
    db.add(Department(**dept))
    await db.commit()

    admin = await create_employee(db, first_name="Asha", role=UserRole.admin, department_id=dept["id"])
    hr = await create_employee(
        db, first_name="Hari", role=UserRole.hr_manager, added_by_id=admin["id"], department_id=dept["id"],
    )
    leader = await create_employee(
        db, first_name="Tara", role=UserRole.team_leader, added_by_id=hr["id"], department_id=dept["id"],
    )
    a = await create_employee(
        db, first_name="Anil", added_by_id=hr["id"], manager_id=leader["id"], department_id=dept["id"],
    )
    b = await create_employee(
        db, first_name="Bina", added_by_id=hr["id"], manager_id=leader["id"], department_id=dept["id"],
    )
    c = await create_employee(db, first_name="Chetan", added_by_id=hr["id"], is_active=False)
    outsider = await create_employee(db, first_name="Omar", added_by_id=admin["id"])
    return {
        "department": dept,
        "admin": admin,
        "hr": hr,
        "leader": leader,
        "a": a,
        "b": b,
        "c": c,
        "outsider": outsider,
    }
