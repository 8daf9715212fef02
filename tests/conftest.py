"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (leave, quotas, reminders, attachments, ...).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("REMINDER_SWEEP_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "info")

import uuid
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leavedesk.attachments.storage import ObjectStorage
from leavedesk.auth.service import create_access_token
from leavedesk.common.constants import LeaveCategory, LeaveStatus, UserRole
from leavedesk.common.rate_limit import limiter
from leavedesk.common.retry import RetryPolicy
from leavedesk.config import settings
from leavedesk.database import Base, get_db
from leavedesk.employees.models import Employee
from leavedesk.leave.models import LeaveRequest
from leavedesk.leave.workflow import ApprovalPolicy
from leavedesk.main import create_app
from leavedesk.notifications.email import EmailDispatcher
from leavedesk.reminders.service import ReminderScheduler

# Import ALL model modules so every table is on Base.metadata
import leavedesk.attachments.models  # noqa: F401
import leavedesk.holidays.models  # noqa: F401
import leavedesk.notifications.models  # noqa: F401
import leavedesk.quotas.models  # noqa: F401
import leavedesk.reminders.models  # noqa: F401

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and gen_random_uuid() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "gen_random_uuid", 0, lambda: str(uuid.uuid4()),
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
    limiter.reset()
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


# ── Collaborators ───────────────────────────────────────────────────

FAST_RETRY = RetryPolicy(max_attempts=2, delay_seconds=0, timeout_seconds=5)


@pytest.fixture
def mailer() -> EmailDispatcher:
    """Outbox dispatcher: nothing leaves the process."""
    return EmailDispatcher("", retry=FAST_RETRY)


@pytest.fixture
def storage(tmp_path) -> ObjectStorage:
    return ObjectStorage(tmp_path / "uploads", secret=settings.JWT_SECRET, retry=FAST_RETRY)


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory bound to the shared in-memory engine, for code that opens its own sessions."""
    return TestSessionFactory


@pytest.fixture
def scheduler(session_factory, mailer) -> ReminderScheduler:
    return ReminderScheduler(
        session_factory, mailer, threshold_days=5, business_days=False,
    )


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(storage, mailer, scheduler):
    """Create a fresh app instance with DB and collaborators overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.state.storage = storage
    application.state.email = mailer
    application.state.approval_policy = ApprovalPolicy()
    application.state.reminders = scheduler
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

def _make_employee(
    *,
    full_name: str = "Awa Diallo",
    email: Optional[str] = None,
    role: UserRole = UserRole.employee,
    department: Optional[str] = "Finance",
    is_active: bool = True,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_code=f"LD-{uuid.uuid4().hex[:6].upper()}",
        full_name=full_name,
        email=email or f"{uuid.uuid4().hex[:8]}@leavedesk.test",
        department=department,
        role=role,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def _seed_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


async def _seed_request(
    db: AsyncSession,
    employee: Employee,
    *,
    status: LeaveStatus = LeaveStatus.pending,
    leave_type: LeaveCategory = LeaveCategory.annual,
    start_date: date = date(2024, 1, 1),
    end_date: date = date(2024, 1, 5),
    total_days: int = 5,
    stage_entered_at: Optional[datetime] = None,
    reminder_count: int = 0,
    last_reminder_at: Optional[datetime] = None,
) -> LeaveRequest:
    """Insert a request directly, bypassing submission rules."""
    now = datetime.now(timezone.utc)
    req = LeaveRequest(
        id=uuid.uuid4(),
        employee_id=employee.id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        total_days=total_days,
        status=status,
        stage_entered_at=stage_entered_at or now,
        reminder_count=reminder_count,
        last_reminder_at=last_reminder_at,
        created_at=now,
        updated_at=now,
    )
    db.add(req)
    await db.flush()
    return req


@pytest.fixture
async def people(db) -> SimpleNamespace:
    """One requester plus one holder of every validator role, committed."""
    team = SimpleNamespace(
        employee=await _seed_employee(db, full_name="Awa Diallo", department="Finance"),
        colleague=await _seed_employee(db, full_name="Moussa Kane", department="Finance"),
        direction=await _seed_employee(
            db, full_name="Fatou Ndiaye", role=UserRole.direction, department="Finance",
        ),
        dgpec=await _seed_employee(
            db, full_name="Ibrahima Sow", role=UserRole.dgpec, department="RH",
        ),
        dg=await _seed_employee(
            db, full_name="Aminata Ba", role=UserRole.dg, department="Direction Générale",
        ),
        admin=await _seed_employee(
            db, full_name="Ousmane Fall", role=UserRole.admin, department="IT",
        ),
    )
    await db.commit()
    return team


# ── Auth helpers ────────────────────────────────────────────────────

def auth_headers(employee: Employee) -> dict[str, str]:
    """Bearer headers for *employee*."""
    return {"Authorization": f"Bearer {create_access_token(employee.id, employee.role)}"}


def expired_headers(employee: Employee) -> dict[str, str]:
    token = create_access_token(employee.id, employee.role, expires_in=timedelta(hours=-1))
    return {"Authorization": f"Bearer {token}"}
