"""
manageRTC Payroll - Test Configuration

Pytest fixtures and configuration.
"""

import os

# Point the application at SQLite before any app module builds its engine
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_async_session
from app.dependencies import get_payslip_renderer
from app.models.attendance import AttendanceEntry, AttendanceStatus
from app.models.employee import Employee, EmploymentStatus
from app.services.payroll import PayslipRenderer
from app.services.payroll.storage import LocalArtifactStorage
from main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

COMPANY_ID = "company-001"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def payslip_storage(tmp_path) -> LocalArtifactStorage:
    return LocalArtifactStorage(base_path=str(tmp_path / "payslips"), url_prefix="/payslips")


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, payslip_storage) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    async def override_get_renderer():
        return PayslipRenderer(db_session, storage=payslip_storage)

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_payslip_renderer] = override_get_renderer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

def build_employee(**overrides) -> Employee:
    """Unsaved employee with the standard 5000/2000/1000 profile."""
    data = dict(
        id=uuid4(),
        company_id=COMPANY_ID,
        employee_code="EMP-0001",
        first_name="Asha",
        last_name="Verma",
        email="asha.verma@example.com",
        department="Engineering",
        designation="Software Engineer",
        employment_type="Full-time",
        employment_status=EmploymentStatus.ACTIVE,
        is_deleted=False,
        joining_date=date(2024, 1, 15),
        basic_salary=Decimal("5000.00"),
        hra=Decimal("2000.00"),
        allowances=Decimal("1000.00"),
        bank_name="HDFC Bank",
    )
    data.update(overrides)
    return Employee(**data)


@pytest_asyncio.fixture
async def make_employee(db_session: AsyncSession):
    """Factory that saves an employee and returns it."""

    async def _make(**overrides) -> Employee:
        employee = build_employee(**overrides)
        db_session.add(employee)
        await db_session.commit()
        await db_session.refresh(employee)
        return employee

    return _make


@pytest_asyncio.fixture
async def test_employee(make_employee) -> Employee:
    return await make_employee()


@pytest_asyncio.fixture
async def add_attendance(db_session: AsyncSession):
    """Factory that saves attendance entries for an employee."""

    async def _add(employee: Employee, entries) -> None:
        for day, status, overtime, is_late in entries:
            db_session.add(AttendanceEntry(
                id=uuid4(),
                company_id=employee.company_id,
                employee_id=employee.id,
                date=day,
                status=status,
                work_hours=Decimal("8") if status == AttendanceStatus.PRESENT else Decimal("0"),
                overtime_hours=Decimal(str(overtime)),
                is_late=is_late,
            ))
        await db_session.commit()

    return _add
