"""
manageRTC Payroll - Tests for Background Tasks
"""

from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.celery_app import celery_app
from app.services.payroll import SalaryCalculator
from app.tasks import celery_tasks
from app.tasks.celery_tasks import previous_pay_period
from app.utils.error_handling import DatabaseException


COMPANY_ID = "company-001"


@pytest.fixture
def task_sessions(db_engine, monkeypatch):
    """Point the tasks' session factory at the test database."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(celery_tasks, "async_session_factory", factory)
    return factory


class TestPreviousPayPeriod:

    def test_mid_year(self):
        assert previous_pay_period(date(2025, 4, 1)) == (3, 2025)

    def test_january_rolls_back_a_year(self):
        assert previous_pay_period(date(2026, 1, 1)) == (12, 2025)


class TestSchedule:

    def test_monthly_run_is_scheduled(self):
        entry = celery_app.conf.beat_schedule["generate-monthly-payroll"]
        assert entry["task"] == "app.tasks.celery_tasks.generate_previous_month_payroll_task"

    def test_tasks_are_registered(self):
        assert celery_tasks.generate_company_payroll_task.name == (
            "app.tasks.celery_tasks.generate_company_payroll_task"
        )
        assert celery_tasks.generate_company_payslips_task.name == (
            "app.tasks.celery_tasks.generate_company_payslips_task"
        )


class TestTaskBodies:

    @pytest.mark.asyncio
    async def test_company_payroll(self, task_sessions, test_employee):
        result = await celery_tasks._generate_company_payroll(COMPANY_ID, 3, 2025, "scheduler")

        assert result["successful"] == 1
        assert result["results"][0]["payroll_id"] == "PAY-EMP-0001-3-2025"

    @pytest.mark.asyncio
    async def test_previous_month_run_covers_every_company(self, task_sessions, make_employee):
        await make_employee()
        await make_employee(employee_code="EMP-0100", company_id="company-002")

        result = await celery_tasks._generate_previous_month_payroll(date(2025, 4, 10))

        assert (result["month"], result["year"]) == (3, 2025)
        assert [c["company_id"] for c in result["companies"]] == ["company-001", "company-002"]
        assert all(c["successful"] == 1 for c in result["companies"])

        async with task_sessions() as db:
            record = await SalaryCalculator(db).get_record("company-002", "PAY-EMP-0100-3-2025")
            assert record.generated_by == "system"

    @pytest.mark.asyncio
    async def test_one_company_failing_does_not_stop_the_run(self, task_sessions, make_employee, monkeypatch):
        await make_employee()
        await make_employee(employee_code="EMP-0100", company_id="company-002")

        original = SalaryCalculator.generate_for_company

        async def generate(self, company_id, month, year, generated_by=None):
            if company_id == "company-001":
                raise DatabaseException("tenant listing failed")
            return await original(self, company_id, month, year, generated_by=generated_by)

        monkeypatch.setattr(SalaryCalculator, "generate_for_company", generate)

        result = await celery_tasks._generate_previous_month_payroll(date(2025, 4, 10))

        first, second = result["companies"]
        assert first["company_id"] == "company-001"
        assert first["success"] is False
        assert "tenant listing failed" in first["error"]
        assert second["company_id"] == "company-002"
        assert second["success"] is True
        assert second["successful"] == 1
