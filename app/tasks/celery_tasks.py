"""
manageRTC Payroll - Celery Tasks

Background tasks for company-wide payroll and payslip runs.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from celery import shared_task

from app.database import async_session_factory

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in Celery tasks."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def previous_pay_period(today: date) -> Tuple[int, int]:
    """(month, year) of the month before `today`."""
    if today.month == 1:
        return 12, today.year - 1
    return today.month - 1, today.year


# ===========================================
# PAYROLL TASKS
# ===========================================

@shared_task(name='app.tasks.celery_tasks.generate_company_payroll_task')
def generate_company_payroll_task(
    company_id: str,
    month: int,
    year: int,
    generated_by: Optional[str] = None,
) -> Dict[str, Any]:
    """Generate payroll records for one company and period."""
    return run_async(_generate_company_payroll(company_id, month, year, generated_by))


async def _generate_company_payroll(
    company_id: str,
    month: int,
    year: int,
    generated_by: Optional[str] = None,
) -> Dict[str, Any]:
    from app.services.payroll import SalaryCalculator

    async with async_session_factory() as db:
        batch = await SalaryCalculator(db).generate_for_company(
            company_id, month, year, generated_by=generated_by,
        )
        return batch.to_dict()


@shared_task(name='app.tasks.celery_tasks.generate_company_payslips_task')
def generate_company_payslips_task(company_id: str, month: int, year: int) -> Dict[str, Any]:
    """Render payslips for one company and period."""
    return run_async(_generate_company_payslips(company_id, month, year))


async def _generate_company_payslips(company_id: str, month: int, year: int) -> Dict[str, Any]:
    from app.services.payroll import PayslipRenderer

    async with async_session_factory() as db:
        results = await PayslipRenderer(db).generate_company_payslips(company_id, month, year)
        successful = sum(1 for item in results if item.success)
        return {
            "company_id": company_id,
            "month": month,
            "year": year,
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "results": [item.to_dict() for item in results],
        }


@shared_task(name='app.tasks.celery_tasks.generate_previous_month_payroll_task')
def generate_previous_month_payroll_task() -> Dict[str, Any]:
    """Generate last month's payroll for every company with payable employees."""
    return run_async(_generate_previous_month_payroll(date.today()))


async def _generate_previous_month_payroll(today: date) -> Dict[str, Any]:
    from app.services.payroll import SalaryCalculator

    month, year = previous_pay_period(today)
    companies: List[Dict[str, Any]] = []

    async with async_session_factory() as db:
        calculator = SalaryCalculator(db)
        company_ids = await calculator.employees.list_companies_with_payable()

        for company_id in company_ids:
            try:
                batch = await calculator.generate_for_company(
                    company_id, month, year, generated_by="system",
                )
            except Exception as e:
                logger.error(f"Monthly payroll run failed for {company_id} {month}/{year}: {e}")
                await db.rollback()
                companies.append({"company_id": company_id, "success": False, "error": str(e)})
                continue
            companies.append({
                "company_id": company_id,
                "success": True,
                "successful": batch.successful,
                "failed": batch.failed,
            })

    failed = sum(1 for c in companies if not c["success"])
    logger.info(
        f"Monthly payroll run for {month}/{year}: {len(companies)} companies, {failed} failed"
    )
    return {"month": month, "year": year, "companies": companies}
