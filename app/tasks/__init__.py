"""
manageRTC Payroll - Background Tasks Package

Celery background tasks.
"""

from app.tasks.celery_tasks import (
    generate_company_payroll_task,
    generate_company_payslips_task,
    generate_previous_month_payroll_task,
    previous_pay_period,
)

__all__ = [
    "generate_company_payroll_task",
    "generate_company_payslips_task",
    "generate_previous_month_payroll_task",
    "previous_pay_period",
]
