"""
manageRTC Payroll - Payroll Engine Package

Modules:
- rate_tables: versioned statutory constants (PF, ESI, PT, income tax)
- attendance: attendance aggregation for a pay period
- earnings: earnings breakdown with proration
- deductions: statutory and discretionary deductions
- sources: employee/attendance sources and the payroll record store
- storage: payslip file storage
- salary_calculator: computation, batch generation and workflow
- payslip_renderer: PDF payslips
"""

from app.services.payroll.attendance import AttendanceAggregator, AttendanceSummary
from app.services.payroll.deductions import Deductions, DeductionsCalculator, IncomeTaxCalculator
from app.services.payroll.earnings import Earnings, EarningsCalculator
from app.services.payroll.payslip_renderer import PayslipArtifact, PayslipRenderer
from app.services.payroll.rate_tables import RateTableRegistry, StatutoryRateTable, get_rate_registry
from app.services.payroll.salary_calculator import (
    BatchItemResult,
    BatchResult,
    SalaryCalculator,
    SalaryComputation,
)

__all__ = [
    "AttendanceAggregator",
    "AttendanceSummary",
    "Earnings",
    "EarningsCalculator",
    "Deductions",
    "DeductionsCalculator",
    "IncomeTaxCalculator",
    "RateTableRegistry",
    "StatutoryRateTable",
    "get_rate_registry",
    "SalaryCalculator",
    "SalaryComputation",
    "BatchItemResult",
    "BatchResult",
    "PayslipRenderer",
    "PayslipArtifact",
]
