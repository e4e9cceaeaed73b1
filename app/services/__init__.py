"""
manageRTC Payroll - Services Package

Business logic services.
"""

from app.services.payroll import PayslipRenderer, SalaryCalculator

__all__ = [
    "SalaryCalculator",
    "PayslipRenderer",
]
