"""
manageRTC Payroll - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin
from app.models.employee import Employee, EmploymentStatus, PAYABLE_EMPLOYMENT_STATUSES
from app.models.attendance import AttendanceEntry, AttendanceStatus
from app.models.payroll import (
    PayrollRecord,
    PayrollStatus,
    PaymentMethod,
    STATUS_TRANSITIONS,
    EARNING_FIELDS,
    DEDUCTION_FIELDS,
    ATTENDANCE_FIELDS,
)

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    # Collaborator entities
    "Employee",
    "EmploymentStatus",
    "PAYABLE_EMPLOYMENT_STATUSES",
    "AttendanceEntry",
    "AttendanceStatus",
    # Payroll
    "PayrollRecord",
    "PayrollStatus",
    "PaymentMethod",
    "STATUS_TRANSITIONS",
    "EARNING_FIELDS",
    "DEDUCTION_FIELDS",
    "ATTENDANCE_FIELDS",
]
