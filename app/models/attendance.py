"""
manageRTC Payroll - Attendance Model

Daily attendance entries recorded by the attendance module.
"""

import uuid
from datetime import date as date_type
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Date, Numeric, Uuid, Enum as SQLEnum, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TenantMixin


class AttendanceStatus(str, Enum):
    """Daily attendance status."""
    PRESENT = "Present"
    ABSENT = "Absent"
    HALF_DAY = "Half Day"
    ON_LEAVE = "On Leave"


class AttendanceEntry(BaseModel, TenantMixin):
    """One employee's attendance for one calendar day."""

    __tablename__ = "attendance_entries"

    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)

    status: Mapped[AttendanceStatus] = mapped_column(
        SQLEnum(AttendanceStatus),
        nullable=False,
    )

    work_hours: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2), default=Decimal("0.00"), nullable=False,
    )
    overtime_hours: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2), default=Decimal("0.00"), nullable=False,
    )
    is_late: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_attendance_employee_date", "employee_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<AttendanceEntry(employee={self.employee_id}, date={self.date}, status={self.status})>"
