"""
manageRTC Payroll - Employee Model

Employee records are owned by the HR module; payroll reads them to obtain
the compensation profile (basic, HRA, pooled allowances) and joining date.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, Date, Numeric, String, Enum as SQLEnum, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TenantMixin


class EmploymentStatus(str, Enum):
    """Employment status."""
    ACTIVE = "Active"
    PROBATION = "Probation"
    INACTIVE = "Inactive"
    TERMINATED = "Terminated"
    RESIGNED = "Resigned"


# Employees that payroll generation runs for
PAYABLE_EMPLOYMENT_STATUSES = (EmploymentStatus.ACTIVE, EmploymentStatus.PROBATION)


class Employee(BaseModel, TenantMixin):
    """Employee with compensation profile."""

    __tablename__ = "employees"


    employee_code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Company-facing employee ID (EMP-0001)",
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    designation: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    employment_type: Mapped[str] = mapped_column(
        String(30), default="Full-time", nullable=False,
    )
    employment_status: Mapped[EmploymentStatus] = mapped_column(
        SQLEnum(EmploymentStatus),
        default=EmploymentStatus.ACTIVE,
        nullable=False,
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    joining_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Compensation profile (monthly). A missing basic salary marks an
    # incomplete profile that payroll refuses to process.
    basic_salary: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2), nullable=True,
    )
    hra: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    allowances: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
        comment="Pooled allowances, split into conveyance/medical/other",
    )

    bank_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint("company_id", "employee_code", name="uq_employee_company_code"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Employee(id={self.id}, code={self.employee_code})>"
