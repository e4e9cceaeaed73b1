"""
manageRTC Payroll - Payroll Models

One payroll record per (company, employee, month, year). Earnings and
deductions are kept as JSON line-item objects next to their stored totals,
which are always recomputed from the line items on write.

Workflow:
    Draft -> Generated -> Approved -> Paid
    Generated / Approved -> Rejected
    Draft / Generated / Approved / Rejected -> Cancelled
"""

import calendar
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, Integer, Numeric, String, Text, Uuid,
    Enum as SQLEnum, JSON, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TenantMixin


# ===========================================
# ENUMS
# ===========================================

class PayrollStatus(str, Enum):
    """Payroll record status."""
    DRAFT = "Draft"
    GENERATED = "Generated"
    APPROVED = "Approved"
    PAID = "Paid"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class PaymentMethod(str, Enum):
    """How the net salary was paid out."""
    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"
    CHEQUE = "Cheque"
    UPI = "UPI"
    WIRE_TRANSFER = "Wire Transfer"


# Allowed workflow moves; Paid and Cancelled are terminal
STATUS_TRANSITIONS = {
    PayrollStatus.DRAFT: {PayrollStatus.GENERATED, PayrollStatus.CANCELLED},
    PayrollStatus.GENERATED: {
        PayrollStatus.APPROVED, PayrollStatus.REJECTED, PayrollStatus.CANCELLED,
    },
    PayrollStatus.APPROVED: {
        PayrollStatus.PAID, PayrollStatus.REJECTED, PayrollStatus.CANCELLED,
    },
    PayrollStatus.REJECTED: {PayrollStatus.GENERATED, PayrollStatus.CANCELLED},
    PayrollStatus.PAID: set(),
    PayrollStatus.CANCELLED: set(),
}

# Statuses a regeneration moves back to Generated
REGENERATABLE_STATUSES = (
    PayrollStatus.DRAFT, PayrollStatus.GENERATED, PayrollStatus.REJECTED,
)

# Statuses whose figures a regeneration leaves untouched
FROZEN_STATUSES = (PayrollStatus.PAID, PayrollStatus.CANCELLED)

EARNING_FIELDS = (
    "basic_salary",
    "hra",
    "dearness_allowance",
    "conveyance_allowance",
    "medical_allowance",
    "special_allowance",
    "other_allowances",
    "overtime",
    "bonus",
    "incentive",
    "arrears",
    "commission",
)

DEDUCTION_FIELDS = (
    "professional_tax",
    "tds",
    "provident_fund",
    "esi",
    "loan_deduction",
    "advance_deduction",
    "late_deduction",
    "other_deductions",
)

ATTENDANCE_FIELDS = (
    "present_days",
    "absent_days",
    "paid_leave_days",
    "unpaid_leave_days",
    "holidays",
    "overtime_hours",
    "late_days",
    "total_work_hours",
)


def format_payroll_id(employee_code: str, month: int, year: int) -> str:
    """Human-readable payroll identifier, e.g. PAY-EMP-0001-1-2026."""
    return f"PAY-{employee_code}-{month}-{year}"


def amounts_to_json(amounts: Dict[str, Any], fields) -> Dict[str, float]:
    """Serialize a line-item mapping for a JSON column, zero-filling missing lines."""
    return {name: float(amounts.get(name) or 0) for name in fields}


def sum_amounts(amounts: Dict[str, Any]) -> Decimal:
    return sum((Decimal(str(v or 0)) for v in amounts.values()), Decimal("0"))


def compute_totals(earnings: Dict[str, Any], deductions: Dict[str, Any]) -> Dict[str, Decimal]:
    """Gross, total deductions and net (floored at zero) from line items."""
    gross = sum_amounts(earnings)
    total_deductions = sum_amounts(deductions)
    net = max(Decimal("0"), gross - total_deductions)
    return {
        "gross_salary": gross,
        "total_deductions": total_deductions,
        "net_salary": net,
    }


# ===========================================
# PAYROLL RECORD
# ===========================================

class PayrollRecord(BaseModel, TenantMixin):
    """
    Monthly payroll record for one employee.

    Regeneration refreshes the figures and generation audit fields only;
    approval, payment, rejection and payslip fields belong to the workflow.
    """

    __tablename__ = "payroll_records"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True,
    )
    payroll_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="PAY-<employee code>-<month>-<year>",
    )

    # Pay period
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    pay_period: Mapped[str] = mapped_column(String(20), default="monthly", nullable=False)

    # Line items
    earnings: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    deductions: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    # {"earnings": {...}, "deductions": {...}} as supplied, before proration
    adjustments: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Totals
    gross_salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    net_salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )

    # Attendance snapshot
    attendance_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    working_days: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2), default=Decimal("0.00"), nullable=False,
    )

    status: Mapped[PayrollStatus] = mapped_column(
        SQLEnum(PayrollStatus),
        default=PayrollStatus.DRAFT,
        nullable=False,
    )

    # Payment
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod),
        default=PaymentMethod.BANK_TRANSFER,
        nullable=False,
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    utr: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Audit trail
    generated_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Payslip artifact
    payslip_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payslip_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    payslip_email_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "company_id", "employee_id", "month", "year",
            name="uq_payroll_company_employee_period",
        ),
        UniqueConstraint("company_id", "payroll_id", name="uq_payroll_company_payroll_id"),
        CheckConstraint("month >= 1 AND month <= 12", name="payroll_month_range"),
        CheckConstraint("year >= 2020 AND year <= 2099", name="payroll_year_range"),
    )

    @property
    def period_display(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    @property
    def can_edit(self) -> bool:
        return self.status in REGENERATABLE_STATUSES

    @property
    def can_approve(self) -> bool:
        return self.status == PayrollStatus.GENERATED

    @property
    def is_paid(self) -> bool:
        return self.status == PayrollStatus.PAID

    @property
    def daily_rate(self) -> Decimal:
        """Net salary per present day; zero when no days were present."""
        present = Decimal(str((self.attendance_data or {}).get("present_days") or 0))
        if present <= 0:
            return Decimal("0.00")
        return (Decimal(str(self.net_salary)) / present).quantize(Decimal("0.01"))

    def can_transition_to(self, target: PayrollStatus) -> bool:
        return target in STATUS_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return f"<PayrollRecord(payroll_id={self.payroll_id}, status={self.status})>"
