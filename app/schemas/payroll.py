"""
manageRTC Payroll - Payroll Schemas

Pydantic schemas for payroll requests and responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.payroll import PaymentMethod, PayrollStatus


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class PayPeriod(BaseModel):
    """Pay period (month 1-12, year 2020-2099)."""
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2020, le=2099)


class AttendanceOverride(BaseModel):
    """Attendance figures supplied instead of recorded attendance."""
    present_days: Decimal = Field(Decimal("0"), ge=0, le=31)
    absent_days: Decimal = Field(Decimal("0"), ge=0, le=31)
    paid_leave_days: Decimal = Field(Decimal("0"), ge=0, le=31)
    unpaid_leave_days: Decimal = Field(Decimal("0"), ge=0, le=31)
    holidays: Decimal = Field(Decimal("0"), ge=0, le=31)
    overtime_hours: Decimal = Field(Decimal("0"), ge=0)
    late_days: int = Field(0, ge=0, le=31)
    total_work_hours: Decimal = Field(Decimal("0"), ge=0)


class PayrollPreviewRequest(PayPeriod):
    """Preview one employee's payroll without saving it."""
    employee_id: UUID
    include_bonus: bool = False
    attendance: Optional[AttendanceOverride] = None
    earnings_extras: Optional[Dict[str, Decimal]] = None
    deduction_extras: Optional[Dict[str, Decimal]] = None


class PayrollProcessRequest(PayPeriod):
    """Generate or refresh one employee's payroll record."""
    employee_id: UUID
    earnings_extras: Optional[Dict[str, Decimal]] = None
    deduction_extras: Optional[Dict[str, Decimal]] = None


class PayrollBatchRequest(PayPeriod):
    """Calculate salaries for several employees."""
    employee_ids: List[UUID] = Field(..., min_length=1)


class PayrollGenerateRequest(PayPeriod):
    """Generate payroll records for every payable employee."""
    pass


class PayrollUpdateRequest(BaseModel):
    """
    Discretionary line items and notes on a record that is not yet approved.

    Lines left out keep their stored amount; send 0 to clear one.
    """
    earnings_extras: Optional[Dict[str, Decimal]] = None
    deduction_extras: Optional[Dict[str, Decimal]] = None
    notes: Optional[str] = Field(None, max_length=2000)


class PayrollRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("reason must not be blank")
        return v.strip()


class PayrollPaymentRequest(BaseModel):
    """Payment details recorded when marking a payroll paid."""
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    transaction_id: Optional[str] = Field(None, max_length=100)
    utr: Optional[str] = Field(None, max_length=100)
    bank_name: Optional[str] = Field(None, max_length=100)


class PayrollCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class PayrollRecordResponse(BaseModel):
    """Stored payroll record."""
    id: UUID
    payroll_id: str
    company_id: str
    employee_id: UUID
    month: int
    year: int
    pay_period: str
    period_display: str

    earnings: Dict[str, Any]
    deductions: Dict[str, Any]
    adjustments: Dict[str, Any] = {}
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    attendance_data: Dict[str, Any]
    working_days: Decimal

    status: PayrollStatus
    can_edit: bool
    can_approve: bool

    payment_date: Optional[date] = None
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    utr: Optional[str] = None
    bank_name: Optional[str] = None

    generated_by: Optional[str] = None
    generated_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_reason: Optional[str] = None

    payslip_generated: bool
    payslip_url: Optional[str] = None
    payslip_email_sent: bool

    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PayrollListResponse(BaseModel):
    """Paginated payroll records."""
    items: List[PayrollRecordResponse]
    total: int
    page: int
    per_page: int


class BatchResponse(BaseModel):
    """Uniform per-employee batch results."""
    total: int
    successful: int
    failed: int
    results: List[Dict[str, Any]]


class CompanyGenerationResponse(BatchResponse):
    company_id: str
    month: int
    year: int


class PayslipResponse(BaseModel):
    payroll_id: str
    employee_id: str
    filename: str
    payslip_url: str
    size: int
