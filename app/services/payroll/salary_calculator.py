"""
manageRTC Payroll - Salary Calculator

Orchestrates one employee's pay computation (attendance -> earnings ->
deductions), batch calculation, company-wide record generation, and the
approval workflow on stored payroll records.

Worked days are present days plus paid leave. A period with no attendance
at all is paid against the full working-day baseline (no proration).
"""

import calendar
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.payroll import (
    DEDUCTION_FIELDS,
    EARNING_FIELDS,
    PaymentMethod,
    PayrollRecord,
    PayrollStatus,
    amounts_to_json,
    compute_totals,
    format_payroll_id,
)
from app.services.payroll.attendance import AttendanceAggregator, AttendanceSummary
from app.services.payroll.deductions import EXTRA_DEDUCTION_FIELDS, Deductions, DeductionsCalculator
from app.services.payroll.earnings import (
    EXTRA_EARNING_FIELDS,
    Earnings,
    EarningsCalculator,
    validate_extras,
)
from app.services.payroll.rate_tables import RateTableRegistry, get_rate_registry
from app.services.payroll.sources import (
    PayrollKey,
    SQLAlchemyAttendanceSource,
    SQLAlchemyEmployeeSource,
    SQLAlchemyPayrollRecordStore,
    UpsertResult,
)
from app.utils.error_handling import (
    AppException,
    EmployeeNotFoundException,
    ErrorCode,
    InvalidStatusTransitionException,
    MissingCompensationException,
    PayrollNotEditableException,
    PayrollRecordNotFoundException,
    ValidationException,
    validate_pay_period,
)

logger = logging.getLogger(__name__)


def money(value: Decimal) -> float:
    return float(value)


def merge_adjustments(
    current: Optional[Dict[str, Any]],
    earnings_extras: Optional[Dict[str, Any]] = None,
    deduction_extras: Optional[Dict[str, Any]] = None,
) -> Dict[str, Dict[str, float]]:
    """
    Overlay newly supplied discretionary lines on the stored ones.

    Lines not mentioned keep their stored amount; a zero clears the line.
    """
    current = current or {}
    merged = {
        "earnings": dict(current.get("earnings") or {}),
        "deductions": dict(current.get("deductions") or {}),
    }
    for section, extras, allowed in (
        ("earnings", earnings_extras, EXTRA_EARNING_FIELDS),
        ("deductions", deduction_extras, EXTRA_DEDUCTION_FIELDS),
    ):
        for name, amount in validate_extras(extras, allowed).items():
            if amount:
                merged[section][name] = money(amount)
            else:
                merged[section].pop(name, None)
    return merged


@dataclass
class SalaryComputation:
    """Result of computing one employee's pay for one period."""
    employee_id: uuid.UUID
    month: int
    year: int
    earnings: Earnings
    deductions: Deductions
    attendance: AttendanceSummary
    working_days: Decimal

    @property
    def gross_salary(self) -> Decimal:
        return self.earnings.total

    @property
    def total_deductions(self) -> Decimal:
        return self.deductions.total

    @property
    def net_salary(self) -> Decimal:
        return max(Decimal("0"), self.gross_salary - self.total_deductions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "earnings": amounts_to_json(self.earnings.to_dict(), EARNING_FIELDS),
            "deductions": amounts_to_json(self.deductions.to_dict(), DEDUCTION_FIELDS),
            "gross_salary": money(self.gross_salary),
            "total_deductions": money(self.total_deductions),
            "net_salary": money(self.net_salary),
            "attendance_data": self.attendance.to_dict(),
            "pay_period": {
                "month": self.month,
                "year": self.year,
                "working_days": money(self.working_days),
            },
        }


@dataclass
class BatchItemResult:
    """Per-employee outcome inside a batch; failures never abort the batch."""
    employee_id: str
    success: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def failed(cls, employee_id: Any, exc: Exception) -> "BatchItemResult":
        if isinstance(exc, AppException):
            return cls(str(employee_id), False, error=exc.message, error_code=exc.code.value)
        return cls(
            str(employee_id), False,
            error=str(exc) or type(exc).__name__,
            error_code=ErrorCode.UNEXPECTED_ERROR.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "employee_id": self.employee_id, **self.payload}
        return {
            "success": False,
            "employee_id": self.employee_id,
            "error": self.error,
            "error_code": self.error_code,
        }


@dataclass
class BatchResult:
    """Outcome of generating a whole company's payroll for one period."""
    company_id: str
    month: int
    year: int
    results: List[BatchItemResult] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return sum(1 for item in self.results if item.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.successful

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company_id": self.company_id,
            "month": self.month,
            "year": self.year,
            "total": len(self.results),
            "successful": self.successful,
            "failed": self.failed,
            "results": [item.to_dict() for item in self.results],
        }


class SalaryCalculator:
    """
    Payroll computation and record lifecycle for one database session.

    Sources default to the SQLAlchemy implementations on `db`; any of them
    can be replaced by an object with the same methods.
    """

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        employee_source=None,
        attendance_source=None,
        store=None,
        rate_registry: Optional[RateTableRegistry] = None,
    ):
        self.db = db
        self.employees = employee_source or SQLAlchemyEmployeeSource(db)
        self.store = store or SQLAlchemyPayrollRecordStore(db)
        self.aggregator = AttendanceAggregator(
            attendance_source or SQLAlchemyAttendanceSource(db)
        )
        self.rate_registry = rate_registry or get_rate_registry()

    # ===========================================
    # COMPUTATION
    # ===========================================

    async def compute_for_employee(
        self,
        employee,
        month: int,
        year: int,
        attendance_override: Optional[Union[AttendanceSummary, Dict[str, Any]]] = None,
        include_bonus: bool = False,
        earnings_extras: Optional[Dict[str, Any]] = None,
        deduction_extras: Optional[Dict[str, Any]] = None,
    ) -> SalaryComputation:
        """Compute earnings, deductions and net pay for one employee."""
        month, year = validate_pay_period(month, year)
        if employee.basic_salary is None:
            raise MissingCompensationException(employee.id)

        if attendance_override is None:
            attendance = await self.aggregator.summarize(employee.id, month, year)
        elif isinstance(attendance_override, AttendanceSummary):
            attendance = attendance_override
        else:
            attendance = AttendanceSummary.from_dict(attendance_override)

        rates = self.rate_registry.for_year(year)
        worked_days = attendance.worked_days
        if worked_days <= 0:
            worked_days = Decimal(rates.working_days_baseline)

        period_end = date(year, month, calendar.monthrange(year, month)[1])
        earnings = EarningsCalculator(rates).calculate(
            employee,
            worked_days=worked_days,
            overtime_hours=attendance.overtime_hours,
            as_of=period_end,
            include_bonus=include_bonus,
            extras=earnings_extras,
        )
        deductions = DeductionsCalculator(rates).calculate(
            employee,
            gross_salary=earnings.total,
            late_days=attendance.late_days,
            extras=deduction_extras,
        )

        return SalaryComputation(
            employee_id=employee.id,
            month=month,
            year=year,
            earnings=earnings,
            deductions=deductions,
            attendance=attendance,
            working_days=worked_days,
        )

    async def _reset_after_failure(self) -> None:
        # PostgreSQL refuses further statements in a failed transaction
        if self.db is not None:
            await self.db.rollback()

    async def _get_employee(self, employee_id: uuid.UUID, company_id: Optional[str] = None):
        employee = await self.employees.get(employee_id, company_id)
        if employee is None:
            raise EmployeeNotFoundException(employee_id)
        return employee

    async def calculate_for_employee_id(
        self,
        employee_id: uuid.UUID,
        month: int,
        year: int,
        company_id: Optional[str] = None,
        **options,
    ) -> SalaryComputation:
        employee = await self._get_employee(employee_id, company_id)
        return await self.compute_for_employee(employee, month, year, **options)

    async def calculate_batch(
        self,
        employee_ids: List[uuid.UUID],
        month: int,
        year: int,
        company_id: Optional[str] = None,
    ) -> List[BatchItemResult]:
        """Compute salaries for many employees; one failure never aborts the rest."""
        results = []
        for employee_id in employee_ids:
            try:
                computation = await self.calculate_for_employee_id(
                    employee_id, month, year, company_id=company_id,
                )
                results.append(
                    BatchItemResult(str(employee_id), True, payload=computation.to_dict())
                )
            except Exception as e:
                logger.error(f"Salary calculation failed for employee {employee_id}: {e}")
                await self._reset_after_failure()
                results.append(BatchItemResult.failed(employee_id, e))
        return results

    async def preview(
        self,
        employee_id: uuid.UUID,
        month: int,
        year: int,
        company_id: Optional[str] = None,
        **options,
    ) -> Dict[str, Any]:
        """Computation plus the employee details shown on a payroll preview."""
        employee = await self._get_employee(employee_id, company_id)
        computation = await self.compute_for_employee(employee, month, year, **options)
        return {
            "employee": {
                "employee_id": str(employee.id),
                "employee_code": employee.employee_code,
                "name": employee.full_name,
                "department": employee.department,
                "designation": employee.designation,
            },
            "period_display": f"{calendar.month_name[computation.month]} {computation.year}",
            **computation.to_dict(),
        }

    # ===========================================
    # RECORD GENERATION
    # ===========================================

    async def _generate_record(
        self,
        employee,
        month: int,
        year: int,
        generated_by: Optional[str] = None,
        earnings_extras: Optional[Dict[str, Any]] = None,
        deduction_extras: Optional[Dict[str, Any]] = None,
    ) -> UpsertResult:
        key = PayrollKey(
            company_id=employee.company_id,
            employee_id=employee.id,
            month=month,
            year=year,
        )
        existing = await self.store.get_by_key(key)
        adjustments = merge_adjustments(
            existing.adjustments if existing is not None else None,
            earnings_extras,
            deduction_extras,
        )
        computation = await self.compute_for_employee(
            employee, month, year,
            earnings_extras=adjustments["earnings"],
            deduction_extras=adjustments["deductions"],
        )
        values = {
            "payroll_id": format_payroll_id(employee.employee_code, month, year),
            "earnings": amounts_to_json(computation.earnings.to_dict(), EARNING_FIELDS),
            "deductions": amounts_to_json(computation.deductions.to_dict(), DEDUCTION_FIELDS),
            "adjustments": adjustments,
            "attendance_data": computation.attendance.to_dict(),
            "working_days": computation.working_days,
            "pay_period": "monthly",
            "generated_by": generated_by,
            "generated_at": datetime.now(timezone.utc),
        }
        return await self.store.upsert(key, values)

    @staticmethod
    def _generation_payload(result: UpsertResult) -> Dict[str, Any]:
        record = result.record
        return {
            "payroll_id": record.payroll_id,
            "status": record.status.value,
            "gross_salary": money(record.gross_salary),
            "total_deductions": money(record.total_deductions),
            "net_salary": money(record.net_salary),
            "created": result.created,
            "updated": result.updated,
        }

    async def generate_for_company(
        self,
        company_id: str,
        month: int,
        year: int,
        generated_by: Optional[str] = None,
    ) -> BatchResult:
        """
        Generate (or refresh) payroll records for every payable employee.

        Per-employee failures are reported in the result; a failure to list
        the company's employees propagates.
        """
        month, year = validate_pay_period(month, year)
        employees = await self.employees.list_payable(company_id)

        batch = BatchResult(company_id=company_id, month=month, year=year)
        for employee in employees:
            try:
                result = await self._generate_record(employee, month, year, generated_by)
                batch.results.append(
                    BatchItemResult(str(employee.id), True, payload=self._generation_payload(result))
                )
            except Exception as e:
                logger.error(
                    f"Payroll generation failed for employee {employee.id} "
                    f"({company_id} {month}/{year}): {e}"
                )
                await self._reset_after_failure()
                batch.results.append(BatchItemResult.failed(employee.id, e))

        logger.info(
            f"Payroll generated for {company_id} {month}/{year}: "
            f"{batch.successful} succeeded, {batch.failed} failed"
        )
        return batch

    async def generate_for_employee(
        self,
        company_id: str,
        employee_id: uuid.UUID,
        month: int,
        year: int,
        generated_by: Optional[str] = None,
        earnings_extras: Optional[Dict[str, Any]] = None,
        deduction_extras: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        month, year = validate_pay_period(month, year)
        employee = await self._get_employee(employee_id, company_id)
        result = await self._generate_record(
            employee, month, year, generated_by,
            earnings_extras=earnings_extras,
            deduction_extras=deduction_extras,
        )
        return {"employee_id": str(employee.id), **self._generation_payload(result)}

    async def update_record(
        self,
        company_id: str,
        payroll_id: str,
        earnings_extras: Optional[Dict[str, Any]] = None,
        deduction_extras: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> PayrollRecord:
        """
        Edit the discretionary lines of a record that is not yet approved.

        The record is recomputed from its stored attendance snapshot, so
        proration and the gross-based deductions reflect the new lines.
        Identity fields (employee, period, payroll id) never change.
        """
        record = await self.get_record(company_id, payroll_id)
        if not record.can_edit:
            raise PayrollNotEditableException(payroll_id, record.status.value)

        employee = await self._get_employee(record.employee_id, company_id)
        adjustments = merge_adjustments(record.adjustments, earnings_extras, deduction_extras)
        computation = await self.compute_for_employee(
            employee, record.month, record.year,
            attendance_override=record.attendance_data or {},
            earnings_extras=adjustments["earnings"],
            deduction_extras=adjustments["deductions"],
        )

        record.adjustments = adjustments
        record.earnings = amounts_to_json(computation.earnings.to_dict(), EARNING_FIELDS)
        record.deductions = amounts_to_json(computation.deductions.to_dict(), DEDUCTION_FIELDS)
        for column, value in compute_totals(record.earnings, record.deductions).items():
            setattr(record, column, value)
        record.working_days = computation.working_days
        if notes is not None:
            record.notes = notes
        logger.info(f"Payroll {payroll_id} line items updated")
        return await self.store.save(record)

    # ===========================================
    # STORED RECORDS & WORKFLOW
    # ===========================================

    async def get_record(self, company_id: str, payroll_id: str) -> PayrollRecord:
        record = await self.store.get_by_payroll_id(company_id, payroll_id)
        if record is None:
            raise PayrollRecordNotFoundException(payroll_id)
        return record

    async def list_records(self, company_id: str, **filters):
        return await self.store.list_records(company_id, **filters)

    async def _transition(self, company_id: str, payroll_id: str, target: PayrollStatus) -> PayrollRecord:
        record = await self.get_record(company_id, payroll_id)
        if not record.can_transition_to(target):
            raise InvalidStatusTransitionException(
                payroll_id, record.status.value, target.value,
            )
        record.status = target
        return record

    async def approve(
        self,
        company_id: str,
        payroll_id: str,
        approved_by: Optional[str] = None,
    ) -> PayrollRecord:
        record = await self._transition(company_id, payroll_id, PayrollStatus.APPROVED)
        record.approved_by = approved_by
        record.approved_at = datetime.now(timezone.utc)
        logger.info(f"Payroll {payroll_id} approved by {approved_by}")
        return await self.store.save(record)

    async def reject(
        self,
        company_id: str,
        payroll_id: str,
        reason: str,
        rejected_by: Optional[str] = None,
    ) -> PayrollRecord:
        if not reason or not reason.strip():
            raise ValidationException("A rejection reason is required", field="reason")
        record = await self._transition(company_id, payroll_id, PayrollStatus.REJECTED)
        record.rejected_by = rejected_by
        record.rejected_at = datetime.now(timezone.utc)
        record.rejected_reason = reason.strip()
        logger.info(f"Payroll {payroll_id} rejected by {rejected_by}")
        return await self.store.save(record)

    async def mark_paid(
        self,
        company_id: str,
        payroll_id: str,
        payment_date: Optional[date] = None,
        payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        transaction_id: Optional[str] = None,
        utr: Optional[str] = None,
        bank_name: Optional[str] = None,
    ) -> PayrollRecord:
        record = await self._transition(company_id, payroll_id, PayrollStatus.PAID)
        record.payment_date = payment_date or date.today()
        record.payment_method = payment_method
        record.transaction_id = transaction_id
        record.utr = utr
        record.bank_name = bank_name
        logger.info(f"Payroll {payroll_id} marked as paid ({payment_method.value})")
        return await self.store.save(record)

    async def cancel(
        self,
        company_id: str,
        payroll_id: str,
        reason: Optional[str] = None,
    ) -> PayrollRecord:
        record = await self._transition(company_id, payroll_id, PayrollStatus.CANCELLED)
        if reason:
            record.admin_notes = reason
        logger.info(f"Payroll {payroll_id} cancelled")
        return await self.store.save(record)

    async def period_summary(self, company_id: str, month: int, year: int) -> Dict[str, Any]:
        """Record counts and totals per status for one pay period."""
        month, year = validate_pay_period(month, year)
        period = await self.store.list_for_period(company_id, month, year)

        by_status = {
            status.value: {
                "count": 0,
                "gross_salary": Decimal("0"),
                "total_deductions": Decimal("0"),
                "net_salary": Decimal("0"),
            }
            for status in PayrollStatus
        }
        for record in period.records:
            bucket = by_status[record.status.value]
            bucket["count"] += 1
            bucket["gross_salary"] += Decimal(str(record.gross_salary))
            bucket["total_deductions"] += Decimal(str(record.total_deductions))
            bucket["net_salary"] += Decimal(str(record.net_salary))

        totals = {
            "count": len(period.records),
            "gross_salary": sum((b["gross_salary"] for b in by_status.values()), Decimal("0")),
            "total_deductions": sum((b["total_deductions"] for b in by_status.values()), Decimal("0")),
            "net_salary": sum((b["net_salary"] for b in by_status.values()), Decimal("0")),
        }

        def as_json(bucket: Dict[str, Any]) -> Dict[str, Any]:
            return {k: money(v) if isinstance(v, Decimal) else v for k, v in bucket.items()}

        return {
            "company_id": company_id,
            "month": month,
            "year": year,
            "period_display": f"{calendar.month_name[month]} {year}",
            "provisioned": period.provisioned,
            "by_status": {status: as_json(bucket) for status, bucket in by_status.items()},
            "totals": as_json(totals),
        }
