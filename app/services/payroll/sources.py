"""
manageRTC Payroll - Data Sources

Read access to employees and attendance, and the payroll record store.
The calculators depend only on the method names below, so tests and other
deployments can substitute their own implementations.

Payroll records are written with a single INSERT ... ON CONFLICT DO UPDATE
keyed by (company_id, employee_id, month, year); concurrent regenerations of
the same period converge on one row.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import and_, case, func, inspect, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.attendance import AttendanceEntry
from app.models.employee import Employee, PAYABLE_EMPLOYMENT_STATUSES
from app.models.payroll import (
    FROZEN_STATUSES,
    REGENERATABLE_STATUSES,
    PayrollRecord,
    PayrollStatus,
    compute_totals,
)
from app.utils.error_handling import DatabaseException

logger = logging.getLogger(__name__)


# ===========================================
# INTERFACES
# ===========================================

class EmployeeSource(Protocol):
    async def get(self, employee_id: uuid.UUID, company_id: Optional[str] = None) -> Optional[Employee]: ...

    async def list_payable(self, company_id: str) -> List[Employee]: ...


class AttendanceSource(Protocol):
    async def list_for_period(self, employee_id: uuid.UUID, start: date, end: date) -> Sequence[Any]: ...


@dataclass
class PayrollKey:
    """Natural key of a payroll record."""
    company_id: str
    employee_id: uuid.UUID
    month: int
    year: int


@dataclass
class UpsertResult:
    record: PayrollRecord
    created: bool
    updated: bool


@dataclass
class PeriodRecords:
    """
    Records for one pay period.

    `provisioned` is False when the payroll table does not exist yet, which
    callers report as "nothing generated" rather than as a failure.
    """
    provisioned: bool
    records: List[PayrollRecord] = field(default_factory=list)


# ===========================================
# SQLALCHEMY IMPLEMENTATIONS
# ===========================================

class SQLAlchemyEmployeeSource:
    """Employees from the `employees` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, employee_id: uuid.UUID, company_id: Optional[str] = None) -> Optional[Employee]:
        query = select(Employee).where(
            and_(Employee.id == employee_id, Employee.is_deleted == False)  # noqa: E712
        )
        if company_id is not None:
            query = query.where(Employee.company_id == company_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_payable(self, company_id: str) -> List[Employee]:
        """Active and probation employees that are not soft-deleted."""
        result = await self.db.execute(
            select(Employee)
            .where(
                and_(
                    Employee.company_id == company_id,
                    Employee.employment_status.in_(PAYABLE_EMPLOYMENT_STATUSES),
                    Employee.is_deleted == False,  # noqa: E712
                )
            )
            .order_by(Employee.employee_code)
        )
        employees = list(result.scalars().all())
        # Returned detached: a rolled-back write later in a batch must not
        # expire the remaining rows.
        for employee in employees:
            self.db.expunge(employee)
        return employees

    async def list_companies_with_payable(self) -> List[str]:
        result = await self.db.execute(
            select(Employee.company_id)
            .where(
                and_(
                    Employee.employment_status.in_(PAYABLE_EMPLOYMENT_STATUSES),
                    Employee.is_deleted == False,  # noqa: E712
                )
            )
            .distinct()
            .order_by(Employee.company_id)
        )
        return list(result.scalars().all())


class SQLAlchemyAttendanceSource:
    """Attendance entries from the `attendance_entries` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_period(self, employee_id: uuid.UUID, start: date, end: date) -> List[AttendanceEntry]:
        result = await self.db.execute(
            select(AttendanceEntry)
            .where(
                and_(
                    AttendanceEntry.employee_id == employee_id,
                    AttendanceEntry.date >= start,
                    AttendanceEntry.date <= end,
                )
            )
            .order_by(AttendanceEntry.date)
        )
        return list(result.scalars().all())


class SQLAlchemyPayrollRecordStore:
    """Payroll records in the `payroll_records` table."""

    # Columns a regeneration is allowed to refresh
    REFRESHED_COLUMNS = (
        "earnings",
        "deductions",
        "adjustments",
        "gross_salary",
        "total_deductions",
        "net_salary",
        "attendance_data",
        "working_days",
        "pay_period",
        "generated_by",
        "generated_at",
    )

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        raise DatabaseException(f"Payroll upsert is not supported on '{dialect}'")

    async def is_provisioned(self) -> bool:
        return await self.db.run_sync(
            lambda session: inspect(session.connection()).has_table(PayrollRecord.__tablename__)
        )

    async def get_by_key(self, key: PayrollKey) -> Optional[PayrollRecord]:
        result = await self.db.execute(
            select(PayrollRecord)
            .where(
                and_(
                    PayrollRecord.company_id == key.company_id,
                    PayrollRecord.employee_id == key.employee_id,
                    PayrollRecord.month == key.month,
                    PayrollRecord.year == key.year,
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert(self, key: PayrollKey, values: Dict[str, Any]) -> UpsertResult:
        """
        Insert or refresh the record for `key` in status Generated.

        Totals are recomputed from the line items. Approved records keep their
        status; Paid and Cancelled records are left untouched. Workflow fields
        (approval, payment, rejection, payslip) are never overwritten.
        """
        table = PayrollRecord.__table__
        now = datetime.now(timezone.utc)

        row = {
            column: values[column]
            for column in self.REFRESHED_COLUMNS
            if column in values
        }
        row.update(compute_totals(values["earnings"], values["deductions"]))
        row.setdefault("generated_at", now)

        existing = await self.get_by_key(key)

        insert = self._insert()
        stmt = insert(table).values(
            id=uuid.uuid4(),
            company_id=key.company_id,
            employee_id=key.employee_id,
            month=key.month,
            year=key.year,
            payroll_id=values["payroll_id"],
            status=PayrollStatus.GENERATED,
            **row,
        )
        set_ = {column: stmt.excluded[column] for column in row}
        set_["status"] = case(
            (table.c.status.in_(REGENERATABLE_STATUSES), stmt.excluded.status),
            else_=table.c.status,
        )
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.company_id, table.c.employee_id, table.c.month, table.c.year],
            set_=set_,
            where=table.c.status.not_in(FROZEN_STATUSES),
        ).returning(table.c.id)

        try:
            result = await self.db.execute(stmt)
            written = result.first() is not None
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        record = await self.get_by_key(key)
        return UpsertResult(record=record, created=existing is None, updated=written)

    async def get_by_payroll_id(self, company_id: str, payroll_id: str) -> Optional[PayrollRecord]:
        result = await self.db.execute(
            select(PayrollRecord).where(
                and_(
                    PayrollRecord.company_id == company_id,
                    PayrollRecord.payroll_id == payroll_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_for_period(
        self,
        company_id: str,
        month: int,
        year: int,
        statuses: Optional[Iterable[PayrollStatus]] = None,
    ) -> PeriodRecords:
        if not await self.is_provisioned():
            logger.warning("Payroll table is not provisioned; no records for period")
            return PeriodRecords(provisioned=False)

        query = select(PayrollRecord).where(
            and_(
                PayrollRecord.company_id == company_id,
                PayrollRecord.month == month,
                PayrollRecord.year == year,
            )
        )
        if statuses is not None:
            query = query.where(PayrollRecord.status.in_(list(statuses)))
        result = await self.db.execute(query.order_by(PayrollRecord.payroll_id))
        records = list(result.scalars().all())
        for record in records:
            self.db.expunge(record)
        return PeriodRecords(provisioned=True, records=records)

    async def list_records(
        self,
        company_id: str,
        status: Optional[PayrollStatus] = None,
        employee_id: Optional[uuid.UUID] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[PayrollRecord], int]:
        """List records with filters and pagination, newest period first."""
        query = select(PayrollRecord).where(PayrollRecord.company_id == company_id)

        if status:
            query = query.where(PayrollRecord.status == status)
        if employee_id:
            query = query.where(PayrollRecord.employee_id == employee_id)
        if month:
            query = query.where(PayrollRecord.month == month)
        if year:
            query = query.where(PayrollRecord.year == year)

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar()

        query = query.order_by(
            PayrollRecord.year.desc(), PayrollRecord.month.desc(), PayrollRecord.payroll_id,
        )
        query = query.offset((page - 1) * per_page).limit(per_page)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def mark_payslip_generated(self, record: PayrollRecord, url: str) -> PayrollRecord:
        record.payslip_url = url
        record.payslip_generated = True
        return await self.save(record)

    async def save(self, record: PayrollRecord) -> PayrollRecord:
        record = await self.db.merge(record)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(record)
        return record
