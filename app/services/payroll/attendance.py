"""
manageRTC Payroll - Attendance Aggregation

Reduces a pay period's daily attendance entries to the summary the salary
calculation consumes.
"""

import calendar
import uuid
from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Tuple

from app.models.attendance import AttendanceStatus
from app.utils.error_handling import validate_pay_period


@dataclass
class AttendanceSummary:
    """Attendance totals for one employee and one pay period."""
    present_days: Decimal = Decimal("0")
    absent_days: Decimal = Decimal("0")
    paid_leave_days: Decimal = Decimal("0")
    unpaid_leave_days: Decimal = Decimal("0")
    holidays: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    late_days: int = 0
    total_work_hours: Decimal = Decimal("0")

    @property
    def worked_days(self) -> Decimal:
        """Days credited for proration: present plus paid leave."""
        return self.present_days + self.paid_leave_days

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: float(value) if isinstance(value, Decimal) else value
            for name, value in asdict(self).items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttendanceSummary":
        return cls(
            present_days=Decimal(str(data.get("present_days", 0))),
            absent_days=Decimal(str(data.get("absent_days", 0))),
            paid_leave_days=Decimal(str(data.get("paid_leave_days", 0))),
            unpaid_leave_days=Decimal(str(data.get("unpaid_leave_days", 0))),
            holidays=Decimal(str(data.get("holidays", 0))),
            overtime_hours=Decimal(str(data.get("overtime_hours", 0))),
            late_days=int(data.get("late_days", 0)),
            total_work_hours=Decimal(str(data.get("total_work_hours", 0))),
        )


def period_bounds(month: int, year: int) -> Tuple[date, date]:
    """First and last calendar day of a validated pay period."""
    month, year = validate_pay_period(month, year)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class AttendanceAggregator:
    """
    Summarizes attendance entries.

    Entries are anything with `status`, `work_hours`, `overtime_hours` and
    `is_late` attributes (ORM rows in production, simple objects in tests).
    """

    def __init__(self, attendance_source=None):
        self.attendance_source = attendance_source

    @staticmethod
    def aggregate(entries: Iterable) -> AttendanceSummary:
        summary = AttendanceSummary()
        for entry in entries:
            status = AttendanceStatus(entry.status)
            if status == AttendanceStatus.PRESENT:
                summary.present_days += 1
                summary.total_work_hours += Decimal(str(entry.work_hours or 0))
                summary.overtime_hours += Decimal(str(entry.overtime_hours or 0))
                if entry.is_late:
                    summary.late_days += 1
            elif status == AttendanceStatus.HALF_DAY:
                summary.present_days += Decimal("0.5")
                summary.absent_days += Decimal("0.5")
            elif status == AttendanceStatus.ABSENT:
                summary.absent_days += 1
            elif status == AttendanceStatus.ON_LEAVE:
                summary.paid_leave_days += 1
        return summary

    async def summarize(self, employee_id: uuid.UUID, month: int, year: int) -> AttendanceSummary:
        """Summary of the employee's attendance for the calendar month."""
        start, end = period_bounds(month, year)
        if self.attendance_source is None:
            return AttendanceSummary()
        entries = await self.attendance_source.list_for_period(employee_id, start, end)
        return self.aggregate(entries)
