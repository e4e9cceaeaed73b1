"""
manageRTC Payroll - Earnings Calculator

Earnings breakdown for one pay period:
- Basic and HRA taken from the compensation profile
- Allowance pool split into conveyance / medical / other
- Overtime at the rate table's multiplier on the hourly basic rate
- Optional service-linked bonus
- Proration by worked days against the working-day baseline
"""

from dataclasses import asdict, dataclass, fields
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from app.services.payroll.rate_tables import StatutoryRateTable
from app.utils.error_handling import MissingCompensationException, ValidationException


def round_currency(amount: Decimal) -> Decimal:
    """Round half-up to a whole currency unit."""
    return Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def round_paise(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass
class Earnings:
    """Monthly earnings lines; `total` is the plain sum of all twelve."""
    basic_salary: Decimal = Decimal("0")
    hra: Decimal = Decimal("0")
    dearness_allowance: Decimal = Decimal("0")
    conveyance_allowance: Decimal = Decimal("0")
    medical_allowance: Decimal = Decimal("0")
    special_allowance: Decimal = Decimal("0")
    other_allowances: Decimal = Decimal("0")
    overtime: Decimal = Decimal("0")
    bonus: Decimal = Decimal("0")
    incentive: Decimal = Decimal("0")
    arrears: Decimal = Decimal("0")
    commission: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return sum((getattr(self, f.name) for f in fields(self)), Decimal("0"))

    def to_dict(self) -> Dict[str, Decimal]:
        return asdict(self)


# Lines that only come from caller-supplied extras
EXTRA_EARNING_FIELDS = (
    "dearness_allowance", "special_allowance", "incentive", "arrears", "commission",
)


def months_of_service(joining_date: Optional[date], as_of: date) -> int:
    """Whole months between joining and `as_of`, never negative."""
    if joining_date is None:
        return 0
    months = (as_of.year - joining_date.year) * 12 + (as_of.month - joining_date.month)
    if as_of.day < joining_date.day:
        months -= 1
    return max(0, months)


def validate_extras(extras: Optional[Dict[str, Any]], allowed) -> Dict[str, Decimal]:
    """Check caller-supplied line items: known names, non-negative amounts."""
    clean: Dict[str, Decimal] = {}
    for name, value in (extras or {}).items():
        if name not in allowed:
            raise ValidationException(
                f"'{name}' cannot be supplied as an extra line item",
                field=name,
                details={"allowed": list(allowed)},
            )
        amount = to_decimal(value)
        if amount < 0:
            raise ValidationException(f"'{name}' must not be negative", field=name)
        clean[name] = amount
    return clean


class EarningsCalculator:
    """Computes earnings from the compensation profile and attendance."""

    def __init__(self, rates: StatutoryRateTable):
        self.rates = rates

    def allowance_split(self, allowances: Decimal) -> Dict[str, Decimal]:
        return {
            name: round_paise(allowances * ratio)
            for name, ratio in self.rates.allowance_split.items()
        }

    def overtime_pay(self, basic: Decimal, overtime_hours: Decimal) -> Decimal:
        hourly = basic / (Decimal(self.rates.working_days_baseline) * self.rates.hours_per_day)
        return round_currency(to_decimal(overtime_hours) * hourly * self.rates.overtime_multiplier)

    def service_bonus(self, basic: Decimal, joining_date: Optional[date], as_of: date) -> Decimal:
        years = Decimal(months_of_service(joining_date, as_of)) / 12
        return round_currency(basic * min(years, self.rates.bonus_max_years))

    def proration_factor(self, worked_days: Decimal) -> Decimal:
        return to_decimal(worked_days) / Decimal(self.rates.working_days_baseline)

    def calculate(
        self,
        employee,
        worked_days: Decimal,
        overtime_hours: Decimal,
        as_of: date,
        include_overtime: bool = True,
        include_bonus: bool = False,
        extras: Optional[Dict[str, Any]] = None,
    ) -> Earnings:
        if employee.basic_salary is None:
            raise MissingCompensationException(employee.id)

        basic = to_decimal(employee.basic_salary)
        earnings = Earnings(
            basic_salary=basic,
            hra=to_decimal(employee.hra),
            **self.allowance_split(to_decimal(employee.allowances)),
            **validate_extras(extras, EXTRA_EARNING_FIELDS),
        )

        if include_overtime:
            earnings.overtime = self.overtime_pay(basic, overtime_hours)
        if include_bonus:
            earnings.bonus = self.service_bonus(basic, employee.joining_date, as_of)

        factor = self.proration_factor(worked_days)
        if factor < 1:
            for line in fields(earnings):
                if line.name in self.rates.proration_exempt:
                    continue
                setattr(earnings, line.name, round_currency(getattr(earnings, line.name) * factor))

        return earnings
