"""
manageRTC Payroll - Tests for Earnings Calculator

Tests for:
- Allowance pool split
- Overtime pay
- Service-linked bonus
- Proration by worked days
- Caller-supplied extra earnings
"""

import uuid
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.services.payroll.earnings import (
    EarningsCalculator,
    months_of_service,
    round_currency,
)
from app.services.payroll.rate_tables import FY_2024_25
from app.utils.error_handling import (
    ErrorCode,
    MissingCompensationException,
    ValidationException,
)


def profile(basic="5000", hra="2000", allowances="1000", joining_date=date(2024, 1, 15)):
    return SimpleNamespace(
        id=uuid.uuid4(),
        basic_salary=Decimal(basic) if basic is not None else None,
        hra=Decimal(hra),
        allowances=Decimal(allowances),
        joining_date=joining_date,
    )


@pytest.fixture
def calculator():
    return EarningsCalculator(FY_2024_25)


PERIOD_END = date(2025, 3, 31)


class TestRounding:

    def test_half_rounds_up(self):
        assert round_currency(Decimal("157.5")) == Decimal("158")
        assert round_currency(Decimal("157.49")) == Decimal("157")


class TestAllowanceSplit:

    def test_split_ratios(self, calculator):
        split = calculator.allowance_split(Decimal("1000"))
        assert split == {
            "conveyance_allowance": Decimal("100.00"),
            "medical_allowance": Decimal("50.00"),
            "other_allowances": Decimal("850.00"),
        }

    def test_split_adds_back_to_pool(self, calculator):
        split = calculator.allowance_split(Decimal("1234"))
        assert sum(split.values()) == Decimal("1234.00")


class TestOvertime:

    def test_overtime_at_time_and_a_half(self, calculator):
        # 22000 / (22 days * 8 hours) = 125 per hour
        assert calculator.overtime_pay(Decimal("22000"), Decimal("4")) == Decimal("750")

    def test_no_overtime(self, calculator):
        assert calculator.overtime_pay(Decimal("22000"), Decimal("0")) == Decimal("0")

    def test_overtime_can_be_excluded(self, calculator):
        earnings = calculator.calculate(
            profile(), worked_days=Decimal("22"), overtime_hours=Decimal("10"),
            as_of=PERIOD_END, include_overtime=False,
        )
        assert earnings.overtime == Decimal("0")


class TestServiceBonus:

    def test_months_of_service(self):
        assert months_of_service(date(2024, 1, 15), date(2024, 7, 31)) == 6
        assert months_of_service(date(2024, 1, 15), date(2024, 7, 14)) == 5
        assert months_of_service(None, date(2024, 7, 31)) == 0
        assert months_of_service(date(2025, 1, 1), date(2024, 7, 31)) == 0

    def test_partial_year_bonus(self, calculator):
        bonus = calculator.service_bonus(Decimal("5000"), date(2024, 1, 15), date(2024, 7, 31))
        assert bonus == Decimal("2500")

    def test_bonus_capped_at_one_year(self, calculator):
        bonus = calculator.service_bonus(Decimal("5000"), date(2020, 1, 1), date(2025, 3, 31))
        assert bonus == Decimal("5000")

    def test_bonus_off_by_default(self, calculator):
        earnings = calculator.calculate(
            profile(), worked_days=Decimal("22"), overtime_hours=Decimal("0"), as_of=PERIOD_END,
        )
        assert earnings.bonus == Decimal("0")


class TestCalculate:

    def test_full_month(self, calculator):
        earnings = calculator.calculate(
            profile(), worked_days=Decimal("22"), overtime_hours=Decimal("0"), as_of=PERIOD_END,
        )
        assert earnings.basic_salary == Decimal("5000")
        assert earnings.hra == Decimal("2000")
        assert earnings.conveyance_allowance == Decimal("100")
        assert earnings.medical_allowance == Decimal("50")
        assert earnings.other_allowances == Decimal("850")
        assert earnings.total == Decimal("8000")

    def test_extra_worked_days_do_not_scale_up(self, calculator):
        earnings = calculator.calculate(
            profile(), worked_days=Decimal("24"), overtime_hours=Decimal("0"), as_of=PERIOD_END,
        )
        assert earnings.total == Decimal("8000")

    def test_half_month_is_prorated(self, calculator):
        earnings = calculator.calculate(
            profile(), worked_days=Decimal("11"), overtime_hours=Decimal("0"), as_of=PERIOD_END,
        )
        assert earnings.basic_salary == Decimal("2500")
        assert earnings.hra == Decimal("1000")
        assert earnings.conveyance_allowance == Decimal("50")
        assert earnings.medical_allowance == Decimal("25")
        assert earnings.other_allowances == Decimal("425")
        assert earnings.total == Decimal("4000")

    def test_exempt_lines_are_not_prorated(self, calculator):
        earnings = calculator.calculate(
            profile(joining_date=date(2020, 1, 1)),
            worked_days=Decimal("11"),
            overtime_hours=Decimal("0"),
            as_of=PERIOD_END,
            include_bonus=True,
            extras={"arrears": "1000", "incentive": 600, "commission": 1000},
        )
        assert earnings.bonus == Decimal("5000")
        assert earnings.arrears == Decimal("1000")
        assert earnings.incentive == Decimal("600")
        assert earnings.commission == Decimal("500")

    def test_missing_basic_salary(self, calculator):
        with pytest.raises(MissingCompensationException) as exc_info:
            calculator.calculate(
                profile(basic=None), worked_days=Decimal("22"),
                overtime_hours=Decimal("0"), as_of=PERIOD_END,
            )
        assert exc_info.value.code == ErrorCode.MISSING_COMPENSATION

    def test_unknown_extra_is_rejected(self, calculator):
        with pytest.raises(ValidationException):
            calculator.calculate(
                profile(), worked_days=Decimal("22"), overtime_hours=Decimal("0"),
                as_of=PERIOD_END, extras={"basic_salary": 100},
            )

    def test_negative_extra_is_rejected(self, calculator):
        with pytest.raises(ValidationException):
            calculator.calculate(
                profile(), worked_days=Decimal("22"), overtime_hours=Decimal("0"),
                as_of=PERIOD_END, extras={"incentive": -1},
            )
