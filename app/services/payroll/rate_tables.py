"""
manageRTC Payroll - Statutory Rate Tables

Every constant used by the earnings and deductions calculators lives in a
StatutoryRateTable keyed by the year it takes effect from.

Built-in table: FY 2024-25 (effective 2024)
- Working-day baseline: 22 days, 8 hours/day, overtime at 1.5x
- Allowance pool split: conveyance 10%, medical 5%, other 85%
- Provident fund: 12% of basic, wage ceiling 15,000
- ESI: 0.75% of gross when gross <= 21,000
- Professional tax: <=15,000: 0 / <=20,000: 150 / above: 200
- Income tax (new regime): 0% to 3L, 5% to 7L, 10% to 10L, 15% to 12L,
  20% to 15L, 30% above; standard deduction 50,000; rebate up to 25,000
  when taxable income <= 7L; 4% cess
- Late marks: 3 grace days, then 50 per late day

Additional tables can be loaded from a JSON file (PAYROLL_RATE_TABLE_FILE)
containing a list of tables; a loaded table replaces a built-in table with
the same effective_year.
"""

import json
import logging
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.config import settings

logger = logging.getLogger(__name__)


class IncomeTaxBracket(BaseModel):
    """Progressive income-tax bracket (rate in percent)."""
    lower: Decimal
    upper: Optional[Decimal] = None
    rate: Decimal

    def calculate_tax(self, taxable_income: Decimal) -> Decimal:
        """Calculate tax for this bracket."""
        if taxable_income <= self.lower:
            return Decimal("0")

        if self.upper is None:
            # Top bracket (no upper limit)
            taxable_in_bracket = taxable_income - self.lower
        else:
            taxable_in_bracket = min(taxable_income, self.upper) - self.lower

        if taxable_in_bracket <= 0:
            return Decimal("0")

        return taxable_in_bracket * (self.rate / 100)


class ProfessionalTaxSlab(BaseModel):
    """Flat monthly professional tax for incomes up to `upper` (inclusive)."""
    upper: Optional[Decimal] = None
    amount: Decimal


class StatutoryRateTable(BaseModel):
    """Versioned statutory and policy constants for one financial year."""

    effective_year: int = Field(..., ge=2000, le=2099)
    label: str

    # Attendance and proration
    working_days_baseline: int = Field(22, gt=0)
    hours_per_day: Decimal = Decimal("8")
    overtime_multiplier: Decimal = Decimal("1.5")
    proration_exempt: List[str] = Field(
        default_factory=lambda: ["arrears", "bonus", "incentive"]
    )

    # Earnings
    allowance_split: Dict[str, Decimal] = Field(
        default_factory=lambda: {
            "conveyance_allowance": Decimal("0.10"),
            "medical_allowance": Decimal("0.05"),
            "other_allowances": Decimal("0.85"),
        }
    )
    bonus_max_years: Decimal = Decimal("1")

    # Provident fund
    provident_fund_rate: Decimal = Decimal("0.12")
    provident_fund_wage_cap: Decimal = Decimal("15000")

    # Employee state insurance
    esi_rate: Decimal = Decimal("0.0075")
    esi_gross_threshold: Decimal = Decimal("21000")

    # Professional tax, ordered by ascending upper bound; last slab open-ended
    professional_tax_slabs: List[ProfessionalTaxSlab]

    # Income tax
    income_tax_brackets: List[IncomeTaxBracket]
    standard_deduction: Decimal = Decimal("50000")
    rebate_income_limit: Decimal = Decimal("700000")
    rebate_max: Decimal = Decimal("25000")
    cess_rate: Decimal = Decimal("0.04")
    # HRA exemption: least of HRA received, rent above a share of basic, a cap on basic
    hra_rent_offset_rate: Decimal = Decimal("0.10")
    hra_exemption_basic_cap: Decimal = Decimal("0.50")

    # Late-mark penalty
    late_grace_days: int = Field(3, ge=0)
    late_penalty_per_day: Decimal = Decimal("50")

    @field_validator("allowance_split")
    @classmethod
    def split_must_cover_pool(cls, value: Dict[str, Decimal]) -> Dict[str, Decimal]:
        if sum(value.values(), Decimal("0")) != Decimal("1"):
            raise ValueError("allowance split ratios must add up to 1")
        return value

    @model_validator(mode="after")
    def slabs_must_be_open_ended(self) -> "StatutoryRateTable":
        if not self.professional_tax_slabs or self.professional_tax_slabs[-1].upper is not None:
            raise ValueError("last professional tax slab must have no upper bound")
        if not self.income_tax_brackets or self.income_tax_brackets[-1].upper is not None:
            raise ValueError("last income tax bracket must have no upper bound")
        return self

    def professional_tax_for(self, monthly_income: Decimal) -> Decimal:
        for slab in self.professional_tax_slabs:
            if slab.upper is None or monthly_income <= slab.upper:
                return slab.amount
        return Decimal("0")


FY_2024_25 = StatutoryRateTable(
    effective_year=2024,
    label="FY 2024-25",
    professional_tax_slabs=[
        ProfessionalTaxSlab(upper=Decimal("15000"), amount=Decimal("0")),
        ProfessionalTaxSlab(upper=Decimal("20000"), amount=Decimal("150")),
        ProfessionalTaxSlab(upper=None, amount=Decimal("200")),
    ],
    income_tax_brackets=[
        IncomeTaxBracket(lower=Decimal("0"), upper=Decimal("300000"), rate=Decimal("0")),
        IncomeTaxBracket(lower=Decimal("300000"), upper=Decimal("700000"), rate=Decimal("5")),
        IncomeTaxBracket(lower=Decimal("700000"), upper=Decimal("1000000"), rate=Decimal("10")),
        IncomeTaxBracket(lower=Decimal("1000000"), upper=Decimal("1200000"), rate=Decimal("15")),
        IncomeTaxBracket(lower=Decimal("1200000"), upper=Decimal("1500000"), rate=Decimal("20")),
        IncomeTaxBracket(lower=Decimal("1500000"), upper=None, rate=Decimal("30")),
    ],
)

BUILTIN_RATE_TABLES = [FY_2024_25]


class RateTableRegistry:
    """
    Lookup of rate tables by pay-period year.

    `for_year` returns the latest table that is already in effect, falling
    back to the earliest table for years before any table applies.
    """

    def __init__(self, tables: Optional[Iterable[StatutoryRateTable]] = None):
        self._tables: Dict[int, StatutoryRateTable] = {}
        for table in tables if tables is not None else BUILTIN_RATE_TABLES:
            self.register(table)

    def register(self, table: StatutoryRateTable) -> None:
        if table.effective_year in self._tables:
            logger.info(
                f"Replacing rate table for {table.effective_year} with '{table.label}'"
            )
        self._tables[table.effective_year] = table

    @property
    def years(self) -> List[int]:
        return sorted(self._tables)

    def for_year(self, year: int) -> StatutoryRateTable:
        if not self._tables:
            raise LookupError("No statutory rate tables registered")
        applicable = [y for y in self.years if y <= year]
        chosen = applicable[-1] if applicable else self.years[0]
        return self._tables[chosen]

    def load_file(self, path: str) -> int:
        """Load tables from a JSON file (a list, or {"tables": [...]}). Returns count."""
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        entries = raw.get("tables", []) if isinstance(raw, dict) else raw
        for entry in entries:
            self.register(StatutoryRateTable.model_validate(entry))
        logger.info(f"Loaded {len(entries)} rate table(s) from {path}")
        return len(entries)


@lru_cache()
def get_rate_registry() -> RateTableRegistry:
    """Registry with built-in tables plus any configured rate-table file."""
    registry = RateTableRegistry()
    if settings.payroll_rate_table_file:
        registry.load_file(settings.payroll_rate_table_file)
    return registry
