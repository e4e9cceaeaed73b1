"""
manageRTC Payroll - Deductions Calculator

Statutory and discretionary deductions for one pay period:
- Provident fund on basic salary up to the wage ceiling
- Employee state insurance below the gross-salary threshold
- Professional tax by monthly fixed-pay slab
- Income tax (TDS) withheld monthly from the annualized gross, optionally
  after the HRA exemption for rent paid
- Late-mark penalty beyond the grace days
"""

from dataclasses import asdict, dataclass, fields
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.services.payroll.earnings import round_currency, to_decimal, validate_extras
from app.services.payroll.rate_tables import IncomeTaxBracket, StatutoryRateTable
from app.utils.error_handling import MissingCompensationException


@dataclass
class Deductions:
    """Monthly deduction lines; `total` is the plain sum of all eight."""
    professional_tax: Decimal = Decimal("0")
    tds: Decimal = Decimal("0")
    provident_fund: Decimal = Decimal("0")
    esi: Decimal = Decimal("0")
    loan_deduction: Decimal = Decimal("0")
    advance_deduction: Decimal = Decimal("0")
    late_deduction: Decimal = Decimal("0")
    other_deductions: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return sum((getattr(self, f.name) for f in fields(self)), Decimal("0"))

    def to_dict(self) -> Dict[str, Decimal]:
        return asdict(self)


EXTRA_DEDUCTION_FIELDS = ("loan_deduction", "advance_deduction", "other_deductions")


class IncomeTaxCalculator:
    """
    Annual income tax with standard deduction, rebate and cess.

    annual = monthly gross x 12
    taxable = annual - standard deduction (floored at 0)
    tax = progressive brackets - rebate (if taxable within limit) + cess
    """

    def __init__(self, rates: StatutoryRateTable):
        self.rates = rates

    @property
    def brackets(self) -> List[IncomeTaxBracket]:
        return self.rates.income_tax_brackets

    def taxable_income(self, annual_gross: Decimal) -> Decimal:
        return max(Decimal("0"), annual_gross - self.rates.standard_deduction)

    def tax_before_cess(self, taxable_income: Decimal) -> Decimal:
        tax = sum(
            (bracket.calculate_tax(taxable_income) for bracket in self.brackets),
            Decimal("0"),
        )
        if taxable_income <= self.rates.rebate_income_limit:
            tax = max(Decimal("0"), tax - min(tax, self.rates.rebate_max))
        return tax

    def annual_tax(self, annual_gross: Decimal) -> Decimal:
        tax = self.tax_before_cess(self.taxable_income(annual_gross))
        return tax + tax * self.rates.cess_rate

    def monthly_withholding(self, monthly_gross: Decimal) -> Decimal:
        return round_currency(self.annual_tax(to_decimal(monthly_gross) * 12) / 12)

    def hra_exemption(self, basic: Decimal, hra_received: Decimal, rent_paid: Decimal) -> Decimal:
        """Monthly HRA exempt from tax; zero when no rent is paid."""
        basic = to_decimal(basic)
        exemption = min(
            to_decimal(hra_received),
            to_decimal(rent_paid) - basic * self.rates.hra_rent_offset_rate,
            basic * self.rates.hra_exemption_basic_cap,
        )
        return max(Decimal("0"), exemption)

    def monthly_withholding_with_hra(
        self,
        monthly_gross: Decimal,
        basic: Decimal,
        hra_received: Decimal,
        rent_paid: Decimal,
    ) -> Decimal:
        exemption = self.hra_exemption(basic, hra_received, rent_paid)
        return self.monthly_withholding(max(Decimal("0"), to_decimal(monthly_gross) - exemption))

    def get_breakdown(self, monthly_gross: Decimal) -> Dict[str, Any]:
        """Annual tax workings, band by band."""
        annual_gross = to_decimal(monthly_gross) * 12
        taxable = self.taxable_income(annual_gross)
        bands = []
        for bracket in self.brackets:
            bands.append({
                "lower": float(bracket.lower),
                "upper": float(bracket.upper) if bracket.upper is not None else None,
                "rate": float(bracket.rate),
                "tax": float(bracket.calculate_tax(taxable)),
            })
        tax = self.tax_before_cess(taxable)
        cess = tax * self.rates.cess_rate
        return {
            "annual_gross": float(annual_gross),
            "taxable_income": float(taxable),
            "bands": bands,
            "tax_after_rebate": float(tax),
            "cess": float(cess),
            "annual_tax": float(tax + cess),
            "monthly_tds": float(self.monthly_withholding(monthly_gross)),
        }


class DeductionsCalculator:
    """Computes deductions from the compensation profile and gross salary."""

    def __init__(self, rates: StatutoryRateTable):
        self.rates = rates
        self.income_tax = IncomeTaxCalculator(rates)

    def provident_fund(self, basic: Decimal) -> Decimal:
        wage = min(basic, self.rates.provident_fund_wage_cap)
        return round_currency(wage * self.rates.provident_fund_rate)

    def esi(self, gross_salary: Decimal) -> Decimal:
        if gross_salary > self.rates.esi_gross_threshold:
            return Decimal("0")
        return round_currency(gross_salary * self.rates.esi_rate)

    def professional_tax(self, basic: Decimal, hra: Decimal, allowances: Decimal) -> Decimal:
        return self.rates.professional_tax_for(basic + hra + allowances)

    def late_penalty(self, late_days: int) -> Decimal:
        if late_days <= self.rates.late_grace_days:
            return Decimal("0")
        return Decimal(late_days - self.rates.late_grace_days) * self.rates.late_penalty_per_day

    def calculate(
        self,
        employee,
        gross_salary: Decimal,
        late_days: int = 0,
        include_provident_fund: bool = True,
        include_esi: bool = True,
        include_professional_tax: bool = True,
        extras: Optional[Dict[str, Any]] = None,
        monthly_rent_paid: Optional[Decimal] = None,
    ) -> Deductions:
        if employee.basic_salary is None:
            raise MissingCompensationException(employee.id)

        basic = to_decimal(employee.basic_salary)
        gross = to_decimal(gross_salary)
        deductions = Deductions(**validate_extras(extras, EXTRA_DEDUCTION_FIELDS))

        if include_provident_fund:
            deductions.provident_fund = self.provident_fund(basic)
        if include_esi:
            deductions.esi = self.esi(gross)
        if include_professional_tax:
            deductions.professional_tax = self.professional_tax(
                basic, to_decimal(employee.hra), to_decimal(employee.allowances),
            )
        if monthly_rent_paid is not None:
            deductions.tds = self.income_tax.monthly_withholding_with_hra(
                gross, basic, to_decimal(employee.hra), monthly_rent_paid,
            )
        else:
            deductions.tds = self.income_tax.monthly_withholding(gross)
        deductions.late_deduction = self.late_penalty(late_days)

        return deductions
