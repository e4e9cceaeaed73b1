"""
manageRTC Payroll - Payslip PDF Service

Generates PDF payslips from stored payroll records.
Uses ReportLab for PDF generation.

Layout (A4, in order):
- Company branding
- Title and pay period
- Employee details
- Earnings table with gross salary
- Deductions table with total deductions
- Net salary summary
- Attendance details
- Payment information
- Footer with generation timestamp
Every page carries "Page N of M".
"""

import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Union
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.payroll import PayrollRecord, PayrollStatus
from app.services.payroll.salary_calculator import BatchItemResult
from app.services.payroll.sources import SQLAlchemyEmployeeSource, SQLAlchemyPayrollRecordStore
from app.services.payroll.storage import LocalArtifactStorage
from app.utils.error_handling import (
    EmployeeNotFoundException,
    PayrollRecordNotFoundException,
    PayslipRenderingException,
    validate_pay_period,
)

logger = logging.getLogger(__name__)

BRAND_COLOR = "#1a365d"

EARNING_LABELS = [
    ("basic_salary", "Basic Salary"),
    ("hra", "House Rent Allowance (HRA)"),
    ("dearness_allowance", "Dearness Allowance"),
    ("conveyance_allowance", "Conveyance Allowance"),
    ("medical_allowance", "Medical Allowance"),
    ("special_allowance", "Special Allowance"),
    ("other_allowances", "Other Allowances"),
    ("overtime", "Overtime"),
    ("bonus", "Bonus"),
    ("incentive", "Incentive"),
    ("arrears", "Arrears"),
    ("commission", "Commission"),
]

DEDUCTION_LABELS = [
    ("professional_tax", "Professional Tax"),
    ("tds", "Income Tax (TDS)"),
    ("provident_fund", "Provident Fund (PF)"),
    ("esi", "Employee State Insurance (ESI)"),
    ("loan_deduction", "Loan Deduction"),
    ("advance_deduction", "Advance Deduction"),
    ("late_deduction", "Late Coming Deduction"),
    ("other_deductions", "Other Deductions"),
]

# Records in these statuses get payslips in a company run
PAYSLIP_STATUSES = (PayrollStatus.GENERATED, PayrollStatus.APPROVED, PayrollStatus.PAID)


# ===========================================
# FORMATTING
# ===========================================

def format_currency(amount: Any, symbol: Optional[str] = None) -> str:
    """Currency with Indian digit grouping, e.g. Rs. 1,23,456.00"""
    if symbol is None:
        symbol = settings.currency_symbol
    value = Decimal(str(amount or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    integer, fraction = f"{abs(value):.2f}".split(".")

    if len(integer) > 3:
        head, tail = integer[:-3], integer[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        integer = ",".join(groups + [tail])

    return f"{sign}{symbol}{integer}.{fraction}"


def format_date(value: Optional[Union[date, datetime]]) -> str:
    """DD-Mon-YYYY, e.g. 05-Jan-2026"""
    if value is None:
        return "-"
    return value.strftime("%d-%b-%Y")


def payslip_filename(employee_code: str, month: int, year: int, generated_on: date) -> str:
    return f"payslip_{employee_code}_{month}_{year}_{generated_on.isoformat()}.pdf"


class NumberedCanvas(canvas.Canvas):
    """Canvas that stamps "Page N of M" once the total page count is known."""

    def __init__(self, *args, **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        page_count = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self.draw_page_number(page_count)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def draw_page_number(self, page_count: int):
        self.setFont("Helvetica", 8)
        self.setFillColor(colors.grey)
        self.drawRightString(A4[0] - 20 * mm, 10 * mm, f"Page {self._pageNumber} of {page_count}")


@dataclass
class PayslipArtifact:
    """A rendered and stored payslip."""
    payroll_id: str
    employee_id: str
    filename: str
    url: str
    path: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payroll_id": self.payroll_id,
            "employee_id": self.employee_id,
            "filename": self.filename,
            "payslip_url": self.url,
            "size": self.size,
        }


class PayslipRenderer:
    """Service for rendering payslips and attaching them to payroll records."""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        employee_source=None,
        store=None,
        storage=None,
    ):
        self.db = db
        self.employees = employee_source or SQLAlchemyEmployeeSource(db)
        self.store = store or SQLAlchemyPayrollRecordStore(db)
        self.storage = storage or LocalArtifactStorage()

        self.company_name = settings.company_name
        self.company_tagline = settings.company_tagline
        self.currency_symbol = settings.currency_symbol

    def _money(self, amount: Any) -> str:
        return format_currency(amount, self.currency_symbol)

    # ===========================================
    # RENDERING
    # ===========================================

    def render(self, record: PayrollRecord, employee, generated_at: Optional[datetime] = None) -> bytes:
        """
        Render a payroll record as a PDF payslip.

        Args:
            record: Stored payroll record
            employee: The record's employee
            generated_at: Timestamp printed in the footer (defaults to now)

        Returns:
            PDF bytes
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=20*mm,
            leftMargin=20*mm,
            topMargin=20*mm,
            bottomMargin=20*mm,
            title=f"Payslip {record.payroll_id}",
            author=self.company_name,
        )

        styles = getSampleStyleSheet()

        brand_style = ParagraphStyle(
            'Brand',
            parent=styles['Heading1'],
            fontSize=22,
            textColor=colors.HexColor(BRAND_COLOR),
            alignment=TA_CENTER,
            spaceAfter=2,
        )

        tagline_style = ParagraphStyle(
            'Tagline',
            parent=styles['Normal'],
            fontSize=9,
            textColor=colors.grey,
            alignment=TA_CENTER,
        )

        title_style = ParagraphStyle(
            'PayslipTitle',
            parent=styles['Heading2'],
            fontSize=16,
            alignment=TA_CENTER,
            spaceBefore=10,
            spaceAfter=2,
        )

        heading_style = ParagraphStyle(
            'SectionHeading',
            parent=styles['Heading3'],
            fontSize=12,
            textColor=colors.HexColor(BRAND_COLOR),
            spaceBefore=12,
            spaceAfter=6,
        )

        footer_style = ParagraphStyle(
            'Footer',
            parent=styles['Normal'],
            fontSize=8,
            textColor=colors.grey,
            alignment=TA_CENTER,
        )

        elements = []

        # Header
        company_name = escape(self.company_name)
        elements.append(Paragraph(f"<b>{company_name}</b>", brand_style))
        elements.append(Paragraph(escape(self.company_tagline), tagline_style))
        elements.append(Spacer(1, 6))

        # Title and period
        elements.append(Paragraph("SALARY SLIP", title_style))
        elements.append(Paragraph(f"For the month of {record.period_display}", tagline_style))
        elements.append(Spacer(1, 12))

        elements.append(Paragraph("Employee Details", heading_style))
        elements.append(self._build_employee_table(record, employee))

        elements.append(Paragraph("Earnings", heading_style))
        elements.append(self._build_amount_table(
            EARNING_LABELS, record.earnings or {}, "Gross Salary", record.gross_salary,
        ))

        elements.append(Paragraph("Deductions", heading_style))
        elements.append(self._build_amount_table(
            DEDUCTION_LABELS, record.deductions or {}, "Total Deductions", record.total_deductions,
        ))

        elements.append(Spacer(1, 12))
        elements.append(self._build_net_salary_table(record))

        elements.append(Paragraph("Attendance Details", heading_style))
        elements.append(self._build_attendance_table(record))

        elements.append(Paragraph("Payment Information", heading_style))
        elements.append(self._build_payment_table(record))

        # Footer
        stamp = generated_at or datetime.now()
        elements.append(Spacer(1, 24))
        elements.append(Paragraph(
            "This is a computer-generated payslip and does not require a signature.",
            footer_style,
        ))
        elements.append(Paragraph(
            f"Generated on {format_date(stamp)} at {stamp.strftime('%H:%M')} by {company_name}",
            footer_style,
        ))

        doc.build(elements, canvasmaker=NumberedCanvas)

        pdf_bytes = buffer.getvalue()
        buffer.close()

        return pdf_bytes

    def _details_table(self, rows: List[List[str]], col_widths: List[float]) -> Table:
        table = Table(rows, colWidths=col_widths)
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, -1), 'Helvetica'),
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
            ('BOX', (0, 0), (-1, -1), 0.5, colors.grey),
            ('BACKGROUND', (0, 0), (-1, -1), colors.HexColor('#f8f9fa')),
        ]))
        return table

    def _build_employee_table(self, record: PayrollRecord, employee) -> Table:
        rows = [
            ["Employee Name", employee.full_name, "Employee ID", employee.employee_code],
            ["Department", employee.department or "-", "Designation", employee.designation or "-"],
            ["Payroll ID", record.payroll_id, "Joining Date", format_date(employee.joining_date)],
            ["Pay Period", record.period_display, "Working Days", str(record.working_days)],
        ]
        return self._details_table(rows, [90, 160, 90, 130])

    def _build_amount_table(self, labels, amounts: Dict[str, Any], total_label: str, total: Any) -> Table:
        data = [["Component", "Amount"]]
        for key, label in labels:
            data.append([label, self._money(amounts.get(key, 0))])
        data.append([total_label, self._money(total)])

        table = Table(data, colWidths=[320, 150])
        table.setStyle(TableStyle([
            # Header styling
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(BRAND_COLOR)),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 10),

            # Row styling
            ('FONTNAME', (0, 1), (-1, -2), 'Helvetica'),
            ('FONTSIZE', (0, 1), (-1, -1), 9),
            ('TOPPADDING', (0, 0), (-1, -1), 5),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),

            # Total row
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),

            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('ROWBACKGROUNDS', (0, 1), (-1, -2), [colors.white, colors.HexColor('#f8f9fa')]),
        ]))
        return table

    def _build_net_salary_table(self, record: PayrollRecord) -> Table:
        data = [
            ["Gross Salary", self._money(record.gross_salary)],
            ["Less: Total Deductions", self._money(record.total_deductions)],
            ["NET SALARY", self._money(record.net_salary)],
        ]
        table = Table(data, colWidths=[320, 150])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, -2), 'Helvetica'),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -2), 10),
            ('FONTSIZE', (0, -1), (-1, -1), 12),
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
            ('TOPPADDING', (0, 0), (-1, -1), 5),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
            ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#e6f4ea')),
            ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),
        ]))
        return table

    def _build_attendance_table(self, record: PayrollRecord) -> Table:
        attendance = record.attendance_data or {}

        def value(key: str) -> str:
            amount = attendance.get(key, 0) or 0
            return f"{amount:g}" if isinstance(amount, float) else str(amount)

        rows = [
            ["Present Days", value("present_days"), "Absent Days", value("absent_days")],
            ["Paid Leave", value("paid_leave_days"), "Unpaid Leave", value("unpaid_leave_days")],
            ["Holidays", value("holidays"), "Late Days", value("late_days")],
            ["Overtime Hours", value("overtime_hours"), "Work Hours", value("total_work_hours")],
        ]
        return self._details_table(rows, [90, 145, 90, 145])

    def _build_payment_table(self, record: PayrollRecord) -> Table:
        payment_date = format_date(record.payment_date) if record.payment_date else "Pending"
        rows = [
            ["Payment Date", payment_date, "Payment Method", record.payment_method.value],
            ["Status", record.status.value, "Bank", record.bank_name or "-"],
            ["Transaction ID", record.transaction_id or "-", "UTR", record.utr or "-"],
        ]
        return self._details_table(rows, [90, 145, 90, 145])

    # ===========================================
    # GENERATION
    # ===========================================

    async def generate_payslip(self, company_id: str, payroll_id: str) -> PayslipArtifact:
        """
        Render, store and attach the payslip for one payroll record.

        The record's payslip fields change only after the file is written.
        """
        record = await self.store.get_by_payroll_id(company_id, payroll_id)
        if record is None:
            raise PayrollRecordNotFoundException(payroll_id)
        return await self._generate_for_record(company_id, record)

    async def _generate_for_record(self, company_id: str, record: PayrollRecord) -> PayslipArtifact:
        employee = await self.employees.get(record.employee_id, company_id)
        if employee is None:
            raise EmployeeNotFoundException(record.employee_id)

        generated_at = datetime.now()
        try:
            pdf_bytes = self.render(record, employee, generated_at=generated_at)
        except Exception as e:
            raise PayslipRenderingException(record.payroll_id, f"rendering failed: {e}", original_error=e)

        filename = payslip_filename(employee.employee_code, record.month, record.year, generated_at.date())
        try:
            stored = await self.storage.write(filename, pdf_bytes)
        except Exception as e:
            raise PayslipRenderingException(record.payroll_id, f"storage failed: {e}", original_error=e)

        await self.store.mark_payslip_generated(record, stored.url)
        logger.info(f"Payslip generated for {record.payroll_id}: {stored.url}")

        return PayslipArtifact(
            payroll_id=record.payroll_id,
            employee_id=str(record.employee_id),
            filename=stored.filename,
            url=stored.url,
            path=stored.path,
            size=stored.size,
        )

    async def generate_company_payslips(self, company_id: str, month: int, year: int) -> List[BatchItemResult]:
        """Payslips for every Generated, Approved or Paid record of the period."""
        month, year = validate_pay_period(month, year)
        period = await self.store.list_for_period(company_id, month, year, statuses=PAYSLIP_STATUSES)
        if not period.provisioned:
            return []

        results = []
        for record in period.records:
            try:
                artifact = await self._generate_for_record(company_id, record)
                results.append(BatchItemResult(str(record.employee_id), True, payload=artifact.to_dict()))
            except Exception as e:
                logger.error(f"Payslip generation failed for {record.payroll_id}: {e}")
                if self.db is not None:
                    await self.db.rollback()
                results.append(BatchItemResult.failed(record.employee_id, e))

        logger.info(
            f"Payslips generated for {company_id} {month}/{year}: "
            f"{sum(1 for r in results if r.success)} of {len(results)}"
        )
        return results
