"""
manageRTC Payroll - Tests for Payslip Rendering

Tests for:
- Currency and date formatting
- PDF rendering and page numbering
- Storing payslips and updating the payroll record
- Company-wide payslip runs
"""

import re
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from app.models.payroll import PayrollRecord
from app.services.payroll import PayslipRenderer, SalaryCalculator
from app.services.payroll.payslip_renderer import (
    NumberedCanvas,
    format_currency,
    format_date,
    payslip_filename,
)
from app.services.payroll.storage import LocalArtifactStorage
from app.utils.error_handling import (
    ErrorCode,
    PayrollRecordNotFoundException,
    PayslipRenderingException,
)


COMPANY_ID = "company-001"
PAYROLL_ID = "PAY-EMP-0001-3-2025"


def failing_storage() -> AsyncMock:
    storage = AsyncMock()
    storage.write.side_effect = OSError("disk full")
    return storage


async def generated_record(db_session) -> PayrollRecord:
    calculator = SalaryCalculator(db_session)
    await calculator.generate_for_company(COMPANY_ID, 3, 2025)
    return await calculator.get_record(COMPANY_ID, PAYROLL_ID)


class TestFormatting:

    @pytest.mark.parametrize("amount,expected", [
        (0, "Rs. 0.00"),
        (Decimal("999"), "Rs. 999.00"),
        (Decimal("7340"), "Rs. 7,340.00"),
        (Decimal("123456.5"), "Rs. 1,23,456.50"),
        (Decimal("12345678.999"), "Rs. 1,23,45,679.00"),
        (None, "Rs. 0.00"),
    ])
    def test_indian_grouping(self, amount, expected):
        assert format_currency(amount, "Rs. ") == expected

    def test_negative_amount(self):
        assert format_currency(Decimal("-1500"), "Rs. ") == "-Rs. 1,500.00"

    def test_format_date(self):
        assert format_date(date(2026, 1, 5)) == "05-Jan-2026"
        assert format_date(datetime(2026, 1, 5, 14, 30)) == "05-Jan-2026"
        assert format_date(None) == "-"

    def test_filename(self):
        assert payslip_filename("EMP-0001", 3, 2025, date(2025, 4, 2)) == (
            "payslip_EMP-0001_3_2025_2025-04-02.pdf"
        )


class TestRender:

    @pytest.mark.asyncio
    async def test_render_produces_pdf(self, db_session, test_employee, payslip_storage):
        record = await generated_record(db_session)

        pdf = PayslipRenderer(db_session, storage=payslip_storage).render(
            record, test_employee, generated_at=datetime(2025, 4, 2, 10, 0),
        )

        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 1000

    @pytest.mark.asyncio
    async def test_render_paid_record(self, db_session, test_employee, payslip_storage):
        calculator = SalaryCalculator(db_session)
        await generated_record(db_session)
        await calculator.approve(COMPANY_ID, PAYROLL_ID)
        record = await calculator.mark_paid(
            COMPANY_ID, PAYROLL_ID, payment_date=date(2025, 4, 1), transaction_id="TXN-9",
        )

        pdf = PayslipRenderer(db_session, storage=payslip_storage).render(record, test_employee)

        assert pdf.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_long_content_is_numbered_on_every_page(
        self, db_session, test_employee, payslip_storage, monkeypatch,
    ):
        record = await generated_record(db_session)
        renderer = PayslipRenderer(db_session, storage=payslip_storage)
        renderer.company_tagline = "Payroll and people operations " * 600

        stamps = []
        draw_page_number = NumberedCanvas.draw_page_number

        def record_stamp(canvas, page_count):
            stamps.append(f"Page {canvas.getPageNumber()} of {page_count}")
            draw_page_number(canvas, page_count)

        monkeypatch.setattr(NumberedCanvas, "draw_page_number", record_stamp)

        pdf = renderer.render(record, test_employee)

        page_count = len(re.findall(rb"/Type /Page\b(?!s)", pdf))
        assert page_count >= 2
        assert stamps == [f"Page {n} of {page_count}" for n in range(1, page_count + 1)]

    @pytest.mark.asyncio
    async def test_markup_characters_in_branding(self, db_session, test_employee, payslip_storage):
        record = await generated_record(db_session)
        renderer = PayslipRenderer(db_session, storage=payslip_storage)
        renderer.company_name = "Verma & Sons <Payroll>"
        renderer.company_tagline = "People & Pay"

        pdf = renderer.render(record, test_employee)

        assert pdf.startswith(b"%PDF")


class TestGeneratePayslip:

    @pytest.mark.asyncio
    async def test_payslip_is_stored_and_linked(self, db_session, test_employee, payslip_storage):
        await generated_record(db_session)

        artifact = await PayslipRenderer(db_session, storage=payslip_storage).generate_payslip(
            COMPANY_ID, PAYROLL_ID,
        )

        assert artifact.filename.startswith("payslip_EMP-0001_3_2025_")
        assert artifact.url == f"/payslips/{artifact.filename}"
        assert (payslip_storage.base_path / artifact.filename).read_bytes().startswith(b"%PDF")

        record = await SalaryCalculator(db_session).get_record(COMPANY_ID, PAYROLL_ID)
        assert record.payslip_generated is True
        assert record.payslip_url == artifact.url

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_record_unchanged(self, db_session, test_employee):
        await generated_record(db_session)

        with pytest.raises(PayslipRenderingException) as exc_info:
            await PayslipRenderer(db_session, storage=failing_storage()).generate_payslip(
                COMPANY_ID, PAYROLL_ID,
            )
        assert exc_info.value.code == ErrorCode.PAYSLIP_RENDERING_ERROR

        record = await SalaryCalculator(db_session).get_record(COMPANY_ID, PAYROLL_ID)
        assert record.payslip_generated is False
        assert record.payslip_url is None

    @pytest.mark.asyncio
    async def test_render_failure_leaves_record_unchanged(self, db_session, test_employee, payslip_storage):
        await generated_record(db_session)
        renderer = PayslipRenderer(db_session, storage=payslip_storage)

        with patch.object(PayslipRenderer, "render", side_effect=ValueError("layout error")):
            with pytest.raises(PayslipRenderingException) as exc_info:
                await renderer.generate_payslip(COMPANY_ID, PAYROLL_ID)

        assert "rendering failed" in exc_info.value.message
        assert not payslip_storage.base_path.exists() or not any(payslip_storage.base_path.iterdir())
        record = await SalaryCalculator(db_session).get_record(COMPANY_ID, PAYROLL_ID)
        assert record.payslip_generated is False
        assert record.payslip_url is None

    @pytest.mark.asyncio
    async def test_unknown_record(self, db_session, payslip_storage):
        with pytest.raises(PayrollRecordNotFoundException):
            await PayslipRenderer(db_session, storage=payslip_storage).generate_payslip(
                COMPANY_ID, PAYROLL_ID,
            )


class TestCompanyPayslips:

    @pytest.mark.asyncio
    async def test_skips_cancelled_records(self, db_session, make_employee, payslip_storage):
        await make_employee()
        await make_employee(employee_code="EMP-0002")
        calculator = SalaryCalculator(db_session)
        await calculator.generate_for_company(COMPANY_ID, 3, 2025)
        await calculator.cancel(COMPANY_ID, "PAY-EMP-0002-3-2025")

        results = await PayslipRenderer(db_session, storage=payslip_storage).generate_company_payslips(
            COMPANY_ID, 3, 2025,
        )

        assert len(results) == 1
        assert results[0].success is True
        assert results[0].payload["payroll_id"] == PAYROLL_ID

    @pytest.mark.asyncio
    async def test_storage_failures_are_reported(self, db_session, test_employee):
        await generated_record(db_session)

        results = await PayslipRenderer(db_session, storage=failing_storage()).generate_company_payslips(
            COMPANY_ID, 3, 2025,
        )

        assert len(results) == 1
        assert results[0].success is False
        assert results[0].error_code == ErrorCode.PAYSLIP_RENDERING_ERROR.value

    @pytest.mark.asyncio
    async def test_table_not_provisioned(self, db_session, db_engine, payslip_storage):
        async with db_engine.begin() as conn:
            await conn.run_sync(PayrollRecord.__table__.drop)

        results = await PayslipRenderer(db_session, storage=payslip_storage).generate_company_payslips(
            COMPANY_ID, 3, 2025,
        )

        assert results == []


class TestLocalStorage:

    @pytest.mark.asyncio
    async def test_creates_directory(self, tmp_path):
        storage = LocalArtifactStorage(base_path=str(tmp_path / "a" / "b"), url_prefix="/files/")

        stored = await storage.write("slip.pdf", b"%PDF-1.4")

        assert stored.url == "/files/slip.pdf"
        assert stored.size == 8
        assert (tmp_path / "a" / "b" / "slip.pdf").exists()

    @pytest.mark.asyncio
    async def test_rejects_path_components(self, tmp_path):
        storage = LocalArtifactStorage(base_path=str(tmp_path), url_prefix="/files")
        with pytest.raises(ValueError):
            await storage.write("../escape.pdf", b"")
