"""
manageRTC Payroll - API Endpoint Tests

Exercises the payroll router through the ASGI app with the database
session and payslip storage overridden.
"""

from decimal import Decimal
from uuid import uuid4

import pytest


BASE = "/api/v1/payroll"
HEADERS = {"X-Company-Id": "company-001", "X-User-Id": "hr-admin"}
PAYROLL_ID = "PAY-EMP-0001-3-2025"


async def generate(client, month=3, year=2025):
    return await client.post(f"{BASE}/generate", json={"month": month, "year": year}, headers=HEADERS)


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestTenancy:

    @pytest.mark.asyncio
    async def test_missing_company_header(self, client):
        response = await client.get(f"{BASE}/")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "MISSING_TENANT"

    @pytest.mark.asyncio
    async def test_records_are_scoped_to_company(self, client, test_employee):
        await generate(client)

        response = await client.get(f"{BASE}/{PAYROLL_ID}", headers={"X-Company-Id": "company-002"})
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "PAYROLL_NOT_FOUND"


class TestComputationEndpoints:

    @pytest.mark.asyncio
    async def test_preview(self, client, test_employee):
        response = await client.post(
            f"{BASE}/preview",
            json={"employee_id": str(test_employee.id), "month": 3, "year": 2025},
            headers=HEADERS,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["gross_salary"] == 8000.0
        assert data["total_deductions"] == 660.0
        assert data["net_salary"] == 7340.0

    @pytest.mark.asyncio
    async def test_preview_with_attendance_override(self, client, test_employee):
        response = await client.post(
            f"{BASE}/preview",
            json={
                "employee_id": str(test_employee.id),
                "month": 3,
                "year": 2025,
                "attendance": {"present_days": 11},
                "earnings_extras": {"arrears": 500},
            },
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["gross_salary"] == 4500.0

    @pytest.mark.asyncio
    async def test_invalid_period(self, client, test_employee):
        response = await client.post(
            f"{BASE}/preview",
            json={"employee_id": str(test_employee.id), "month": 13, "year": 2025},
            headers=HEADERS,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_calculate_batch(self, client, make_employee):
        employee = await make_employee()
        corrupt = await make_employee(employee_code="EMP-0002", basic_salary=None)

        response = await client.post(
            f"{BASE}/calculate-batch",
            json={"employee_ids": [str(employee.id), str(corrupt.id), str(uuid4())], "month": 3, "year": 2025},
            headers=HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["successful"] == 1
        assert data["failed"] == 2
        assert data["results"][1]["error_code"] == "MISSING_COMPENSATION"
        assert data["results"][2]["error_code"] == "EMPLOYEE_NOT_FOUND"


class TestGeneration:

    @pytest.mark.asyncio
    async def test_generate_and_list(self, client, test_employee):
        response = await generate(client)
        assert response.status_code == 200
        assert response.json()["successful"] == 1

        response = await client.get(f"{BASE}/", params={"month": 3, "year": 2025}, headers=HEADERS)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        item = data["items"][0]
        assert item["payroll_id"] == PAYROLL_ID
        assert item["status"] == "Generated"
        assert item["generated_by"] == "hr-admin"
        assert item["period_display"] == "March 2025"

    @pytest.mark.asyncio
    async def test_list_by_status(self, client, test_employee):
        await generate(client)

        response = await client.get(f"{BASE}/", params={"status": "Approved"}, headers=HEADERS)
        assert response.json()["total"] == 0

        response = await client.get(f"{BASE}/", params={"status": "Generated"}, headers=HEADERS)
        assert response.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_process_single_employee(self, client, test_employee):
        response = await client.post(
            f"{BASE}/process",
            json={"employee_id": str(test_employee.id), "month": 3, "year": 2025},
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["payroll_id"] == PAYROLL_ID

    @pytest.mark.asyncio
    async def test_process_with_supplied_lines(self, client, test_employee):
        response = await client.post(
            f"{BASE}/process",
            json={
                "employee_id": str(test_employee.id),
                "month": 3,
                "year": 2025,
                "earnings_extras": {"arrears": 500},
                "deduction_extras": {"loan_deduction": 1000},
            },
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["gross_salary"] == 8500.0
        assert response.json()["net_salary"] == 6836.0

    @pytest.mark.asyncio
    async def test_generate_invalid_period(self, client):
        response = await client.post(f"{BASE}/generate", json={"month": 0, "year": 2025}, headers=HEADERS)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_period_summary(self, client, test_employee):
        await generate(client)

        response = await client.get(f"{BASE}/summary/3/2025", headers=HEADERS)
        assert response.status_code == 200
        data = response.json()
        assert data["totals"]["count"] == 1
        assert data["by_status"]["Generated"]["net_salary"] == 7340.0

    @pytest.mark.asyncio
    async def test_period_summary_invalid_month(self, client):
        response = await client.get(f"{BASE}/summary/13/2025", headers=HEADERS)
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_PAY_PERIOD"


class TestRecordEditing:

    @pytest.mark.asyncio
    async def test_update_line_items(self, client, test_employee):
        await generate(client)

        response = await client.put(
            f"{BASE}/{PAYROLL_ID}",
            json={"deduction_extras": {"advance_deduction": 2000}, "notes": "Advance recovered"},
            headers=HEADERS,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["deductions"]["advance_deduction"] == 2000.0
        assert Decimal(str(data["net_salary"])) == Decimal("5340")
        assert data["notes"] == "Advance recovered"
        assert data["adjustments"]["deductions"] == {"advance_deduction": 2000.0}

    @pytest.mark.asyncio
    async def test_update_rejects_statutory_line(self, client, test_employee):
        await generate(client)

        response = await client.put(
            f"{BASE}/{PAYROLL_ID}", json={"deduction_extras": {"esi": 0}}, headers=HEADERS,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_update_after_approval(self, client, test_employee):
        await generate(client)
        await client.post(f"{BASE}/{PAYROLL_ID}/approve", headers=HEADERS)

        response = await client.put(
            f"{BASE}/{PAYROLL_ID}", json={"notes": "late change"}, headers=HEADERS,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "PAYROLL_NOT_EDITABLE"

    @pytest.mark.asyncio
    async def test_update_unknown_record(self, client):
        response = await client.put(f"{BASE}/PAY-NOPE-3-2025", json={}, headers=HEADERS)
        assert response.status_code == 404


class TestWorkflowEndpoints:

    @pytest.mark.asyncio
    async def test_approve_then_pay(self, client, test_employee):
        await generate(client)

        response = await client.post(f"{BASE}/{PAYROLL_ID}/approve", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["status"] == "Approved"
        assert response.json()["approved_by"] == "hr-admin"

        response = await client.post(
            f"{BASE}/{PAYROLL_ID}/pay",
            json={"payment_method": "UPI", "payment_date": "2025-04-01", "utr": "UTR42"},
            headers=HEADERS,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "Paid"
        assert data["payment_method"] == "UPI"
        assert data["payment_date"] == "2025-04-01"

    @pytest.mark.asyncio
    async def test_invalid_transition(self, client, test_employee):
        await generate(client)

        response = await client.post(f"{BASE}/{PAYROLL_ID}/pay", json={}, headers=HEADERS)
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, client, test_employee):
        await generate(client)

        response = await client.post(f"{BASE}/{PAYROLL_ID}/reject", json={"reason": ""}, headers=HEADERS)
        assert response.status_code == 422

        response = await client.post(
            f"{BASE}/{PAYROLL_ID}/reject", json={"reason": "Overtime disputed"}, headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Rejected"
        assert response.json()["rejected_reason"] == "Overtime disputed"

    @pytest.mark.asyncio
    async def test_cancel_without_body(self, client, test_employee):
        await generate(client)

        response = await client.post(f"{BASE}/{PAYROLL_ID}/cancel", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["status"] == "Cancelled"


class TestPayslipEndpoints:

    @pytest.mark.asyncio
    async def test_generate_payslip(self, client, test_employee, payslip_storage):
        await generate(client)

        response = await client.post(f"{BASE}/{PAYROLL_ID}/payslip", headers=HEADERS)

        assert response.status_code == 201
        data = response.json()
        assert data["payslip_url"].startswith("/payslips/payslip_EMP-0001_3_2025_")
        assert (payslip_storage.base_path / data["filename"]).exists()

        response = await client.get(f"{BASE}/{PAYROLL_ID}", headers=HEADERS)
        assert response.json()["payslip_generated"] is True

    @pytest.mark.asyncio
    async def test_generate_company_payslips(self, client, test_employee):
        await generate(client)

        response = await client.post(
            f"{BASE}/payslips/generate", json={"month": 3, "year": 2025}, headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["successful"] == 1
