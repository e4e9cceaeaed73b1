"""
manageRTC Payroll - Payroll Router

API endpoints for payroll computation, generation, workflow and payslips.
All endpoints are scoped to the tenant in the X-Company-Id header.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from app.dependencies import (
    get_current_company_id,
    get_current_user_id,
    get_payslip_renderer,
    get_salary_calculator,
)
from app.models.payroll import PayrollStatus
from app.schemas.payroll import (
    BatchResponse,
    CompanyGenerationResponse,
    PayrollBatchRequest,
    PayrollCancelRequest,
    PayrollGenerateRequest,
    PayrollListResponse,
    PayrollPaymentRequest,
    PayrollPreviewRequest,
    PayrollProcessRequest,
    PayrollRecordResponse,
    PayrollRejectRequest,
    PayrollUpdateRequest,
    PayPeriod,
    PayslipResponse,
)
from app.services.payroll import PayslipRenderer, SalaryCalculator
from app.services.payroll.attendance import AttendanceSummary
from app.utils.error_handling import validate_pay_period


router = APIRouter()


def _batch_response(items) -> dict:
    results = [item.to_dict() for item in items]
    successful = sum(1 for item in results if item["success"])
    return {
        "total": len(results),
        "successful": successful,
        "failed": len(results) - successful,
        "results": results,
    }


# ===========================================
# COMPUTATION ENDPOINTS
# ===========================================

@router.post(
    "/preview",
    summary="Preview payroll",
    description="Compute one employee's payroll for a period without saving it.",
)
async def preview_payroll(
    data: PayrollPreviewRequest,
    company_id: str = Depends(get_current_company_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    """Preview an employee's payroll."""
    attendance = None
    if data.attendance is not None:
        attendance = AttendanceSummary(**data.attendance.model_dump())

    return await calculator.preview(
        data.employee_id,
        data.month,
        data.year,
        company_id=company_id,
        attendance_override=attendance,
        include_bonus=data.include_bonus,
        earnings_extras=data.earnings_extras,
        deduction_extras=data.deduction_extras,
    )


@router.post(
    "/process",
    summary="Process one employee's payroll",
    description="Generate or refresh the payroll record for one employee and period.",
)
async def process_payroll(
    data: PayrollProcessRequest,
    company_id: str = Depends(get_current_company_id),
    user_id: Optional[str] = Depends(get_current_user_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    return await calculator.generate_for_employee(
        company_id,
        data.employee_id,
        data.month,
        data.year,
        generated_by=user_id,
        earnings_extras=data.earnings_extras,
        deduction_extras=data.deduction_extras,
    )


@router.post(
    "/calculate-batch",
    response_model=BatchResponse,
    summary="Calculate salaries for several employees",
)
async def calculate_batch(
    data: PayrollBatchRequest,
    company_id: str = Depends(get_current_company_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    """Per-employee results; individual failures do not fail the request."""
    items = await calculator.calculate_batch(
        data.employee_ids, data.month, data.year, company_id=company_id,
    )
    return _batch_response(items)


@router.post(
    "/generate",
    response_model=CompanyGenerationResponse,
    summary="Generate company payroll",
    description="Generate or refresh payroll records for every active and probation employee.",
)
async def generate_company_payroll(
    data: PayrollGenerateRequest,
    company_id: str = Depends(get_current_company_id),
    user_id: Optional[str] = Depends(get_current_user_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    batch = await calculator.generate_for_company(
        company_id, data.month, data.year, generated_by=user_id,
    )
    return batch.to_dict()


# ===========================================
# RECORD ENDPOINTS
# ===========================================

@router.get(
    "/",
    response_model=PayrollListResponse,
    summary="List payroll records",
)
async def list_payroll_records(
    status_filter: Optional[PayrollStatus] = Query(None, alias="status"),
    employee_id: Optional[uuid.UUID] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2020, le=2099),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    company_id: str = Depends(get_current_company_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    records, total = await calculator.list_records(
        company_id,
        status=status_filter,
        employee_id=employee_id,
        month=month,
        year=year,
        page=page,
        per_page=per_page,
    )
    return PayrollListResponse(
        items=[PayrollRecordResponse.model_validate(r) for r in records],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/summary/{month}/{year}",
    summary="Payroll period summary",
    description="Record counts and totals per status for one pay period.",
)
async def get_period_summary(
    month: int = Path(...),
    year: int = Path(...),
    company_id: str = Depends(get_current_company_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    month, year = validate_pay_period(month, year)
    return await calculator.period_summary(company_id, month, year)


@router.post(
    "/payslips/generate",
    response_model=BatchResponse,
    summary="Generate payslips for a period",
    description="Render payslips for every Generated, Approved or Paid record of the period.",
)
async def generate_company_payslips(
    data: PayPeriod,
    company_id: str = Depends(get_current_company_id),
    renderer: PayslipRenderer = Depends(get_payslip_renderer),
):
    items = await renderer.generate_company_payslips(company_id, data.month, data.year)
    return _batch_response(items)


@router.get(
    "/{payroll_id}",
    response_model=PayrollRecordResponse,
    summary="Get payroll record",
)
async def get_payroll_record(
    payroll_id: str = Path(...),
    company_id: str = Depends(get_current_company_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    record = await calculator.get_record(company_id, payroll_id)
    return PayrollRecordResponse.model_validate(record)


@router.put(
    "/{payroll_id}",
    response_model=PayrollRecordResponse,
    summary="Update payroll line items",
    description="Edit discretionary earnings, deductions and notes before approval.",
)
async def update_payroll_record(
    data: PayrollUpdateRequest,
    payroll_id: str = Path(...),
    company_id: str = Depends(get_current_company_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    record = await calculator.update_record(
        company_id,
        payroll_id,
        earnings_extras=data.earnings_extras,
        deduction_extras=data.deduction_extras,
        notes=data.notes,
    )
    return PayrollRecordResponse.model_validate(record)


# ===========================================
# WORKFLOW ENDPOINTS
# ===========================================

@router.post(
    "/{payroll_id}/approve",
    response_model=PayrollRecordResponse,
    summary="Approve payroll",
)
async def approve_payroll(
    payroll_id: str = Path(...),
    company_id: str = Depends(get_current_company_id),
    user_id: Optional[str] = Depends(get_current_user_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    record = await calculator.approve(company_id, payroll_id, approved_by=user_id)
    return PayrollRecordResponse.model_validate(record)


@router.post(
    "/{payroll_id}/reject",
    response_model=PayrollRecordResponse,
    summary="Reject payroll",
)
async def reject_payroll(
    data: PayrollRejectRequest,
    payroll_id: str = Path(...),
    company_id: str = Depends(get_current_company_id),
    user_id: Optional[str] = Depends(get_current_user_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    record = await calculator.reject(company_id, payroll_id, data.reason, rejected_by=user_id)
    return PayrollRecordResponse.model_validate(record)


@router.post(
    "/{payroll_id}/pay",
    response_model=PayrollRecordResponse,
    summary="Mark payroll as paid",
)
async def mark_payroll_paid(
    data: PayrollPaymentRequest,
    payroll_id: str = Path(...),
    company_id: str = Depends(get_current_company_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    record = await calculator.mark_paid(
        company_id,
        payroll_id,
        payment_date=data.payment_date,
        payment_method=data.payment_method,
        transaction_id=data.transaction_id,
        utr=data.utr,
        bank_name=data.bank_name,
    )
    return PayrollRecordResponse.model_validate(record)


@router.post(
    "/{payroll_id}/cancel",
    response_model=PayrollRecordResponse,
    summary="Cancel payroll",
)
async def cancel_payroll(
    data: Optional[PayrollCancelRequest] = None,
    payroll_id: str = Path(...),
    company_id: str = Depends(get_current_company_id),
    calculator: SalaryCalculator = Depends(get_salary_calculator),
):
    reason = data.reason if data else None
    record = await calculator.cancel(company_id, payroll_id, reason=reason)
    return PayrollRecordResponse.model_validate(record)


@router.post(
    "/{payroll_id}/payslip",
    response_model=PayslipResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate payslip",
)
async def generate_payslip(
    payroll_id: str = Path(...),
    company_id: str = Depends(get_current_company_id),
    renderer: PayslipRenderer = Depends(get_payslip_renderer),
):
    artifact = await renderer.generate_payslip(company_id, payroll_id)
    return artifact.to_dict()
