"""
manageRTC Payroll - Schemas Package

Pydantic schemas for request/response validation.
"""

from app.schemas.payroll import (
    # Requests
    PayPeriod,
    AttendanceOverride,
    PayrollPreviewRequest,
    PayrollProcessRequest,
    PayrollBatchRequest,
    PayrollGenerateRequest,
    PayrollUpdateRequest,
    PayrollRejectRequest,
    PayrollPaymentRequest,
    PayrollCancelRequest,
    # Responses
    PayrollRecordResponse,
    PayrollListResponse,
    BatchResponse,
    CompanyGenerationResponse,
    PayslipResponse,
)

__all__ = [
    "PayPeriod",
    "AttendanceOverride",
    "PayrollPreviewRequest",
    "PayrollProcessRequest",
    "PayrollBatchRequest",
    "PayrollGenerateRequest",
    "PayrollUpdateRequest",
    "PayrollRejectRequest",
    "PayrollPaymentRequest",
    "PayrollCancelRequest",
    "PayrollRecordResponse",
    "PayrollListResponse",
    "BatchResponse",
    "CompanyGenerationResponse",
    "PayslipResponse",
]
