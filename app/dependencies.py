"""
manageRTC Payroll - FastAPI Dependencies

Shared dependencies for tenancy, actor identity and payroll services.

Authentication lives in the gateway in front of this service; requests
arrive with the tenant in `X-Company-Id` and, when known, the acting user
in `X-User-Id`.
"""

from typing import Optional

from fastapi import Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.services.payroll import PayslipRenderer, SalaryCalculator
from app.utils.error_handling import AppException, ErrorCode


async def get_current_company_id(
    x_company_id: Optional[str] = Header(None, alias="X-Company-Id"),
) -> str:
    """
    Tenant of the current request.

    Raises:
        AppException: 400 if the header is missing or blank
    """
    if not x_company_id or not x_company_id.strip():
        raise AppException(
            code=ErrorCode.MISSING_TENANT,
            message="X-Company-Id header is required",
            status_code=status.HTTP_400_BAD_REQUEST,
            field="X-Company-Id",
        )
    return x_company_id.strip()


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[str]:
    """Acting user, recorded in payroll audit fields."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


async def get_salary_calculator(
    db: AsyncSession = Depends(get_async_session),
) -> SalaryCalculator:
    return SalaryCalculator(db)


async def get_payslip_renderer(
    db: AsyncSession = Depends(get_async_session),
) -> PayslipRenderer:
    return PayslipRenderer(db)
