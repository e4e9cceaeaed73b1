"""
Error Handling Module for manageRTC Payroll

This module provides centralized error handling with:
- Custom exception hierarchy
- Standardized error responses
- Error logging
- Pay-period validation helpers
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("managertc.errors")

MIN_PAYROLL_YEAR = 2020
MAX_PAYROLL_YEAR = 2099


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_PAY_PERIOD = "INVALID_PAY_PERIOD"
    MISSING_COMPENSATION = "MISSING_COMPENSATION"
    MISSING_TENANT = "MISSING_TENANT"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    PAYROLL_NOT_FOUND = "PAYROLL_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    PAYROLL_NOT_EDITABLE = "PAYROLL_NOT_EDITABLE"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Rendering / storage errors (500)
    PAYSLIP_RENDERING_ERROR = "PAYSLIP_RENDERING_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class InvalidPayPeriodException(ValidationException):
    """Month or year outside the supported pay-period range"""

    def __init__(self, month: Any, year: Any, message: Optional[str] = None):
        super().__init__(
            message=message or (
                f"Invalid pay period {month}/{year}. Month must be 1-12 and "
                f"year {MIN_PAYROLL_YEAR}-{MAX_PAYROLL_YEAR}."
            ),
            field="period",
            code=ErrorCode.INVALID_PAY_PERIOD,
            details={"month": month, "year": year},
        )


class MissingCompensationException(ValidationException):
    """Employee has no usable compensation profile"""

    def __init__(self, employee_id: Union[str, UUID], missing: str = "basic_salary"):
        super().__init__(
            message=f"Employee '{employee_id}' has no {missing} in the compensation profile",
            field=missing,
            code=ErrorCode.MISSING_COMPENSATION,
            details={"employee_id": str(employee_id)},
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class EmployeeNotFoundException(NotFoundException):
    """Employee not found"""

    def __init__(self, employee_id: Union[str, UUID]):
        super().__init__(
            resource_type="Employee",
            resource_id=employee_id,
            code=ErrorCode.EMPLOYEE_NOT_FOUND,
        )


class PayrollRecordNotFoundException(NotFoundException):
    """Payroll record not found"""

    def __init__(self, payroll_id: Union[str, UUID]):
        super().__init__(
            resource_type="Payroll record",
            resource_id=payroll_id,
            code=ErrorCode.PAYROLL_NOT_FOUND,
        )


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class InvalidStatusTransitionException(BusinessRuleException):
    """Payroll workflow move not allowed from the current status"""

    def __init__(self, payroll_id: str, current: str, target: str):
        super().__init__(
            message=f"Payroll '{payroll_id}' cannot move from {current} to {target}",
            rule="PAYROLL_STATUS_WORKFLOW",
            code=ErrorCode.INVALID_STATUS_TRANSITION,
            details={"payroll_id": payroll_id, "current_status": current, "target_status": target},
        )


class PayrollNotEditableException(BusinessRuleException):
    """Line items can only be edited before approval"""

    def __init__(self, payroll_id: str, current: str):
        super().__init__(
            message=f"Payroll '{payroll_id}' cannot be edited in status {current}",
            rule="PAYROLL_EDITABLE_STATUSES",
            code=ErrorCode.PAYROLL_NOT_EDITABLE,
            details={"payroll_id": payroll_id, "current_status": current},
        )


# ============================================================================
# Database Exceptions
# ============================================================================

class DatabaseException(AppException):
    """Database error exception"""

    def __init__(
        self,
        message: str = "A database error occurred",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            original_error=original_error,
        )


# ============================================================================
# Payslip Exceptions
# ============================================================================

class PayslipRenderingException(AppException):
    """Payslip could not be rendered or written to storage"""

    def __init__(self, payroll_id: str, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            code=ErrorCode.PAYSLIP_RENDERING_ERROR,
            message=f"Payslip for '{payroll_id}' could not be generated: {message}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"payroll_id": payroll_id},
            original_error=original_error,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

HTTP_STATUS_CODES = {
    400: ErrorCode.INVALID_INPUT,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.INVALID_INPUT,
    409: ErrorCode.RESOURCE_CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Error envelope shared by every handler: {"detail": {code, message, timestamp, ...}}"""
    body: Dict[str, Any] = {
        "code": code.value,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if field:
        body["field"] = field
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"detail": body})


def _request_context(request: Request) -> Dict[str, Any]:
    return {
        "path": request.url.path,
        "method": request.method,
        "company_id": request.headers.get("X-Company-Id"),
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    # 4xx at warning, 5xx at error
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.code.value}: {exc.message}",
        extra={**_request_context(request), "details": exc.details},
        exc_info=exc.original_error,
    )
    payload = exc.to_dict()
    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=payload.get("details"),
        field=payload.get("field"),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.warning(f"HTTP {exc.status_code}: {message}", extra=_request_context(request))
    return create_error_response(
        code=HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body, path or query failed schema validation"""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"Request validation failed with {len(errors)} error(s)",
        extra={**_request_context(request), "errors": errors},
    )
    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


def _classify_database_error(exc: SQLAlchemyError) -> Tuple[ErrorCode, str, int]:
    if isinstance(exc, IntegrityError):
        reason = str(exc.orig).lower() if exc.orig else ""
        if "unique" in reason or "duplicate" in reason:
            return ErrorCode.DUPLICATE_ENTRY, "A payroll record for this key already exists", status.HTTP_409_CONFLICT
        return ErrorCode.DATA_INTEGRITY_ERROR, "Data integrity constraint violated", status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, OperationalError):
        return ErrorCode.CONNECTION_ERROR, "Database unavailable", status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, DataError):
        return ErrorCode.DATABASE_ERROR, "Invalid data format for database", status.HTTP_422_UNPROCESSABLE_ENTITY
    return ErrorCode.DATABASE_ERROR, "A database error occurred", status.HTTP_500_INTERNAL_SERVER_ERROR


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    code, message, status_code = _classify_database_error(exc)
    logger.error(
        f"Database error ({type(exc).__name__}): {exc}",
        extra=_request_context(request),
        exc_info=True,
    )
    return create_error_response(code=code, message=message, status_code=status_code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.critical(
        f"Unhandled {type(exc).__name__}: {exc}",
        extra=_request_context(request),
        exc_info=True,
    )
    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============================================================================
# Utility Functions
# ============================================================================

def validate_pay_period(month: Any, year: Any) -> tuple:
    """Validate a (month, year) pay period and return it as integers"""
    if isinstance(month, (bool, float)) or isinstance(year, (bool, float)):
        raise InvalidPayPeriodException(month, year)
    try:
        month_value = int(month)
        year_value = int(year)
    except (TypeError, ValueError):
        raise InvalidPayPeriodException(month, year)
    if not 1 <= month_value <= 12 or not MIN_PAYROLL_YEAR <= year_value <= MAX_PAYROLL_YEAR:
        raise InvalidPayPeriodException(month, year)
    return month_value, year_value


__all__ = [
    # Base
    "AppException",
    "ErrorCode",

    # Validation
    "ValidationException",
    "InvalidPayPeriodException",
    "MissingCompensationException",

    # Resource
    "NotFoundException",
    "EmployeeNotFoundException",
    "PayrollRecordNotFoundException",

    # Business Logic
    "BusinessRuleException",
    "InvalidStatusTransitionException",

    # Database
    "DatabaseException",

    # Payslip
    "PayslipRenderingException",

    # Handlers
    "setup_exception_handlers",
    "create_error_response",

    # Utilities
    "validate_pay_period",
]
