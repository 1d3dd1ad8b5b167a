"""
Error Handling Module for ShopLedger

Domain exceptions raised by the services, and the FastAPI handlers that turn
them (and framework/database errors) into the JSON error envelope:

    {"detail": {"code": ..., "message": ..., "timestamp": ..., "field"?: ..., "details"?: ...}}

Database internals never reach the client.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DataError, IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("shopledger.errors")

Identifier = Union[str, UUID]


class ErrorCode(str, Enum):
    """Machine-readable codes carried in every error body"""

    # 422
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_OPERATION = "INVALID_OPERATION"
    DEPTH_EXCEEDED = "DEPTH_EXCEEDED"
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"

    # 400 / 403
    INVALID_INPUT = "INVALID_INPUT"
    FORBIDDEN = "FORBIDDEN"
    PERIOD_CLOSED = "PERIOD_CLOSED"
    HAS_CHILDREN = "HAS_CHILDREN"
    HAS_DEPENDENT_POSTINGS = "HAS_DEPENDENT_POSTINGS"
    SYSTEM_RECORD = "SYSTEM_RECORD"

    # 404 / 409
    NOT_FOUND = "NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    OVERLAPPING_PERIOD = "OVERLAPPING_PERIOD"
    ALREADY_CLOSED = "ALREADY_CLOSED"

    # 500
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """
    Base class of every domain error.

    Subclasses fix the HTTP status and the default code; an instance may
    override the code (e.g. ALREADY_CLOSED on a conflict).
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return _error_body(self.code, self.message, self.details, self.field, self.timestamp)


def _error_body(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "code": code.value,
        "message": message,
        "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
    }
    if field:
        body["field"] = field
    if details:
        body["details"] = details
    return body


# ---------------------------------------------------------------------------
# 422: well-formed input the domain rejects
# ---------------------------------------------------------------------------

class ValidationException(AppException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_code = ErrorCode.VALIDATION_ERROR


class InvalidOperationException(ValidationException):
    """The request is well-formed but the operation makes no sense for the data"""

    default_code = ErrorCode.INVALID_OPERATION

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details, field=field)


class InvalidDateRangeException(ValidationException):
    default_code = ErrorCode.INVALID_DATE_RANGE

    def __init__(self, start_date: str, end_date: str, message: Optional[str] = None):
        super().__init__(
            message or f"End date {end_date} must be after start date {start_date}",
            details={"start_date": start_date, "end_date": end_date},
            field="end_date",
        )


class InvalidAmountException(ValidationException):
    default_code = ErrorCode.INVALID_AMOUNT

    def __init__(self, amount: Any, field: str = "amount", message: Optional[str] = None):
        super().__init__(
            message or f"Amount must be greater than zero (got {amount})",
            details={"provided_amount": str(amount)},
            field=field,
        )


class DepthExceededException(ValidationException):
    default_code = ErrorCode.DEPTH_EXCEEDED

    def __init__(self, resource_type: str, level: int, max_depth: int):
        super().__init__(
            f"{resource_type} hierarchy is limited to {max_depth} levels; level {level} was requested",
            details={"resource_type": resource_type, "level": level, "max_depth": max_depth},
            field="parent_id",
        )


class CircularReferenceException(ValidationException):
    default_code = ErrorCode.CIRCULAR_REFERENCE

    def __init__(self, resource_type: str, node_id: Identifier, parent_id: Identifier):
        super().__init__(
            f"{resource_type} '{node_id}' cannot be placed under its own descendant '{parent_id}'",
            details={"resource_type": resource_type, "node_id": str(node_id), "parent_id": str(parent_id)},
            field="parent_id",
        )


# ---------------------------------------------------------------------------
# 403: the current state of a record forbids the operation
# ---------------------------------------------------------------------------

class ForbiddenOperationException(AppException):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = ErrorCode.FORBIDDEN

    def __init__(self, message: str, code: Optional[ErrorCode] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class ClosedPeriodException(ForbiddenOperationException):
    """Closed financial years are immutable"""

    default_code = ErrorCode.PERIOD_CLOSED

    def __init__(self, financial_year_id: Identifier, operation: str = "modify"):
        super().__init__(
            f"Cannot {operation}: financial year '{financial_year_id}' is closed",
            details={"financial_year_id": str(financial_year_id), "operation": operation},
        )


class HasChildrenException(ForbiddenOperationException):
    default_code = ErrorCode.HAS_CHILDREN

    def __init__(self, resource_type: str, resource_id: Identifier):
        super().__init__(
            f"{resource_type} '{resource_id}' still has children; delete or move them first",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class HasDependentPostingsException(ForbiddenOperationException):
    default_code = ErrorCode.HAS_DEPENDENT_POSTINGS

    def __init__(self, resource_type: str, resource_id: Identifier, count: int):
        super().__init__(
            f"{resource_type} '{resource_id}' is used by {count} transaction(s); deactivate it instead",
            details={"resource_type": resource_type, "resource_id": str(resource_id), "transaction_count": count},
        )


class SystemRecordException(ForbiddenOperationException):
    default_code = ErrorCode.SYSTEM_RECORD

    def __init__(self, resource_type: str, resource_id: Identifier, operation: str):
        super().__init__(
            f"System {resource_type.lower()} '{resource_id}' cannot be {_past_tense(operation)}",
            details={"resource_type": resource_type, "resource_id": str(resource_id), "operation": operation},
        )


def _past_tense(verb: str) -> str:
    return verb + "d" if verb.endswith("e") else verb + "ed"


# ---------------------------------------------------------------------------
# 404 / 409
# ---------------------------------------------------------------------------

class NotFoundException(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = ErrorCode.NOT_FOUND

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Identifier] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"{resource_type} '{resource_id}' not found" if resource_id else f"{resource_type} not found"
        super().__init__(
            message,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class ConflictException(AppException):
    status_code = status.HTTP_409_CONFLICT
    default_code = ErrorCode.RESOURCE_CONFLICT

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if resource_type:
            details["resource_type"] = resource_type
        super().__init__(message, code=code, details=details)


class DuplicateEntryException(ConflictException):
    default_code = ErrorCode.DUPLICATE_ENTRY

    def __init__(self, resource_type: str, field: str, value: str):
        super().__init__(
            f"{resource_type} {field} '{value}' is already taken",
            resource_type=resource_type,
            details={"field": field, "value": value},
        )


class OverlappingPeriodException(ConflictException):
    default_code = ErrorCode.OVERLAPPING_PERIOD

    def __init__(self, conflicting: List[str]):
        super().__init__(
            f"Dates overlap financial year(s): {', '.join(conflicting)}",
            resource_type="FinancialYear",
            details={"conflicting_years": conflicting},
        )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

HTTP_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.INVALID_INPUT,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.RESOURCE_CONFLICT,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorCode.VALIDATION_ERROR,
}


def _respond(status_code: int, body: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": body})


def _where(request: Request) -> str:
    return f"{request.method} {request.url.path}"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{_where(request)}: {exc.code.value} {exc.message}", exc_info=exc.original_error)
    else:
        logger.info(f"{_where(request)}: {exc.code.value} {exc.message}")
    return _respond(exc.status_code, exc.to_dict())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.warning(f"{_where(request)}: HTTP {exc.status_code} {message}")
    return _respond(exc.status_code, _error_body(code, message))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    logger.warning(f"{_where(request)}: {len(errors)} validation error(s)")
    return _respond(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        _error_body(ErrorCode.VALIDATION_ERROR, "Request validation failed", {"errors": errors}),
    )


def classify_database_error(exc: SQLAlchemyError) -> Tuple[int, ErrorCode, str]:
    """Map a SQLAlchemy error to (status, code, client-safe message)."""
    if isinstance(exc, IntegrityError):
        reason = str(exc.orig).lower() if exc.orig else ""
        if "unique" in reason or "duplicate" in reason:
            return status.HTTP_409_CONFLICT, ErrorCode.DUPLICATE_ENTRY, "A record with this value already exists"
        if "foreign key" in reason:
            return (
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                ErrorCode.DATA_INTEGRITY_ERROR,
                "Referenced record does not exist",
            )
        return status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.DATA_INTEGRITY_ERROR, "Data integrity check failed"
    if isinstance(exc, OperationalError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.CONNECTION_ERROR, "Database operation failed"
    if isinstance(exc, DataError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY, ErrorCode.DATABASE_ERROR, "Invalid data format for database"
    return status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.DATABASE_ERROR, "A database error occurred"


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    status_code, code, message = classify_database_error(exc)
    logger.error(f"{_where(request)}: {type(exc).__name__}", exc_info=True)
    return _respond(status_code, _error_body(code, message))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.critical(f"{_where(request)}: unhandled {type(exc).__name__}: {exc}", exc_info=True)
    return _respond(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        _error_body(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred. Please try again later."),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
