"""
Application Exceptions Module.

Centralized exception definitions with:
- Structured error responses
- HTTP status code mapping
- Error codes for client handling
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import structlog

logger = structlog.get_logger(__name__)


# ============================================================================
# ERROR CODES
# ============================================================================


class ErrorCode(str, Enum):
    """Application error codes."""

    # General errors (1xxx)
    INTERNAL_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    NOT_FOUND = "E1002"
    CONFLICT = "E1003"

    # Resource errors (4xxx)
    DECISION_NOT_FOUND = "E4002"

    # External service errors (5xxx)
    EXTERNAL_SERVICE_ERROR = "E5000"
    TIMEOUT_ERROR = "E5002"

    # Data errors (6xxx)
    DATA_INTEGRITY_ERROR = "E6001"


# ============================================================================
# ERROR RESPONSE MODEL
# ============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str
    message: str
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Standard error response returned by every endpoint."""

    error: ErrorDetail
    request_id: Optional[str] = None
    timestamp: Optional[str] = None


# ============================================================================
# BASE EXCEPTION
# ============================================================================


class LedgerError(Exception):
    """Base exception for the compliance ledger."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=ErrorDetail(
                code=self.code.value,
                message=self.message,
                field=self.field,
                details=self.details,
            ),
            request_id=request_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )


# ============================================================================
# SPECIFIC EXCEPTIONS
# ============================================================================


class ValidationError(LedgerError):
    """Validation error."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            field=field,
            details=details,
        )


class NotFoundError(LedgerError):
    """Resource not found error."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            code=ErrorCode.NOT_FOUND,
            status_code=404,
            details={"resource": resource, "identifier": identifier, **(details or {})},
        )


class DecisionNotFoundError(LedgerError):
    """Compliance decision not found error."""

    def __init__(self, decision_id: str):
        super().__init__(
            message=f"Decision not found: {decision_id}",
            code=ErrorCode.DECISION_NOT_FOUND,
            status_code=404,
            details={"decision_id": decision_id},
        )


class DecisionConflictError(LedgerError):
    """A decision with the same id is already in the ledger."""

    def __init__(self, decision_id: str):
        super().__init__(
            message=f"Decision with ID {decision_id} already exists",
            code=ErrorCode.CONFLICT,
            status_code=409,
            details={"decision_id": decision_id},
        )


class UpstreamAuditSourceError(LedgerError):
    """An audit source failed during aggregation."""

    def __init__(
        self,
        source: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
    ):
        self.source = source
        super().__init__(
            message=f"Audit source error ({source}): {message}",
            code=code,
            status_code=502,
            details={"source": source, **(details or {})},
        )


class PolicyEngineUnavailableError(LedgerError):
    """No policy engine is installed, so decisions cannot be evaluated."""

    def __init__(self):
        super().__init__(
            message="Policy engine is not configured",
            code=ErrorCode.EXTERNAL_SERVICE_ERROR,
            status_code=503,
        )


class DataIntegrityError(LedgerError):
    """Data integrity error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.DATA_INTEGRITY_ERROR,
            status_code=500,
            details=details,
        )


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


async def ledger_exception_handler(
    request: Request,
    exc: LedgerError,
) -> JSONResponse:
    """Handle LedgerError exceptions."""
    request_id = request.headers.get("X-Request-ID")

    logger.error(
        "ledger_error",
        error_code=exc.code.value,
        message=exc.message,
        status_code=exc.status_code,
        request_id=request_id,
        details=exc.details,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(request_id).model_dump(),
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle generic exceptions."""
    request_id = request.headers.get("X-Request-ID")

    logger.exception(
        "unhandled_exception",
        error=str(exc),
        request_id=request_id,
    )

    error = LedgerError(
        message="An internal error occurred",
        code=ErrorCode.INTERNAL_ERROR,
        status_code=500,
    )

    return JSONResponse(
        status_code=500,
        content=error.to_response(request_id).model_dump(),
    )


def register_exception_handlers(app):
    """Register exception handlers with FastAPI app."""
    app.add_exception_handler(LedgerError, ledger_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
