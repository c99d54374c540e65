"""
Custom exception hierarchy for the Metrics API.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Validation kinds (caller input problems) map to 400; storage failures and
anything unexpected map to 500. The handlers at the bottom of this module
render every error in the `{success: false, error: {...}}` envelope.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class MetricsAPIException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message
        self.details = details or {}
        self.headers = headers
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class MetricValidationError(MetricsAPIException):
    """Caller supplied something that can never become a valid metric."""
    http_status = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class InvalidMetricTypeError(MetricValidationError):
    code = "INVALID_METRIC_TYPE"

    def __init__(self, metric_type: Optional[str]):
        super().__init__(
            message=f'Invalid metric type: {metric_type}. Must be "distance" or "temperature"',
            details={"type": metric_type},
        )


class InvalidUnitError(MetricValidationError):
    code = "INVALID_UNIT"

    def __init__(self, metric_type: Optional[str], unit: Optional[str], valid_units: list[str]):
        self.valid_units = list(valid_units)
        super().__init__(
            message=(
                f'Invalid unit "{unit}" for type "{metric_type}". '
                f"Valid units: {', '.join(self.valid_units)}"
            ),
            details={"type": metric_type, "unit": unit, "validUnits": self.valid_units},
        )


class MissingUserIdError(MetricValidationError):
    code = "MISSING_USER_ID"

    def __init__(self):
        super().__init__(message="UserId is required")


class InvalidValueError(MetricValidationError):
    code = "INVALID_VALUE"

    def __init__(self, value: Any):
        super().__init__(
            message="Value must be a valid number",
            details={"value": str(value)},
        )


class MissingUnitError(MetricValidationError):
    code = "MISSING_UNIT"

    def __init__(self):
        super().__init__(message="Unit is required")


class InvalidDateError(MetricValidationError):
    code = "INVALID_DATE"

    def __init__(self, value: Any):
        super().__init__(
            message="Date must be a valid date",
            details={"date": str(value)},
        )


class InvalidDateRangeError(MetricValidationError):
    code = "INVALID_DATE_RANGE"

    def __init__(self, start_date: Any, end_date: Any):
        super().__init__(
            message="endDate must be on or after startDate",
            details={"startDate": str(start_date), "endDate": str(end_date)},
        )


class InvalidPeriodError(MetricValidationError):
    code = "INVALID_PERIOD"

    def __init__(self, period: Any, valid_periods: list[str]):
        super().__init__(
            message=f'Invalid period "{period}". Valid periods: {", ".join(valid_periods)}',
            details={"period": str(period), "validPeriods": list(valid_periods)},
        )


class NotFoundError(MetricsAPIException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message=message)


class StorageError(MetricsAPIException):
    """Opaque wrapper around a persistence failure; the original is __cause__."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "STORAGE_ERROR"

    def __init__(self, operation: str):
        super().__init__(
            message=f"Storage operation '{operation}' failed.",
            details={"operation": operation},
        )


class RateLimitExceededError(MetricsAPIException):
    http_status = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(
            message="Too many requests, please try again later.",
            details={"maxRequests": max_requests, "windowSeconds": window_seconds},
            headers=headers,
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _envelope(error: dict[str, Any]) -> dict[str, Any]:
    return {"success": False, "error": error}


async def metrics_exception_handler(request: Request, exc: MetricsAPIException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc.message,
            exc_info=exc.__cause__ or exc,
        )
    else:
        logger.warning(
            "%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code,
        )
    return JSONResponse(
        status_code=exc.http_status,
        content=_envelope(exc.to_dict()),
        headers=exc.headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 400 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query")),
            "message": error["msg"],
            "type": error["type"],
        })
    logger.warning(
        "%s %s rejected: %d validation error(s)",
        request.method, request.url.path, len(field_errors),
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_envelope({
            "code": "VALIDATION_ERROR",
            "message": "Validation failed",
            "details": {"errors": field_errors},
        }),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        error = {
            "code": "NOT_FOUND",
            "message": f"Route {request.method} {request.url.path} not found",
        }
    else:
        error = {"code": "HTTP_ERROR", "message": str(exc.detail)}
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(error),
        headers=getattr(exc, "headers", None),
    )


def build_unhandled_exception_handler(expose_details: bool):
    """Generic 500 handler; only non-production builds echo the exception text."""

    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        # Runs outside RequestIdMiddleware, whose context variable is already reset.
        logger.error(
            "Unexpected error on %s %s", request.method, request.url.path,
            exc_info=exc,
            extra={"request_id": getattr(request.state, "request_id", "-")},
        )
        message = str(exc) if expose_details else "An unexpected error occurred."
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope({"code": "INTERNAL_ERROR", "message": message}),
        )

    return unhandled_exception_handler
