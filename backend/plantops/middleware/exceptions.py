"""Custom exceptions and handlers for consistent error responses.

The core services return typed results; routers turn failed results into
the exceptions below via `raise_for_store` / `raise_for_workflow`, and the
handlers render every error in one envelope:

    {"error": {"code": "ERROR_CODE", "message": "...", "details": {...}}}
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from plantops.services.approval import WorkflowOutcome, WorkflowResult
from plantops.services.record_store import ResultKind, StoreResult

logger = logging.getLogger(__name__)


class PlantOpsException(Exception):
    """Base exception for PlantOps application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class BusinessLogicError(PlantOpsException):
    """The data service rejected a structurally valid request."""

    def __init__(self, message: str, error_code: str = "DATA_SERVICE_REJECTED", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
            details=details,
        )


class ValidationFailedError(PlantOpsException):
    """Request is invalid for the current state (empty reason, not pending, ...)."""

    def __init__(self, message: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
        )


class ResourceNotFoundError(PlantOpsException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class PermissionDeniedError(PlantOpsException):
    """Exception for permission denied."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
        )


class UpstreamUnavailableError(PlantOpsException):
    """The remote data service could not be reached. Safe to retry."""

    def __init__(self, message: str, error_code: str = "DATA_SERVICE_UNAVAILABLE", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code=error_code,
            details=details,
        )


# ── Result → exception ───────────────────────────────────────

def _store_failure(
    kind: ResultKind | None,
    message: str,
    error_code: str | None = None,
    details: dict | None = None,
) -> PlantOpsException:
    if kind is ResultKind.TRANSPORT_ERROR:
        return UpstreamUnavailableError(
            message, error_code=error_code or "DATA_SERVICE_UNAVAILABLE", details=details
        )
    return BusinessLogicError(
        message, error_code=error_code or "DATA_SERVICE_REJECTED", details=details
    )


def raise_for_store(result: StoreResult) -> None:
    if not result.ok:
        raise _store_failure(result.kind, result.error or "Data service error")


def raise_for_workflow(result: WorkflowResult, resource: str = "Record", identifier: str = "") -> None:
    """Raise the exception matching a failed workflow result; no-op on success."""
    if result.ok:
        return

    outcome = result.outcome
    message = result.error or outcome.value

    if outcome is WorkflowOutcome.VALIDATION_ERROR:
        code = "NOT_PENDING" if result.code == "not_pending" else "VALIDATION_ERROR"
        raise ValidationFailedError(message, error_code=code)
    if outcome is WorkflowOutcome.AUTHORIZATION_ERROR:
        raise PermissionDeniedError(message)
    if outcome is WorkflowOutcome.NOT_FOUND:
        raise ResourceNotFoundError(resource, identifier)

    details = {"request_id": result.request.id} if result.request else None
    if outcome is WorkflowOutcome.NOT_RECORDED:
        raise _store_failure(
            result.error_kind,
            f"Your request could not be recorded: {message}",
            "APPROVAL_NOT_RECORDED",
        )
    if outcome is WorkflowOutcome.REPLAY_FAILED:
        raise _store_failure(
            result.error_kind,
            f"Approved change could not be applied; the request is still pending: {message}",
            "APPROVAL_REPLAY_FAILED",
            details,
        )
    if outcome is WorkflowOutcome.STATUS_NOT_RECORDED:
        raise _store_failure(
            result.error_kind,
            f"Change applied but the request could not be marked approved: {message}",
            "APPROVAL_STATUS_NOT_RECORDED",
            details,
        )
    raise _store_failure(result.error_kind, message)


# ── Handlers ─────────────────────────────────────────────────

def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Create standardized error response."""
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def plantops_exception_handler(
    request: Request,
    exc: PlantOpsException,
) -> JSONResponse:
    """Handle custom PlantOps exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"PlantOps exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {"code": f"HTTP_{exc.status_code}", "message": str(exc.detail)},
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "errors": exc.errors(),
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
        exc_info=True,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(PlantOpsException, plantops_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
