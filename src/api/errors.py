"""
Exception handlers.

Maps the billing core's exception families to HTTP responses. Every
error body has the same shape:

    {"message": "...", "error": "..."}

where "error" (extra detail) is only included in development.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.billing.errors import (
    AuthenticationError,
    BillingError,
    ConflictError,
    NotFoundError,
    OverlapConflictError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order; subclasses must come before their parents.
STATUS_BY_ERROR: list[tuple[type[BillingError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
]


def status_for(exc: BillingError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def error_body(message: str, error: Optional[Any] = None, show_error: bool = False) -> dict[str, Any]:
    body: dict[str, Any] = {"message": message}
    if show_error and error is not None:
        body["error"] = error
    return body


def install_exception_handlers(app: FastAPI, show_details: bool) -> None:
    """Register handlers on app. show_details controls the "error" field."""

    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError):
        status_code = status_for(exc)
        headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None

        detail = None
        if isinstance(exc, OverlapConflictError):
            detail = {"coach_id": exc.coach_id, "conflicting_ids": exc.conflicting_ids}

        logger.info(
            "Request rejected",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "error_type": type(exc).__name__,
                "error": exc.message,
            }
        )
        return JSONResponse(
            status_code=status_code,
            content=error_body(exc.message, detail, show_details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies and query parameters are a 400, like any other validation failure."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid request")

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(
                message,
                [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
                show_details,
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        In production, this prevents stack traces from leaking to clients.
        We log the full error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("Server Error", str(exc), show_details),
        )
