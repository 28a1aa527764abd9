"""Error handling for consistent JSON error responses.

Every error leaves the API in the same envelope:

    {
        "success": false,
        "error": {"code": "...", "message": "...", "details": {...}},
        "request_id": "..."
    }

Domain errors are mapped by exception handlers; anything unexpected is
caught by ErrorHandlerMiddleware, logged, and answered with a generic 500
that carries no details.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from lettertrack.core.errors import LetterTrackError
from lettertrack.core.logging import get_request_id

if TYPE_CHECKING:
    from fastapi import FastAPI, Request
    from starlette.responses import Response

logger = logging.getLogger(__name__)

# Request locations stripped from validation error paths
_LOCATIONS = {"body", "query", "path", "header", "cookie", "form"}

_HTTP_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
}


class AuthenticationError(LetterTrackError):
    """Authentication error (401)."""

    code = "unauthorized"
    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class AuthorizationError(LetterTrackError):
    """Authorization/permission error (403)."""

    code = "forbidden"
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


def build_error_response(
    code: str,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a standardized error response.

    Args:
        code: Machine-readable error code.
        message: Human-readable description.
        status_code: HTTP status code.
        details: Optional structured details.
        headers: Optional extra response headers.

    Returns:
        JSONResponse with the error envelope.
    """
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details

    body: dict[str, Any] = {"success": False, "error": error}

    # Include request ID for correlation
    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id

    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _field_name(loc: tuple[Any, ...]) -> str:
    parts = [str(part) for part in loc if part not in _LOCATIONS]
    return ".".join(parts) or "request"


async def domain_error_handler(_request: Request, exc: LetterTrackError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed with %s: %s", exc.code, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    # Internal errors never expose details
    details = None if exc.status_code == 500 else exc.details
    return build_error_response(exc.code, exc.message, exc.status_code, details, headers)


async def request_validation_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        fields.setdefault(_field_name(tuple(error.get("loc", ()))), []).append(error["msg"])
    return build_error_response(
        "validation_error",
        "Request validation failed",
        400,
        {"fields": fields},
    )


async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return build_error_response(
        _HTTP_CODES.get(exc.status_code, "http_error"),
        str(exc.detail),
        exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain and framework errors onto the error envelope."""
    app.add_exception_handler(LetterTrackError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware that turns unexpected exceptions into a generic 500."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        """Process request and handle any exceptions.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware/handler in the chain.

        Returns:
            The response, or an error response if an exception occurred.
        """
        try:
            return await call_next(request)
        except Exception:
            # Unexpected errors - log and return generic 500
            logger.exception(
                "Unexpected error processing request: %s %s",
                request.method,
                request.url.path,
            )
            return build_error_response(
                code="internal_error",
                message="An internal error occurred",
                status_code=500,
            )
