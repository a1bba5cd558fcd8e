"""
Standardized exception handling for consistent API error responses.

Every error body has the shape ``{"message": ..., "code": ..., "details": ...}``
where ``code`` and ``details`` are omitted when empty.
"""

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Optional, Any
import structlog

from xanime_api.core.errors import error_summary

logger = structlog.get_logger()


class APIError(HTTPException):
    """Base API error with consistent structure."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class ValidationError(APIError):
    """Input validation error."""

    def __init__(self, message: str = "必要な情報が不足しています。", details: Optional[Any] = None):
        super().__init__(
            status_code=400,
            message=message,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class AuthenticationError(APIError):
    """Missing or rejected bearer token."""

    def __init__(self, message: str = "認証が必要です。"):
        super().__init__(
            status_code=401,
            message=message,
            error_code="UNAUTHENTICATED",
        )


class AuthorizationError(APIError):
    """Authorization/permission error."""

    def __init__(self, message: str = "アクセス権限がありません。"):
        super().__init__(
            status_code=403,
            message=message,
            error_code="FORBIDDEN",
        )


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(self, message: str, resource_id: Optional[str] = None):
        super().__init__(
            status_code=404,
            message=message,
            error_code="NOT_FOUND",
            details={"id": resource_id} if resource_id else None,
        )


class UpstreamError(APIError):
    """A Supabase call failed and the request cannot be completed."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(
            status_code=500,
            message=message,
            error_code=code,
            details=details,
        )


def upstream_error(exc: Exception, message: str) -> "UpstreamError":
    """Wrap a Supabase client error, keeping its code for diagnostics"""
    summary = error_summary(exc)
    logger.error("Supabase request failed", user_message=message, **summary)
    return UpstreamError(message, code=summary.get("code"), details=summary.get("details"))


class ConfigurationError(APIError):
    """Server is missing required configuration."""

    def __init__(self, message: str):
        super().__init__(
            status_code=500,
            message=message,
            error_code="CONFIGURATION_ERROR",
        )


def api_error_response(error: APIError) -> JSONResponse:
    """Create standardized error response."""
    content = {"message": error.message}
    if error.error_code:
        content["code"] = error.error_code
    if error.details:
        content["details"] = error.details

    return JSONResponse(
        status_code=error.status_code,
        content=content,
    )


async def api_exception_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "API error",
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        path=request.url.path,
    )
    return api_error_response(exc)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed or incomplete request bodies are reported as 400."""
    fields = [
        ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        for error in exc.errors()
    ]
    logger.warning("Request validation failed", fields=fields, path=request.url.path)
    return api_error_response(ValidationError(details={"fields": fields}))
