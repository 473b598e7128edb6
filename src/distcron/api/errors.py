"""
Error handling: maps ops-layer errors to RFC 7807 responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from distcron.api.schemas import ErrorDetail, ProblemDetail
from distcron.core.logging import get_logger
from distcron.ops.result import OperationResult

logger = get_logger(__name__)

ERROR_CODE_TO_STATUS: dict[str, int] = {
    "NOT_FOUND": 404,
    "VALIDATION_FAILED": 400,
    "UNAVAILABLE": 503,
    "INTERNAL": 500,
}


def status_for_error_code(code: str) -> int:
    """Resolve an ops error code to HTTP status, defaulting to 500."""
    return ERROR_CODE_TO_STATUS.get(code, 500)


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    errors: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(title=title, status=status, detail=detail, instance=instance)
    if errors:
        body.errors = [ErrorDetail(**e) for e in errors]
    return JSONResponse(
        status_code=status,
        content=body.model_dump(),
        media_type="application/problem+json",
    )


def handle_error(result: OperationResult, request: Request | None = None) -> JSONResponse:
    """Convert a failed ``OperationResult`` into a Problem Details response."""
    error = result.error
    code = error.code if error else "INTERNAL"
    detail = ""
    if error and error.details:
        detail = "; ".join(f"{k}={v}" for k, v in error.details.items())
    return problem_response(
        status=status_for_error_code(code),
        title=error.message if error else "Operation failed",
        detail=detail,
        instance=str(request.url) if request is not None else "",
        errors=[{"code": code, "message": error.message}] if error else None,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: returns 500 with ProblemDetail."""
    logger.exception("unhandled_api_error", path=request.url.path)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail=str(exc) if request.app.state.settings.debug else "An unexpected error occurred.",
        instance=str(request.url),
    )
