"""Error handlers for the application with consistent request_id tracking."""
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Dict, Any

from sqlalchemy.exc import SQLAlchemyError
from app.log.logging import logger
from app.core.exceptions import ServiceException
from app.core.db_exceptions import DatabaseException
from app.middleware.request_id import get_request_id
from app.services.credit.exceptions import CreditServiceError, GatewayError


def _build_error_response(
    error: str,
    message: str,
    details: Any = None,
    include_request_id: bool = True
) -> Dict[str, Any]:
    """
    Build a consistent error response structure.

    All error responses follow the same format for consistency:
    - error: Error type identifier (e.g., "ValidationError", "InsufficientCredits")
    - message: Human-readable error message
    - request_id: Unique request identifier for debugging (if enabled)
    - details: Additional error details (optional)
    """
    response = {
        "error": error,
        "message": message
    }

    if include_request_id:
        request_id = get_request_id()
        if request_id:
            response["request_id"] = request_id

    if details is not None:
        response["details"] = details

    return response


async def credit_service_exception_handler(request: Request, exc: CreditServiceError) -> JSONResponse:
    """Handle ledger and payment errors raised by the credit services."""
    log_level = logger.error if exc.status_code >= 500 else logger.warning
    log_level(
        'Credit service error',
        event_type='credit_service_error',
        error_type=exc.error_type,
        error_message=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
        context=exc.context
    )

    content = _build_error_response(
        error=exc.error_type,
        message=exc.message,
        details=exc.context or None
    )
    headers = None
    if isinstance(exc, GatewayError):
        content["retryable"] = exc.retryable
        headers = {"Retry-After": "5"}

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def service_exception_handler(request: Request, exc: ServiceException) -> JSONResponse:
    """Handle authentication exceptions raised by the auth dependencies."""
    error_type = exc.context.get("error_type", "AuthError")

    # Expired tokens are routine; everything else is worth an error entry
    log_level = logger.warning if error_type == "TokenExpired" else logger.error
    log_level(
        f'Auth error: {exc.error_detail}',
        event_type='auth_error',
        error_type=error_type,
        status_code=exc.status_code,
        path=request.url.path
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_build_error_response(error=error_type, message=str(exc.error_detail)),
        headers=exc.headers
    )


async def database_exception_handler(request: Request, exc: DatabaseException) -> JSONResponse:
    """Handle database exceptions with appropriate status codes and retry information."""
    logger.error('Database error',
        event_type='db_api_error',
        error_code=exc.error_code.name,
        status_code=exc.status_code,
        path=request.url.path,
        error_details=exc.error_details
    )

    # Driver messages stay in the logs
    message = exc.detail.get("detail") if isinstance(exc.detail, dict) else str(exc.detail)
    content = _build_error_response(
        error="DatabaseUnavailable" if exc.status_code == 503 else "DatabaseError",
        message=message,
        details={"error_code": exc.error_code.name}
    )
    if exc.status_code == 503:
        content["retryable"] = True
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation exceptions."""
    errors = [
        {key: value for key, value in error.items() if key in ("type", "loc", "msg")}
        for error in exc.errors()
    ]
    logger.warning(
        'Validation error',
        event_type='validation_error',
        path=request.url.path,
        method=request.method,
        errors=errors
    )
    return JSONResponse(
        status_code=422,
        content=_build_error_response(
            error="ValidationError",
            message="Invalid request data",
            details=errors
        )
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    # Use warning for client errors (4xx), error for server errors (5xx)
    log_level = logger.warning if 400 <= exc.status_code < 500 else logger.error
    log_level(
        'HTTP error',
        event_type='http_error',
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
        detail=str(exc.detail)[:200]
    )

    error_type_map = {
        400: "BadRequest",
        401: "Unauthorized",
        402: "PaymentRequired",
        403: "Forbidden",
        404: "NotFound",
        405: "MethodNotAllowed",
        409: "Conflict",
        429: "RateLimitExceeded",
    }
    error_type = error_type_map.get(exc.status_code, "HTTPError")

    return JSONResponse(
        status_code=exc.status_code,
        content=_build_error_response(
            error=error_type,
            message=str(exc.detail)
        ),
        headers=getattr(exc, "headers", None)
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy exceptions."""
    logger.opt(exception=exc).error(
        'SQLAlchemy error',
        event_type='db_sqlalchemy_error',
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=500,
        content=_build_error_response(
            error="DatabaseError",
            message="A database error occurred. Please try again later."
        )
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle generic/unhandled exceptions."""
    logger.opt(exception=exc).error(
        'Unhandled error',
        event_type='unhandled_error',
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method
    )
    return JSONResponse(
        status_code=500,
        content=_build_error_response(
            error="InternalServerError",
            message="An unexpected error occurred."
        )
    )
