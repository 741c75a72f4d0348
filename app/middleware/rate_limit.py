"""Rate limiting middleware using SlowAPI."""

import hmac

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from fastapi import Request, FastAPI
from starlette.responses import JSONResponse

from app.core.config import settings
from app.log.logging import logger
from app.middleware.request_id import get_request_id

INTERNAL_BYPASS_KEY = "internal-service-bypass"


def get_request_identifier(request: Request) -> str:
    """
    Get a unique identifier for rate limiting.

    Internal callers presenting the service API key (the AI feature gate)
    share one bypass identifier; everyone else is keyed by client IP.
    """
    api_key = request.headers.get("api-key")
    if api_key and settings.INTERNAL_API_KEY and hmac.compare_digest(
        api_key.encode("utf-8"), settings.INTERNAL_API_KEY.encode("utf-8")
    ):
        return INTERNAL_BYPASS_KEY

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_request_identifier,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Answer 429 in the service's error envelope."""
    logger.warning(
        "Rate limit exceeded",
        event_type="rate_limit_exceeded",
        client_ip=get_remote_address(request),
        path=request.url.path,
        limit=str(exc.detail),
    )

    retry_after = getattr(exc, "retry_after", 60)
    content = {
        "error": "RateLimitExceeded",
        "message": "Too many requests. Please slow down.",
        "details": {"retry_after": retry_after},
    }
    request_id = get_request_id()
    if request_id:
        content["request_id"] = request_id

    return JSONResponse(
        status_code=429,
        content=content,
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(exc.detail) if exc.detail else "unknown",
        }
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """Configure rate limiting for the FastAPI application."""
    # Route decorators read the limiter from app state even when disabled
    app.state.limiter = limiter

    if not settings.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting is disabled", event_type="rate_limit_disabled")
        return

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    logger.info(
        "Rate limiting configured",
        event_type="rate_limit_configured",
        default_limit=settings.RATE_LIMIT_DEFAULT,
        payments_limit=settings.RATE_LIMIT_PAYMENTS,
        storage=settings.RATE_LIMIT_STORAGE_URI,
    )
