"""Request timeout middleware for preventing long-running requests."""

import asyncio
from typing import Optional, List
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

from app.log.logging import logger
from app.middleware.request_id import get_request_id

DEFAULT_EXCLUDED_PATHS = ["/healthcheck", "/docs", "/redoc", "/openapi.json"]


class TimeoutMiddleware(BaseHTTPMiddleware):
    """
    Answers 504 when a request runs longer than ``timeout_seconds``.

    The bound must stay above the payment gateway timeout so that a slow
    gateway surfaces as a 502 from the handler rather than a 504 here. A
    cancelled request never commits, so a ledger write is either complete or
    absent.
    """

    def __init__(
        self,
        app,
        timeout_seconds: float = 30.0,
        exclude_paths: Optional[List[str]] = None
    ):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds
        self.exclude_paths = exclude_paths if exclude_paths is not None else DEFAULT_EXCLUDED_PATHS

    def _should_apply_timeout(self, path: str) -> bool:
        return not any(path.startswith(excluded) for excluded in self.exclude_paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self._should_apply_timeout(request.url.path):
            return await call_next(request)

        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            request_id = get_request_id()
            logger.warning(
                f"Request timeout after {self.timeout_seconds}s",
                event_type="request_timeout",
                path=request.url.path,
                method=request.method,
                timeout_seconds=self.timeout_seconds
            )

            content = {
                "error": "GatewayTimeout",
                "message": f"Request processing exceeded {self.timeout_seconds} seconds",
            }
            if request_id:
                content["request_id"] = request_id
            return JSONResponse(status_code=504, content=content)


def setup_timeout_middleware(
    app,
    timeout_seconds: float = 30.0,
    exclude_paths: Optional[List[str]] = None
):
    app.add_middleware(
        TimeoutMiddleware,
        timeout_seconds=timeout_seconds,
        exclude_paths=exclude_paths
    )
