"""Request ID middleware for request tracking and correlation."""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

# Incoming ids end up in logs and response headers
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def get_request_id() -> Optional[str]:
    """Request ID of the current request, or None outside a request."""
    return request_id_var.get()


def generate_request_id() -> str:
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an ID.

    A well-formed ``X-Request-ID`` from the caller (for example the AI
    service calling the feature gate) is kept so both services log the same
    ID; otherwise a UUID4 is generated. The ID is echoed on the response.
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(self.HEADER_NAME)
        if not request_id or not _VALID_REQUEST_ID.match(request_id):
            request_id = generate_request_id()

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            request_id_var.reset(token)


def setup_request_id_middleware(app):
    app.add_middleware(RequestIDMiddleware)
