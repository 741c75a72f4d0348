"""Tests for error handlers."""

import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError

from app.core.error_handlers import (
    _build_error_response,
    credit_service_exception_handler,
    database_exception_handler,
    service_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    sqlalchemy_exception_handler,
    generic_exception_handler
)
from app.core.db_exceptions import ConnectionLostError, DatabaseIntegrityError
from app.core.exceptions import ServiceException
from app.services.credit.exceptions import (
    AuthenticationError,
    GatewayError,
    InsufficientCreditsError,
    ValidationError,
)


@pytest.fixture
def mock_request():
    request = MagicMock()
    request.url.path = "/credits/consume"
    request.method = "POST"
    return request


def _body(response) -> dict:
    return json.loads(response.body)


class TestBuildErrorResponse:
    """Tests for _build_error_response helper function."""

    def test_basic_error_response(self):
        with patch('app.core.error_handlers.get_request_id', return_value=None):
            response = _build_error_response(error="TestError", message="Test message")

        assert response == {"error": "TestError", "message": "Test message"}

    def test_includes_request_id_when_available(self):
        with patch('app.core.error_handlers.get_request_id', return_value="req-123"):
            response = _build_error_response(error="TestError", message="Test message")

        assert response["request_id"] == "req-123"

    def test_excludes_request_id_when_disabled(self):
        with patch('app.core.error_handlers.get_request_id', return_value="req-123"):
            response = _build_error_response(error="TestError", message="Test message", include_request_id=False)

        assert "request_id" not in response

    def test_includes_details_when_provided(self):
        details = [{"loc": ["query", "user_id"], "msg": "Field required"}]
        with patch('app.core.error_handlers.get_request_id', return_value=None):
            response = _build_error_response(error="ValidationError", message="Invalid", details=details)

        assert response["details"] == details


class TestCreditServiceExceptionHandler:
    """Tests for credit_service_exception_handler."""

    @pytest.mark.asyncio
    async def test_insufficient_credits_is_402(self, mock_request):
        exc = InsufficientCreditsError(
            "Daily AI limit reached and no purchased credits available",
            context={"user_id": "user-42"}
        )

        with patch('app.core.error_handlers.get_request_id', return_value="req-1"):
            response = await credit_service_exception_handler(mock_request, exc)

        assert response.status_code == 402
        body = _body(response)
        assert body["error"] == "InsufficientCredits"
        assert body["message"] == "Daily AI limit reached and no purchased credits available"
        assert body["request_id"] == "req-1"
        assert body["details"] == {"user_id": "user-42"}

    @pytest.mark.asyncio
    async def test_gateway_error_is_retryable_502(self, mock_request):
        response = await credit_service_exception_handler(mock_request, GatewayError("Payment gateway unreachable"))

        assert response.status_code == 502
        assert _body(response)["retryable"] is True
        assert response.headers["Retry-After"] == "5"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc,error_type", [
        (ValidationError("Invalid plan selected: x"), "ValidationError"),
        (AuthenticationError("Invalid webhook signature"), "AuthenticationError"),
    ])
    async def test_client_errors_are_400(self, mock_request, exc, error_type):
        response = await credit_service_exception_handler(mock_request, exc)

        assert response.status_code == 400
        body = _body(response)
        assert body["error"] == error_type
        assert "details" not in body
        assert "retryable" not in body


class TestServiceExceptionHandler:
    """Tests for service_exception_handler."""

    @pytest.mark.asyncio
    async def test_auth_error_keeps_challenge_header(self, mock_request):
        exc = ServiceException(
            detail="Could not validate credentials",
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
            context={"error_type": "AuthError"}
        )

        response = await service_exception_handler(mock_request, exc)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert _body(response)["error"] == "AuthError"

    @pytest.mark.asyncio
    async def test_expired_token_logged_as_warning(self, mock_request):
        exc = ServiceException(
            detail="Session expired. Please log in again.",
            context={"error_type": "TokenExpired"}
        )

        with patch('app.core.error_handlers.logger') as mock_logger:
            response = await service_exception_handler(mock_request, exc)

        assert _body(response)["error"] == "TokenExpired"
        mock_logger.warning.assert_called_once()
        mock_logger.error.assert_not_called()


class TestValidationExceptionHandler:
    """Tests for validation_exception_handler."""

    @pytest.mark.asyncio
    async def test_returns_422_with_trimmed_details(self, mock_request):
        exc = RequestValidationError([
            {"type": "missing", "loc": ("query", "user_id"), "msg": "Field required", "input": None}
        ])

        response = await validation_exception_handler(mock_request, exc)

        assert response.status_code == 422
        body = _body(response)
        assert body["error"] == "ValidationError"
        assert body["details"] == [{"type": "missing", "loc": ["query", "user_id"], "msg": "Field required"}]


class TestHttpExceptionHandler:
    """Tests for http_exception_handler."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code,error_type", [
        (400, "BadRequest"),
        (402, "PaymentRequired"),
        (403, "Forbidden"),
        (404, "NotFound"),
        (418, "HTTPError"),
    ])
    async def test_maps_status_codes(self, mock_request, status_code, error_type):
        response = await http_exception_handler(mock_request, HTTPException(status_code=status_code, detail="x"))

        assert response.status_code == status_code
        assert _body(response)["error"] == error_type

    @pytest.mark.asyncio
    async def test_logs_server_errors_as_error(self, mock_request):
        with patch('app.core.error_handlers.logger') as mock_logger:
            await http_exception_handler(mock_request, HTTPException(status_code=500, detail="not configured"))

        mock_logger.error.assert_called_once()


class TestFallbackHandlers:
    """Tests for the database and catch-all handlers."""

    @pytest.mark.asyncio
    async def test_sqlalchemy_error_hides_internals(self, mock_request):
        exc = OperationalError("UPDATE user_credit_accounts ...", {}, Exception("database is locked"))

        response = await sqlalchemy_exception_handler(mock_request, exc)

        assert response.status_code == 500
        body = _body(response)
        assert body["error"] == "DatabaseError"
        assert "locked" not in body["message"]

    @pytest.mark.asyncio
    async def test_generic_exception(self, mock_request):
        response = await generic_exception_handler(mock_request, RuntimeError("secret detail"))

        assert response.status_code == 500
        body = _body(response)
        assert body["error"] == "InternalServerError"
        assert "secret" not in body["message"]


class TestDatabaseExceptionHandler:
    """Tests for database_exception_handler."""

    @pytest.mark.asyncio
    async def test_unavailable_database_is_retryable_503(self, mock_request):
        exc = ConnectionLostError(error_details={"original_error": "server closed the connection unexpectedly"})

        with patch('app.core.error_handlers.get_request_id', return_value="req-db"):
            response = await database_exception_handler(mock_request, exc)

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "10"
        body = _body(response)
        assert body["error"] == "DatabaseUnavailable"
        assert body["retryable"] is True
        assert body["request_id"] == "req-db"
        assert "server closed" not in json.dumps(body)

    @pytest.mark.asyncio
    async def test_integrity_error_is_409_and_not_retryable(self, mock_request):
        response = await database_exception_handler(mock_request, DatabaseIntegrityError())

        assert response.status_code == 409
        body = _body(response)
        assert body["error"] == "DatabaseError"
        assert body["details"] == {"error_code": "INTEGRITY_ERROR"}
        assert "retryable" not in body

    @pytest.mark.asyncio
    async def test_unhandled_errors_log_traceback(self, mock_request):
        exc = RuntimeError("boom")

        with patch('app.core.error_handlers.logger') as mock_logger:
            await generic_exception_handler(mock_request, exc)

        mock_logger.opt.assert_called_once_with(exception=exc)
        mock_logger.opt.return_value.error.assert_called_once()
