"""Errors raised by the credit ledger and payment fulfillment."""

from typing import Any, Dict, Optional

from fastapi import status


class CreditServiceError(Exception):
    """Base class; carries what the API error handler needs to answer."""

    error_type = "CreditServiceError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(CreditServiceError):
    """Unknown plan or malformed payment payload. Nothing was sent or written."""

    error_type = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(CreditServiceError):
    """Webhook signature did not match."""

    error_type = "AuthenticationError"
    status_code = status.HTTP_400_BAD_REQUEST


class GatewayError(CreditServiceError):
    """Payment provider unreachable, timed out or answered with an error."""

    error_type = "GatewayError"
    status_code = status.HTTP_502_BAD_GATEWAY
    retryable = True


class InsufficientCreditsError(CreditServiceError):
    """Raised when user has no free or purchased credits left."""

    error_type = "InsufficientCredits"
    status_code = status.HTTP_402_PAYMENT_REQUIRED
