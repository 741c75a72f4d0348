"""Payment gateway client abstraction and its Paystack implementation."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.log.logging import logger
from app.schemas.payment_schemas import ChargeData, GatewayInitialization
from app.services.credit.exceptions import GatewayError


class PaymentGatewayClient(ABC):
    """What the fulfillment flow needs from a payment provider."""

    @abstractmethod
    async def initialize(
        self,
        *,
        email: str,
        amount_minor_units: int,
        metadata: Dict[str, Any],
        callback_url: Optional[str] = None
    ) -> GatewayInitialization:
        """Open a checkout for the given amount and return where to send the payer."""

    @abstractmethod
    async def verify(self, reference: str) -> ChargeData:
        """Ask the provider for the current state of a charge."""


class PaystackClient(PaymentGatewayClient):
    """
    Paystack REST client.

    Every call is bounded by ``timeout``. Timeouts, transport failures,
    non-2xx answers and bodies we cannot parse all surface as GatewayError,
    which callers treat as retryable.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYSTACK_TIMEOUT_SECONDS
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if not self.secret_key:
            raise GatewayError("Payment gateway is not configured", context={"path": path})

        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport
        ) as client:
            try:
                response = await client.request(method, path, headers=headers, **kwargs)
                response.raise_for_status()
                body = response.json()
            except httpx.TimeoutException as e:
                logger.warning(
                    f"Paystack request timed out after {self.timeout}s",
                    event_type="gateway_timeout",
                    method=method,
                    path=path
                )
                raise GatewayError(
                    f"Payment gateway timed out after {self.timeout}s",
                    context={"path": path}
                ) from e
            except httpx.HTTPStatusError as e:
                logger.error(
                    f"Paystack returned HTTP {e.response.status_code}",
                    event_type="gateway_http_error",
                    method=method,
                    path=path,
                    status_code=e.response.status_code
                )
                raise GatewayError(
                    f"Payment gateway error: {e.response.status_code}",
                    context={"path": path, "status_code": e.response.status_code}
                ) from e
            except httpx.RequestError as e:
                logger.error(
                    "Paystack request failed",
                    error=str(e),
                    event_type="gateway_request_error",
                    method=method,
                    path=path
                )
                raise GatewayError("Payment gateway unreachable", context={"path": path}) from e
            except ValueError as e:
                raise GatewayError("Payment gateway returned a non-JSON body", context={"path": path}) from e

        if not isinstance(body, dict) or not body.get("status"):
            message = body.get("message") if isinstance(body, dict) else None
            raise GatewayError(
                f"Payment gateway rejected the request: {message or 'unknown error'}",
                context={"path": path}
            )
        return body

    async def initialize(
        self,
        *,
        email: str,
        amount_minor_units: int,
        metadata: Dict[str, Any],
        callback_url: Optional[str] = None
    ) -> GatewayInitialization:
        payload = {
            "email": email,
            "amount": amount_minor_units,
            "metadata": metadata,
        }
        if callback_url:
            payload["callback_url"] = callback_url

        body = await self._request("POST", "/transaction/initialize", json=payload)
        try:
            return GatewayInitialization.model_validate(body.get("data"))
        except PydanticValidationError as e:
            raise GatewayError(
                "Payment gateway returned an unexpected initialization payload",
                context={"errors": e.errors(include_url=False, include_context=False)}
            ) from e

    async def verify(self, reference: str) -> ChargeData:
        body = await self._request("GET", f"/transaction/verify/{reference}")
        try:
            return ChargeData.model_validate(body.get("data"))
        except PydanticValidationError as e:
            raise GatewayError(
                "Payment gateway returned an unexpected verification payload",
                context={"reference": reference, "errors": e.errors(include_url=False, include_context=False)}
            ) from e
