"""Pydantic schemas for payment gateway payloads and payment endpoints."""

import json
from enum import Enum
from typing import Optional, Any, Dict

from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.schemas.credit_schemas import USER_ID_PATTERN

# Gateway references travel in URL paths and log lines
REFERENCE_PATTERN = r"^[A-Za-z0-9._=-]{1,100}$"


class ChargeStatus(str, Enum):
    """Normalized charge status reported to clients."""
    SUCCESS = "success"
    ABANDONED = "abandoned"
    FAILED = "failed"
    PENDING = "pending"

    @classmethod
    def from_gateway(cls, raw_status: Optional[str]) -> "ChargeStatus":
        """Map a provider status onto the four statuses the API exposes."""
        value = (raw_status or "").strip().lower()
        if value == "success":
            return cls.SUCCESS
        if value == "abandoned":
            return cls.ABANDONED
        if value in ("failed", "reversed"):
            return cls.FAILED
        return cls.PENDING


class ChargeMetadata(BaseModel):
    """Metadata attached at initialization and echoed back by the gateway."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(..., alias="userId", pattern=USER_ID_PATTERN)
    credits: int = Field(..., gt=0)
    plan_id: Optional[str] = Field(None, alias="planId", max_length=50)

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v


class ChargeData(BaseModel):
    """The ``data`` object of a verify response or a ``charge.success`` event."""
    model_config = ConfigDict(extra="ignore")

    reference: str = Field(..., pattern=REFERENCE_PATTERN)
    amount: int = Field(..., ge=0, description="Amount in minor currency units")
    status: str
    metadata: Optional[ChargeMetadata] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def parse_metadata(cls, v: Any) -> Any:
        # The gateway returns "" when no metadata was attached, and a JSON
        # string for some integrations.
        if v in (None, "", {}):
            return None
        if isinstance(v, str):
            try:
                return json.loads(v)
            except ValueError as exc:
                raise ValueError("metadata is not valid JSON") from exc
        return v

    @property
    def charge_status(self) -> ChargeStatus:
        return ChargeStatus.from_gateway(self.status)


class WebhookEvent(BaseModel):
    """Envelope of an inbound webhook. ``data`` is parsed per event type."""
    model_config = ConfigDict(extra="ignore")

    event: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class GatewayInitialization(BaseModel):
    """Checkout session returned by the gateway."""
    model_config = ConfigDict(extra="ignore")

    authorization_url: str
    access_code: Optional[str] = None
    reference: str


class PlanResponse(BaseModel):
    id: str
    name: str
    credit_amount: int
    price: int
    price_minor_units: int
    currency: str


class InitializePaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan_id: str = Field(..., alias="planId", min_length=1, max_length=50)


class InitializePaymentResponse(BaseModel):
    authorization_url: str
    access_code: Optional[str] = None
    reference: str
    plan_id: str
    credit_amount: int
    price_minor_units: int


class VerifyPaymentResponse(BaseModel):
    status: ChargeStatus
    already_processed: bool = False
    reference: str
    message: str
