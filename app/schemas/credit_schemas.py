"""Pydantic schemas for credit-related operations."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# User ids come from the auth service (numeric, UUID or ObjectId)
USER_ID_PATTERN = r"^[A-Za-z0-9_.:-]{1,64}$"


class CreditSource(str, Enum):
    """Pool a consumed credit was taken from."""
    FREE = "free"
    PURCHASED = "purchased"


class CreditBalanceResponse(BaseModel):
    """Schema for credit balance response."""
    user_id: str
    free_credits: int
    purchased_credits: int
    total_credits: int
    last_reset_date: date

    model_config = ConfigDict(from_attributes=True)


class ConsumeCreditResponse(BaseModel):
    """Result of charging one credit for an AI generation call."""
    user_id: str
    source: CreditSource
    free_credits: int
    purchased_credits: int


class TransactionResponse(BaseModel):
    """Schema for a fulfilled payment."""
    reference: str
    user_id: str
    credits_granted: int
    amount_minor_units: int
    plan_id: str | None = None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionHistoryResponse(BaseModel):
    """Schema for transaction history response."""
    transactions: list[TransactionResponse]
    total_count: int = Field(..., ge=0)
