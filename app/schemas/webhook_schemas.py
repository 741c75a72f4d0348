"""Webhook response schemas."""

from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field


class WebhookStatus(str, Enum):
    """Webhook processing status."""
    SUCCESS = "success"
    ALREADY_PROCESSED = "already_processed"
    UNHANDLED = "unhandled"


class WebhookResponse(BaseModel):
    """Standard webhook acknowledgement. Any 2xx stops provider retries."""
    status: WebhookStatus = Field(..., description="Processing status")
    message: str = Field(..., description="Status message")
    event_type: Optional[str] = Field(None, description="Provider event type")
    reference: Optional[str] = Field(None, description="Payment reference")
    already_processed: bool = Field(False, description="True when the reference was fulfilled before")

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "success",
                "message": "Credits granted",
                "event_type": "charge.success",
                "reference": "T123456789",
                "already_processed": False
            }
        }
    }


SUPPORTED_WEBHOOK_EVENTS = [
    "charge.success",
]

WEBHOOK_EVENTS_DESCRIPTION = """
## Supported Paystack Webhook Events

| Event Type | Description |
|------------|-------------|
| `charge.success` | A charge completed; the purchased credits in its metadata are granted |

Other event types are acknowledged with `unhandled` and have no effect.

### Idempotency

Credits are granted once per payment reference. A redelivered event, or an
event for a payment that was already confirmed through the verify endpoint,
is acknowledged with `already_processed: true`.

### Retry Behavior

- **2xx responses**: Event accepted, no retry
- **400 responses**: Invalid signature or malformed payload, nothing was changed
- **5xx responses**: Server error, Paystack will retry

### Security

Requests must carry an `X-Paystack-Signature` header: the HMAC-SHA512 hex
digest of the raw request body, keyed with the Paystack secret key.
"""
