"""Builders shared by the test modules."""

import json
from datetime import datetime, timedelta, UTC
from typing import Optional

from jose import jwt

from app.core.config import settings
from app.schemas.payment_schemas import ChargeData
from app.services.credit.plans import PLANS
from app.services.credit.webhook_auth import WebhookAuthenticator

TEST_USER_ID = "user-42"
TEST_USER_EMAIL = "buyer@example.com"
DAY_ONE = datetime(2026, 3, 14, 9, 30)


class FixedClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def create_test_token(
    user_id: str = TEST_USER_ID,
    email: Optional[str] = TEST_USER_EMAIL,
    expires_delta: timedelta = timedelta(minutes=30)
) -> str:
    claims = {"sub": user_id, "exp": datetime.now(UTC) + expires_delta}
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def charge_payload(
    reference: str = "ref_001",
    user_id: str = TEST_USER_ID,
    credits: int = 1,
    amount: Optional[int] = None,
    status: str = "success",
    plan_id: Optional[str] = None,
) -> dict:
    """A charge whose plan and amount match the credit count unless overridden."""
    plan = next((p for p in PLANS if p.credit_amount == credits), PLANS[0])
    plan_id = plan_id or plan.id
    amount = plan.price_minor_units if amount is None else amount
    return {
        "reference": reference,
        "amount": amount,
        "status": status,
        "metadata": {"userId": user_id, "credits": credits, "planId": plan_id},
    }


def make_charge(**kwargs) -> ChargeData:
    return ChargeData.model_validate(charge_payload(**kwargs))


def make_webhook_body(event: str = "charge.success", **charge_kwargs) -> bytes:
    return json.dumps({"event": event, "data": charge_payload(**charge_kwargs)}).encode("utf-8")


def sign(raw_body: bytes, secret: Optional[str] = None) -> str:
    return WebhookAuthenticator.sign(raw_body, secret or settings.PAYSTACK_SECRET_KEY)
