"""Exactly-once conversion of successful payments into purchased credits."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db_utils import dialect_insert
from app.log.logging import logger
from app.models.credit import TransactionRecord, TransactionStatus
from app.schemas.payment_schemas import (
    ChargeData,
    ChargeStatus,
    GatewayInitialization,
    REFERENCE_PATTERN,
    WebhookEvent,
)
from app.services.credit.exceptions import AuthenticationError, ValidationError
from app.services.credit.gateway import PaymentGatewayClient
from app.services.credit.ledger import CreditLedger
from app.services.credit.plans import CreditPlan, get_plan
from app.services.credit.webhook_auth import WebhookAuthenticator

CHARGE_SUCCESS_EVENT = "charge.success"

_REFERENCE_RE = re.compile(REFERENCE_PATTERN)


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    CONFLICTED = "conflicted"


@dataclass(frozen=True)
class FulfillmentResult:
    reference: str
    outcome: InsertOutcome
    credits_granted: int

    @property
    def already_processed(self) -> bool:
        return self.outcome is InsertOutcome.CONFLICTED


@dataclass(frozen=True)
class VerifyResult:
    status: ChargeStatus
    already_processed: bool
    reference: str
    message: str


@dataclass(frozen=True)
class WebhookResult:
    event: str
    handled: bool
    reference: Optional[str] = None
    already_processed: bool = False


@dataclass(frozen=True)
class PaymentInitialization:
    plan: CreditPlan
    checkout: GatewayInitialization


def validate_reference(reference: str) -> str:
    if not reference or not _REFERENCE_RE.match(reference):
        raise ValidationError("Invalid payment reference", context={"reference": (reference or "")[:100]})
    return reference


class FulfillmentCoordinator:
    """
    Grants purchased credits for successful charges, once per reference.

    Both the webhook and the verify endpoint end up in ``fulfill``. The
    transaction record insert is the barrier: whichever path inserts the row
    grants the credits in the same database transaction, every other path
    sees the conflict and grants nothing.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGatewayClient,
        ledger: Optional[CreditLedger] = None,
        webhook_secret: Optional[str] = None
    ):
        self.db = db
        self.gateway = gateway
        self.ledger = ledger or CreditLedger(db)
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.PAYSTACK_SECRET_KEY

    async def initialize_payment(self, user_id: str, email: Optional[str], plan_id: str) -> PaymentInitialization:
        """
        Start a checkout for a plan.

        Raises:
            ValidationError: Unknown plan or no payer email; the gateway is not called
            GatewayError: The gateway could not open the checkout
        """
        plan = get_plan(plan_id)
        if not email:
            raise ValidationError("A payer email is required to start a payment", context={"user_id": user_id})

        checkout = await self.gateway.initialize(
            email=email,
            amount_minor_units=plan.price_minor_units,
            metadata={"userId": user_id, "credits": plan.credit_amount, "planId": plan.id},
            callback_url=settings.payment_callback_url,
        )

        logger.info(
            f"Payment initialized for user {user_id}",
            event_type="payment_initialized",
            user_id=user_id,
            plan_id=plan.id,
            reference=checkout.reference,
            amount_minor_units=plan.price_minor_units
        )
        return PaymentInitialization(plan=plan, checkout=checkout)

    async def _find_record(self, reference: str) -> Optional[TransactionRecord]:
        result = await self.db.execute(
            select(TransactionRecord).where(TransactionRecord.reference == reference)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _check_against_plan(charge: ChargeData) -> CreditPlan:
        """Metadata is client-visible; only a charge matching a catalog plan is honoured."""
        metadata = charge.metadata
        context = {
            "reference": charge.reference,
            "plan_id": metadata.plan_id,
            "credits": metadata.credits,
            "amount": charge.amount,
        }
        if not metadata.plan_id:
            raise ValidationError("Charge metadata is missing planId", context=context)

        plan = get_plan(metadata.plan_id)
        if metadata.credits != plan.credit_amount or charge.amount < plan.price_minor_units:
            logger.warning(
                "Charge does not match its plan",
                event_type="payment_plan_mismatch",
                reference=charge.reference,
                plan_id=plan.id,
                credits=metadata.credits,
                amount=charge.amount
            )
            raise ValidationError("Charge credits or amount do not match the plan", context=context)
        return plan

    async def fulfill(self, charge: ChargeData) -> FulfillmentResult:
        """
        Record the charge and grant its credits in one transaction.

        Raises:
            ValidationError: The charge metadata is missing or disagrees with the plan catalog
        """
        metadata = charge.metadata
        if metadata is None:
            raise ValidationError(
                "Charge metadata is missing userId or credits",
                context={"reference": charge.reference}
            )
        self._check_against_plan(charge)

        try:
            stmt = dialect_insert(self.db, TransactionRecord).values(
                reference=charge.reference,
                user_id=metadata.user_id,
                credits_granted=metadata.credits,
                amount_minor_units=charge.amount,
                plan_id=metadata.plan_id,
                status=TransactionStatus.SUCCESS.value,
            ).on_conflict_do_nothing(index_elements=["reference"])
            result = await self.db.execute(stmt)
            outcome = InsertOutcome.INSERTED if result.rowcount else InsertOutcome.CONFLICTED

            if outcome is InsertOutcome.INSERTED:
                await self.ledger.grant_purchased(metadata.user_id, metadata.credits)
                await self.db.commit()
            else:
                await self.db.rollback()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(
                f"Database error fulfilling payment {charge.reference}",
                error=str(e),
                event_type="payment_fulfillment_error",
                reference=charge.reference,
                user_id=metadata.user_id
            )
            raise

        if outcome is InsertOutcome.INSERTED:
            logger.info(
                f"Granted {metadata.credits} purchased credits to user {metadata.user_id}",
                event_type="payment_fulfilled",
                reference=charge.reference,
                user_id=metadata.user_id,
                credits=metadata.credits,
                amount_minor_units=charge.amount
            )
            return FulfillmentResult(charge.reference, outcome, metadata.credits)

        logger.info(
            f"Payment {charge.reference} was already fulfilled",
            event_type="payment_already_fulfilled",
            reference=charge.reference,
            user_id=metadata.user_id
        )
        return FulfillmentResult(charge.reference, outcome, 0)

    async def verify_and_fulfill(self, reference: str) -> VerifyResult:
        """
        Confirm a charge with the gateway and fulfill it if it succeeded.

        A reference that is already recorded is answered from the database
        without asking the gateway again.

        Raises:
            ValidationError: Malformed reference or charge metadata
            GatewayError: The gateway could not be reached
        """
        validate_reference(reference)

        record = await self._find_record(reference)
        # Close the read transaction before the gateway round trip
        await self.db.rollback()
        if record is not None:
            return VerifyResult(ChargeStatus.SUCCESS, True, reference, "Credits already added previously")

        charge = await self.gateway.verify(reference)
        status = charge.charge_status
        if status is not ChargeStatus.SUCCESS:
            logger.info(
                f"Payment {reference} is not successful",
                event_type="payment_not_successful",
                reference=reference,
                gateway_status=charge.status
            )
            return VerifyResult(status, False, reference, f"Transaction {charge.status}")

        result = await self.fulfill(charge)
        if result.already_processed:
            return VerifyResult(ChargeStatus.SUCCESS, True, reference, "Credits already added previously")
        return VerifyResult(ChargeStatus.SUCCESS, False, reference, "Credits added successfully")

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Authenticate and process one webhook delivery.

        Raises:
            AuthenticationError: Missing or wrong signature; nothing is parsed
            ValidationError: Authentic body that cannot be parsed
        """
        if not WebhookAuthenticator.verify(raw_body, signature, self.webhook_secret):
            logger.warning(
                "Rejected webhook with invalid signature",
                event_type="webhook_signature_invalid",
                has_signature=bool(signature),
                body_size=len(raw_body)
            )
            raise AuthenticationError("Invalid webhook signature")

        try:
            event = WebhookEvent.model_validate_json(raw_body)
        except PydanticValidationError as e:
            raise ValidationError(
                "Malformed webhook payload",
                context={"errors": e.errors(include_url=False, include_context=False, include_input=False)}
            ) from e

        if event.event != CHARGE_SUCCESS_EVENT:
            logger.info(
                "Ignoring unsupported webhook event",
                event_type="webhook_event_ignored",
                webhook_event=event.event
            )
            return WebhookResult(event=event.event, handled=False)

        try:
            charge = ChargeData.model_validate(event.data)
        except PydanticValidationError as e:
            raise ValidationError(
                "Malformed charge in webhook payload",
                context={"errors": e.errors(include_url=False, include_context=False, include_input=False)}
            ) from e

        result = await self.fulfill(charge)
        return WebhookResult(
            event=event.event,
            handled=True,
            reference=result.reference,
            already_processed=result.already_processed
        )


async def get_transaction_history(
    db: AsyncSession,
    user_id: str,
    skip: int = 0,
    limit: int = 50
) -> Tuple[List[TransactionRecord], int]:
    """Fulfilled payments of a user, newest first, with the total count."""
    total = await db.scalar(
        select(func.count()).select_from(TransactionRecord).where(TransactionRecord.user_id == user_id)
    )
    result = await db.execute(
        select(TransactionRecord)
        .where(TransactionRecord.user_id == user_id)
        .order_by(TransactionRecord.created_at.desc(), TransactionRecord.reference)
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0
