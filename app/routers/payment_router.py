"""Router for credit pack purchases and Paystack webhooks."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_current_user
from app.core.config import settings
from app.core.database import get_db
from app.log.logging import logger
from app.middleware.rate_limit import limiter
from app.schemas.payment_schemas import (
    PlanResponse,
    InitializePaymentRequest,
    InitializePaymentResponse,
    VerifyPaymentResponse,
)
from app.schemas.webhook_schemas import WebhookResponse, WebhookStatus, WEBHOOK_EVENTS_DESCRIPTION
from app.services.credit.fulfillment import FulfillmentCoordinator
from app.services.credit.gateway import PaymentGatewayClient, PaystackClient
from app.services.credit.plans import PLANS

router = APIRouter(prefix="/payments", tags=["payments"])


def get_payment_gateway() -> PaymentGatewayClient:
    """Dependency providing the payment gateway client."""
    return PaystackClient()


def get_fulfillment_coordinator(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway)
) -> FulfillmentCoordinator:
    return FulfillmentCoordinator(db, gateway)


@router.get("/plans", response_model=List[PlanResponse])
async def list_plans():
    """The purchasable credit packs."""
    return [
        PlanResponse(
            id=plan.id,
            name=plan.name,
            credit_amount=plan.credit_amount,
            price=plan.price,
            price_minor_units=plan.price_minor_units,
            currency=plan.currency,
        )
        for plan in PLANS
    ]


@router.post("/initialize", response_model=InitializePaymentResponse)
@limiter.limit(settings.RATE_LIMIT_PAYMENTS)
async def initialize_payment(
    request: Request,
    payload: InitializePaymentRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    coordinator: FulfillmentCoordinator = Depends(get_fulfillment_coordinator)
):
    """
    Open a Paystack checkout for a credit pack.

    The payer is charged in kobo and returned to the client's buy-credits
    page. Credits are only granted once the payment is verified or the
    ``charge.success`` webhook arrives.

    Raises:
        ValidationError (400): Unknown plan or no email on the token
        GatewayError (502): Paystack could not open the checkout
    """
    initialization = await coordinator.initialize_payment(
        user_id=current_user.user_id,
        email=current_user.email,
        plan_id=payload.plan_id
    )
    return InitializePaymentResponse(
        authorization_url=initialization.checkout.authorization_url,
        access_code=initialization.checkout.access_code,
        reference=initialization.checkout.reference,
        plan_id=initialization.plan.id,
        credit_amount=initialization.plan.credit_amount,
        price_minor_units=initialization.plan.price_minor_units,
    )


@router.get("/verify/{reference}", response_model=VerifyPaymentResponse)
async def verify_payment(
    reference: str = Path(..., min_length=1, max_length=200),
    current_user: AuthenticatedUser = Depends(get_current_user),
    coordinator: FulfillmentCoordinator = Depends(get_fulfillment_coordinator)
):
    """
    Confirm a payment after the checkout redirect and grant its credits.

    Safe to call repeatedly; a payment already fulfilled by the webhook or an
    earlier call answers ``already_processed: true`` and grants nothing.
    """
    logger.info(
        "Verifying payment",
        event_type="payment_verify_request",
        reference=reference,
        user_id=current_user.user_id
    )
    result = await coordinator.verify_and_fulfill(reference)
    return VerifyPaymentResponse(
        status=result.status,
        already_processed=result.already_processed,
        reference=result.reference,
        message=result.message,
    )


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    summary="Handle Paystack webhooks",
    description=WEBHOOK_EVENTS_DESCRIPTION,
    responses={
        200: {"model": WebhookResponse, "description": "Event accepted"},
        400: {"description": "Invalid signature or payload"},
    }
)
async def paystack_webhook(
    request: Request,
    x_paystack_signature: Optional[str] = Header(None),
    x_signature: Optional[str] = Header(None),
    coordinator: FulfillmentCoordinator = Depends(get_fulfillment_coordinator)
):
    """
    Receive Paystack events. Authenticated by signature, not by user token.

    The signature is checked against the raw body before anything is parsed.
    """
    raw_body = await request.body()
    result = await coordinator.handle_webhook(raw_body, x_paystack_signature or x_signature)

    if not result.handled:
        return WebhookResponse(
            status=WebhookStatus.UNHANDLED,
            message=f"Event {result.event} ignored",
            event_type=result.event
        )

    if result.already_processed:
        return WebhookResponse(
            status=WebhookStatus.ALREADY_PROCESSED,
            message="Credits already added previously",
            event_type=result.event,
            reference=result.reference,
            already_processed=True
        )

    return WebhookResponse(
        status=WebhookStatus.SUCCESS,
        message="Credits added successfully",
        event_type=result.event,
        reference=result.reference
    )
