"""Credit ledger and payment fulfillment services."""

from app.services.credit.exceptions import (
    CreditServiceError,
    ValidationError,
    AuthenticationError,
    GatewayError,
    InsufficientCreditsError,
)
from app.services.credit.fulfillment import (
    FulfillmentCoordinator,
    FulfillmentResult,
    InsertOutcome,
    VerifyResult,
    WebhookResult,
    get_transaction_history,
)
from app.services.credit.gateway import PaymentGatewayClient, PaystackClient
from app.services.credit.ledger import CreditLedger, ConsumeResult
from app.services.credit.plans import CreditPlan, PLANS, get_plan
from app.services.credit.reset_policy import DailyResetPolicy
from app.services.credit.webhook_auth import WebhookAuthenticator

__all__ = [
    'CreditServiceError',
    'ValidationError',
    'AuthenticationError',
    'GatewayError',
    'InsufficientCreditsError',
    'FulfillmentCoordinator',
    'FulfillmentResult',
    'InsertOutcome',
    'VerifyResult',
    'WebhookResult',
    'get_transaction_history',
    'PaymentGatewayClient',
    'PaystackClient',
    'CreditLedger',
    'ConsumeResult',
    'CreditPlan',
    'PLANS',
    'get_plan',
    'DailyResetPolicy',
    'WebhookAuthenticator',
]
