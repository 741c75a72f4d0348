"""Router for credit balance, consumption and purchase history."""

from fastapi import APIRouter, Depends, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_current_user, get_internal_service
from app.core.database import get_db
from app.models.credit import UserCreditAccount
from app.schemas.credit_schemas import (
    CreditBalanceResponse,
    ConsumeCreditResponse,
    TransactionResponse,
    TransactionHistoryResponse,
    USER_ID_PATTERN,
)
from app.services.credit.fulfillment import get_transaction_history
from app.services.credit.ledger import CreditLedger

router = APIRouter(prefix="/credits", tags=["credits"])

USER_ID_PARAMS = {"pattern": USER_ID_PATTERN}


def get_credit_ledger(db: AsyncSession = Depends(get_db)) -> CreditLedger:
    return CreditLedger(db)


def _balance_response(account: UserCreditAccount) -> CreditBalanceResponse:
    return CreditBalanceResponse(
        user_id=account.user_id,
        free_credits=account.free_credits,
        purchased_credits=account.purchased_credits,
        total_credits=account.free_credits + account.purchased_credits,
        last_reset_date=account.last_reset_date,
    )


@router.post("/consume", response_model=ConsumeCreditResponse)
async def consume_credit(
    user_id: str = Query(..., **USER_ID_PARAMS),
    _: str = Depends(get_internal_service),
    ledger: CreditLedger = Depends(get_credit_ledger)
):
    """
    Charge one credit before an AI generation call.

    This endpoint is restricted to internal service access only. The free
    daily allowance is used before purchased credits.

    Raises:
        InsufficientCredits (402): Both pools are empty; nothing was charged
    """
    result = await ledger.consume(user_id)
    return ConsumeCreditResponse(
        user_id=user_id,
        source=result.source,
        free_credits=result.free_credits,
        purchased_credits=result.purchased_credits,
    )


@router.get("/balance", response_model=CreditBalanceResponse)
async def get_my_balance(
    current_user: AuthenticatedUser = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_credit_ledger)
):
    """Balance of the calling user, after today's refill."""
    account = await ledger.peek(current_user.user_id)
    return _balance_response(account)


@router.get("/balance/{user_id}", response_model=CreditBalanceResponse)
async def get_user_balance(
    user_id: str = Path(..., **USER_ID_PARAMS),
    _: str = Depends(get_internal_service),
    ledger: CreditLedger = Depends(get_credit_ledger)
):
    """
    Get a user's credit balance.

    This endpoint is restricted to internal service access only.
    """
    account = await ledger.peek(user_id)
    return _balance_response(account)


@router.get("/transactions", response_model=TransactionHistoryResponse)
async def get_my_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Fulfilled credit purchases of the calling user, newest first."""
    records, total = await get_transaction_history(db, current_user.user_id, skip=skip, limit=limit)
    return TransactionHistoryResponse(
        transactions=[TransactionResponse.model_validate(record) for record in records],
        total_count=total,
    )
