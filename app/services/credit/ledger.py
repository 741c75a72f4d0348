"""Per-user ledger of free and purchased AI generation credits."""

from dataclasses import dataclass
from datetime import datetime, date, UTC
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db_utils import dialect_insert
from app.log.logging import logger
from app.models.credit import UserCreditAccount
from app.schemas.credit_schemas import CreditSource
from app.services.credit.exceptions import InsufficientCreditsError
from app.services.credit.reset_policy import DailyResetPolicy


@dataclass(frozen=True)
class ConsumeResult:
    source: CreditSource
    free_credits: int
    purchased_credits: int


class CreditLedger:
    """
    Owns the credit counters of every user.

    All changes are single conditional UPDATE statements so concurrent
    requests for the same user can never drive a counter below zero.
    ``consume`` and ``peek`` commit their own work; ``grant_purchased`` runs
    inside the caller's transaction and never commits.
    """

    def __init__(self, db: AsyncSession, reset_policy: Optional[DailyResetPolicy] = None):
        self.db = db
        self.reset_policy = reset_policy or DailyResetPolicy()

    async def _ensure_account(self, user_id: str, today: date) -> None:
        stmt = dialect_insert(self.db, UserCreditAccount).values(
            user_id=user_id,
            free_credits=self.reset_policy.daily_allowance,
            purchased_credits=0,
            last_reset_date=today,
        ).on_conflict_do_nothing(index_elements=["user_id"])
        result = await self.db.execute(stmt)
        if result.rowcount:
            logger.info(
                f"Created credit account for user {user_id}",
                event_type="credit_account_created",
                user_id=user_id
            )

    async def _load(self, user_id: str) -> UserCreditAccount:
        result = await self.db.execute(
            select(UserCreditAccount)
            .where(UserCreditAccount.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _apply_daily_reset(self, user_id: str, now: datetime) -> UserCreditAccount:
        """Refill the free allowance once per calendar day (compare-and-set)."""
        today = self.reset_policy.today(now)
        await self._ensure_account(user_id, today)
        account = await self._load(user_id)

        if self.reset_policy.should_reset(account.last_reset_date, now):
            result = await self.db.execute(
                update(UserCreditAccount)
                .where(
                    UserCreditAccount.user_id == user_id,
                    UserCreditAccount.last_reset_date == account.last_reset_date,
                )
                .values(
                    free_credits=self.reset_policy.daily_allowance,
                    last_reset_date=today,
                    updated_at=datetime.now(UTC),
                )
            )
            if result.rowcount:
                logger.info(
                    f"Daily free credits reset for user {user_id}",
                    event_type="daily_credit_reset",
                    user_id=user_id,
                    previous_reset_date=str(account.last_reset_date),
                    free_credits=self.reset_policy.daily_allowance
                )
            account = await self._load(user_id)

        return account

    async def _decrement(self, user_id: str, column) -> bool:
        result = await self.db.execute(
            update(UserCreditAccount)
            .where(UserCreditAccount.user_id == user_id, column > 0)
            .values({column: column - 1, UserCreditAccount.updated_at: datetime.now(UTC)})
        )
        return result.rowcount == 1

    async def consume(self, user_id: str) -> ConsumeResult:
        """
        Charge one credit, free pool first.

        Args:
            user_id: The ID of the user

        Returns:
            ConsumeResult: Which pool paid and the balances afterwards

        Raises:
            InsufficientCreditsError: If both pools are empty; nothing is changed
        """
        now = self.reset_policy.clock()
        try:
            await self._apply_daily_reset(user_id, now)

            if await self._decrement(user_id, UserCreditAccount.free_credits):
                source = CreditSource.FREE
            elif await self._decrement(user_id, UserCreditAccount.purchased_credits):
                source = CreditSource.PURCHASED
            else:
                source = None

            account = await self._load(user_id)
            free_credits, purchased_credits = account.free_credits, account.purchased_credits
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(
                f"Database error consuming credit for user {user_id}",
                error=str(e),
                event_type="credit_consume_error",
                user_id=user_id
            )
            raise

        if source is None:
            logger.warning(
                f"User {user_id} has no credits left",
                event_type="insufficient_credits",
                user_id=user_id
            )
            raise InsufficientCreditsError(
                "Daily AI limit reached and no purchased credits available",
                context={"user_id": user_id}
            )

        logger.info(
            f"Consumed one {source.value} credit for user {user_id}",
            event_type="credit_consumed",
            user_id=user_id,
            source=source.value,
            free_credits=free_credits,
            purchased_credits=purchased_credits
        )
        return ConsumeResult(source=source, free_credits=free_credits, purchased_credits=purchased_credits)

    async def grant_purchased(self, user_id: str, amount: int) -> None:
        """Increase the purchased pool inside the caller's open transaction."""
        if amount <= 0:
            raise ValueError("Granted credit amount must be positive")

        await self._ensure_account(user_id, self.reset_policy.today())
        await self.db.execute(
            update(UserCreditAccount)
            .where(UserCreditAccount.user_id == user_id)
            .values(
                purchased_credits=UserCreditAccount.purchased_credits + amount,
                updated_at=datetime.now(UTC),
            )
        )

    async def peek(self, user_id: str) -> UserCreditAccount:
        """Return the account after applying the daily reset."""
        now = self.reset_policy.clock()
        try:
            account = await self._apply_daily_reset(user_id, now)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(
                f"Database error reading credits for user {user_id}",
                error=str(e),
                event_type="credit_peek_error",
                user_id=user_id
            )
            raise
        return account
