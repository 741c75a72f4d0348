"""Tests for the credit ledger: free-first consumption, floors and the daily reset."""

import asyncio
from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError

from app.models.credit import UserCreditAccount
from app.schemas.credit_schemas import CreditSource
from app.services.credit.exceptions import InsufficientCreditsError
from app.services.credit.ledger import CreditLedger
from tests.helpers import TEST_USER_ID


async def _account(session_factory, user_id=TEST_USER_ID) -> UserCreditAccount:
    async with session_factory() as session:
        result = await session.execute(select(UserCreditAccount).where(UserCreditAccount.user_id == user_id))
        return result.scalar_one()


async def _set_balance(session_factory, free: int, purchased: int, user_id=TEST_USER_ID):
    async with session_factory() as session:
        await session.execute(
            update(UserCreditAccount)
            .where(UserCreditAccount.user_id == user_id)
            .values(free_credits=free, purchased_credits=purchased)
        )
        await session.commit()


class TestPeek:
    """Tests for CreditLedger.peek."""

    async def test_creates_account_with_daily_allowance(self, ledger):
        account = await ledger.peek(TEST_USER_ID)

        assert account.free_credits == 3
        assert account.purchased_credits == 0
        assert account.last_reset_date == date(2026, 3, 14)

    async def test_peek_twice_returns_same_account(self, ledger, session_factory):
        await ledger.peek(TEST_USER_ID)
        await ledger.peek(TEST_USER_ID)

        async with session_factory() as session:
            result = await session.execute(select(UserCreditAccount))
            assert len(result.scalars().all()) == 1


class TestConsume:
    """Tests for CreditLedger.consume."""

    async def test_free_credits_are_used_first(self, ledger, session_factory):
        await ledger.peek(TEST_USER_ID)
        await _set_balance(session_factory, free=2, purchased=5)

        result = await ledger.consume(TEST_USER_ID)

        assert result.source == CreditSource.FREE
        assert (result.free_credits, result.purchased_credits) == (1, 5)

    async def test_purchased_credits_used_when_free_exhausted(self, ledger, session_factory):
        await ledger.peek(TEST_USER_ID)
        await _set_balance(session_factory, free=0, purchased=5)

        result = await ledger.consume(TEST_USER_ID)

        assert result.source == CreditSource.PURCHASED
        assert (result.free_credits, result.purchased_credits) == (0, 4)

    async def test_first_consume_creates_account(self, ledger, session_factory):
        result = await ledger.consume("brand-new-user")

        assert result.source == CreditSource.FREE
        account = await _account(session_factory, "brand-new-user")
        assert account.free_credits == 2

    async def test_empty_account_raises_and_changes_nothing(self, ledger, session_factory):
        """Scenario A: no free and no purchased credits left."""
        await ledger.peek(TEST_USER_ID)
        await _set_balance(session_factory, free=0, purchased=0)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await ledger.consume(TEST_USER_ID)

        assert exc_info.value.status_code == 402
        account = await _account(session_factory)
        assert (account.free_credits, account.purchased_credits) == (0, 0)

    async def test_three_free_then_purchased_then_insufficient(self, ledger):
        await ledger.grant_purchased(TEST_USER_ID, 1)
        await ledger.db.commit()

        sources = [(await ledger.consume(TEST_USER_ID)).source for _ in range(4)]

        assert sources == [CreditSource.FREE] * 3 + [CreditSource.PURCHASED]
        with pytest.raises(InsufficientCreditsError):
            await ledger.consume(TEST_USER_ID)

    async def test_database_error_is_logged_with_traceback(self, ledger):
        failure = OperationalError("UPDATE", {}, Exception("database is locked"))

        with patch.object(ledger, "_apply_daily_reset", side_effect=failure), \
                patch("app.services.credit.ledger.logger") as mock_logger:
            with pytest.raises(OperationalError):
                await ledger.consume(TEST_USER_ID)

        mock_logger.exception.assert_called_once()
        assert mock_logger.exception.call_args.kwargs["event_type"] == "credit_consume_error"

    async def test_concurrent_consumes_never_go_below_zero(self, session_factory, make_ledger):
        """3 free + 2 purchased credits and 8 simultaneous calls: exactly 5 succeed."""
        async with session_factory() as session:
            ledger = make_ledger(session)
            await ledger.grant_purchased(TEST_USER_ID, 2)
            await session.commit()

        async def consume_once():
            async with session_factory() as session:
                return await make_ledger(session).consume(TEST_USER_ID)

        results = await asyncio.gather(*(consume_once() for _ in range(8)), return_exceptions=True)

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 5
        assert len(failures) == 3
        assert all(isinstance(f, InsufficientCreditsError) for f in failures)
        assert sum(1 for r in successes if r.source == CreditSource.FREE) == 3

        account = await _account(session_factory)
        assert (account.free_credits, account.purchased_credits) == (0, 0)


class TestDailyReset:
    """Tests for the lazy reset applied by consume and peek."""

    async def test_same_day_does_not_refill(self, ledger):
        await ledger.consume(TEST_USER_ID)
        await ledger.consume(TEST_USER_ID)

        account = await ledger.peek(TEST_USER_ID)

        assert account.free_credits == 1

    async def test_next_day_refills_to_exactly_three(self, ledger, clock):
        for _ in range(3):
            await ledger.consume(TEST_USER_ID)

        clock.advance(days=1)
        account = await ledger.peek(TEST_USER_ID)

        assert account.free_credits == 3
        assert account.last_reset_date == date(2026, 3, 15)

    async def test_reset_does_not_accumulate(self, ledger, clock):
        """Unused free credits are not carried over."""
        await ledger.peek(TEST_USER_ID)

        clock.advance(days=2)
        account = await ledger.peek(TEST_USER_ID)

        assert account.free_credits == 3

    async def test_reset_is_idempotent_within_the_day(self, ledger, clock):
        await ledger.consume(TEST_USER_ID)
        clock.advance(days=1)

        await ledger.peek(TEST_USER_ID)
        await ledger.consume(TEST_USER_ID)
        account = await ledger.peek(TEST_USER_ID)

        assert account.free_credits == 2

    async def test_reset_leaves_purchased_credits_alone(self, ledger, clock):
        await ledger.grant_purchased(TEST_USER_ID, 8)
        await ledger.db.commit()

        clock.advance(days=1)
        account = await ledger.peek(TEST_USER_ID)

        assert account.purchased_credits == 8

    async def test_consume_on_new_day_uses_refilled_free_credit(self, ledger, clock, session_factory):
        await ledger.peek(TEST_USER_ID)
        await _set_balance(session_factory, free=0, purchased=4)

        clock.advance(days=1)
        result = await ledger.consume(TEST_USER_ID)

        assert result.source == CreditSource.FREE
        assert (result.free_credits, result.purchased_credits) == (2, 4)

    async def test_concurrent_first_calls_of_the_day_reset_once(self, session_factory, make_ledger, clock):
        async with session_factory() as session:
            ledger = make_ledger(session)
            for _ in range(3):
                await ledger.consume(TEST_USER_ID)

        clock.advance(days=1)

        async def consume_once():
            async with session_factory() as session:
                return await make_ledger(session).consume(TEST_USER_ID)

        await asyncio.gather(*(consume_once() for _ in range(2)))

        account = await _account(session_factory)
        assert account.free_credits == 1


class TestGrantPurchased:
    """Tests for CreditLedger.grant_purchased."""

    async def test_does_not_commit(self, ledger, session_factory):
        await ledger.grant_purchased(TEST_USER_ID, 8)
        await ledger.db.rollback()

        async with session_factory() as session:
            result = await session.execute(select(UserCreditAccount))
            assert result.scalars().all() == []

    async def test_adds_to_existing_balance(self, ledger):
        await ledger.grant_purchased(TEST_USER_ID, 1)
        await ledger.grant_purchased(TEST_USER_ID, 8)
        await ledger.db.commit()

        account = await ledger.peek(TEST_USER_ID)

        assert account.purchased_credits == 9
        assert account.free_credits == 3

    async def test_rejects_non_positive_amount(self, ledger):
        with pytest.raises(ValueError):
            await ledger.grant_purchased(TEST_USER_ID, 0)

    async def test_uses_default_policy_when_none_given(self, db_session):
        assert CreditLedger(db_session).reset_policy.daily_allowance == 3
