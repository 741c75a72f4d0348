"""Daily refill rule for the free credit allowance."""

from datetime import date, datetime
from typing import Callable, Optional

from app.core.config import settings


def server_now() -> datetime:
    """Server wall clock. The reset boundary is the server's local midnight."""
    return datetime.now()


class DailyResetPolicy:
    """
    Decides when the free allowance is refilled.

    The check is a pure comparison of calendar dates; callers apply it lazily
    whenever an account is read or charged, so no scheduler is needed.
    """

    def __init__(
        self,
        daily_allowance: Optional[int] = None,
        clock: Callable[[], datetime] = server_now
    ):
        self.daily_allowance = settings.DAILY_FREE_CREDITS if daily_allowance is None else daily_allowance
        self.clock = clock

    def today(self, now: Optional[datetime] = None) -> date:
        return (now or self.clock()).date()

    @staticmethod
    def should_reset(last_reset_date: date, now: datetime) -> bool:
        """True iff ``now`` falls on a different calendar day than the last reset."""
        current = now.date()
        return (current.year, current.month, current.day) != (
            last_reset_date.year, last_reset_date.month, last_reset_date.day
        )
