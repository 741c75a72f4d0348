"""Tests for the daily free credit reset rule."""

from datetime import date, datetime

from app.services.credit.reset_policy import DailyResetPolicy, server_now


class TestShouldReset:
    """Tests for DailyResetPolicy.should_reset."""

    def test_same_day_does_not_reset(self):
        assert DailyResetPolicy.should_reset(date(2026, 3, 14), datetime(2026, 3, 14, 23, 59, 59)) is False

    def test_next_day_resets(self):
        assert DailyResetPolicy.should_reset(date(2026, 3, 14), datetime(2026, 3, 15, 0, 0, 1)) is True

    def test_same_day_of_month_in_another_month_resets(self):
        """Only comparing the day number would miss this."""
        assert DailyResetPolicy.should_reset(date(2026, 3, 14), datetime(2026, 4, 14, 10, 0)) is True

    def test_same_date_in_another_year_resets(self):
        assert DailyResetPolicy.should_reset(date(2025, 3, 14), datetime(2026, 3, 14, 10, 0)) is True

    def test_clock_behind_last_reset_still_resets(self):
        """A date that differs in either direction triggers the refill."""
        assert DailyResetPolicy.should_reset(date(2026, 3, 15), datetime(2026, 3, 14, 10, 0)) is True


class TestPolicyConfiguration:
    """Tests for allowance and clock wiring."""

    def test_default_allowance_is_three(self):
        assert DailyResetPolicy().daily_allowance == 3

    def test_today_uses_injected_clock(self):
        policy = DailyResetPolicy(clock=lambda: datetime(2030, 1, 2, 3, 4))
        assert policy.today() == date(2030, 1, 2)

    def test_today_prefers_explicit_now(self):
        policy = DailyResetPolicy(clock=lambda: datetime(2030, 1, 2, 3, 4))
        assert policy.today(datetime(2031, 5, 6)) == date(2031, 5, 6)

    def test_server_now_is_naive_local_time(self):
        assert server_now().tzinfo is None
