from datetime import date, datetime, timedelta

import pytest

from daybook.services import cash_service, closing_service, payment_service, register_service, sales_service
from daybook.services.lock_service import RegisterLockedError, closing_id_for, is_locked, require_unlocked
from daybook.services.register_service import RegisterError
from daybook.time_utils import day_bounds, format_remaining, local_date


# =============================================================================
# LOCK STATUS
# =============================================================================


class TestLockStatus:
    """A register is locked from its closing until the next local midnight."""

    def test_closing_id_is_day_and_register(self):
        assert closing_id_for(date(2026, 3, 10), "REG-1") == "2026-03-10_REG-1"

    def test_open_register_is_not_locked(self, context):
        status = is_locked(context)
        assert status.locked is False
        assert status.closing_id == "2026-03-10_REG-1"
        assert status.reopen_at is None
        require_unlocked(context)

    def test_closed_register_reports_reopen_time(self, context, clock):
        closing_service.execute_closing(context, 0)

        status = is_locked(context)
        assert status.locked is True
        assert status.reopen_at == datetime(2026, 3, 11)
        assert status.remaining == timedelta(hours=10)

        with pytest.raises(RegisterLockedError) as exc_info:
            require_unlocked(context, action="add a cash movement")
        err = exc_info.value
        assert "Reopens at 00:00 (in 10h 00m)" in str(err)
        assert err.to_dict()["reopen_at"] == "2026-03-11T00:00:00Z"

    def test_register_reopens_at_next_local_midnight(self, context, clock):
        closing_service.execute_closing(context, 0)
        clock.advance(hours=9, minutes=59)
        assert is_locked(context).locked is True

        clock.advance(minutes=1)
        assert is_locked(context).locked is False
        cash_service.add_movement(context, "DEPOSIT", 5)


# =============================================================================
# GATING
# =============================================================================


class TestLockGating:

    def test_lock_gating_refuses_every_cash_action(self, context):
        tx = sales_service.record_transaction(context, "SALE", total_amount=30, amount_paid=10)
        closing_service.execute_closing(context, 10)

        with pytest.raises(RegisterLockedError):
            cash_service.add_movement(context, "DEPOSIT", 5)
        with pytest.raises(RegisterLockedError):
            sales_service.ensure_can_start_entry(context, "SALE")
        with pytest.raises(RegisterLockedError):
            sales_service.record_transaction(context, "SALE", total_amount=5)
        with pytest.raises(RegisterLockedError):
            cash_service.record_expense(context, "OTHER", "Taxi", 3)
        with pytest.raises(RegisterLockedError):
            payment_service.settle_transaction(context, tx.id, 20)


# =============================================================================
# TIMEZONES AND DAY BOUNDARIES
# =============================================================================


class TestRegisterTimezone:
    """Business days are calendar days in the register's own zone."""

    def test_day_boundary_follows_register_timezone(self, make_context, clock):
        # 14:00 UTC is 23:00 in Tokyo; 01:00 UTC is 10:00 next day there
        tokyo = make_context("REG-TYO", timezone="Asia/Tokyo")
        assert tokyo.today() == date(2026, 3, 10)

        closing_service.execute_closing(tokyo, 0)
        status = is_locked(tokyo)
        assert status.reopen_at == datetime(2026, 3, 10, 15)
        assert format_remaining(status.remaining) == "1h 00m"

        clock.advance(hours=1)
        assert tokyo.today() == date(2026, 3, 11)
        assert is_locked(tokyo).locked is False

    def test_timezone_can_change_before_first_closing(self, context):
        register = register_service.set_register_timezone("acme", "REG-1", "Africa/Abidjan")
        assert register.timezone == "Africa/Abidjan"

    def test_timezone_is_fixed_once_closings_exist(self, context):
        closing_service.execute_closing(context, 0)

        with pytest.raises(RegisterError):
            register_service.set_register_timezone("acme", "REG-1", "Asia/Tokyo")
        assert register_service.get_register("acme", "REG-1").timezone == "UTC"

    def test_dst_day_is_shorter(self):
        start, end = day_bounds(date(2026, 3, 8), "America/New_York")
        assert end - start == timedelta(hours=23)
        assert local_date(datetime(2026, 3, 8, 4, 59), "America/New_York") == date(2026, 3, 7)

    def test_format_remaining_rounds_minutes_up(self):
        assert format_remaining(timedelta(minutes=41, seconds=1)) == "42m"
        assert format_remaining(timedelta(hours=5, minutes=7)) == "5h 07m"
        assert format_remaining(timedelta(seconds=-5)) == "0m"
