from datetime import date, datetime

import pytest

from daybook.models import CashClosing, Transaction
from daybook.services import closing_service, sales_service, sweeper_service
from daybook.services.cash_service import build_movement
from daybook.services.closing_service import EarlierDayOpenError, PersistenceFailure


def _closings(db_session):
    return db_session.query(CashClosing).order_by(CashClosing.business_day).all()


@pytest.fixture
def forgotten(context, db_session):
    """Activity on 7, 8 and 9 March (3, 2 and 1 days ago), none closed."""
    sales_service.record_transaction(
        context, "SALE", total_amount=100, amount_paid=100, date=datetime(2026, 3, 7, 10),
    )
    db_session.add(build_movement(
        context, movement_type="DEPOSIT", amount=50, description="Float", date=datetime(2026, 3, 8, 9),
    ))
    db_session.commit()
    sales_service.record_transaction(
        context, "PURCHASE", total_amount=30, amount_paid=30, date=datetime(2026, 3, 9, 16),
    )
    # Today's activity is never swept
    sales_service.record_transaction(context, "SALE", total_amount=5, amount_paid=5)
    return context


# =============================================================================
# FINDING FORGOTTEN DAYS
# =============================================================================


class TestFindForgottenDays:

    def test_finds_past_days_oldest_first(self, forgotten):
        assert sweeper_service.find_forgotten_days(forgotten) == [
            date(2026, 3, 7), date(2026, 3, 8), date(2026, 3, 9),
        ]

    def test_closed_days_are_not_forgotten(self, forgotten):
        closing_service.close_day(forgotten, date(2026, 3, 7), cash_real=100, closed_by="Alice")

        assert sweeper_service.find_forgotten_days(forgotten) == [date(2026, 3, 8), date(2026, 3, 9)]

    def test_no_history(self, context):
        assert sweeper_service.find_forgotten_days(context) == []
        assert sweeper_service.sweep_forgotten_closings(context) == 0


# =============================================================================
# AUTO-CLOSING
# =============================================================================


class TestSweep:
    """Each forgotten day gets one system closing, oldest first."""

    def test_sweep_closes_each_forgotten_day(self, forgotten, db_session):
        assert sweeper_service.sweep_forgotten_closings(forgotten) == 3

        closings = _closings(db_session)
        assert [c.id for c in closings] == [
            "2026-03-07_REG-1", "2026-03-08_REG-1", "2026-03-09_REG-1",
        ]
        for c in closings:
            assert c.auto_closed is True
            assert c.closed_by == "system"
            assert c.cash_real == c.cash_expected
            assert c.difference == 0

        # Expected cash is the running balance at the end of each day
        assert [c.cash_expected for c in closings] == pytest.approx([100, 150, 120])
        assert closings[0].total_sales == pytest.approx(100)
        assert closings[0].locked_transaction_count == 1

        today_tx = db_session.query(Transaction).filter(Transaction.date >= datetime(2026, 3, 10)).one()
        assert today_tx.is_locked is False
        assert closing_service.get_closing_state(forgotten) == closing_service.STATE_OPEN

    def test_opening_balances_chain_from_day_to_day(self, forgotten, db_session):
        sweeper_service.sweep_forgotten_closings(forgotten)

        closings = _closings(db_session)
        assert [c.opening_balance for c in closings] == pytest.approx([0, 100, 150])
        for c in closings:
            assert c.opening_balance + c.total_in - c.total_out - c.bank_out == pytest.approx(c.cash_expected)
        for previous, following in zip(closings, closings[1:]):
            assert following.opening_balance == pytest.approx(previous.cash_expected)
        assert closings[1].to_dict()["period_start"] == "2026-03-08T00:00:00Z"

    def test_sweep_is_idempotent(self, forgotten, db_session):
        sweeper_service.sweep_forgotten_closings(forgotten)
        assert sweeper_service.sweep_forgotten_closings(forgotten) == 0
        assert len(_closings(db_session)) == 3

    def test_sweep_skips_days_already_closed(self, forgotten, db_session):
        closing_service.close_day(forgotten, date(2026, 3, 7), cash_real=90, closed_by="Alice")

        assert sweeper_service.sweep_forgotten_closings(forgotten) == 2
        manual = db_session.get(CashClosing, ("acme", "2026-03-07_REG-1"))
        assert manual.auto_closed is False
        assert manual.cash_real == pytest.approx(90)

    def test_later_day_cannot_be_closed_ahead_of_an_earlier_one(self, forgotten, db_session):
        with pytest.raises(EarlierDayOpenError) as exc_info:
            closing_service.close_day(forgotten, date(2026, 3, 8), cash_real=150, closed_by="Alice")

        assert exc_info.value.open_days[0] == date(2026, 3, 7)
        assert _closings(db_session) == []

    def test_persistence_failure_stops_the_sweep(self, forgotten, db_session, monkeypatch):
        real_close_day = sweeper_service.close_day
        calls = []

        def flaky_close_day(context, day, **kwargs):
            calls.append(day)
            if day == date(2026, 3, 8):
                raise PersistenceFailure("disk full")
            return real_close_day(context, day, **kwargs)

        monkeypatch.setattr(sweeper_service, "close_day", flaky_close_day)

        with pytest.raises(PersistenceFailure):
            sweeper_service.sweep_forgotten_closings(forgotten)

        assert calls == [date(2026, 3, 7), date(2026, 3, 8)]
        assert [c.id for c in _closings(db_session)] == ["2026-03-07_REG-1"]
