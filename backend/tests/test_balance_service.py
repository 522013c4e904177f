from datetime import datetime

import pytest

from daybook.models import CashMovement, Transaction
from daybook.services.balance_service import (
    SCOPE_ALL_TIME,
    SCOPE_TODAY,
    compute_balance,
    compute_sales_breakdown,
    expected_cash,
    register_summary,
)
from daybook.services import cash_service, sales_service


START = datetime(2026, 3, 10)
END = datetime(2026, 3, 11)


def _movement(type_, amount, when=datetime(2026, 3, 10, 9)):
    return CashMovement(tenant_id="t", id=f"m-{type_}-{amount}", register_id="R", date=when,
                        type=type_, amount=amount, performed_by="x")


def _sale(amount_paid, total, method="CASH", locked=False, when=datetime(2026, 3, 10, 9), seller="R", type_="SALE"):
    return Transaction(tenant_id="t", id=f"tx-{amount_paid}-{method}", type=type_, date=when,
                       total_amount=total, amount_paid=amount_paid, payment_method=method,
                       is_locked=locked, seller_id=seller, seller_name="x")


# =============================================================================
# BALANCE
# =============================================================================


class TestBalance:

    def test_net_physical_is_in_minus_out_minus_bank(self):
        movements = [
            _movement("SALE", 120.0),
            _movement("DEPOSIT", 50.0),
            _movement("PURCHASE", 30.0),
            _movement("WITHDRAWAL", 10.0),
            _movement("EXPENSE", 5.5),
            _movement("BANK_DEPOSIT", 100.0),
        ]
        balance = compute_balance(movements, SCOPE_ALL_TIME)

        assert balance.cash_in == pytest.approx(170.0)
        assert balance.cash_out == pytest.approx(45.5)
        assert balance.bank_out == pytest.approx(100.0)
        assert balance.net_physical == pytest.approx(24.5)

    def test_today_scope_drops_earlier_movements(self):
        movements = [
            _movement("DEPOSIT", 500.0, when=datetime(2026, 3, 9, 23, 59)),
            _movement("SALE", 40.0, when=datetime(2026, 3, 10, 0, 0)),
        ]
        today = compute_balance(movements, SCOPE_TODAY, start_of_day=START)
        assert today.cash_in == 40.0
        assert compute_balance(movements).cash_in == 540.0

    def test_today_scope_requires_start_of_day(self):
        with pytest.raises(ValueError):
            compute_balance([], SCOPE_TODAY)
        with pytest.raises(ValueError):
            compute_balance([], "yesterday")


# =============================================================================
# SALES BREAKDOWN
# =============================================================================


class TestSalesBreakdown:
    """Unlocked SALEs of the register in the day window, split by method."""

    def test_sales_breakdown_skips_locked_other_registers_and_purchases(self):
        txs = [
            _sale(10.0, 10.0, "CASH"),
            _sale(20.0, 25.0, "MOBILE_MONEY"),
            _sale(5.0, 5.0, None),
            _sale(99.0, 99.0, "CARD", locked=True),
            _sale(7.0, 7.0, "CARD", seller="OTHER"),
            _sale(8.0, 8.0, "CASH", type_="PURCHASE"),
            _sale(3.0, 3.0, "CARD", when=datetime(2026, 3, 9, 12)),
        ]
        breakdown = compute_sales_breakdown(txs, "R", START, END)

        assert breakdown.total_sales == pytest.approx(40.0)
        assert breakdown.amount_cash == pytest.approx(15.0)
        assert breakdown.amount_mobile_money == pytest.approx(20.0)
        assert breakdown.amount_card == 0.0
        assert len(breakdown.transaction_ids) == 3

    def test_unrecognised_methods_are_grouped_not_rejected(self):
        txs = [
            _sale(30.0, 30.0, "BANK_TRANSFER"),
            _sale(12.0, 12.0, " bank_transfer "),
            _sale(4.0, 4.0, ""),
        ]
        breakdown = compute_sales_breakdown(txs, "R", START, END)

        assert breakdown.by_method["BANK_TRANSFER"] == pytest.approx(42.0)
        assert breakdown.amount_cash == pytest.approx(4.0)
        assert breakdown.total_sales == pytest.approx(46.0)
        assert breakdown.to_dict()["by_method"]["BANK_TRANSFER"] == pytest.approx(42.0)


# =============================================================================
# STORE-BACKED FIGURES
# =============================================================================


class TestRegisterFigures:

    def test_expected_cash_and_summary_from_store(self, context):
        cash_service.add_movement(context, "DEPOSIT", 200)
        sales_service.record_transaction(context, "SALE", total_amount=50, amount_paid=50)
        cash_service.record_expense(context, "OTHER", "Receipt paper", 12)

        assert expected_cash(context).net_physical == pytest.approx(238.0)

        summary = register_summary(context)
        assert summary["business_day"] == "2026-03-10"
        assert summary["today"]["cash_in"] == pytest.approx(250.0)
        assert summary["today"]["cash_out"] == pytest.approx(12.0)
        assert summary["sales"]["total_sales"] == pytest.approx(50.0)
        assert summary["sales"]["amount_cash"] == pytest.approx(50.0)
