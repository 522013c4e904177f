from datetime import datetime

import pytest

from daybook.models import CashClosing, CashMovement, Expense
from daybook.services import cash_service, closing_service, sales_service
from daybook.services.cash_service import CashOperationError
from daybook.services.context import ActingAs
from daybook.services.document_store import NotFoundError
from daybook.validation import ValidationError


# =============================================================================
# MANUAL MOVEMENTS
# =============================================================================


class TestManualMovements:

    def test_manual_movements(self, context):
        deposit = cash_service.add_movement(context, "deposit", 100, "Opening float")
        cash_service.add_movement(context, "WITHDRAWAL", 20)
        cash_service.add_movement(context, "BANK_DEPOSIT", 50)

        assert deposit.type == "DEPOSIT"
        assert deposit.performed_by == "Alice"
        assert deposit.operator_id == "u-alice"
        assert sorted(m.type for m in cash_service.list_movements(context)) == ["BANK_DEPOSIT", "DEPOSIT", "WITHDRAWAL"]

    @pytest.mark.parametrize("type_,amount", [("SALE", 10), ("EXPENSE", 10), ("DEPOSIT", 0), ("DEPOSIT", -5)])
    def test_manual_movement_validation(self, context, type_, amount):
        with pytest.raises(ValidationError):
            cash_service.add_movement(context, type_, amount)

    def test_delegated_movement_keeps_both_ids(self, make_context):
        context = make_context(acting_as=ActingAs("u-sup", "Sam", "u-alice", "Alice"))
        movement = cash_service.add_movement(context, "DEPOSIT", 10)

        assert movement.performed_by == "Sam (for Alice)"
        assert movement.to_dict()["acting_as"] == {"operator_id": "u-sup", "on_behalf_of_id": "u-alice"}


# =============================================================================
# EXPENSES
# =============================================================================


class TestExpenses:
    """An expense and its EXPENSE movement are written and removed together."""

    def test_expense_writes_paired_movement(self, context, db_session):
        expense = cash_service.record_expense(context, "utilities", "Receipt paper", 12.5)

        movement = db_session.query(CashMovement).filter_by(expense_id=expense.id).one()
        assert movement.type == "EXPENSE"
        assert movement.amount == 12.5
        assert expense.category == "UTILITIES"
        assert expense.paid_by == "Alice"

    def test_backdated_expense_on_open_day(self, context, db_session):
        expense = cash_service.record_expense(
            context, "TRANSPORT", "Taxi", 6, date=datetime(2026, 3, 9, 18),
        )

        movement = db_session.query(CashMovement).filter_by(expense_id=expense.id).one()
        assert movement.date == datetime(2026, 3, 9, 18)

    def test_delete_expense_removes_its_movement(self, context, db_session):
        keep = cash_service.add_movement(context, "DEPOSIT", 100)
        expense = cash_service.record_expense(context, "OTHER", "Taxi", 8)

        cash_service.delete_expense(context, expense.id)

        assert db_session.query(Expense).count() == 0
        assert [m.id for m in db_session.query(CashMovement).all()] == [keep.id]

    def test_delete_unknown_expense(self, context):
        with pytest.raises(NotFoundError):
            cash_service.delete_expense(context, "exp-missing")


# =============================================================================
# CLOSED DAYS ARE FROZEN
# =============================================================================


class TestClosedDayEdits:
    """Nothing can be added to or removed from a day after its closing."""

    def test_delete_expense_of_closed_day(self, context, clock, db_session):
        expense = cash_service.record_expense(context, "OTHER", "Taxi", 8)
        closing_service.execute_closing(context, 0)
        clock.advance(days=1)

        with pytest.raises(CashOperationError):
            cash_service.delete_expense(context, expense.id)
        assert db_session.query(CashMovement).filter_by(expense_id=expense.id).count() == 1

    def test_backdated_sale_on_closed_day_is_refused(self, context, clock, db_session):
        closing_service.execute_closing(context, 0)
        clock.advance(days=1)

        with pytest.raises(sales_service.SaleError):
            sales_service.record_transaction(
                context, "SALE", total_amount=10, date=datetime(2026, 3, 10, 12),
            )
        assert db_session.query(CashClosing).count() == 1

    def test_backdated_expense_on_closed_day_is_refused(self, context, clock, db_session):
        closing_service.execute_closing(context, 0)
        clock.advance(days=1)

        with pytest.raises(CashOperationError):
            cash_service.record_expense(
                context, "OTHER", "Late receipt", 4, date=datetime(2026, 3, 10, 12),
            )
        assert db_session.query(Expense).count() == 0
        assert db_session.query(CashMovement).count() == 0


# =============================================================================
# SALES AND PURCHASES
# =============================================================================


class TestTransactions:

    def test_sale_from_items(self, context, db_session):
        tx = sales_service.record_transaction(
            context,
            "SALE",
            [
                {"product_id": "p1", "name": "Rice 5kg", "quantity": 2, "unit_price": 12.5},
                {"product_id": "p2", "name": "Oil 1L", "quantity": 1, "unit_price": 4},
            ],
            amount_paid=29,
            customer_name="Awa",
        )

        assert tx.total_amount == pytest.approx(29)
        assert tx.payment_status == "PAID"
        assert tx.paid_at == context.current_time()
        assert tx.seller_id == "REG-1"
        assert tx.is_locked is False
        movement = db_session.query(CashMovement).filter_by(transaction_id=tx.id).one()
        assert movement.type == "SALE"
        assert movement.description == f"Sale (Ref: {tx.id})"

    def test_unpaid_sale_has_no_movement(self, context, db_session):
        tx = sales_service.record_transaction(context, "SALE", total_amount=15)
        assert tx.payment_status == "UNPAID"
        assert db_session.query(CashMovement).count() == 0

    def test_sale_requires_items_or_total(self, context):
        with pytest.raises(ValidationError):
            sales_service.record_transaction(context, "SALE")
