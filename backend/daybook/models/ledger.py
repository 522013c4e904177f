from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from daybook.time_utils import to_utc_z, utcnow


# =============================================================================
# MOVEMENT AND TRANSACTION TYPES (CONSTANTS)
# =============================================================================

MOVEMENT_SALE = "SALE"
MOVEMENT_PURCHASE = "PURCHASE"
MOVEMENT_DEPOSIT = "DEPOSIT"
MOVEMENT_WITHDRAWAL = "WITHDRAWAL"
MOVEMENT_EXPENSE = "EXPENSE"
MOVEMENT_BANK_DEPOSIT = "BANK_DEPOSIT"

MOVEMENT_TYPES = [
    MOVEMENT_SALE,
    MOVEMENT_PURCHASE,
    MOVEMENT_DEPOSIT,
    MOVEMENT_WITHDRAWAL,
    MOVEMENT_EXPENSE,
    MOVEMENT_BANK_DEPOSIT,
]

TRANSACTION_SALE = "SALE"
TRANSACTION_PURCHASE = "PURCHASE"
TRANSACTION_TYPES = [TRANSACTION_SALE, TRANSACTION_PURCHASE]

EXPENSE_CATEGORIES = [
    "RENT",
    "SALARY",
    "UTILITIES",
    "TRANSPORT",
    "MARKETING",
    "TAX",
    "MAINTENANCE",
    "OTHER",
]

CLOSING_STATUS_CLOSED = "closed"
SYSTEM_OPERATOR = "system"


class CashMovement(db.Model):
    """
    Atomic cash-affecting event.

    IMMUTABLE: Movements are never edited. A settlement produces a new
    movement instead of rewriting the sale it pays. The only deletion is
    the removal of an expense's single paired movement.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_register_date", "tenant_id", "register_id", "date"),
    )

    tenant_id = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)
    register_id = db.Column(db.String(64), nullable=False, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    type = db.Column(db.String(16), nullable=False, index=True)

    # Base currency, never negative; direction comes from type
    amount = db.Column(db.Float, nullable=False)
    description = db.Column(db.String(255), nullable=False, default="")

    # Display name, e.g. "Alice (for Bob)"
    performed_by = db.Column(db.String(255), nullable=False)
    operator_id = db.Column(db.String(64), nullable=True)
    on_behalf_of_id = db.Column(db.String(64), nullable=True)

    transaction_id = db.Column(db.String(64), nullable=True, index=True)
    expense_id = db.Column(db.String(64), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "register_id": self.register_id,
            "date": to_utc_z(self.date),
            "type": self.type,
            "amount": self.amount,
            "description": self.description,
            "performed_by": self.performed_by,
            "acting_as": {
                "operator_id": self.operator_id,
                "on_behalf_of_id": self.on_behalf_of_id,
            },
            "transaction_id": self.transaction_id,
            "expense_id": self.expense_id,
        }


class Transaction(db.Model):
    """
    Sale or purchase invoice.

    WHY: total_amount is the invoice value and amount_paid the cash actually
    collected so far; the two are independent. payment_status is derived
    from them (see payment_service.derive_payment_status).

    LIFECYCLE:
    - is_locked = False: settlements may still increase amount_paid
    - is_locked = True: set by a closing, permanent for that day
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_seller_date", "tenant_id", "seller_id", "date"),
    )

    tenant_id = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    # Ordered [{product_id, name, quantity, unit_price}]
    items = db.Column(db.JSON, nullable=False, default=list)

    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    amount_paid = db.Column(db.Float, nullable=False, default=0.0)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)
    payment_method = db.Column(db.String(16), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_locked = db.Column(db.Boolean, nullable=False, default=False, index=True)

    # Register identity
    seller_id = db.Column(db.String(64), nullable=False, index=True)
    seller_name = db.Column(db.String(255), nullable=False)
    operator_id = db.Column(db.String(64), nullable=True)
    on_behalf_of_id = db.Column(db.String(64), nullable=True)

    customer_id = db.Column(db.String(64), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)
    supplier_id = db.Column(db.String(64), nullable=True)
    supplier_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @validates("is_locked")
    def _validate_is_locked(self, key, value):
        if self.is_locked and not value:
            raise ValueError(f"Transaction {self.id} is locked and cannot be unlocked")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "type": self.type,
            "date": to_utc_z(self.date),
            "items": list(self.items or []),
            "total_amount": self.total_amount,
            "amount_paid": self.amount_paid,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "paid_at": to_utc_z(self.paid_at),
            "is_locked": self.is_locked,
            "seller_id": self.seller_id,
            "seller_name": self.seller_name,
            "acting_as": {
                "operator_id": self.operator_id,
                "on_behalf_of_id": self.on_behalf_of_id,
            },
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "notes": self.notes,
        }


class Expense(db.Model):
    """Operating expense paid from the till; always paired with one EXPENSE movement."""
    __tablename__ = "expenses"

    tenant_id = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)
    register_id = db.Column(db.String(64), nullable=False, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    category = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    paid_by = db.Column(db.String(255), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "register_id": self.register_id,
            "date": to_utc_z(self.date),
            "category": self.category,
            "description": self.description,
            "amount": self.amount,
            "paid_by": self.paid_by,
        }


class CashClosing(db.Model):
    """
    Ledger snapshot for one register-day.

    WHY: The id "<YYYY-MM-DD>_<register_id>" is the idempotency key. The
    primary key makes a second closing for the same register-day fail at
    insert time instead of relying on a read-then-write check.

    IMMUTABLE: status is always "closed"; closings are never updated or deleted.
    """
    __tablename__ = "cash_closings"
    __table_args__ = (
        db.Index("ix_cash_closings_register_day", "tenant_id", "register_id", "business_day"),
    )

    tenant_id = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(96), primary_key=True)
    register_id = db.Column(db.String(64), nullable=False, index=True)

    # Closing timestamp vs the calendar day being closed
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    business_day = db.Column(db.Date, nullable=False)
    # UTC start of the business day being closed
    period_start = db.Column(db.DateTime(timezone=True), nullable=True)

    closed_by = db.Column(db.String(255), nullable=False)

    # Sales of the day, amount_paid split by method
    total_sales = db.Column(db.Float, nullable=False, default=0.0)
    amount_cash = db.Column(db.Float, nullable=False, default=0.0)
    amount_mobile_money = db.Column(db.Float, nullable=False, default=0.0)
    amount_card = db.Column(db.Float, nullable=False, default=0.0)

    # Movement totals of the day window
    total_in = db.Column(db.Float, nullable=False, default=0.0)
    total_out = db.Column(db.Float, nullable=False, default=0.0)
    bank_out = db.Column(db.Float, nullable=False, default=0.0)

    # All-time balance before period_start
    opening_balance = db.Column(db.Float, nullable=False, default=0.0)

    # Expected vs counted
    cash_expected = db.Column(db.Float, nullable=False)
    cash_real = db.Column(db.Float, nullable=False)
    difference = db.Column(db.Float, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=CLOSING_STATUS_CLOSED)
    auto_closed = db.Column(db.Boolean, nullable=False, default=False)
    comment = db.Column(db.Text, nullable=True)

    locked_transaction_count = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "register_id": self.register_id,
            "date": to_utc_z(self.date),
            "business_day": self.business_day.isoformat() if self.business_day else None,
            "period_start": to_utc_z(self.period_start),
            "closed_by": self.closed_by,
            "total_sales": self.total_sales,
            "amount_cash": self.amount_cash,
            "amount_mobile_money": self.amount_mobile_money,
            "amount_card": self.amount_card,
            "total_in": self.total_in,
            "total_out": self.total_out,
            "bank_out": self.bank_out,
            "opening_balance": self.opening_balance,
            "cash_expected": self.cash_expected,
            "cash_real": self.cash_real,
            "difference": self.difference,
            "status": self.status,
            "auto_closed": self.auto_closed,
            "comment": self.comment,
            "locked_transaction_count": self.locked_transaction_count,
        }
