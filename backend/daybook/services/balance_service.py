# Overview: Session aggregator; physical cash balance and the day's sales breakdown.

"""
Balance Service

WHY: The operator counting the till must find net_physical, and the closing
must reconcile sales against the authoritative invoices.

DESIGN:
- Cash balance comes from movements (when cash actually moved)
- Sales figures come from transactions (invoice + payment method pairing)
- Locked transactions never count again, so a closed day is not re-added
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from ..models import CashMovement, Transaction
from ..models.ledger import (
    MOVEMENT_BANK_DEPOSIT,
    MOVEMENT_DEPOSIT,
    MOVEMENT_EXPENSE,
    MOVEMENT_PURCHASE,
    MOVEMENT_SALE,
    MOVEMENT_WITHDRAWAL,
    TRANSACTION_SALE,
)
from . import document_store
from .context import RegisterContext
from .payment_service import METHOD_CARD, METHOD_CASH, METHOD_MOBILE_MONEY


SCOPE_ALL_TIME = "all-time"
SCOPE_TODAY = "today"
SCOPES = [SCOPE_ALL_TIME, SCOPE_TODAY]

CASH_IN_TYPES = {MOVEMENT_SALE, MOVEMENT_DEPOSIT}
CASH_OUT_TYPES = {MOVEMENT_PURCHASE, MOVEMENT_WITHDRAWAL, MOVEMENT_EXPENSE}
BANK_OUT_TYPES = {MOVEMENT_BANK_DEPOSIT}


@dataclass(frozen=True)
class Balance:
    cash_in: float = 0.0
    cash_out: float = 0.0
    bank_out: float = 0.0

    @property
    def net_physical(self) -> float:
        return self.cash_in - self.cash_out - self.bank_out

    def to_dict(self) -> dict:
        return {
            "cash_in": self.cash_in,
            "cash_out": self.cash_out,
            "bank_out": self.bank_out,
            "net_physical": self.net_physical,
        }


@dataclass(frozen=True)
class SalesBreakdown:
    total_sales: float = 0.0
    by_method: dict = field(default_factory=dict)
    transaction_ids: tuple = ()

    @property
    def amount_cash(self) -> float:
        return self.by_method.get(METHOD_CASH, 0.0)

    @property
    def amount_mobile_money(self) -> float:
        return self.by_method.get(METHOD_MOBILE_MONEY, 0.0)

    @property
    def amount_card(self) -> float:
        return self.by_method.get(METHOD_CARD, 0.0)

    def to_dict(self) -> dict:
        return {
            "total_sales": self.total_sales,
            "amount_cash": self.amount_cash,
            "amount_mobile_money": self.amount_mobile_money,
            "amount_card": self.amount_card,
            "by_method": dict(self.by_method),
            "transaction_count": len(self.transaction_ids),
        }


def compute_balance(
    movements: Iterable[CashMovement],
    scope: str = SCOPE_ALL_TIME,
    start_of_day: datetime | None = None,
) -> Balance:
    """
    Sum movements into cash_in, cash_out and bank_out.

    scope="today" keeps only movements with date >= start_of_day.
    """
    if scope not in SCOPES:
        raise ValueError(f"Unknown balance scope: {scope}")
    if scope == SCOPE_TODAY and start_of_day is None:
        raise ValueError("start_of_day is required for the 'today' scope")

    cash_in = cash_out = bank_out = 0.0
    for movement in movements:
        if scope == SCOPE_TODAY and movement.date < start_of_day:
            continue
        if movement.type in CASH_IN_TYPES:
            cash_in += movement.amount
        elif movement.type in CASH_OUT_TYPES:
            cash_out += movement.amount
        elif movement.type in BANK_OUT_TYPES:
            bank_out += movement.amount

    return Balance(cash_in=cash_in, cash_out=cash_out, bank_out=bank_out)


def compute_sales_breakdown(
    transactions: Iterable[Transaction],
    register_id: str,
    start_of_day: datetime,
    end_of_day: datetime | None = None,
) -> SalesBreakdown:
    """
    Totals of the register's unlocked SALE transactions in the day window.

    amount_paid is grouped by payment method; an unset method counts as CASH.
    Stored methods are taken as they are, so a method outside the known
    three gets its own bucket instead of failing the closing.
    """
    total_sales = 0.0
    by_method = {METHOD_CASH: 0.0, METHOD_MOBILE_MONEY: 0.0, METHOD_CARD: 0.0}
    ids = []

    for tx in transactions:
        if tx.type != TRANSACTION_SALE or tx.is_locked or tx.seller_id != register_id:
            continue
        if tx.date < start_of_day or (end_of_day is not None and tx.date >= end_of_day):
            continue
        total_sales += tx.total_amount
        method = (tx.payment_method or "").strip().upper() or METHOD_CASH
        by_method[method] = by_method.get(method, 0.0) + tx.amount_paid
        ids.append(tx.id)

    return SalesBreakdown(total_sales=total_sales, by_method=by_method, transaction_ids=tuple(ids))


def expected_cash(context: RegisterContext, as_of: datetime | None = None) -> Balance:
    """All-time balance of the register, optionally only movements before as_of."""
    movements = document_store.get_movements(context.tenant_id, context.register_id, until=as_of)
    return compute_balance(movements, SCOPE_ALL_TIME)


def register_summary(context: RegisterContext) -> dict:
    """Display figures: all-time and today's balance plus today's sales."""
    start = context.start_of_day()
    end = context.next_midnight()
    movements = document_store.get_movements(context.tenant_id, context.register_id)
    transactions = document_store.get_transactions(
        context.tenant_id,
        context.register_id,
        since=start,
        until=end,
        type=TRANSACTION_SALE,
        unlocked_only=True,
    )

    return {
        "register_id": context.register_id,
        "business_day": context.today().isoformat(),
        "all_time": compute_balance(movements, SCOPE_ALL_TIME).to_dict(),
        "today": compute_balance(movements, SCOPE_TODAY, start_of_day=start).to_dict(),
        "sales": compute_sales_breakdown(transactions, context.register_id, start, end).to_dict(),
    }
