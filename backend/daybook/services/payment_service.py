# Overview: Service-layer operations for payment status and settlements.

"""
Payment Service

WHY: A transaction's invoice value and the cash collected for it are
independent. Customers pay in several steps; each step is a settlement.

DESIGN PRINCIPLES:
- payment_status is a pure function of (amount_paid, total_amount)
- A settlement never rewrites the original movement; it adds a new one
- Locked transactions (closed day) accept no settlement
- The register performing the settlement must be open
"""

from __future__ import annotations

import logging

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Transaction
from ..validation import ValidationError, parse_amount
from .cash_service import build_movement
from .concurrency import lock_for_update, run_with_retry
from .context import RegisterContext
from .document_store import NotFoundError
from .lock_service import require_unlocked

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """Raised for payment operation errors."""
    pass


class TransactionLockedError(PaymentError):
    """Settlement attempted on a transaction locked by a closing."""
    pass


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "CASH"
METHOD_MOBILE_MONEY = "MOBILE_MONEY"
METHOD_CARD = "CARD"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_MOBILE_MONEY,
    METHOD_CARD,
]


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"

DEFAULT_PAYMENT_EPSILON = 0.01


def _epsilon() -> float:
    if has_app_context():
        return current_app.config.get("PAYMENT_EPSILON", DEFAULT_PAYMENT_EPSILON)
    return DEFAULT_PAYMENT_EPSILON


def derive_payment_status(amount_paid: float, total_amount: float, epsilon: float | None = None) -> str:
    """
    PAID iff amount_paid >= total_amount - epsilon;
    PARTIAL iff 0 < amount_paid < total_amount - epsilon; else UNPAID.
    """
    eps = _epsilon() if epsilon is None else epsilon
    if amount_paid >= total_amount - eps:
        return PAYMENT_STATUS_PAID
    if amount_paid > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_UNPAID


def normalize_payment_method(method: str | None) -> str:
    """Unset or blank methods count as CASH."""
    if not method or not str(method).strip():
        return METHOD_CASH
    normalized = str(method).strip().upper()
    if normalized not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(VALID_PAYMENT_METHODS)}")
    return normalized


# =============================================================================
# SETTLEMENT
# =============================================================================

def settle_transaction(context: RegisterContext, transaction_id: str, amount) -> Transaction:
    """
    Record an additional payment against a sale or purchase.

    Creates a new movement of the transaction's type for the paid amount
    and re-derives payment_status. paid_at is set when the status becomes PAID.

    Raises:
        RegisterLockedError: the settling register is closed for today
        NotFoundError: unknown transaction
        TransactionLockedError: the transaction's day is already closed
        ValidationError: amount missing, negative or zero
    """
    require_unlocked(context, action="settle a transaction")
    amount_value = parse_amount(amount, "amount", allow_zero=False)

    def _op():
        tx = lock_for_update(
            db.session.query(Transaction).filter_by(tenant_id=context.tenant_id, id=transaction_id)
        ).first()
        if not tx:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        if tx.is_locked:
            raise TransactionLockedError(f"Transaction {transaction_id} is locked by a closing")

        now = context.current_time()
        tx.amount_paid = tx.amount_paid + amount_value
        previous_status = tx.payment_status
        tx.payment_status = derive_payment_status(tx.amount_paid, tx.total_amount)
        if tx.payment_status == PAYMENT_STATUS_PAID and previous_status != PAYMENT_STATUS_PAID:
            tx.paid_at = now

        label = "Sale" if tx.type == "SALE" else "Purchase"
        movement = build_movement(
            context,
            movement_type=tx.type,
            amount=amount_value,
            description=f"{label} balance settlement (Ref: {tx.id})",
            prefix="m-settle",
            transaction_id=tx.id,
            date=now,
        )
        db.session.add(movement)
        db.session.commit()
        return tx

    tx = run_with_retry(_op)
    logger.info(
        "Settled %.2f on transaction %s from register %s (status=%s)",
        amount_value, tx.id, context.register_id, tx.payment_status,
    )
    return tx
