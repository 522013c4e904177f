# Overview: Service-layer operations for sale and purchase invoices.

"""
Sales and Purchases Service

WHY: A transaction records the invoice; the cash actually handed over at the
counter is a separate movement. Both are written together so the ledger and
the till never disagree.

DESIGN PRINCIPLES:
- seller_id is the register identity, seller_name the acting operator
- total_amount defaults to the sum of item lines
- amount_paid > 0 produces one SALE/PURCHASE movement for that amount
- New transactions are never locked; only a closing locks them
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..extensions import db
from ..models import Transaction
from ..models.ledger import TRANSACTION_SALE, TRANSACTION_TYPES
from ..validation import ValidationError, parse_amount, parse_choice, parse_items, parse_text
from . import document_store
from .cash_service import build_movement, new_id
from .concurrency import atomic
from .context import RegisterContext
from .lock_service import closing_id_for, require_unlocked
from .payment_service import PAYMENT_STATUS_PAID, PAYMENT_STATUS_PARTIAL, derive_payment_status, normalize_payment_method

logger = logging.getLogger(__name__)


class SaleError(Exception):
    """Raised for sale/purchase operation errors."""
    pass


def ensure_can_start_entry(context: RegisterContext, transaction_type: str = TRANSACTION_SALE) -> None:
    """Check run before an operator opens a new sale/purchase entry."""
    label = "sale" if transaction_type == TRANSACTION_SALE else "purchase"
    require_unlocked(context, action=f"start a new {label}")


def record_transaction(
    context: RegisterContext,
    transaction_type: str,
    items: list | None = None,
    *,
    total_amount=None,
    amount_paid=0,
    payment_method: str | None = None,
    customer_id: str | None = None,
    customer_name: str | None = None,
    supplier_id: str | None = None,
    supplier_name: str | None = None,
    notes: str | None = None,
    date: datetime | None = None,
) -> Transaction:
    """
    Record a sale or purchase and, when cash changed hands, its movement.

    Raises:
        RegisterLockedError: register closed for today
        ValidationError: invalid lines or amounts
    """
    transaction_type = parse_choice(transaction_type, "type", TRANSACTION_TYPES)
    ensure_can_start_entry(context, transaction_type)

    lines = parse_items(items)
    if total_amount is None:
        if not lines:
            raise ValidationError("items or total_amount is required")
        total = sum(line["quantity"] * line["unit_price"] for line in lines)
    else:
        total = parse_amount(total_amount, "total_amount")
    paid = parse_amount(amount_paid if amount_paid is not None else 0, "amount_paid")
    method = normalize_payment_method(payment_method)
    status = derive_payment_status(paid, total)
    when = date or context.current_time()
    if date is not None:
        closing_id = closing_id_for(context.day_of(when), context.register_id)
        if document_store.get_closing(context.tenant_id, closing_id) is not None:
            raise SaleError(f"Cannot record a transaction on closed day {closing_id}")

    acting_as = context.acting_as
    with atomic():
        tx = Transaction(
            tenant_id=context.tenant_id,
            id=new_id("tx"),
            type=transaction_type,
            date=when,
            items=lines,
            total_amount=total,
            amount_paid=paid,
            payment_status=status,
            payment_method=method,
            paid_at=when if status == PAYMENT_STATUS_PAID else None,
            is_locked=False,
            seller_id=context.register_id,
            seller_name=acting_as.display_name,
            operator_id=acting_as.operator_id,
            on_behalf_of_id=acting_as.on_behalf_of_id,
            customer_id=parse_text(customer_id, "customer_id", max_length=64),
            customer_name=parse_text(customer_name, "customer_name"),
            supplier_id=parse_text(supplier_id, "supplier_id", max_length=64),
            supplier_name=parse_text(supplier_name, "supplier_name"),
            notes=parse_text(notes, "notes", max_length=2000),
        )
        db.session.add(tx)

        if paid > 0:
            label = "Sale" if transaction_type == TRANSACTION_SALE else "Purchase"
            suffix = " - Partial" if status == PAYMENT_STATUS_PARTIAL else ""
            db.session.add(build_movement(
                context,
                movement_type=transaction_type,
                amount=paid,
                description=f"{label} (Ref: {tx.id}){suffix}",
                prefix="m-auto",
                transaction_id=tx.id,
                date=when,
            ))

    logger.info(
        "%s %s recorded on register %s: total=%.2f paid=%.2f (%s)",
        transaction_type, tx.id, context.register_id, total, paid, status,
    )
    return tx


def list_transactions(context: RegisterContext, *, today_only: bool = False) -> list[Transaction]:
    since = context.start_of_day() if today_only else None
    return document_store.get_transactions(context.tenant_id, context.register_id, since=since)
