# Overview: Manual cash movements and expenses; every write is gated by the register lock.

"""
Cash Movement Service

WHY: The till balance is the sum of movements, so every way cash enters or
leaves the drawer must leave exactly one movement behind.

DESIGN PRINCIPLES:
- Manual movements: DEPOSIT, WITHDRAWAL, BANK_DEPOSIT
- An expense always has exactly one paired EXPENSE movement
- Deleting an expense removes its paired movement, nothing else
- Nothing is written while the register is closed for the day
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from ..extensions import db
from ..models import CashMovement, Expense
from ..models.ledger import (
    EXPENSE_CATEGORIES,
    MOVEMENT_BANK_DEPOSIT,
    MOVEMENT_DEPOSIT,
    MOVEMENT_EXPENSE,
    MOVEMENT_WITHDRAWAL,
)
from ..validation import parse_amount, parse_choice, parse_text
from . import document_store
from .concurrency import atomic
from .context import RegisterContext
from .document_store import NotFoundError
from .lock_service import closing_id_for, require_unlocked

logger = logging.getLogger(__name__)


MANUAL_MOVEMENT_TYPES = [MOVEMENT_DEPOSIT, MOVEMENT_WITHDRAWAL, MOVEMENT_BANK_DEPOSIT]


class CashOperationError(Exception):
    """Raised for invalid cash operations."""
    pass


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


def build_movement(
    context: RegisterContext,
    *,
    movement_type: str,
    amount: float,
    description: str,
    prefix: str = "m",
    transaction_id: str | None = None,
    expense_id: str | None = None,
    date: datetime | None = None,
) -> CashMovement:
    """Unsaved movement attributed to the context's register and operator."""
    acting_as = context.acting_as
    return CashMovement(
        tenant_id=context.tenant_id,
        id=new_id(prefix),
        register_id=context.register_id,
        date=date or context.current_time(),
        type=movement_type,
        amount=amount,
        description=(description or "")[:255],
        performed_by=acting_as.display_name,
        operator_id=acting_as.operator_id,
        on_behalf_of_id=acting_as.on_behalf_of_id,
        transaction_id=transaction_id,
        expense_id=expense_id,
    )


def add_movement(context: RegisterContext, movement_type: str, amount, description: str | None = None) -> CashMovement:
    """
    Add a manual deposit, withdrawal or bank deposit.

    Raises:
        RegisterLockedError: register closed for today
        ValidationError: bad type or amount
    """
    require_unlocked(context, action="add a cash movement")
    movement_type = parse_choice(movement_type, "type", MANUAL_MOVEMENT_TYPES)
    amount_value = parse_amount(amount, "amount", allow_zero=False)

    with atomic():
        movement = build_movement(
            context,
            movement_type=movement_type,
            amount=amount_value,
            description=parse_text(description, "description") or movement_type.replace("_", " ").title(),
        )
        db.session.add(movement)

    logger.info("Movement %s %s %.2f on register %s", movement.id, movement_type, amount_value, context.register_id)
    return movement


def list_movements(context: RegisterContext, *, today_only: bool = False) -> list[CashMovement]:
    since = context.start_of_day() if today_only else None
    return document_store.get_movements(context.tenant_id, context.register_id, since=since)


# =============================================================================
# EXPENSES
# =============================================================================

def record_expense(
    context: RegisterContext,
    category: str,
    description: str,
    amount,
    date: datetime | None = None,
) -> Expense:
    """
    Record an expense and its paired EXPENSE movement in one commit.

    Raises:
        RegisterLockedError: register closed for today
        CashOperationError: backdated onto a day that is already closed
        ValidationError: bad category, description or amount
    """
    require_unlocked(context, action="record an expense")
    category = parse_choice(category, "category", EXPENSE_CATEGORIES, default="OTHER")
    description = parse_text(description, "description", required=True)
    amount_value = parse_amount(amount, "amount", allow_zero=False)
    when = date or context.current_time()
    if date is not None:
        closing_id = closing_id_for(context.day_of(when), context.register_id)
        if document_store.get_closing(context.tenant_id, closing_id) is not None:
            raise CashOperationError(f"Cannot record an expense on closed day {closing_id}")

    with atomic():
        expense = Expense(
            tenant_id=context.tenant_id,
            id=new_id("exp"),
            register_id=context.register_id,
            date=when,
            category=category,
            description=description,
            amount=amount_value,
            paid_by=context.acting_as.display_name,
        )
        db.session.add(expense)
        db.session.add(build_movement(
            context,
            movement_type=MOVEMENT_EXPENSE,
            amount=amount_value,
            description=f"Expense: {description} ({category})",
            prefix="m-exp",
            expense_id=expense.id,
            date=when,
        ))

    logger.info("Expense %s %.2f recorded on register %s", expense.id, amount_value, context.register_id)
    return expense


def delete_expense(context: RegisterContext, expense_id: str) -> None:
    """
    Delete an expense and its single paired movement.

    Raises:
        RegisterLockedError: register closed for today
        NotFoundError: unknown expense
        CashOperationError: the expense belongs to a day that is already closed
    """
    require_unlocked(context, action="delete an expense")

    expense = db.session.get(Expense, (context.tenant_id, expense_id))
    if not expense:
        raise NotFoundError(f"Expense {expense_id} not found")

    closing_id = closing_id_for(context.day_of(expense.date), expense.register_id)
    if document_store.get_closing(context.tenant_id, closing_id) is not None:
        raise CashOperationError(f"Expense {expense_id} belongs to closed day {closing_id}")

    paired = db.session.query(CashMovement).filter_by(
        tenant_id=context.tenant_id,
        expense_id=expense_id,
    ).all()
    if len(paired) > 1:
        raise CashOperationError(f"Expense {expense_id} has {len(paired)} paired movements")

    with atomic():
        for movement in paired:
            db.session.delete(movement)
        db.session.delete(expense)

    logger.info("Expense %s deleted from register %s", expense_id, context.register_id)


def list_expenses(context: RegisterContext) -> list[Expense]:
    return document_store.read_all("expenses", context.tenant_id, register_id=context.register_id)
