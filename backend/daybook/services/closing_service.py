# Overview: Closing orchestrator; daily cash-register closing state machine.

"""
Cash Closing Service

WHY: At the end of the day the operator counts the till, the system compares
that count with what the ledger says should be there, and the day's
transactions are frozen so nothing can change the reconciled figures.

STATES (per register and business day):
- OPEN: no closing for today
- CLOSING_IN_PROGRESS: operator is counting (draft kept in memory, no writes)
- CLOSED: closing record written, terminal until the next local midnight

DESIGN PRINCIPLES:
- Closing id "<YYYY-MM-DD>_<register_id>" is the idempotency key
- Closing record and transaction locks commit in one database transaction
- A duplicate primary key at insert time means another session closed first
- Drafts can be cancelled at either step without side effects
- Manual and automatic (forgotten-day) closings share one writer: close_day
- Closings are written oldest first; earlier open days block later ones
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import CashClosing, CashMovement, Transaction
from ..models.ledger import CLOSING_STATUS_CLOSED, SYSTEM_OPERATOR
from ..validation import ConflictError, ValidationError, parse_amount, parse_text
from daybook.time_utils import format_remaining, to_utc_z
from . import document_store
from .balance_service import (
    SCOPE_ALL_TIME,
    SCOPE_TODAY,
    Balance,
    SalesBreakdown,
    compute_balance,
    compute_sales_breakdown,
    expected_cash,
)
from .concurrency import run_with_retry
from .context import RegisterContext
from .lock_service import closing_id_for, is_locked

logger = logging.getLogger(__name__)


STATE_OPEN = "OPEN"
STATE_CLOSING_IN_PROGRESS = "CLOSING_IN_PROGRESS"
STATE_CLOSED = "CLOSED"

STEP_COUNT = 1
STEP_CONFIRM = 2


# =============================================================================
# ERRORS
# =============================================================================

class ClosingError(Exception):
    """Base class for closing failures."""
    pass


class AlreadyClosedError(ClosingError, ConflictError):
    """A closing already exists for this register and day."""

    def __init__(self, closing_id: str, reopen_at: datetime | None = None, now: datetime | None = None):
        self.closing_id = closing_id
        self.reopen_at = reopen_at
        self.remaining = max(reopen_at - now, timedelta(0)) if reopen_at and now else None
        message = f"Closing {closing_id} already exists"
        if self.remaining is not None:
            message += f"; register reopens at 00:00 (in {format_remaining(self.remaining)})"
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "closing_id": self.closing_id,
            "reopen_at": to_utc_z(self.reopen_at),
            "remaining": format_remaining(self.remaining) if self.remaining is not None else None,
        }


class InvalidCountError(ClosingError, ValidationError):
    """Counted cash missing, negative or not a finite number."""
    pass


class EarlierDayOpenError(ClosingError, ConflictError):
    """An earlier business day with activity has no closing yet."""

    def __init__(self, register_id: str, open_days: list[date]):
        self.register_id = register_id
        self.open_days = open_days
        oldest = open_days[0].isoformat()
        super().__init__(
            f"Register {register_id} still has {len(open_days)} unclosed earlier day(s), oldest {oldest}"
        )


class PersistenceFailure(ClosingError):
    """The closing could not be written; the register stays OPEN."""
    pass


# =============================================================================
# DRAFTS (CLOSING_IN_PROGRESS)
# =============================================================================

@dataclass
class ClosingDraft:
    tenant_id: str
    register_id: str
    business_day: date
    closing_id: str
    cash_expected: float
    today: Balance
    sales: SalesBreakdown
    prepared_at: datetime
    opening_balance: float = 0.0
    earlier_open_days: list[date] = field(default_factory=list)
    step: int = STEP_COUNT
    cash_real: float | None = None
    comment: str | None = None
    state: str = field(default=STATE_CLOSING_IN_PROGRESS)

    @property
    def difference(self) -> float | None:
        if self.cash_real is None:
            return None
        return self.cash_real - self.cash_expected

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "step": self.step,
            "register_id": self.register_id,
            "business_day": self.business_day.isoformat(),
            "closing_id": self.closing_id,
            "opening_balance": self.opening_balance,
            "cash_expected": self.cash_expected,
            "cash_real": self.cash_real,
            "difference": self.difference,
            "comment": self.comment,
            "today": self.today.to_dict(),
            "sales": self.sales.to_dict(),
            "prepared_at": to_utc_z(self.prepared_at),
            "earlier_open_days": [day.isoformat() for day in self.earlier_open_days],
        }


_drafts: dict[tuple[str, str], ClosingDraft] = {}


def _draft_key(context: RegisterContext) -> tuple[str, str]:
    return (context.tenant_id, context.register_id)


def get_draft(context: RegisterContext) -> ClosingDraft | None:
    draft = _drafts.get(_draft_key(context))
    if draft and draft.business_day != context.today():
        # Prepared before midnight; the figures belong to another day
        _drafts.pop(_draft_key(context), None)
        return None
    return draft


def get_closing_state(context: RegisterContext) -> str:
    if is_locked(context).locked:
        return STATE_CLOSED
    if get_draft(context) is not None:
        return STATE_CLOSING_IN_PROGRESS
    return STATE_OPEN


def validate_count(cash_real) -> float:
    try:
        return parse_amount(cash_real, "cash_real")
    except ValidationError as e:
        raise InvalidCountError(str(e))


def open_days_before(context: RegisterContext, day: date) -> list[date]:
    """Days before `day` with activity and no closing, oldest first."""
    cutoff, _ = context.bounds(day)

    movement_dates = db.session.query(CashMovement.date).filter(
        CashMovement.tenant_id == context.tenant_id,
        CashMovement.register_id == context.register_id,
        CashMovement.date < cutoff,
    )
    transaction_dates = db.session.query(Transaction.date).filter(
        Transaction.tenant_id == context.tenant_id,
        Transaction.seller_id == context.register_id,
        Transaction.date < cutoff,
    )

    active_days = {context.day_of(moment) for (moment,) in movement_dates}
    active_days |= {context.day_of(moment) for (moment,) in transaction_dates}

    closed_ids = {c.id for c in document_store.get_closings(context.tenant_id, context.register_id)}
    return sorted(
        past for past in active_days
        if closing_id_for(past, context.register_id) not in closed_ids
    )


def _raise_if_closed(context: RegisterContext) -> None:
    status = is_locked(context)
    if status.locked:
        raise AlreadyClosedError(status.closing_id, status.reopen_at, context.current_time())


# =============================================================================
# TWO-STEP CONFIRMATION
# =============================================================================

def prepare_closing(context: RegisterContext) -> ClosingDraft:
    """
    Step 1: show what the till should hold and today's activity.

    Earlier days left open are listed; execute_closing auto-closes them
    before writing today.

    Raises:
        AlreadyClosedError: register already closed for today
    """
    _raise_if_closed(context)

    start = context.start_of_day()
    end = context.next_midnight()
    movements = document_store.get_movements(context.tenant_id, context.register_id)
    transactions = document_store.get_transactions(
        context.tenant_id, context.register_id, since=start, until=end, unlocked_only=True,
    )

    draft = ClosingDraft(
        tenant_id=context.tenant_id,
        register_id=context.register_id,
        business_day=context.today(),
        closing_id=closing_id_for(context.today(), context.register_id),
        cash_expected=compute_balance(movements, SCOPE_ALL_TIME).net_physical,
        today=compute_balance(movements, SCOPE_TODAY, start_of_day=start),
        sales=compute_sales_breakdown(transactions, context.register_id, start, end),
        prepared_at=context.current_time(),
        opening_balance=compute_balance(m for m in movements if m.date < start).net_physical,
        earlier_open_days=open_days_before(context, context.today()),
    )
    _drafts[_draft_key(context)] = draft
    return draft


def confirm_count(context: RegisterContext, cash_real, comment: str | None = None) -> ClosingDraft:
    """
    Step 2: record the counted cash and show the difference.

    Nothing is written; execute_closing performs the irreversible part.

    Raises:
        ClosingError: no closing in progress
        InvalidCountError: bad cash_real
    """
    draft = get_draft(context)
    if draft is None:
        raise ClosingError("No closing in progress for this register")

    draft.cash_real = validate_count(cash_real)
    draft.comment = parse_text(comment, "comment", max_length=2000)
    draft.step = STEP_CONFIRM
    return draft


def cancel_closing(context: RegisterContext) -> bool:
    """Abandon a draft at either step; returns False if there was none."""
    return _drafts.pop(_draft_key(context), None) is not None


# =============================================================================
# EXECUTION
# =============================================================================

def execute_closing(context: RegisterContext, cash_real, comment: str | None = None) -> CashClosing:
    """
    Close today for the register with an operator-counted amount.

    Raises:
        InvalidCountError: bad cash_real (checked before any read or write)
        EarlierDayOpenError: an earlier day could not be auto-closed
        AlreadyClosedError: a closing exists for today, including one
            committed by a concurrent session
        PersistenceFailure: the write failed; nothing was persisted
    """
    counted = validate_count(cash_real)
    note = parse_text(comment, "comment", max_length=2000)

    from .sweeper_service import sweep_forgotten_closings
    sweep_forgotten_closings(context)

    closing = close_day(
        context,
        context.today(),
        cash_real=counted,
        comment=note,
        closed_by=context.acting_as.display_name,
    )
    _drafts.pop(_draft_key(context), None)
    return closing


def close_day(
    context: RegisterContext,
    day: date,
    *,
    cash_real: float | None = None,
    comment: str | None = None,
    closed_by: str | None = None,
    auto: bool = False,
) -> CashClosing:
    """
    Write the closing for one register-day and lock that day's transactions.

    Manual closings use the current all-time balance as cash_expected.
    Automatic closings use the balance as of the end of that day and set
    cash_real = cash_expected, since nobody counted the till.

    Raises EarlierDayOpenError while any earlier day with activity is
    still unclosed, so closings are always written oldest first.
    """
    if not auto and cash_real is None:
        raise InvalidCountError("cash_real is required")

    earlier = open_days_before(context, day)
    if earlier:
        raise EarlierDayOpenError(context.register_id, earlier)

    start, end = context.bounds(day)
    closing_id = closing_id_for(day, context.register_id)
    timeout = current_app.config.get("CLOSING_TIMEOUT_SECONDS")
    started = time.monotonic()

    def _write() -> CashClosing:
        if document_store.get_closing(context.tenant_id, closing_id) is not None:
            raise AlreadyClosedError(closing_id, end, context.current_time())

        transactions = document_store.get_transactions(
            context.tenant_id, context.register_id, since=start, until=end, unlocked_only=True,
        )
        sales = compute_sales_breakdown(transactions, context.register_id, start, end)
        day_balance = compute_balance(
            document_store.get_movements(context.tenant_id, context.register_id, since=start, until=end)
        )

        opening = expected_cash(context, as_of=start).net_physical
        if auto:
            expected = expected_cash(context, as_of=end).net_physical
            counted = expected
        else:
            expected = expected_cash(context).net_physical
            counted = cash_real

        closing = CashClosing(
            tenant_id=context.tenant_id,
            id=closing_id,
            register_id=context.register_id,
            date=context.current_time(),
            business_day=day,
            closed_by=SYSTEM_OPERATOR if auto else (closed_by or context.acting_as.display_name),
            total_sales=sales.total_sales,
            amount_cash=sales.amount_cash,
            amount_mobile_money=sales.amount_mobile_money,
            amount_card=sales.amount_card,
            total_in=day_balance.cash_in,
            total_out=day_balance.cash_out,
            bank_out=day_balance.bank_out,
            opening_balance=opening,
            period_start=start,
            cash_expected=expected,
            cash_real=counted,
            difference=counted - expected,
            status=CLOSING_STATUS_CLOSED,
            auto_closed=auto,
            comment=comment,
            locked_transaction_count=len(transactions),
        )
        db.session.add(closing)
        for tx in transactions:
            tx.is_locked = True

        db.session.flush()
        if timeout and time.monotonic() - started > timeout:
            raise PersistenceFailure(f"Closing {closing_id} timed out after {timeout:.0f}s")
        db.session.commit()
        return closing

    try:
        closing = run_with_retry(_write)
    except IntegrityError:
        db.session.rollback()
        raise AlreadyClosedError(closing_id, end, context.current_time()) from None
    except ClosingError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Closing %s failed", closing_id)
        raise PersistenceFailure(f"Closing {closing_id} was not saved: {e}") from e

    logger.info(
        "Closed %s (%s) expected=%.2f real=%.2f difference=%.2f locked=%d",
        closing.id,
        "auto" if auto else closing.closed_by,
        closing.cash_expected,
        closing.cash_real,
        closing.difference,
        closing.locked_transaction_count,
    )
    return closing


def list_closings(context: RegisterContext) -> list[CashClosing]:
    return document_store.get_closings(context.tenant_id, context.register_id)
