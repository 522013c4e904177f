# Overview: Generic document persistence over the SQLAlchemy session.

"""
Document Store

WHY: The ledger services only need point-in-time reads, keyed upserts and
change notification. Exposing exactly that keeps them independent of the
storage engine, while the SQLAlchemy session still gives us real
multi-document transactions (see concurrency.atomic).

DESIGN:
- Every record lives in a per-tenant namespace: primary key (tenant_id, id)
- cash_movements and cash_closings are append-only (no updates)
- Subscribers are notified after commit, never for rolled-back writes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import CashClosing, CashMovement, Expense, Register, Transaction
from ..validation import ConflictError

logger = logging.getLogger(__name__)


COLLECTIONS = {
    "cash_movements": CashMovement,
    "transactions": Transaction,
    "cash_closings": CashClosing,
    "expenses": Expense,
    "registers": Register,
}

APPEND_ONLY_COLLECTIONS = {"cash_movements", "cash_closings"}


class NotFoundError(LookupError):
    """Referenced record, register or day has no data."""


class ImmutableRecordError(ConflictError):
    """Attempt to rewrite an append-only record."""


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    op: str  # "upsert" or "delete"
    record: dict


_subscribers: dict[str, list[Callable[[list[ChangeEvent]], None]]] = {}


def _model_for(collection: str):
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise NotFoundError(f"Unknown collection: {collection}")


# =============================================================================
# GENERIC OPERATIONS
# =============================================================================

def read_all(collection: str, tenant_id: str, **filters) -> list:
    """All records of a collection in a tenant namespace, oldest first."""
    model = _model_for(collection)
    query = db.session.query(model).filter_by(tenant_id=tenant_id, **filters)
    if hasattr(model, "date"):
        query = query.order_by(model.date, model.id)
    else:
        query = query.order_by(model.id)
    return query.all()


def read_one(collection: str, tenant_id: str, record_id: str):
    return db.session.get(_model_for(collection), (tenant_id, record_id))


def write_one(collection: str, record_id: str, record: dict, *, tenant_id: str, commit: bool = True):
    """
    Upsert a record by explicit id.

    Raises ImmutableRecordError when the id already exists in an
    append-only collection.
    """
    model = _model_for(collection)
    existing = db.session.get(model, (tenant_id, record_id))

    if existing is not None:
        if collection in APPEND_ONLY_COLLECTIONS:
            raise ImmutableRecordError(f"{collection}/{record_id} already exists and cannot be modified")
        for key, value in record.items():
            if key in ("tenant_id", "id"):
                continue
            setattr(existing, key, value)
        obj = existing
    else:
        payload = {k: v for k, v in record.items() if k not in ("tenant_id", "id")}
        obj = model(tenant_id=tenant_id, id=record_id, **payload)
        db.session.add(obj)

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return obj


def subscribe(collection: str, callback: Callable[[list[ChangeEvent]], None]) -> Callable[[], None]:
    """
    Register a push callback for committed changes; returns an unsubscribe function.

    The core services never subscribe; this exists for presentation layers
    that prefer push over polling.
    """
    _model_for(collection)
    _subscribers.setdefault(collection, []).append(callback)

    def unsubscribe() -> None:
        callbacks = _subscribers.get(collection, [])
        if callback in callbacks:
            callbacks.remove(callback)

    return unsubscribe


# =============================================================================
# PULL QUERIES
# =============================================================================

def get_movements(
    tenant_id: str,
    register_id: str,
    *,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[CashMovement]:
    """Movements of a register in [since, until), oldest first."""
    query = db.session.query(CashMovement).filter_by(tenant_id=tenant_id, register_id=register_id)
    if since is not None:
        query = query.filter(CashMovement.date >= since)
    if until is not None:
        query = query.filter(CashMovement.date < until)
    return query.order_by(CashMovement.date, CashMovement.id).all()


def get_transactions(
    tenant_id: str,
    register_id: str,
    *,
    since: datetime | None = None,
    until: datetime | None = None,
    type: str | None = None,
    unlocked_only: bool = False,
) -> list[Transaction]:
    """Transactions whose seller is the register, in [since, until), oldest first."""
    query = db.session.query(Transaction).filter_by(tenant_id=tenant_id, seller_id=register_id)
    if since is not None:
        query = query.filter(Transaction.date >= since)
    if until is not None:
        query = query.filter(Transaction.date < until)
    if type is not None:
        query = query.filter(Transaction.type == type)
    if unlocked_only:
        query = query.filter(Transaction.is_locked.is_(False))
    return query.order_by(Transaction.date, Transaction.id).all()


def get_closings(tenant_id: str, register_id: str | None = None) -> list[CashClosing]:
    """Closings, most recent business day first."""
    query = db.session.query(CashClosing).filter_by(tenant_id=tenant_id)
    if register_id is not None:
        query = query.filter_by(register_id=register_id)
    return query.order_by(CashClosing.business_day.desc(), CashClosing.register_id).all()


def get_closing(tenant_id: str, closing_id: str) -> CashClosing | None:
    return db.session.get(CashClosing, (tenant_id, closing_id))


# =============================================================================
# CHANGE NOTIFICATION
# =============================================================================

_PENDING_KEY = "daybook.pending_changes"


def _snapshot(obj) -> dict:
    # Column values only; relationships would lazy-load inside flush
    state = inspect(obj)
    return {attr.key: state.dict.get(attr.key) for attr in state.mapper.column_attrs}


@event.listens_for(Session, "after_flush")
def _collect_changes(session, flush_context):
    if not _subscribers:
        return
    pending = session.info.setdefault(_PENDING_KEY, [])
    for op, objects in (("upsert", session.new), ("upsert", session.dirty), ("delete", session.deleted)):
        for obj in objects:
            collection = getattr(obj, "__tablename__", None)
            if collection in _subscribers:
                pending.append(ChangeEvent(collection=collection, op=op, record=_snapshot(obj)))


@event.listens_for(Session, "after_commit")
def _dispatch_changes(session):
    pending = session.info.pop(_PENDING_KEY, None)
    if not pending:
        return
    by_collection: dict[str, list[ChangeEvent]] = {}
    for change in pending:
        by_collection.setdefault(change.collection, []).append(change)
    for collection, changes in by_collection.items():
        for callback in list(_subscribers.get(collection, [])):
            try:
                callback(changes)
            except Exception:
                logger.exception("Subscriber for %s failed", collection)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session):
    session.info.pop(_PENDING_KEY, None)
