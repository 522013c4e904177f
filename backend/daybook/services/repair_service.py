# Overview: Reconciliation repair for closed days that still hold unlocked transactions.

"""
Closing Repair Service

WHY: A closed day with an unlocked transaction breaks the reconciliation
guarantee: the transaction could still be settled and its figures would
count again the next day. Closings commit their locks atomically, so this
only finds records written outside the closing path (imports, manual
database edits, older data).

Repairs only ever set is_locked = True.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..extensions import db
from ..models import CashClosing, Transaction
from . import document_store, register_service
from .concurrency import atomic
from daybook.time_utils import day_bounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClosingAnomaly:
    closing_id: str
    register_id: str
    transaction_ids: tuple

    def to_dict(self) -> dict:
        return {
            "closing_id": self.closing_id,
            "register_id": self.register_id,
            "transaction_ids": list(self.transaction_ids),
        }


def _unlocked_in_closing(tenant_id: str, closing: CashClosing) -> list[Transaction]:
    register = register_service.get_register(tenant_id, closing.register_id)
    start, end = day_bounds(closing.business_day, register.timezone if register else "UTC")
    return document_store.get_transactions(
        tenant_id, closing.register_id, since=start, until=end, unlocked_only=True,
    )


def find_anomalies(tenant_id: str, register_id: str | None = None) -> list[ClosingAnomaly]:
    """Closings whose day still has unlocked transactions."""
    anomalies = []
    for closing in document_store.get_closings(tenant_id, register_id):
        unlocked = _unlocked_in_closing(tenant_id, closing)
        if unlocked:
            anomalies.append(ClosingAnomaly(
                closing_id=closing.id,
                register_id=closing.register_id,
                transaction_ids=tuple(tx.id for tx in unlocked),
            ))
    return anomalies


def repair_closings(tenant_id: str, register_id: str | None = None) -> int:
    """Lock the transactions found by find_anomalies; returns how many were locked."""
    anomalies = find_anomalies(tenant_id, register_id)
    if not anomalies:
        return 0

    repaired = 0
    with atomic():
        for anomaly in anomalies:
            for tx_id in anomaly.transaction_ids:
                tx = db.session.get(Transaction, (tenant_id, tx_id))
                if tx is not None and not tx.is_locked:
                    tx.is_locked = True
                    repaired += 1
            logger.warning(
                "Closing %s had %d unlocked transaction(s); relocked",
                anomaly.closing_id, len(anomaly.transaction_ids),
            )
    return repaired
