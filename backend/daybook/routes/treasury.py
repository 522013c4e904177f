# Overview: Flask API routes for cash-affecting operations; parses input and returns JSON responses.

"""
Treasury API Routes

WHY: Sales, purchases, settlements, manual movements and expenses are the
only ways cash enters or leaves a register. Every write here passes the
register lock check in the service layer, so a closed register answers
423 with the time it reopens.

All endpoints take the register in the path and the operator in the
X-Operator-* headers.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_operator, ledger_errors
from ..models.ledger import TRANSACTION_SALE
from ..services import cash_service, payment_service, register_service, sales_service
from ..validation import parse_optional_datetime


treasury_bp = Blueprint("treasury", __name__, url_prefix="/api/treasury")


def _context(register_id: str):
    return register_service.build_context(g.tenant_id, register_id, g.acting_as)


def _today_only() -> bool:
    return request.args.get("scope", "all-time") == "today"


# =============================================================================
# SALES / PURCHASES
# =============================================================================

@treasury_bp.get("/<register_id>/transactions/start")
@require_operator
@ledger_errors("check register before new entry")
def start_entry_route(register_id: str):
    """Ask whether a new sale/purchase may be started (?type=SALE|PURCHASE)."""
    transaction_type = request.args.get("type", TRANSACTION_SALE).upper()
    sales_service.ensure_can_start_entry(_context(register_id), transaction_type)
    return jsonify({"allowed": True}), 200


@treasury_bp.post("/<register_id>/transactions")
@require_operator
@ledger_errors("record transaction")
def create_transaction_route(register_id: str):
    """
    Record a sale or a purchase.

    Request body:
    {
        "type": "SALE",
        "items": [{"product_id": "p1", "name": "Rice 5kg", "quantity": 2, "unit_price": 12.5}],
        "total_amount": 25.0,          (optional, defaults to the sum of items)
        "amount_paid": 10.0,           (optional, default 0)
        "payment_method": "CASH",      (CASH | MOBILE_MONEY | CARD)
        "customer_id": "c1",           (optional)
        "customer_name": "Awa",        (optional)
        "supplier_id": null,
        "supplier_name": null,
        "notes": null,
        "date": "2026-03-01T10:00:00Z" (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    tx = sales_service.record_transaction(
        _context(register_id),
        data.get("type", TRANSACTION_SALE),
        data.get("items"),
        total_amount=data.get("total_amount"),
        amount_paid=data.get("amount_paid", 0),
        payment_method=data.get("payment_method"),
        customer_id=data.get("customer_id"),
        customer_name=data.get("customer_name"),
        supplier_id=data.get("supplier_id"),
        supplier_name=data.get("supplier_name"),
        notes=data.get("notes"),
        date=parse_optional_datetime(data.get("date"), "date"),
    )
    return jsonify({"transaction": tx.to_dict()}), 201


@treasury_bp.get("/<register_id>/transactions")
@require_operator
@ledger_errors("list transactions")
def list_transactions_route(register_id: str):
    txs = sales_service.list_transactions(_context(register_id), today_only=_today_only())
    return jsonify({"transactions": [tx.to_dict() for tx in txs]}), 200


@treasury_bp.post("/<register_id>/transactions/<transaction_id>/settlements")
@require_operator
@ledger_errors("settle transaction")
def settle_transaction_route(register_id: str, transaction_id: str):
    """
    Pay (part of) the remaining balance of a sale or purchase.

    Request body: {"amount": 15.0}
    """
    data = request.get_json(silent=True) or {}
    tx = payment_service.settle_transaction(_context(register_id), transaction_id, data.get("amount"))
    return jsonify({"transaction": tx.to_dict()}), 200


# =============================================================================
# MOVEMENTS
# =============================================================================

@treasury_bp.post("/<register_id>/movements")
@require_operator
@ledger_errors("add cash movement")
def create_movement_route(register_id: str):
    """
    Record a manual movement.

    Request body:
    {
        "type": "DEPOSIT",          (DEPOSIT | WITHDRAWAL | BANK_DEPOSIT)
        "amount": 100.0,
        "description": "Float"      (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    movement = cash_service.add_movement(
        _context(register_id),
        data.get("type"),
        data.get("amount"),
        data.get("description"),
    )
    return jsonify({"movement": movement.to_dict()}), 201


@treasury_bp.get("/<register_id>/movements")
@require_operator
@ledger_errors("list cash movements")
def list_movements_route(register_id: str):
    movements = cash_service.list_movements(_context(register_id), today_only=_today_only())
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


# =============================================================================
# EXPENSES
# =============================================================================

@treasury_bp.post("/<register_id>/expenses")
@require_operator
@ledger_errors("record expense")
def create_expense_route(register_id: str):
    """
    Record an expense paid from the till.

    Request body:
    {
        "category": "MAINTENANCE",
        "description": "Receipt paper",
        "amount": 8.5,
        "date": "2026-03-01T10:00:00Z" (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    expense = cash_service.record_expense(
        _context(register_id),
        data.get("category"),
        data.get("description"),
        data.get("amount"),
        date=parse_optional_datetime(data.get("date"), "date"),
    )
    return jsonify({"expense": expense.to_dict()}), 201


@treasury_bp.get("/<register_id>/expenses")
@require_operator
@ledger_errors("list expenses")
def list_expenses_route(register_id: str):
    expenses = cash_service.list_expenses(_context(register_id))
    return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200


@treasury_bp.delete("/<register_id>/expenses/<expense_id>")
@require_operator
@ledger_errors("delete expense")
def delete_expense_route(register_id: str, expense_id: str):
    cash_service.delete_expense(_context(register_id), expense_id)
    return jsonify({"deleted": expense_id}), 200
