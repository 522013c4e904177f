# Overview: Flask API routes for register state and daily closings; parses input and returns JSON responses.

"""
Register Closing API Routes

WHY: The till is reconciled once per business day. These endpoints drive the
two-step closing (count, then confirm) and expose the lock status every
client checks before offering cash actions.

DESIGN:
- Closing flow: prepare -> confirm -> execute (cancel allowed at any step)
- Nothing is written before execute
- 423 Locked responses carry reopen_at and remaining time
- Session start queues the forgotten-closing sweep in the background
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_operator, ledger_errors
from ..services import closing_service, register_service, sweeper_service, repair_service
from ..services.balance_service import register_summary
from ..services.lock_service import is_locked
from ..tasks import schedule_sweep


registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")


def _context(register_id: str):
    return register_service.build_context(g.tenant_id, register_id, g.acting_as)


# =============================================================================
# REGISTERS
# =============================================================================

@registers_bp.get("/")
@registers_bp.get("")
@require_operator
def list_registers_route():
    registers = register_service.list_registers(g.tenant_id)
    return jsonify({"registers": [r.to_dict() for r in registers]}), 200


@registers_bp.post("/")
@registers_bp.post("")
@require_operator
@ledger_errors("create register")
def create_register_route():
    """
    Create a register.

    Request body:
    {
        "register_id": "REG-01",
        "name": "Front Counter",     (optional)
        "timezone": "Africa/Dakar"   (optional, IANA zone)
    }
    """
    data = request.get_json(silent=True) or {}
    register_id = (data.get("register_id") or "").strip()
    if not register_id:
        return jsonify({"error": "register_id is required"}), 400

    register = register_service.create_register(
        g.tenant_id,
        register_id,
        name=data.get("name"),
        timezone=data.get("timezone"),
    )
    return jsonify({"register": register.to_dict()}), 201


@registers_bp.put("/<register_id>/timezone")
@require_operator
@ledger_errors("update register timezone")
def update_timezone_route(register_id: str):
    """
    Change the zone that defines the register's business day.

    Request body: {"timezone": "Europe/Paris"}
    """
    data = request.get_json(silent=True) or {}
    if not data.get("timezone"):
        return jsonify({"error": "timezone is required"}), 400

    register_service.ensure_register(g.tenant_id, register_id)
    register = register_service.set_register_timezone(g.tenant_id, register_id, data["timezone"])
    return jsonify({"register": register.to_dict()}), 200


@registers_bp.get("/<register_id>/lock")
@require_operator
@ledger_errors("read lock status")
def lock_status_route(register_id: str):
    status = is_locked(_context(register_id))
    return jsonify(status.to_dict()), 200


@registers_bp.get("/<register_id>/summary")
@require_operator
@ledger_errors("compute register summary")
def summary_route(register_id: str):
    context = _context(register_id)
    summary = register_summary(context)
    summary["state"] = closing_service.get_closing_state(context)
    summary["lock"] = is_locked(context).to_dict()
    return jsonify(summary), 200


@registers_bp.post("/<register_id>/session")
@require_operator
@ledger_errors("start register session")
def start_session_route(register_id: str):
    """
    Mark the start of an operator session on the register.

    Queues the forgotten-closing sweep once per session id and business day.

    Request body: {"session_id": "abc"}   (optional, defaults to the operator id,
                                          i.e. one sweep per operator per day)
    """
    data = request.get_json(silent=True) or {}
    context = _context(register_id)
    session_key = data.get("session_id") or g.acting_as.operator_id

    scheduled = schedule_sweep(context, str(session_key)) is not None
    current_app.logger.info(
        "Session %s started on register %s by %s", session_key, register_id, g.acting_as.display_name
    )
    return jsonify({
        "register_id": register_id,
        "sweep_scheduled": scheduled,
        "state": closing_service.get_closing_state(context),
    }), 200


# =============================================================================
# CLOSING FLOW
# =============================================================================

@registers_bp.post("/<register_id>/closing/prepare")
@require_operator
@ledger_errors("prepare closing")
def prepare_closing_route(register_id: str):
    draft = closing_service.prepare_closing(_context(register_id))
    return jsonify({"draft": draft.to_dict()}), 200


@registers_bp.post("/<register_id>/closing/confirm")
@require_operator
@ledger_errors("confirm closing count")
def confirm_closing_route(register_id: str):
    """
    Record the counted cash and return the difference.

    Request body:
    {
        "cash_real": 480.0,
        "comment": "short 20"   (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    draft = closing_service.confirm_count(
        _context(register_id),
        data.get("cash_real"),
        data.get("comment"),
    )
    return jsonify({"draft": draft.to_dict()}), 200


@registers_bp.post("/<register_id>/closing/cancel")
@require_operator
def cancel_closing_route(register_id: str):
    cancelled = closing_service.cancel_closing(_context(register_id))
    return jsonify({"cancelled": cancelled}), 200


@registers_bp.post("/<register_id>/closing")
@require_operator
@ledger_errors("close register")
def execute_closing_route(register_id: str):
    """
    Close today for the register.

    Request body:
    {
        "cash_real": 480.0,
        "comment": "short 20"   (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    closing = closing_service.execute_closing(
        _context(register_id),
        data.get("cash_real"),
        data.get("comment"),
    )
    return jsonify({"closing": closing.to_dict()}), 201


@registers_bp.get("/<register_id>/closings")
@require_operator
@ledger_errors("list closings")
def list_closings_route(register_id: str):
    closings = closing_service.list_closings(_context(register_id))
    return jsonify({"closings": [c.to_dict() for c in closings]}), 200


@registers_bp.post("/<register_id>/closings/sweep")
@require_operator
@ledger_errors("sweep forgotten closings")
def sweep_route(register_id: str):
    """Run repair and the forgotten-closing sweep synchronously."""
    context = _context(register_id)
    relocked = repair_service.repair_closings(g.tenant_id, register_id)
    closed = sweeper_service.sweep_forgotten_closings(context)
    return jsonify({"closed": closed, "relocked": relocked}), 200
