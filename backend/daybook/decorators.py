# Overview: Request decorators for API routes: operator identity and error mapping.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services.cash_service import CashOperationError
from .services.closing_service import AlreadyClosedError, ClosingError, PersistenceFailure
from .services.context import ActingAs
from .services.document_store import NotFoundError
from .services.lock_service import RegisterLockedError
from .services.payment_service import PaymentError, TransactionLockedError
from .services.register_service import RegisterError
from .services.sales_service import SaleError
from .validation import ConflictError


def require_operator(f):
    """
    Establish tenant and operator identity from request headers.

    Sets the following Flask g attributes:
    - g.tenant_id: X-Tenant-Id (document namespace) - REQUIRED
    - g.acting_as: ActingAs built from X-Operator-Id / X-Operator-Name and the
      optional X-On-Behalf-Of-Id / X-On-Behalf-Of-Name delegation headers

    Returns 401 if the tenant or operator header is missing.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant_id = (request.headers.get("X-Tenant-Id") or "").strip()
        operator_id = (request.headers.get("X-Operator-Id") or "").strip()

        if not tenant_id:
            return jsonify({"error": "Missing tenant context"}), 401
        if not operator_id:
            return jsonify({"error": "Operator identity required"}), 401

        on_behalf_of_id = (request.headers.get("X-On-Behalf-Of-Id") or "").strip() or None

        g.tenant_id = tenant_id
        g.acting_as = ActingAs(
            operator_id=operator_id,
            operator_name=(request.headers.get("X-Operator-Name") or "").strip() or operator_id,
            on_behalf_of_id=on_behalf_of_id,
            on_behalf_of_name=(request.headers.get("X-On-Behalf-Of-Name") or "").strip() or None,
        )

        return f(*args, **kwargs)

    return decorated_function


def ledger_errors(action: str):
    """
    Map ledger exceptions to JSON error responses.

    423: register closed for the day (body carries reopen_at and remaining)
    409: conflicting write (locked transaction, append-only record)
    404: unknown record
    400: invalid input or invalid operation
    500: persistence failure or unexpected error
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except (RegisterLockedError, AlreadyClosedError) as e:
                return jsonify(e.to_dict()), 423
            except (TransactionLockedError, ConflictError) as e:
                return jsonify({"error": str(e)}), 409
            except NotFoundError as e:
                return jsonify({"error": str(e)}), 404
            except PersistenceFailure as e:
                current_app.logger.error("Failed to %s: %s", action, e)
                return jsonify({"error": str(e)}), 500
            except (ValueError, ClosingError, PaymentError, SaleError, CashOperationError, RegisterError) as e:
                return jsonify({"error": str(e)}), 400
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function

    return decorator
