"""
Register Management Service

WHY: Every ledger operation is scoped to a register, and the register owns
the time zone that decides where one business day ends and the next begins.

DESIGN PRINCIPLES:
- Registers are keyed by (tenant_id, register_id), never deleted
- A register is created on first use with the configured default zone
- The day boundary comes from the register, not from the caller's clock
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from flask import current_app

from ..extensions import db
from ..models import Register
from daybook.time_utils import get_zone
from . import document_store
from .context import ActingAs, RegisterContext, SYSTEM_ACTOR


class RegisterError(Exception):
    """Raised for register operation errors."""
    pass


def _default_timezone() -> str:
    return current_app.config.get("DEFAULT_REGISTER_TIMEZONE", "UTC")


def create_register(
    tenant_id: str,
    register_id: str,
    name: str | None = None,
    timezone: str | None = None,
) -> Register:
    """
    Create a register.

    Raises:
        RegisterError: duplicate register id or unknown time zone
    """
    existing = db.session.get(Register, (tenant_id, register_id))
    if existing:
        raise RegisterError(f"Register '{register_id}' already exists")

    tz_name = timezone or _default_timezone()
    try:
        get_zone(tz_name)
    except ValueError as e:
        raise RegisterError(str(e))

    register = Register(
        tenant_id=tenant_id,
        id=register_id,
        name=name or register_id,
        timezone=tz_name,
        is_active=True,
    )
    db.session.add(register)
    db.session.commit()

    return register


def get_register(tenant_id: str, register_id: str) -> Register | None:
    return db.session.get(Register, (tenant_id, register_id))


def ensure_register(tenant_id: str, register_id: str, name: str | None = None) -> Register:
    """Return the register, creating it with the default zone on first use."""
    register = get_register(tenant_id, register_id)
    if register:
        return register
    return create_register(tenant_id, register_id, name=name)


def set_register_timezone(tenant_id: str, register_id: str, timezone: str) -> Register:
    """
    Change the zone that defines the register's business days.

    Only allowed before the first closing: existing closing ids and day
    windows were computed in the old zone.
    """
    register = get_register(tenant_id, register_id)
    if not register:
        raise RegisterError("Register not found")
    if document_store.get_closings(tenant_id, register_id):
        raise RegisterError(f"Register {register_id} already has closings; its timezone is fixed")
    try:
        get_zone(timezone)
    except ValueError as e:
        raise RegisterError(str(e))

    register.timezone = timezone
    db.session.commit()
    return register


def list_registers(tenant_id: str) -> list[Register]:
    return db.session.query(Register).filter_by(
        tenant_id=tenant_id,
        is_active=True,
    ).order_by(Register.id).all()


def build_context(
    tenant_id: str,
    register_id: str,
    acting_as: ActingAs | None = None,
    *,
    clock: Callable[[], datetime] | None = None,
) -> RegisterContext:
    """
    Resolve the register (creating it if needed) and wrap it in a context.

    The context's time zone is always the register's stored zone.
    """
    register = ensure_register(tenant_id, register_id)
    kwargs = {}
    if clock is not None:
        kwargs["clock"] = clock
    return RegisterContext(
        tenant_id=tenant_id,
        register_id=register.id,
        acting_as=acting_as or SYSTEM_ACTOR,
        timezone=register.timezone,
        **kwargs,
    )
