# Overview: Register lock oracle; decides whether a register is closed for the day.

"""
Register Lock Service

WHY: Once a register is closed for a day, no cash-affecting action may touch
it until the next register-local midnight. Every such action asks this
module first.

DESIGN:
- Pure read: a register is locked iff the closing "<local day>_<register_id>" exists
- Reopening is always the next local 00:00; there is no partial-day reopen
- The refusal carries the reopening anchor and the remaining time
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from daybook.time_utils import format_remaining, to_utc_z
from . import document_store
from .context import RegisterContext


class RegisterLockedError(Exception):
    """Cash-affecting action attempted on a register closed for the day."""

    def __init__(self, register_id: str, reopen_at: datetime, remaining: timedelta, action: str | None = None):
        self.register_id = register_id
        self.reopen_at = reopen_at
        self.remaining = remaining
        self.action = action
        what = f"Cannot {action}: register" if action else "Register"
        super().__init__(
            f"{what} {register_id} is closed for today. "
            f"Reopens at 00:00 (in {format_remaining(remaining)})."
        )

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "register_id": self.register_id,
            "reopen_at": to_utc_z(self.reopen_at),
            "remaining": format_remaining(self.remaining),
            "remaining_seconds": int(self.remaining.total_seconds()),
        }


@dataclass(frozen=True)
class LockStatus:
    locked: bool
    closing_id: str
    reopen_at: datetime | None = None
    remaining: timedelta | None = None

    def to_dict(self) -> dict:
        return {
            "locked": self.locked,
            "closing_id": self.closing_id,
            "reopen_at": to_utc_z(self.reopen_at),
            "remaining": format_remaining(self.remaining) if self.remaining is not None else None,
        }


def closing_id_for(day: date, register_id: str) -> str:
    """Deterministic closing key: at most one closing per register per day."""
    return f"{day.isoformat()}_{register_id}"


def is_locked(context: RegisterContext, now: datetime | None = None) -> LockStatus:
    moment = now or context.current_time()
    closing_id = closing_id_for(context.day_of(moment), context.register_id)

    if document_store.get_closing(context.tenant_id, closing_id) is None:
        return LockStatus(locked=False, closing_id=closing_id)

    reopen_at = context.next_midnight(moment)
    return LockStatus(
        locked=True,
        closing_id=closing_id,
        reopen_at=reopen_at,
        remaining=reopen_at - moment,
    )


def require_unlocked(context: RegisterContext, action: str | None = None) -> None:
    """
    Gate for every cash-affecting action.

    Raises:
        RegisterLockedError: the register is closed for the current day
    """
    status = is_locked(context)
    if status.locked:
        raise RegisterLockedError(context.register_id, status.reopen_at, status.remaining, action=action)
