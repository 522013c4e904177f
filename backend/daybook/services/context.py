# Overview: Explicit register context passed into every ledger operation.

"""
Register Context

WHY: Ledger operations need to know which tenant and register they act on,
who is acting, and what "now" is. Passing these explicitly (instead of
reading globals) keeps the services testable with a frozen clock and
without a live request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from daybook.time_utils import (
    day_bounds,
    local_date,
    next_local_midnight,
    start_of_local_day,
    utcnow,
)


@dataclass(frozen=True)
class ActingAs:
    """
    Operator identity, with optional delegation.

    When a supervisor works a register on behalf of another user the
    display name reads "Supervisor (for User)", but both ids stay queryable.
    """
    operator_id: str
    operator_name: str
    on_behalf_of_id: str | None = None
    on_behalf_of_name: str | None = None

    @property
    def display_name(self) -> str:
        if self.on_behalf_of_id:
            return f"{self.operator_name} (for {self.on_behalf_of_name or self.on_behalf_of_id})"
        return self.operator_name

    def to_dict(self) -> dict:
        return {
            "operator_id": self.operator_id,
            "operator_name": self.operator_name,
            "on_behalf_of_id": self.on_behalf_of_id,
            "on_behalf_of_name": self.on_behalf_of_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ActingAs":
        return cls(
            operator_id=data["operator_id"],
            operator_name=data.get("operator_name") or data["operator_id"],
            on_behalf_of_id=data.get("on_behalf_of_id"),
            on_behalf_of_name=data.get("on_behalf_of_name"),
        )


SYSTEM_ACTOR = ActingAs(operator_id="system", operator_name="system")


@dataclass(frozen=True)
class RegisterContext:
    tenant_id: str
    register_id: str
    acting_as: ActingAs = SYSTEM_ACTOR
    timezone: str = "UTC"
    clock: Callable[[], datetime] = field(default=utcnow, compare=False)

    def current_time(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return local_date(self.current_time(), self.timezone)

    def start_of_day(self, moment: datetime | None = None) -> datetime:
        return start_of_local_day(moment or self.current_time(), self.timezone)

    def next_midnight(self, moment: datetime | None = None) -> datetime:
        return next_local_midnight(moment or self.current_time(), self.timezone)

    def day_of(self, moment: datetime) -> date:
        return local_date(moment, self.timezone)

    def bounds(self, day: date) -> tuple[datetime, datetime]:
        return day_bounds(day, self.timezone)
