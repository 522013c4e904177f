from __future__ import annotations

from ..extensions import db
from daybook.time_utils import to_utc_z, utcnow


class Register(db.Model):
    """
    Cash point tied to one operator/session.

    WHY: Every movement, transaction and closing is keyed by register_id,
    and the register carries the time zone that defines its business day.

    DESIGN: register_id is the string identity used by the rest of the
    ledger (often equal to the operator's user id). Registers are created
    on first use and never deleted.
    """
    __tablename__ = "registers"

    tenant_id = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    name = db.Column(db.String(128), nullable=False)

    # IANA zone name; midnight in this zone is the closing boundary
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Register tenant={self.tenant_id!r} id={self.id!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "timezone": self.timezone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
