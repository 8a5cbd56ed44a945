from __future__ import annotations

import json

from ..extensions import db
from schoolhub.time_utils import to_utc_z


class AuditLog(db.Model):
    """
    Audit trail of critical actions (payments, top-ups, adjustments).

    MULTI-TENANT: Entries carry school_id for tenant filtering.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_school_created", "school_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    user_email = db.Column(db.String(255), nullable=False, default="unknown")

    action_type = db.Column(db.String(64), nullable=False, index=True)  # RECORD_PAYMENT, WALLET_TOPUP, ...
    details = db.Column(db.Text, nullable=True)  # JSON

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "school_id": self.school_id,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "action_type": self.action_type,
            "details": json.loads(self.details) if self.details else None,
            "created_at": to_utc_z(self.created_at),
        }
