from __future__ import annotations

from ..extensions import db
from schoolhub.time_utils import to_utc_z


class School(db.Model):
    """
    Multi-tenant root: Every tenant is a School.

    WHY: Enables shared-database multi-tenancy with strict isolation.
    Students, users, catalogue items and ledgers belong to exactly one school.
    No data may cross school boundaries.

    DESIGN:
    - Schools are the tenant boundary
    - Every tenant-scoped row carries school_id directly, or transitively
      (invoices -> student.school_id)
    - Created by a super admin; never deleted in normal operation
    """
    __tablename__ = "schools"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<School id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
