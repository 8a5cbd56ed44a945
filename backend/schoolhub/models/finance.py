from __future__ import annotations

from ..extensions import db
from schoolhub.time_utils import to_utc_z


class FeeStructure(db.Model):
    """Named fee template for a school and academic year."""
    __tablename__ = "fee_structures"
    __table_args__ = (
        db.UniqueConstraint("school_id", "academic_year", "name", name="uq_fee_structures_school_year_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    academic_year = db.Column(db.String(16), nullable=False)  # e.g. "2026-2027"
    total_amount_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "school_id": self.school_id,
            "name": self.name,
            "academic_year": self.academic_year,
            "total_amount_cents": self.total_amount_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Invoice(db.Model):
    """
    Fee invoice issued to a student.

    MULTI-TENANT: Invoices carry no school_id; tenancy is derived through
    student.school_id.

    INVARIANTS:
    - amount_paid_cents never decreases
    - status moves issued -> partial -> paid, or to cancelled; paid and
      cancelled are closed
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_student_status", "student_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("students.id"), nullable=False, index=True)
    fee_structure_id = db.Column(db.Integer, db.ForeignKey("fee_structures.id"), nullable=True, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="issued", index=True)  # issued, partial, paid, cancelled
    due_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    student = db.relationship("Student", backref=db.backref("invoices", lazy=True))
    fee_structure = db.relationship("FeeStructure")
    payments = db.relationship("Payment", backref="invoice", lazy=True, order_by="Payment.id")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "fee_structure_id": self.fee_structure_id,
            "total_amount_cents": self.total_amount_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "status": self.status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class Payment(db.Model):
    """
    Payment recorded against an invoice.

    IMMUTABLE: one invoice may have many payments; none are edited.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False)  # card, cash, bank_transfer, cliq

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "recorded_by_user_id": self.recorded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
