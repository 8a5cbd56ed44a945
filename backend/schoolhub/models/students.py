from __future__ import annotations

from ..extensions import db
from schoolhub.time_utils import to_utc_z


class Student(db.Model):
    """
    Student with a canteen wallet and a fee ledger mirror.

    MULTI-TENANT: Students are scoped to schools via school_id.
    NFC card ids are unique within a school, not globally.

    INVARIANTS:
    - wallet_balance_cents >= 0 (CHECK constraint + guarded UPDATE in
      ledger_service)
    - balance_cents == total_fee_cents - paid_cents, maintained by
      payment_service in the same transaction as each invoice change

    Wallet and fee fields are only ever changed through ledger_service and
    payment_service, always with single-statement increments.
    """
    __tablename__ = "students"
    __table_args__ = (
        db.UniqueConstraint("school_id", "nfc_card_id", name="uq_students_school_nfc"),
        db.CheckConstraint("wallet_balance_cents >= 0", name="ck_students_wallet_non_negative"),
        db.Index("ix_students_school_parent", "school_id", "parent_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    full_name = db.Column(db.String(255), nullable=False)

    nfc_card_id = db.Column(db.String(64), nullable=True)
    is_nfc_active = db.Column(db.Boolean, nullable=False, default=True)

    # Wallet (all amounts in cents)
    wallet_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    daily_spending_limit_cents = db.Column(db.Integer, nullable=True)  # NULL = unlimited

    # Denormalized fee ledger mirror of invoice state
    total_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    school = db.relationship("School", backref=db.backref("students", lazy=True))
    parent = db.relationship("User", backref=db.backref("children", lazy=True))

    def __repr__(self) -> str:
        return f"<Student id={self.id} school_id={self.school_id} name={self.full_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "school_id": self.school_id,
            "parent_id": self.parent_id,
            "full_name": self.full_name,
            "nfc_card_id": self.nfc_card_id,
            "is_nfc_active": self.is_nfc_active,
            "wallet_balance_cents": self.wallet_balance_cents,
            "daily_spending_limit_cents": self.daily_spending_limit_cents,
            "total_fee_cents": self.total_fee_cents,
            "paid_cents": self.paid_cents,
            "balance_cents": self.balance_cents,
            "created_at": to_utc_z(self.created_at),
        }

    def to_card_dict(self) -> dict:
        """Subset shown to canteen staff at card verification."""
        return {
            "id": self.id,
            "full_name": self.full_name,
            "is_nfc_active": self.is_nfc_active,
            "wallet_balance_cents": self.wallet_balance_cents,
            "daily_spending_limit_cents": self.daily_spending_limit_cents,
        }


class WalletTransaction(db.Model):
    """
    Append-only wallet ledger.

    TRANSACTION TYPES:
    - topup: credit by a parent or admin
    - purchase: canteen debit (the only type counted against the daily limit)
    - refund: credit/debit correcting a purchase
    - adjustment: manual correction or opening balance

    amount_cents is signed: positive = credit, negative = debit.
    Student.wallet_balance_cents is the running sum, maintained in the same
    DB transaction as each insert.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "wallet_transactions"
    __table_args__ = (
        db.Index("ix_wallet_txns_student_type_created", "student_id", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("students.id"), nullable=False, index=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)  # topup, purchase, refund, adjustment
    description = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    student = db.relationship("Student", backref=db.backref("wallet_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "school_id": self.school_id,
            "amount_cents": self.amount_cents,
            "type": self.type,
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
