from __future__ import annotations

from ..extensions import db
from schoolhub.time_utils import to_utc_z


class CanteenItem(db.Model):
    """
    Canteen catalogue entry.

    MULTI-TENANT: Items belong to one school; names are unique within it.
    An order may only reference items of the student's own school.
    """
    __tablename__ = "canteen_items"
    __table_args__ = (
        db.UniqueConstraint("school_id", "name", name="uq_canteen_items_school_name"),
        db.CheckConstraint("price_cents > 0", name="ck_canteen_items_price_positive"),
        db.Index("ix_canteen_items_school_available", "school_id", "is_available"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(64), nullable=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "school_id": self.school_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "category": self.category,
            "is_available": self.is_available,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PosOrder(db.Model):
    """
    Canteen order paid from a student wallet.

    INVARIANTS:
    - total_cents == sum(line_total_cents) of its items
    - Never created without the purchase WalletTransaction that funded it
      (wallet_txn_id), in the same DB transaction
    """
    __tablename__ = "pos_orders"
    __table_args__ = (
        db.Index("ix_pos_orders_school_created", "school_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("students.id"), nullable=False, index=True)

    total_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)  # completed, cancelled
    paid_by_wallet = db.Column(db.Boolean, nullable=False, default=True)
    wallet_txn_id = db.Column(db.Integer, db.ForeignKey("wallet_transactions.id"), nullable=True, unique=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    student = db.relationship("Student", backref=db.backref("pos_orders", lazy=True))
    wallet_txn = db.relationship("WalletTransaction", backref=db.backref("pos_order", uselist=False, lazy=True))
    items = db.relationship("PosOrderItem", backref="order", lazy=True, order_by="PosOrderItem.id")

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "school_id": self.school_id,
            "student_id": self.student_id,
            "total_cents": self.total_cents,
            "status": self.status,
            "paid_by_wallet": self.paid_by_wallet,
            "wallet_txn_id": self.wallet_txn_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class PosOrderItem(db.Model):
    """
    Order line with a price snapshot.

    unit_price_cents is copied from the catalogue at purchase time so later
    price edits never change historical totals.
    """
    __tablename__ = "pos_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_pos_order_items_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("pos_orders.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("canteen_items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    item = db.relationship("CanteenItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
