from __future__ import annotations

import json

from ..extensions import db
from schoolhub.time_utils import to_utc_z


class NotificationOutbox(db.Model):
    """
    Outbox of push notifications awaiting delivery.

    Rows are written only after the business transaction they describe has
    committed, and delivered by notification_service.dispatch_pending().

    STATUS: pending -> sent | skipped | failed
    """
    __tablename__ = "notification_outbox"
    __table_args__ = (
        db.Index("ix_notification_outbox_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    body = db.Column(db.Text, nullable=False)
    data = db.Column(db.Text, nullable=True)  # JSON
    preference_type = db.Column(db.String(32), nullable=True)  # wallet, bus, academic

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "body": self.body,
            "data": json.loads(self.data) if self.data else {},
            "preference_type": self.preference_type,
            "status": self.status,
            "attempts": self.attempts,
            "created_at": to_utc_z(self.created_at),
            "processed_at": to_utc_z(self.processed_at) if self.processed_at else None,
        }


class NotificationPreference(db.Model):
    """Per-user opt-outs; a user without a row receives everything."""
    __tablename__ = "notification_preferences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)

    low_balance_warning = db.Column(db.Boolean, nullable=False, default=True)
    bus_updates = db.Column(db.Boolean, nullable=False, default=True)
    new_grade = db.Column(db.Boolean, nullable=False, default=True)
    new_homework = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "low_balance_warning": self.low_balance_warning,
            "bus_updates": self.bus_updates,
            "new_grade": self.new_grade,
            "new_homework": self.new_homework,
        }


class DeviceToken(db.Model):
    __tablename__ = "device_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token = db.Column(db.String(512), nullable=False, unique=True)
    platform = db.Column(db.String(16), nullable=True)  # ios, android, web
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "platform": self.platform,
            "created_at": to_utc_z(self.created_at),
        }
