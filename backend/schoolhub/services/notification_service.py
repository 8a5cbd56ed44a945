# Overview: Service-layer operations for notifications; post-commit outbox and delivery worker.

"""
Notification Outbox

WHY: Parent alerts (canteen purchases, top-ups) are best-effort. They must
never take part in, block, or be mistaken for the money-moving transaction
that triggered them.

DESIGN:
- enqueue() is called only after the business transaction has committed.
  It writes one outbox row in its own transaction; a failure is logged and
  dropped, never raised.
- dispatch_pending() is the independent worker (run via
  `flask notifications dispatch`). It applies per-user preference gating,
  resolves device tokens, and hands each message to a sender callable.
- A sender is `sender(tokens, title, body, data) -> iterable of invalid
  tokens | None`. Invalid tokens are deleted.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import NotificationOutbox, NotificationPreference, DeviceToken
from schoolhub.time_utils import utcnow


logger = logging.getLogger(__name__)


STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"

PREFERENCE_WALLET = "wallet"
PREFERENCE_BUS = "bus"
PREFERENCE_ACADEMIC = "academic"

MAX_ATTEMPTS = 3

PREFERENCE_FIELDS = ("low_balance_warning", "bus_updates", "new_grade", "new_homework")


def enqueue(
    *,
    user_id: int,
    title: str,
    body: str,
    data: dict | None = None,
    preference_type: str | None = None,
) -> NotificationOutbox | None:
    """
    Queue a notification for delivery. Fire-and-forget.

    Must be called after the triggering transaction has committed.
    Returns the outbox row, or None if it could not be written.
    """
    try:
        row = NotificationOutbox(
            user_id=user_id,
            title=title,
            body=body,
            data=json.dumps(data or {}, default=str),
            preference_type=preference_type,
            status=STATUS_PENDING,
            attempts=0,
            created_at=utcnow(),
        )
        db.session.add(row)
        db.session.commit()
        return row
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to enqueue notification for user %s", user_id)
        return None


def preference_allows(user_id: int, preference_type: str | None) -> bool:
    """Users without a preference row receive every notification type."""
    if not preference_type:
        return True

    prefs = db.session.query(NotificationPreference).filter_by(user_id=user_id).first()
    if not prefs:
        return True

    if preference_type == PREFERENCE_WALLET:
        return prefs.low_balance_warning
    if preference_type == PREFERENCE_BUS:
        return prefs.bus_updates
    if preference_type == PREFERENCE_ACADEMIC:
        return prefs.new_grade or prefs.new_homework
    return True


def log_sender(tokens: list[str], title: str, body: str, data: dict):
    """Default sender: records the delivery in the application log."""
    logger.info("Push to %d device(s): %s - %s %s", len(tokens), title, body, data)
    return None


def dispatch_pending(sender=None, batch_size: int = 100) -> dict:
    """
    Deliver up to batch_size pending outbox rows, oldest first.

    Returns counts per outcome: sent, skipped, failed, retry.
    """
    sender = sender or log_sender
    counts = {STATUS_SENT: 0, STATUS_SKIPPED: 0, STATUS_FAILED: 0, "retry": 0}

    rows = (
        db.session.query(NotificationOutbox)
        .filter_by(status=STATUS_PENDING)
        .order_by(NotificationOutbox.created_at, NotificationOutbox.id)
        .limit(batch_size)
        .all()
    )

    for row in rows:
        outcome = _deliver(row, sender)
        counts[outcome] += 1
        db.session.commit()

    if rows:
        logger.info("Notification dispatch finished: %s", counts)
    return counts


def _deliver(row: NotificationOutbox, sender) -> str:
    now = utcnow()

    if not preference_allows(row.user_id, row.preference_type):
        logger.debug("Notification %s skipped by user preference", row.id)
        row.status = STATUS_SKIPPED
        row.processed_at = now
        return STATUS_SKIPPED

    devices = db.session.query(DeviceToken).filter_by(user_id=row.user_id).all()
    if not devices:
        logger.debug("No device tokens for user %s; notification %s skipped", row.user_id, row.id)
        row.status = STATUS_SKIPPED
        row.processed_at = now
        return STATUS_SKIPPED

    tokens = [d.token for d in devices]
    data = json.loads(row.data) if row.data else {}

    row.attempts += 1
    try:
        invalid_tokens = sender(tokens, row.title, row.body, data)
    except Exception as exc:  # sender talks to an external push service
        logger.warning("Notification %s delivery failed (attempt %d): %s", row.id, row.attempts, exc)
        row.last_error = str(exc)[:1000]
        if row.attempts >= MAX_ATTEMPTS:
            row.status = STATUS_FAILED
            row.processed_at = now
            return STATUS_FAILED
        return "retry"

    if invalid_tokens:
        invalid = set(invalid_tokens)
        logger.info("Deleting %d invalid device token(s)", len(invalid))
        db.session.query(DeviceToken).filter(DeviceToken.token.in_(invalid)).delete(synchronize_session=False)

    row.status = STATUS_SENT
    row.processed_at = now
    return STATUS_SENT


def update_preferences(user_id: int, changes: dict) -> NotificationPreference:
    prefs = db.session.query(NotificationPreference).filter_by(user_id=user_id).first()
    if not prefs:
        prefs = NotificationPreference(user_id=user_id)
        db.session.add(prefs)

    for field in PREFERENCE_FIELDS:
        if field in changes:
            setattr(prefs, field, bool(changes[field]))

    db.session.commit()
    return prefs


def register_device(user_id: int, token: str, platform: str | None = None) -> DeviceToken:
    """Attach a device token to the user, moving it if another user had it."""
    device = db.session.query(DeviceToken).filter_by(token=token).first()
    if device:
        device.user_id = user_id
        device.platform = platform or device.platform
    else:
        device = DeviceToken(user_id=user_id, token=token, platform=platform)
        db.session.add(device)
    db.session.commit()
    return device
