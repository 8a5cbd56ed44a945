# Overview: Service-layer operations for the audit log.

from __future__ import annotations

import json

from ..extensions import db
from ..models import AuditLog
from .tenant_service import CallerIdentity, scoped_query
from schoolhub.time_utils import utcnow

"""
Audit Log Invariants

- Append-only; entries are never updated or deleted.
- Entries are written inside the same DB transaction as the action they
  record, so a rolled-back action leaves no audit entry and a committed
  action always has one.
- No business logic here.
"""

ACTION_RECORD_PAYMENT = "RECORD_PAYMENT"
ACTION_CANCEL_INVOICE = "CANCEL_INVOICE"
ACTION_WALLET_TOPUP = "WALLET_TOPUP"
ACTION_WALLET_ADJUSTMENT = "WALLET_ADJUSTMENT"
ACTION_ISSUE_INVOICE = "ISSUE_INVOICE"


def log_audit(
    *,
    identity: CallerIdentity | None,
    action_type: str,
    school_id: int | None,
    details: dict | None = None,
) -> AuditLog:
    """Append an audit entry to the current transaction (flushed, not committed)."""
    entry = AuditLog(
        school_id=school_id,
        user_id=identity.id if identity else None,
        user_email=(identity.email if identity and identity.email else "unknown"),
        action_type=action_type,
        details=json.dumps(details, sort_keys=True) if details is not None else None,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_audit_logs(identity: CallerIdentity, action_type: str | None = None, limit: int = 100) -> list[AuditLog]:
    """Newest-first audit entries visible to the caller."""
    extra = {"action_type": action_type} if action_type else {}
    return scoped_query(AuditLog, identity, **extra).order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
