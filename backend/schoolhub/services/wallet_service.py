# Overview: Service-layer operations for student wallets; top-ups, manual adjustments and history.

from __future__ import annotations

from flask import current_app

from ..errors import ForbiddenError, NotFoundError, TenantForbiddenError, ValidationError
from ..extensions import db
from ..models import Student, WalletTransaction
from ..roles import Role
from . import notification_service
from .audit_service import ACTION_WALLET_ADJUSTMENT, ACTION_WALLET_TOPUP, log_audit
from .concurrency import run_with_retry
from .ledger_service import (
    TXN_ADJUSTMENT,
    TXN_REFUND,
    TXN_TOPUP,
    VALID_TXN_TYPES,
    get_history,
    process_transaction,
)
from .tenant_service import CallerIdentity, assert_tenant_entity, scoped_query


ADJUSTMENT_TYPES = [TXN_REFUND, TXN_ADJUSTMENT]


def topup_wallet(identity: CallerIdentity, student_id: int, amount_cents: int) -> tuple[Student, WalletTransaction]:
    """
    Credit a student's wallet.

    Parents may only top up their own children; school admins any student
    of their school.
    """
    max_topup = current_app.config["MAX_TOPUP_CENTS"]
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise ValidationError("amount_cents must be a positive integer")
    if amount_cents > max_topup:
        raise ValidationError(f"amount_cents cannot exceed {max_topup}")

    if identity.role == Role.PARENT:
        student = scoped_query(Student, identity, id=student_id, parent_id=identity.id).first()
        if not student:
            raise TenantForbiddenError("You can only top up your own children's wallets.")
    else:
        student = scoped_query(Student, identity, id=student_id).first()
        if not student:
            raise NotFoundError("Student not found in your school.")

    school_id = student.school_id

    def _op():
        updated, txn = process_transaction(
            student_id=student.id,
            school_id=school_id,
            amount_cents=amount_cents,
            txn_type=TXN_TOPUP,
            description="Wallet top-up",
            actor_user_id=identity.id,
        )
        log_audit(
            identity=identity,
            action_type=ACTION_WALLET_TOPUP,
            school_id=school_id,
            details={
                "student_id": updated.id,
                "amount_cents": amount_cents,
                "transaction_id": txn.id,
                "new_balance_cents": updated.wallet_balance_cents,
            },
        )
        db.session.commit()
        return updated, txn

    updated, txn = run_with_retry(_op)

    if updated.parent_id:
        notification_service.enqueue(
            user_id=updated.parent_id,
            title="Wallet Top-up",
            body=f"{updated.full_name}'s wallet was topped up by {amount_cents / 100:.2f}.",
            data={"type": "wallet_topup", "student_id": updated.id, "amount_cents": amount_cents},
            preference_type=notification_service.PREFERENCE_WALLET,
        )

    return updated, txn


def adjust_wallet(
    identity: CallerIdentity,
    student_id: int,
    amount_cents: int,
    txn_type: str,
    description: str | None = None,
) -> tuple[Student, WalletTransaction]:
    """Signed manual correction (refund or adjustment) through the ledger."""
    if txn_type not in ADJUSTMENT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(ADJUSTMENT_TYPES)}")
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents == 0:
        raise ValidationError("amount_cents must be a non-zero integer")

    student = scoped_query(Student, identity, id=student_id).first()
    if not student:
        raise NotFoundError("Student not found in your school.")

    school_id = student.school_id

    def _op():
        updated, txn = process_transaction(
            student_id=student.id,
            school_id=school_id,
            amount_cents=amount_cents,
            txn_type=txn_type,
            description=description,
            actor_user_id=identity.id,
        )
        log_audit(
            identity=identity,
            action_type=ACTION_WALLET_ADJUSTMENT,
            school_id=school_id,
            details={
                "student_id": updated.id,
                "amount_cents": amount_cents,
                "type": txn_type,
                "transaction_id": txn.id,
                "description": description,
            },
        )
        db.session.commit()
        return updated, txn

    return run_with_retry(_op)


def wallet_history(
    identity: CallerIdentity,
    sink,
    student_id: int,
    txn_type: str | None = None,
    limit: int = 50,
):
    """
    Ledger entries for one student, newest first.

    Parents see their own children only. Staff lookups are by id and then
    checked with the entity guard, so a student of another school answers
    403 TENANT_FORBIDDEN.

    Returns (student, entries) or None when the guard refused.
    """
    if txn_type is not None and txn_type not in VALID_TXN_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(VALID_TXN_TYPES)}")

    student = db.session.query(Student).filter_by(id=student_id).first()
    if not student:
        raise NotFoundError("Student not found.")

    if identity.role == Role.PARENT:
        if student.parent_id != identity.id:
            raise ForbiddenError("You can only view your own children's wallet history.")
    elif assert_tenant_entity(identity, sink, student.school_id):
        return None

    entries = []
    for txn in get_history(student.id, txn_type=txn_type, limit=limit):
        entry = txn.to_dict()
        entry["order_id"] = txn.pos_order.id if txn.pos_order else None
        entry["order_total_cents"] = txn.pos_order.total_cents if txn.pos_order else None
        entries.append(entry)

    return student, entries
