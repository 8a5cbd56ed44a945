# Overview: Service-layer operations for the wallet ledger; the single path for wallet balance changes.

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import (
    DailyLimitExceededError,
    InsufficientBalanceError,
    StudentNotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Student, WalletTransaction
from schoolhub.time_utils import local_day_bounds_utc, utcnow
from .concurrency import lock_for_update

"""
Wallet Ledger Invariants (authoritative)

- WalletTransaction rows are append-only; Student.wallet_balance_cents is
  their running sum, changed in the same DB transaction as each insert.
- Balance changes are single-statement increments guarded by
  `wallet_balance_cents + delta >= 0`. Never read a balance, check it in
  Python, and write it back.
- Only `purchase` debits count towards the daily spending limit, and the
  limit is checked after the guarded UPDATE so it is read under the lock.
- process_transaction() does not commit. The caller owns the transaction
  (run_with_retry) so the ledger entry and whatever it pays for commit or
  roll back together.
"""


logger = logging.getLogger(__name__)


TXN_TOPUP = "topup"
TXN_PURCHASE = "purchase"
TXN_REFUND = "refund"
TXN_ADJUSTMENT = "adjustment"

VALID_TXN_TYPES = [TXN_TOPUP, TXN_PURCHASE, TXN_REFUND, TXN_ADJUSTMENT]


def process_transaction(
    *,
    student_id: int,
    school_id: int,
    amount_cents: int,
    txn_type: str,
    description: str | None = None,
    actor_user_id: int | None = None,
) -> tuple[Student, WalletTransaction]:
    """
    Validate and apply one wallet balance change inside the current transaction.

    Steps:
    1. Lock the student row, scoped to school_id
    2. Guarded atomic increment of wallet_balance_cents (overdraft protection)
    3. Daily spending limit for debits, read under the write lock
    4. Append the WalletTransaction

    Returns:
        (student refreshed with the new balance, new transaction)

    Raises:
        ValidationError: amount is zero/non-integer or type unknown
        StudentNotFoundError: student absent or in another school
        InsufficientBalanceError: debit would make the balance negative
        DailyLimitExceededError: debit would pass today's spending limit
    """
    if txn_type not in VALID_TXN_TYPES:
        raise ValidationError(f"Invalid transaction type: {txn_type}. Must be one of {VALID_TXN_TYPES}")
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents == 0:
        raise ValidationError("amount_cents must be a non-zero integer")

    student = lock_for_update(
        db.session.query(Student).filter_by(id=student_id, school_id=school_id)
    ).first()

    if not student:
        raise StudentNotFoundError("Student not found or does not belong to the school")

    # Write first: today's spend must be read under the row (SQLite: database)
    # write lock. A limit refusal is undone by the caller's rollback.
    _apply_balance_delta(student.id, amount_cents)

    if amount_cents < 0 and student.daily_spending_limit_cents is not None:
        spent_today = get_spent_today(student.id)
        if spent_today + abs(amount_cents) > student.daily_spending_limit_cents:
            raise DailyLimitExceededError(
                f"Daily spending limit of {_format_cents(student.daily_spending_limit_cents)} exceeded",
                details={
                    "daily_spending_limit_cents": student.daily_spending_limit_cents,
                    "spent_today_cents": spent_today,
                },
            )

    txn = WalletTransaction(
        student_id=student.id,
        school_id=school_id,
        amount_cents=amount_cents,
        type=txn_type,
        description=description or f"Transaction: {txn_type}",
        created_by_user_id=actor_user_id,
        created_at=utcnow(),
    )
    db.session.add(txn)
    db.session.flush()

    db.session.refresh(student)

    logger.info(
        "Wallet %s of %d cents for student %s (school %s); balance now %d",
        txn_type, amount_cents, student.id, school_id, student.wallet_balance_cents,
    )

    return student, txn


def _apply_balance_delta(student_id: int, amount_cents: int) -> None:
    """
    Single-statement increment that refuses to go below zero.

    A zero row count means the debit would overdraw, including when a
    concurrent debit got there first.
    """
    updated = (
        db.session.query(Student)
        .filter(
            Student.id == student_id,
            Student.wallet_balance_cents + amount_cents >= 0,
        )
        .update(
            {Student.wallet_balance_cents: Student.wallet_balance_cents + amount_cents},
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise InsufficientBalanceError("Insufficient wallet balance")


def get_spent_today(student_id: int) -> int:
    """Sum of today's purchase debits (server-local day), as a positive number of cents."""
    start, end = local_day_bounds_utc()
    total = (
        db.session.query(func.coalesce(func.sum(WalletTransaction.amount_cents), 0))
        .filter(
            WalletTransaction.student_id == student_id,
            WalletTransaction.type == TXN_PURCHASE,
            WalletTransaction.created_at >= start,
            WalletTransaction.created_at <= end,
        )
        .scalar()
    )
    return abs(int(total))


def get_history(student_id: int, txn_type: str | None = None, limit: int = 50) -> list[WalletTransaction]:
    """Newest-first ledger entries for a student."""
    query = db.session.query(WalletTransaction).filter_by(student_id=student_id)
    if txn_type:
        query = query.filter_by(type=txn_type)
    return (
        query.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
        .all()
    )


def _format_cents(cents: int) -> str:
    return f"{cents / 100:.2f}"
