# Overview: Service-layer operations for school fees; fee structures, invoices and payment reconciliation.

"""
Fee Payment Service

WHY: Invoices and the per-student fee mirror (total_fee/paid/balance) are
two views of one ledger. Every change to one is made together with the
matching change to the other, in the same transaction.

DESIGN PRINCIPLES:
- Invoices carry no school_id; tenancy is derived through the student
- Payments are separate rows (many-to-one), never edited
- amount_paid_cents only ever grows; paid and cancelled invoices are closed
- Student mirror fields change through single-statement increments
- Every money-moving action writes an audit entry in the same transaction
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import FeeStructure, Invoice, Payment, Student
from schoolhub.time_utils import utcnow
from .audit_service import (
    ACTION_CANCEL_INVOICE,
    ACTION_ISSUE_INVOICE,
    ACTION_RECORD_PAYMENT,
    log_audit,
)
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import (
    CallerIdentity,
    assert_tenant_entity,
    get_tenant,
    scoped_query,
    tenant_where,
)


logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CARD = "card"
METHOD_CASH = "cash"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_CLIQ = "cliq"

VALID_METHODS = [
    METHOD_CARD,
    METHOD_CASH,
    METHOD_BANK_TRANSFER,
    METHOD_CLIQ,
]


# =============================================================================
# INVOICE STATUS (CONSTANTS)
# =============================================================================

INVOICE_STATUS_ISSUED = "issued"
INVOICE_STATUS_PARTIAL = "partial"
INVOICE_STATUS_PAID = "paid"
INVOICE_STATUS_CANCELLED = "cancelled"

CLOSED_INVOICE_STATUSES = (INVOICE_STATUS_PAID, INVOICE_STATUS_CANCELLED)


# =============================================================================
# FEE STRUCTURES
# =============================================================================

def create_fee_structure(
    identity: CallerIdentity,
    name: str,
    academic_year: str,
    total_amount_cents: int,
) -> FeeStructure:
    if total_amount_cents <= 0:
        raise ValidationError("total_amount_cents must be > 0")

    school_id = get_tenant(identity).school_id
    if school_id is None:
        raise ValidationError("Fee structures must be created by a school user")

    def _op():
        fee = FeeStructure(
            school_id=school_id,
            name=name,
            academic_year=academic_year,
            total_amount_cents=total_amount_cents,
        )
        db.session.add(fee)
        db.session.commit()
        return fee

    try:
        return run_with_retry(_op)
    except IntegrityError:
        raise ConflictError("A fee structure with this name already exists for that academic year.")


def list_fee_structures(identity: CallerIdentity) -> list[FeeStructure]:
    return scoped_query(FeeStructure, identity).order_by(FeeStructure.academic_year.desc(), FeeStructure.name).all()


# =============================================================================
# INVOICES
# =============================================================================

def issue_invoice(
    identity: CallerIdentity,
    student_id: int,
    fee_structure_id: int,
    due_date=None,
) -> Invoice:
    """
    Bill a student for a fee structure.

    The invoice copies the structure total, and the student's
    total_fee_cents and balance_cents grow by the same amount.
    """
    student = scoped_query(Student, identity, id=student_id).first()
    if not student:
        raise NotFoundError("Student not found in your school.")

    fee = scoped_query(FeeStructure, identity, id=fee_structure_id).first()
    if not fee:
        raise NotFoundError("Fee structure not found.")

    if fee.school_id != student.school_id:
        raise ValidationError("Fee structure and student belong to different schools")

    def _op():
        invoice = Invoice(
            student_id=student.id,
            fee_structure_id=fee.id,
            total_amount_cents=fee.total_amount_cents,
            amount_paid_cents=0,
            status=INVOICE_STATUS_ISSUED,
            due_date=due_date,
        )
        db.session.add(invoice)
        db.session.flush()

        _apply_fee_mirror_delta(
            student.id,
            total_fee_delta=fee.total_amount_cents,
            balance_delta=fee.total_amount_cents,
        )

        log_audit(
            identity=identity,
            action_type=ACTION_ISSUE_INVOICE,
            school_id=student.school_id,
            details={
                "invoice_id": invoice.id,
                "student_id": student.id,
                "fee_structure_id": fee.id,
                "total_amount_cents": fee.total_amount_cents,
            },
        )

        db.session.commit()
        return invoice

    return run_with_retry(_op)


def list_invoices(
    identity: CallerIdentity,
    student_id: int | None = None,
    status: str | None = None,
) -> list[Invoice]:
    """Invoices visible to the caller; tenancy is applied through the student join."""
    query = (
        db.session.query(Invoice)
        .join(Student, Invoice.student_id == Student.id)
        .filter_by(**tenant_where(identity))
    )
    if student_id is not None:
        query = query.filter(Invoice.student_id == student_id)
    if status:
        query = query.filter(Invoice.status == status)
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def _load_invoice_school(invoice_id: int):
    """
    Pre-flight fetch of an invoice with its owning student's school.

    Not tenant-filtered; callers must run the entity guard on the result.
    """
    row = (
        db.session.query(Invoice.id, Student.school_id)
        .join(Student, Invoice.student_id == Student.id)
        .filter(Invoice.id == invoice_id)
        .first()
    )
    if not row:
        raise NotFoundError("Invoice not found.")
    return row.school_id


def _lock_open_invoice(invoice_id: int) -> Invoice:
    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if not invoice:
        raise NotFoundError("Invoice not found.")
    return invoice


def _apply_fee_mirror_delta(
    student_id: int,
    *,
    total_fee_delta: int = 0,
    paid_delta: int = 0,
    balance_delta: int = 0,
) -> None:
    """Single-statement increment of the student's fee mirror fields."""
    db.session.query(Student).filter(Student.id == student_id).update(
        {
            Student.total_fee_cents: Student.total_fee_cents + total_fee_delta,
            Student.paid_cents: Student.paid_cents + paid_delta,
            Student.balance_cents: Student.balance_cents + balance_delta,
        },
        synchronize_session=False,
    )


def record_payment(
    identity: CallerIdentity,
    invoice_id: int,
    amount_cents: int,
    method: str,
    sink,
) -> Invoice | None:
    """
    Record a payment against an invoice.

    Steps:
    1. Pre-flight: invoice + owning student's school (404 if absent)
    2. Entity guard against that school (403 TENANT_FORBIDDEN into sink)
    3. One transaction: re-fetch invoice under lock, refuse closed invoices
       (409), insert Payment, advance amount_paid/status, move the same
       amount from the student's balance to paid, audit

    Returns:
        Updated invoice, or None when the guard refused (response in sink)

    Raises:
        ValidationError: non-positive amount or unknown method
        NotFoundError: invoice does not exist
        ConflictError: invoice already paid or cancelled
    """
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise ValidationError("amount_cents must be a positive integer")
    if method not in VALID_METHODS:
        raise ValidationError(f"method must be one of: {', '.join(VALID_METHODS)}")

    school_id = _load_invoice_school(invoice_id)
    if assert_tenant_entity(identity, sink, school_id):
        return None

    def _op():
        invoice = _lock_open_invoice(invoice_id)
        if invoice.status in CLOSED_INVOICE_STATUSES:
            raise ConflictError(f"Cannot record a payment on a {invoice.status} invoice.")

        payment = Payment(
            invoice_id=invoice.id,
            amount_cents=amount_cents,
            method=method,
            recorded_by_user_id=identity.id,
            created_at=utcnow(),
        )
        db.session.add(payment)

        new_amount_paid = invoice.amount_paid_cents + amount_cents
        if new_amount_paid >= invoice.total_amount_cents:
            invoice.status = INVOICE_STATUS_PAID
        elif new_amount_paid > 0:
            invoice.status = INVOICE_STATUS_PARTIAL
        invoice.amount_paid_cents = new_amount_paid

        _apply_fee_mirror_delta(invoice.student_id, paid_delta=amount_cents, balance_delta=-amount_cents)

        # Flush invoice + payment first so the audit entry can carry the payment id
        db.session.flush()

        log_audit(
            identity=identity,
            action_type=ACTION_RECORD_PAYMENT,
            school_id=school_id,
            details={
                "invoice_id": invoice.id,
                "payment_id": payment.id,
                "amount_cents": amount_cents,
                "method": method,
                "new_status": invoice.status,
            },
        )

        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    logger.info("Payment of %d cents recorded on invoice %s (%s)", amount_cents, invoice.id, invoice.status)
    return invoice


def cancel_invoice(identity: CallerIdentity, invoice_id: int, sink) -> Invoice | None:
    """
    Cancel an open invoice.

    The unpaid remainder is taken back off the student's total_fee and
    balance; payments already received stay recorded.
    """
    school_id = _load_invoice_school(invoice_id)
    if assert_tenant_entity(identity, sink, school_id):
        return None

    def _op():
        invoice = _lock_open_invoice(invoice_id)
        if invoice.status == INVOICE_STATUS_PAID:
            raise ConflictError("Paid invoices cannot be cancelled.")
        if invoice.status == INVOICE_STATUS_CANCELLED:
            raise ConflictError("Invoice is already cancelled.")

        remainder = invoice.total_amount_cents - invoice.amount_paid_cents
        invoice.status = INVOICE_STATUS_CANCELLED

        _apply_fee_mirror_delta(invoice.student_id, total_fee_delta=-remainder, balance_delta=-remainder)

        log_audit(
            identity=identity,
            action_type=ACTION_CANCEL_INVOICE,
            school_id=school_id,
            details={"invoice_id": invoice.id, "reversed_cents": remainder},
        )

        db.session.commit()
        return invoice

    return run_with_retry(_op)
