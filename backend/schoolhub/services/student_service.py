# Overview: Service-layer operations for students; enrolment, NFC cards and wallet settings.

from __future__ import annotations

import re

from sqlalchemy.exc import IntegrityError

from ..errors import CardFrozenError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import School, Student, User
from ..roles import Role
from .concurrency import run_with_retry
from .ledger_service import TXN_ADJUSTMENT, process_transaction
from .tenant_service import CallerIdentity, get_tenant, scoped_query


NFC_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{4,64}$")


def validate_nfc_id(nfc_id) -> str:
    if not isinstance(nfc_id, str) or not NFC_ID_PATTERN.match(nfc_id):
        raise ValidationError(
            "NFC ID must be 4-64 characters: letters, digits, '-' or '_'"
        )
    return nfc_id


def resolve_school_id(identity: CallerIdentity, requested_school_id=None) -> int:
    """
    School a new record is created in.

    Always the caller's own school; only a super admin may (and must) name one.
    """
    tenant = get_tenant(identity)
    if not tenant.is_super_admin:
        return tenant.school_id
    if requested_school_id is None:
        raise ValidationError("school_id is required for super admins")
    return requested_school_id


def get_student(identity: CallerIdentity, student_id: int) -> Student:
    """
    Tenant-scoped student lookup. Parents only see their own children.

    Raises NotFoundError for missing, cross-school, or not-your-child students.
    """
    extra = {"id": student_id}
    if identity.role == Role.PARENT:
        extra["parent_id"] = identity.id
    student = scoped_query(Student, identity, **extra).first()
    if not student:
        raise NotFoundError("Student not found in your school.")
    return student


def list_students(identity: CallerIdentity) -> list[Student]:
    return scoped_query(Student, identity).order_by(Student.full_name, Student.id).all()


def list_children(identity: CallerIdentity) -> list[Student]:
    return scoped_query(Student, identity, parent_id=identity.id).order_by(Student.full_name).all()


def create_student(
    identity: CallerIdentity,
    *,
    full_name: str,
    school_id: int | None = None,
    parent_id: int | None = None,
    nfc_card_id: str | None = None,
    daily_spending_limit_cents: int | None = None,
    initial_wallet_balance_cents: int = 0,
) -> Student:
    """
    Enrol a student in the caller's school.

    An opening wallet balance is credited through the ledger as an
    `adjustment`, in the same transaction as the student row.
    """
    if not full_name or not str(full_name).strip():
        raise ValidationError("full_name is required")
    if initial_wallet_balance_cents < 0:
        raise ValidationError("initial_wallet_balance_cents must be >= 0")
    if daily_spending_limit_cents is not None and daily_spending_limit_cents < 0:
        raise ValidationError("daily_spending_limit_cents must be >= 0")
    if nfc_card_id is not None:
        validate_nfc_id(nfc_card_id)

    target_school_id = resolve_school_id(identity, school_id)

    def _op():
        if not db.session.get(School, target_school_id):
            raise NotFoundError("School not found.")

        if parent_id is not None:
            parent = db.session.query(User).filter_by(
                id=parent_id, school_id=target_school_id, role=Role.PARENT.value
            ).first()
            if not parent:
                raise ValidationError("parent_id must reference a parent in the same school")

        if nfc_card_id is not None:
            _ensure_nfc_free(target_school_id, nfc_card_id)

        student = Student(
            school_id=target_school_id,
            full_name=str(full_name).strip(),
            parent_id=parent_id,
            nfc_card_id=nfc_card_id,
            is_nfc_active=True,
            daily_spending_limit_cents=daily_spending_limit_cents,
            wallet_balance_cents=0,
        )
        db.session.add(student)
        db.session.flush()

        if initial_wallet_balance_cents > 0:
            process_transaction(
                student_id=student.id,
                school_id=target_school_id,
                amount_cents=initial_wallet_balance_cents,
                txn_type=TXN_ADJUSTMENT,
                description="Opening wallet balance",
                actor_user_id=identity.id,
            )

        db.session.commit()
        return student

    try:
        return run_with_retry(_op)
    except IntegrityError:
        if nfc_card_id is None:
            raise
        # Lost a race on uq_students_school_nfc
        raise ConflictError(
            "This NFC card is already assigned to another student.", code="NFC_CONFLICT"
        )


def _ensure_nfc_free(school_id: int, nfc_card_id: str, student_id: int | None = None) -> None:
    existing = db.session.query(Student).filter_by(
        school_id=school_id, nfc_card_id=nfc_card_id
    ).first()
    if existing and existing.id != student_id:
        raise ConflictError(
            "This NFC card is already assigned to another student in your school.",
            code="NFC_CONFLICT",
        )


def assign_nfc_card(identity: CallerIdentity, student_id: int, nfc_card_id) -> Student:
    """Link a physical card to a student and activate it."""
    validate_nfc_id(nfc_card_id)

    def _op():
        student = get_student(identity, student_id)
        _ensure_nfc_free(student.school_id, nfc_card_id, student.id)
        student.nfc_card_id = nfc_card_id
        student.is_nfc_active = True
        db.session.commit()
        return student

    try:
        return run_with_retry(_op)
    except IntegrityError:
        # Lost a race on uq_students_school_nfc
        raise ConflictError(
            "This NFC card is already assigned to another student.", code="NFC_CONFLICT"
        )


def set_nfc_status(identity: CallerIdentity, student_id: int, is_nfc_active) -> Student:
    """Freeze or unfreeze a student's card (school admin or the student's parent)."""
    if not isinstance(is_nfc_active, bool):
        raise ValidationError("is_nfc_active must be a boolean.")

    def _op():
        student = get_student(identity, student_id)
        student.is_nfc_active = is_nfc_active
        db.session.commit()
        return student

    return run_with_retry(_op)


def set_daily_spending_limit(identity: CallerIdentity, student_id: int, limit_cents) -> Student:
    """Set (or clear with None) the per-day canteen spending cap."""
    if limit_cents is not None:
        if not isinstance(limit_cents, int) or isinstance(limit_cents, bool) or limit_cents < 0:
            raise ValidationError("daily_spending_limit_cents must be a non-negative integer or null")

    def _op():
        student = get_student(identity, student_id)
        student.daily_spending_limit_cents = limit_cents
        db.session.commit()
        return student

    return run_with_retry(_op)


def verify_card(identity: CallerIdentity, nfc_id, school_id: int | None = None) -> Student:
    """
    Identify a student at the till by NFC card.

    NFC ids are unique per school only, so a super admin may narrow the
    lookup with school_id and must when the id is registered in several schools.

    Raises:
        NotFoundError: card unknown in the caller's school
        ValidationError: super admin lookup matches more than one school
        CardFrozenError: card deactivated by a parent or admin
    """
    validate_nfc_id(nfc_id)
    query = scoped_query(Student, identity, nfc_card_id=nfc_id)
    if school_id is not None and get_tenant(identity).is_super_admin:
        query = query.filter(Student.school_id == school_id)

    matches = query.order_by(Student.id).limit(2).all()
    if not matches:
        raise NotFoundError("Card not valid for this school.")
    if len(matches) > 1:
        raise ValidationError("Card is registered in several schools; pass school_id.")

    student = matches[0]
    if not student.is_nfc_active:
        raise CardFrozenError("Card is frozen by parent.")
    return student
