# Overview: Service-layer operations for the canteen; catalogue management and wallet-paid orders.

"""
Canteen POS Service

ORDER FLOW (create_pos_order):
1. School is always the caller's tenant; nothing client-supplied is trusted
2. Prerequisites: student and all referenced items fetched tenant-scoped
   (items must also be available). One count check catches invalid,
   unavailable, and cross-school item ids alike.
3. Total computed server-side from catalogue prices
4. One transaction: ledger debit (type=purchase) -> order -> order lines
   with price snapshots
5. After commit: parent notification via the outbox (best-effort)

Catalogue writes validate through validation.validate_payload and map the
(school_id, name) unique constraint to 409 DUPLICATE_ITEM.
"""

from __future__ import annotations

import logging
import math

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import CanteenItem, PosOrder, PosOrderItem, Student
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_canteen_item,
    validate_payload,
)
from schoolhub.time_utils import utcnow
from . import notification_service
from .concurrency import run_with_retry
from .ledger_service import TXN_PURCHASE, process_transaction
from .tenant_service import CallerIdentity, assert_tenant_entity, get_tenant, scoped_query


logger = logging.getLogger(__name__)


ORDER_STATUS_COMPLETED = "completed"

MAX_LINE_QUANTITY = 50

CANTEEN_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price_cents", "category", "is_available"},
    required_on_create={"name", "price_cents"},
)

DUPLICATE_ITEM_MESSAGE = "An item with this name already exists in your school."


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

def list_items(identity: CallerIdentity, available_only: bool = False) -> list[CanteenItem]:
    extra = {"is_available": True} if available_only else {}
    return scoped_query(CanteenItem, identity, **extra).order_by(CanteenItem.category, CanteenItem.name).all()


def _validate_item_payload(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=CanteenItem, payload=payload, policy=CANTEEN_ITEM_POLICY, partial=partial)
    enforce_rules_canteen_item(patch)
    return patch


def create_item(identity: CallerIdentity, payload: dict) -> CanteenItem:
    patch = _validate_item_payload(payload, partial=False)
    school_id = get_tenant(identity).school_id
    if school_id is None:
        raise ValidationError("Canteen items must be created by a school user")

    def _op():
        item = CanteenItem(school_id=school_id, **patch)
        db.session.add(item)
        db.session.commit()
        return item

    try:
        return run_with_retry(_op)
    except IntegrityError:
        raise ConflictError(DUPLICATE_ITEM_MESSAGE, code="DUPLICATE_ITEM")


def _get_item_for_write(identity: CallerIdentity, item_id: int) -> CanteenItem:
    item = scoped_query(CanteenItem, identity, id=item_id).first()
    if not item:
        raise NotFoundError("Item not found.")
    return item


def update_item(identity: CallerIdentity, sink, item_id: int, payload: dict) -> CanteenItem | None:
    """
    Partial update of a catalogue item.

    Returns None when the entity guard refused the write (response is in sink).
    """
    patch = _validate_item_payload(payload, partial=True)

    item = _get_item_for_write(identity, item_id)
    if assert_tenant_entity(identity, sink, item.school_id):
        return None

    def _op():
        for key, value in patch.items():
            setattr(item, key, value)
        db.session.commit()
        return item

    try:
        return run_with_retry(_op)
    except IntegrityError:
        raise ConflictError(DUPLICATE_ITEM_MESSAGE, code="DUPLICATE_ITEM")


def delete_item(identity: CallerIdentity, sink, item_id: int) -> str | None:
    """
    Remove an item from the catalogue.

    Items referenced by past orders are kept (order lines point at them) and
    only marked unavailable.

    Returns "deleted", "deactivated", or None when the guard refused.
    """
    item = _get_item_for_write(identity, item_id)
    if assert_tenant_entity(identity, sink, item.school_id):
        return None

    def _op():
        referenced = db.session.query(PosOrderItem.id).filter_by(item_id=item.id).first() is not None
        if referenced:
            item.is_available = False
            db.session.commit()
            return "deactivated"
        db.session.delete(item)
        db.session.commit()
        return "deleted"

    return run_with_retry(_op)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def _clamp_quantity(quantity) -> int:
    try:
        return max(1, math.floor(quantity))
    except (TypeError, ValueError):
        return 1


def create_pos_order(identity: CallerIdentity, student_id: int, lines: list[dict]) -> PosOrder:
    """
    Charge a student's wallet for a canteen order.

    Args:
        lines: [{"id": item_id, "quantity": n}, ...]

    Raises:
        ValidationError: no lines
        NotFoundError: student or any item not found/available in the school
        InsufficientBalanceError / DailyLimitExceededError: from the ledger
    """
    if not lines:
        raise ValidationError("At least one item is required")

    tenant = get_tenant(identity)

    student = scoped_query(Student, identity, id=student_id).first()
    if not student:
        raise NotFoundError("Student not found in your school.")

    # Always the student's school: for super admins this keeps items and
    # ledger entry in one tenant.
    school_id = student.school_id if tenant.is_super_admin else tenant.school_id

    requested_ids = [line["id"] for line in lines]
    items = (
        db.session.query(CanteenItem)
        .filter(CanteenItem.id.in_(requested_ids))
        .filter_by(school_id=school_id, is_available=True)
        .all()
    )
    if len(items) != len(requested_ids):
        raise NotFoundError("One or more items are unavailable or do not belong to this school.")

    items_by_id = {item.id: item for item in items}

    priced_lines = []
    total_cents = 0
    for line in lines:
        item = items_by_id[line["id"]]
        quantity = _clamp_quantity(line.get("quantity", 1))
        line_total = item.price_cents * quantity
        priced_lines.append((item, quantity, item.price_cents, line_total))
        total_cents += line_total

    def _op():
        _student, txn = process_transaction(
            student_id=student.id,
            school_id=school_id,
            amount_cents=-total_cents,
            txn_type=TXN_PURCHASE,
            description="Canteen purchase",
            actor_user_id=identity.id,
        )

        order = PosOrder(
            school_id=school_id,
            student_id=student.id,
            total_cents=total_cents,
            status=ORDER_STATUS_COMPLETED,
            paid_by_wallet=True,
            wallet_txn_id=txn.id,
            created_by_user_id=identity.id,
            created_at=utcnow(),
        )
        db.session.add(order)
        db.session.flush()

        for item, quantity, unit_price, line_total in priced_lines:
            db.session.add(PosOrderItem(
                order_id=order.id,
                item_id=item.id,
                quantity=quantity,
                unit_price_cents=unit_price,
                line_total_cents=line_total,
            ))

        db.session.commit()
        return order

    order = run_with_retry(_op)

    logger.info("POS order %s: student %s charged %d cents", order.id, student.id, total_cents)

    if student.parent_id:
        notification_service.enqueue(
            user_id=student.parent_id,
            title="Canteen Purchase",
            body=f"{student.full_name} spent {total_cents / 100:.2f} at the canteen.",
            data={"type": "canteen_purchase", "order_id": order.id, "student_id": student.id,
                  "amount_cents": total_cents},
            preference_type=notification_service.PREFERENCE_WALLET,
        )

    return order


def list_orders(identity: CallerIdentity, student_id: int | None = None, limit: int = 50) -> list[PosOrder]:
    extra = {"student_id": student_id} if student_id is not None else {}
    return (
        scoped_query(PosOrder, identity, **extra)
        .order_by(PosOrder.created_at.desc(), PosOrder.id.desc())
        .limit(limit)
        .all()
    )
