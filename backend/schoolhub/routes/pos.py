# Overview: Flask API routes for canteen POS operations; parses input and returns JSON responses.

"""
Canteen POS API Routes

- Catalogue: list (any school user), create/update/delete (school admins)
- Orders: wallet-paid canteen orders (canteen staff, teachers, admins)
- Card verification at the till

Error mapping for orders:
    402 INSUFFICIENT_BALANCE, 403 DAILY_LIMIT_EXCEEDED, 404 prerequisites
"""

from flask import Blueprint, request, g, current_app
from sqlalchemy.exc import IntegrityError

from ..decorators import require_auth, require_roles, require_school
from ..errors import ApiError, ValidationError
from ..responses import ResponseSink, ok, fail, fail_from
from ..roles import POS_STAFF_ROLES, SCHOOL_STAFF_ROLES, Role
from ..services import pos_service, student_service
from ..validation import coerce_int, parse_int_field, parse_query_int, require_json


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _parse_order_lines(data: dict) -> list[dict]:
    """
    Normalize order lines from {"items": [...]} or the {"item_ids": [...]} alias.

    Each entry is {"id": n, "quantity": q} or a bare item id (quantity 1).
    """
    raw_lines = data.get("items")
    if raw_lines is None:
        raw_lines = data.get("item_ids")
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for entry in raw_lines:
        if isinstance(entry, dict):
            item_id = coerce_int(entry.get("id"), "items[].id")
            quantity = parse_int_field(
                entry, "quantity", required=False, minimum=1,
                maximum=pos_service.MAX_LINE_QUANTITY, default=1,
            )
        else:
            item_id = coerce_int(entry, "items[]")
            quantity = 1
        if item_id < 1:
            raise ValidationError("items[].id must be >= 1")
        lines.append({"id": item_id, "quantity": quantity})
    return lines


# =============================================================================
# CATALOGUE
# =============================================================================

@pos_bp.get("/items")
@require_auth
@require_roles(*SCHOOL_STAFF_ROLES, Role.PARENT)
@require_school
def list_items_route():
    """Query params: available=true to hide unavailable items"""
    available_only = request.args.get("available", "").lower() in ("1", "true", "yes")
    items = pos_service.list_items(g.identity, available_only=available_only)
    return ok([i.to_dict() for i in items], meta={"count": len(items)})


@pos_bp.post("/items")
@require_auth
@require_roles(Role.SCHOOL_ADMIN)
@require_school
def create_item_route():
    """
    Request body:
    {
        "name": "Cheese sandwich",
        "price_cents": 150,
        "category": "food",        (optional)
        "is_available": true       (optional)
    }

    Returns:
        201: Created item
        400: VALIDATION_ERROR
        409: DUPLICATE_ITEM
    """
    try:
        item = pos_service.create_item(g.identity, require_json(request.get_json(silent=True)))
        return ok(item.to_dict(), status_code=201)

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to create canteen item")
        return fail(500, "Internal server error", "SERVER_ERROR")


@pos_bp.put("/items/<int:item_id>")
@require_auth
@require_roles(Role.SCHOOL_ADMIN)
@require_school
def update_item_route(item_id: int):
    try:
        sink = ResponseSink()
        item = pos_service.update_item(g.identity, sink, item_id, require_json(request.get_json(silent=True)))
        if sink.written:
            return sink.to_response()

        return ok(item.to_dict())

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to update canteen item")
        return fail(500, "Internal server error", "SERVER_ERROR")


@pos_bp.delete("/items/<int:item_id>")
@require_auth
@require_roles(Role.SCHOOL_ADMIN)
@require_school
def delete_item_route(item_id: int):
    """Returns 204; items used by past orders are marked unavailable instead."""
    try:
        sink = ResponseSink()
        outcome = pos_service.delete_item(g.identity, sink, item_id)
        if sink.written:
            return sink.to_response()

        current_app.logger.info("Canteen item %s %s by user %s", item_id, outcome, g.identity.id)
        return "", 204

    except ApiError as e:
        return fail_from(e)
    except IntegrityError:
        current_app.logger.exception("Canteen item %s still referenced", item_id)
        return fail(409, "Item is still referenced and cannot be deleted.", "CONFLICT")
    except Exception:
        current_app.logger.exception("Failed to delete canteen item")
        return fail(500, "Internal server error", "SERVER_ERROR")


# =============================================================================
# ORDERS
# =============================================================================

@pos_bp.post("/orders")
@require_auth
@require_roles(*POS_STAFF_ROLES)
@require_school
def create_order_route():
    """
    Charge a student's wallet for a canteen order.

    Request body:
    {
        "student_id": 7,
        "items": [{"id": 3, "quantity": 2}, {"id": 5, "quantity": 1}]
    }

    Any school_id in the body is ignored; the order always belongs to the
    caller's school.

    Returns:
        201: Order with line items
        400: VALIDATION_ERROR
        402: INSUFFICIENT_BALANCE
        403: DAILY_LIMIT_EXCEEDED
        404: Student or item not found in your school
    """
    try:
        data = require_json(request.get_json(silent=True))
        student_id = parse_int_field(data, "student_id", minimum=1)
        lines = _parse_order_lines(data)

        order = pos_service.create_pos_order(g.identity, student_id, lines)
        return ok(order.to_dict(), status_code=201)

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to create POS order")
        return fail(500, "Internal server error", "SERVER_ERROR")


@pos_bp.get("/orders")
@require_auth
@require_roles(*POS_STAFF_ROLES, Role.FINANCE)
@require_school
def list_orders_route():
    """Query params: student_id, limit (1-200, default 50)"""
    try:
        student_id = parse_query_int(request.args, "student_id", default=None, minimum=1, maximum=2**31 - 1)
        limit = parse_query_int(request.args, "limit", default=50, minimum=1, maximum=200)

        orders = pos_service.list_orders(g.identity, student_id=student_id, limit=limit)
        return ok([o.to_dict() for o in orders], meta={"count": len(orders)})

    except ApiError as e:
        return fail_from(e)


@pos_bp.get("/verify-card/<nfc_id>")
@require_auth
@require_roles(*POS_STAFF_ROLES)
@require_school
def verify_card_route(nfc_id: str):
    """
    Identify a student by NFC card.

    Returns:
        200: Student summary with wallet balance
        400: Malformed card id, or ambiguous super admin lookup without school_id
        403: CARD_FROZEN
        404: Card not valid for this school
    """
    try:
        school_id = parse_query_int(request.args, "school_id", default=None, minimum=1, maximum=2**31 - 1)
        student = student_service.verify_card(g.identity, nfc_id, school_id=school_id)
        return ok(student.to_card_dict())

    except ApiError as e:
        return fail_from(e)
