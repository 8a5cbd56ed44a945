# Overview: Flask API routes for students operations; parses input and returns JSON responses.

"""
Student API Routes

- Enrolment and listing (school admins, finance)
- A parent's own children (my-children)
- NFC card assignment, freezing, and the daily spending limit
"""

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_roles, require_school
from ..errors import ApiError
from ..responses import ok, fail, fail_from
from ..roles import Role
from ..services import student_service
from ..validation import parse_int_field, parse_str_field, require_json


students_bp = Blueprint("students", __name__, url_prefix="/api/students")


@students_bp.post("")
@require_auth
@require_roles(Role.SCHOOL_ADMIN)
@require_school
def create_student_route():
    """
    Enrol a student in the caller's school.

    Request body:
    {
        "full_name": "Omar Haddad",
        "parent_id": 12,                        (optional)
        "nfc_card_id": "CARD-0001",             (optional)
        "daily_spending_limit_cents": 500,      (optional)
        "initial_wallet_balance_cents": 2000,   (optional)
        "school_id": 1                          (super admins only)
    }
    """
    try:
        data = require_json(request.get_json(silent=True))

        student = student_service.create_student(
            g.identity,
            full_name=parse_str_field(data, "full_name"),
            school_id=parse_int_field(data, "school_id", required=False, minimum=1),
            parent_id=parse_int_field(data, "parent_id", required=False, minimum=1),
            nfc_card_id=data.get("nfc_card_id"),
            daily_spending_limit_cents=parse_int_field(
                data, "daily_spending_limit_cents", required=False, minimum=0
            ),
            initial_wallet_balance_cents=parse_int_field(
                data, "initial_wallet_balance_cents", required=False, minimum=0, default=0
            ),
        )
        return ok(student.to_dict(), status_code=201)

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to create student")
        return fail(500, "Internal server error", "SERVER_ERROR")


@students_bp.get("")
@require_auth
@require_roles(Role.SCHOOL_ADMIN, Role.FINANCE)
@require_school
def list_students_route():
    students = student_service.list_students(g.identity)
    return ok([s.to_dict() for s in students], meta={"count": len(students)})


@students_bp.get("/my-children")
@require_auth
@require_roles(Role.PARENT)
@require_school
def my_children_route():
    children = student_service.list_children(g.identity)
    return ok([s.to_dict() for s in children], meta={"count": len(children)})


@students_bp.get("/<int:student_id>")
@require_auth
@require_roles(Role.SCHOOL_ADMIN, Role.FINANCE, Role.PARENT)
@require_school
def get_student_route(student_id: int):
    try:
        student = student_service.get_student(g.identity, student_id)
        return ok(student.to_dict())
    except ApiError as e:
        return fail_from(e)


@students_bp.patch("/<int:student_id>/nfc")
@require_auth
@require_roles(Role.SCHOOL_ADMIN)
@require_school
def assign_nfc_route(student_id: int):
    """
    Assign an NFC card to a student.

    Request body: {"nfc_card_id": "CARD-0001"}

    Returns:
        200: Updated student
        400: Malformed card id
        404: Student not in your school
        409: NFC_CONFLICT, card already used in this school
    """
    try:
        data = require_json(request.get_json(silent=True))
        student = student_service.assign_nfc_card(g.identity, student_id, data.get("nfc_card_id"))
        return ok(student.to_dict())

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to assign NFC card")
        return fail(500, "Internal server error", "SERVER_ERROR")


@students_bp.patch("/<int:student_id>/nfc-status")
@require_auth
@require_roles(Role.SCHOOL_ADMIN, Role.PARENT)
@require_school
def nfc_status_route(student_id: int):
    """Freeze or unfreeze a card. Request body: {"is_nfc_active": false}"""
    try:
        data = require_json(request.get_json(silent=True))
        student = student_service.set_nfc_status(g.identity, student_id, data.get("is_nfc_active"))
        return ok(student.to_dict())

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to update NFC status")
        return fail(500, "Internal server error", "SERVER_ERROR")


@students_bp.patch("/<int:student_id>/spending-limit")
@require_auth
@require_roles(Role.SCHOOL_ADMIN, Role.PARENT)
@require_school
def spending_limit_route(student_id: int):
    """Set the daily cap. Request body: {"daily_spending_limit_cents": 500} (null clears it)"""
    try:
        data = require_json(request.get_json(silent=True))
        if "daily_spending_limit_cents" not in data:
            return fail(400, "daily_spending_limit_cents is required", "VALIDATION_ERROR")

        limit = parse_int_field(data, "daily_spending_limit_cents", required=False, minimum=0)
        student = student_service.set_daily_spending_limit(g.identity, student_id, limit)
        return ok(student.to_dict())

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to update spending limit")
        return fail(500, "Internal server error", "SERVER_ERROR")
