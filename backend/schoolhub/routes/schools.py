# Overview: Flask API routes for schools and user accounts; parses input and returns JSON responses.

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_roles, require_school
from ..errors import ApiError
from ..responses import ok, fail, fail_from
from ..roles import Role, SUPER_ADMIN_ROLE
from ..services import school_service
from ..validation import parse_int_field, parse_str_field, require_json


schools_bp = Blueprint("schools", __name__, url_prefix="/api")


@schools_bp.post("/schools")
@require_auth
@require_roles(SUPER_ADMIN_ROLE)
def create_school_route():
    """
    Create a tenant.

    Request body:
    {
        "name": "Amman Academy",
        "code": "AMM"          (optional, unique)
    }
    """
    try:
        data = require_json(request.get_json(silent=True))
        name = parse_str_field(data, "name")
        code = parse_str_field(data, "code", required=False, max_length=32)

        school = school_service.create_school(name, code)
        current_app.logger.info("School %s created by user %s", school.id, g.identity.id)
        return ok(school.to_dict(), status_code=201)

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to create school")
        return fail(500, "Internal server error", "SERVER_ERROR")


@schools_bp.get("/schools")
@require_auth
@require_roles(SUPER_ADMIN_ROLE)
def list_schools_route():
    schools = school_service.list_schools()
    return ok([s.to_dict() for s in schools], meta={"count": len(schools)})


@schools_bp.post("/users")
@require_auth
@require_roles(Role.SCHOOL_ADMIN)
@require_school
def create_user_route():
    """
    Create a user account.

    Super admins name the school; school admins always create in their own.

    Request body:
    {
        "email": "parent@example.com",
        "password": "Str0ng!pass",
        "full_name": "Rana Haddad",
        "role": "parent",
        "school_id": 1          (super admins only)
    }
    """
    try:
        data = require_json(request.get_json(silent=True))

        user = school_service.create_school_user(
            g.identity,
            email=parse_str_field(data, "email"),
            password=data.get("password") or "",
            full_name=parse_str_field(data, "full_name"),
            role=parse_str_field(data, "role", max_length=32),
            school_id=parse_int_field(data, "school_id", required=False, minimum=1),
        )
        return ok(user.to_dict(), status_code=201)

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return fail(500, "Internal server error", "SERVER_ERROR")


@schools_bp.get("/users")
@require_auth
@require_roles(Role.SCHOOL_ADMIN)
@require_school
def list_users_route():
    """List users of the caller's school, optionally ?role=parent."""
    try:
        users = school_service.list_school_users(g.identity, role=request.args.get("role"))
        return ok([u.to_dict() for u in users], meta={"count": len(users)})
    except ApiError as e:
        return fail_from(e)
