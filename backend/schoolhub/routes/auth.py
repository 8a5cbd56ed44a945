# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- Login returns an opaque bearer token; only its hash is stored
- Logout revokes the presented token
- Self-registration is disabled; admins create users (POST /api/users)
"""

from flask import Blueprint, request, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth
from ..responses import ok, fail


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body:
    {
        "email": "admin@school.example",
        "password": "..."
    }

    Returns:
        200: {token, user}
        400: Missing credentials
        401: Invalid credentials, inactive account or inactive school
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return fail(400, "email and password required", "VALIDATION_ERROR")

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.warning("Failed login for %s from %s", email, request.remote_addr)
            return fail(401, "Invalid credentials", "UNAUTHORIZED")

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return ok({
            "token": token,
            "user": user.to_dict(),
            "expires_at": session.to_dict()["expires_at"],
        })

    except Exception:
        current_app.logger.exception("Failed to login user")
        return fail(500, "Internal server error", "SERVER_ERROR")


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return fail(401, "Not authorized, no token.", "UNAUTHORIZED")

        token = auth_header.split(" ", 1)[1]

        if not session_service.revoke_session(token, reason="User logout"):
            return fail(401, "Invalid or expired token.", "UNAUTHORIZED")

        return ok({"message": "Logout successful"})

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return fail(500, "Internal server error", "SERVER_ERROR")


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with the resolved role and school."""
    identity = g.identity
    return ok({
        "user": g.current_user.to_dict(),
        "role": identity.role.value,
        "school_id": identity.school_id,
    })
