# Overview: Request and role decorators for API routes.

import logging
from functools import wraps

from flask import request, g

from .responses import fail
from .roles import Role, SUPER_ADMIN_ROLE
from .services import session_service


logger = logging.getLogger(__name__)


def _is_authenticated() -> bool:
    return hasattr(g, 'identity')


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.identity: CallerIdentity (id, Role, school_id, email)
    - g.session_context: The full SessionContext object

    Returns 401 UNAUTHORIZED if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account or school deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            logger.warning("No token provided for %s", request.path)
            return fail(401, "Not authorized, no token.", "UNAUTHORIZED")

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return fail(401, "Invalid or expired token.", "UNAUTHORIZED")

        g.current_user = context.user
        g.identity = context.identity
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles: Role):
    """
    Require the caller's role to be one of roles.

    Super admins pass every role check; tenant scoping still applies to
    everything they touch through tenant_service.
    """
    allowed = frozenset(Role.parse(r) for r in roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return fail(401, "Not authorized, no token.", "UNAUTHORIZED")

            role = g.identity.role
            if role != SUPER_ADMIN_ROLE and role not in allowed:
                logger.warning(
                    "Forbidden role: user %s has %s, requires one of %s",
                    g.identity.id, role.value, sorted(r.value for r in allowed),
                )
                return fail(403, "Forbidden: Access is restricted to permitted roles.", "FORBIDDEN_ROLE")

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_school(f):
    """Reject non-super-admin callers that are not assigned to a school."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return fail(401, "Not authorized, no token.", "UNAUTHORIZED")

        identity = g.identity
        if identity.role != SUPER_ADMIN_ROLE and identity.school_id is None:
            logger.warning("User %s is not assigned to a school", identity.id)
            return fail(403, "Forbidden: You are not assigned to a school.", "FORBIDDEN")

        return f(*args, **kwargs)

    return decorated_function
