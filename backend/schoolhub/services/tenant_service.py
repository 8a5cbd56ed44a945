"""
Multi-Tenant Service: Tenant Context and Scoping Helpers

WHY: Centralize tenant isolation so every query and mutation is confined to
the caller's school. The checks are two small, independent functions rather
than logic repeated in each route.

SECURITY INVARIANTS:
1. Every authenticated request carries a CallerIdentity (g.identity)
2. Non-super-admin reads go through tenant_where()/scoped_query(), which
   always pin school_id to the caller's own school
3. Mutations of an entity fetched without tenant scoping (e.g. by raw id
   through a relation) are re-validated with assert_tenant_entity()
4. Cross-tenant attempts caught by the guard are logged

USAGE:
    from schoolhub.services.tenant_service import tenant_where, assert_tenant_entity

    student = Student.query.filter_by(**tenant_where(g.identity, id=student_id)).first()

    sink = ResponseSink()
    if assert_tenant_entity(g.identity, sink, invoice.student.school_id):
        return sink.to_response()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..extensions import db
from ..roles import Role, SUPER_ADMIN_ROLE


logger = logging.getLogger(__name__)

TENANT_FORBIDDEN_MESSAGE = "Access denied: resource belongs to another school."


@dataclass(frozen=True)
class CallerIdentity:
    """
    Authenticated caller, as established by require_auth.

    role is always a Role member; school_id is None only for super admins.
    """
    id: int
    role: Role
    school_id: int | None
    email: str | None = None


@dataclass(frozen=True)
class TenantContext:
    school_id: int | None
    role: Role
    user_id: int
    is_super_admin: bool


def get_tenant(identity: CallerIdentity) -> TenantContext:
    """Pure projection of the caller identity onto its tenant context."""
    return TenantContext(
        school_id=identity.school_id,
        role=identity.role,
        user_id=identity.id,
        is_super_admin=identity.role == SUPER_ADMIN_ROLE,
    )


def tenant_where(identity: CallerIdentity, **extra) -> dict:
    """
    Build filter_by() keyword arguments that enforce school isolation.

    Super admins get the extra filter unchanged, so an explicit school_id
    passed by a super admin narrows to that school. For everyone else the
    caller's school_id is applied last and cannot be overridden by a
    school_id key in the extra filter.
    """
    tenant = get_tenant(identity)
    if tenant.is_super_admin:
        return dict(extra)
    return {**extra, "school_id": tenant.school_id}


def scoped_query(model, identity: CallerIdentity, **extra):
    """
    Query for a model with a school_id column, scoped to the caller's school.

    Usage:
        items = scoped_query(CanteenItem, g.identity, is_available=True).all()
    """
    return db.session.query(model).filter_by(**tenant_where(identity, **extra))


def assert_tenant_entity(identity: CallerIdentity, sink, entity_school_id) -> bool:
    """
    Defense-in-depth check right before a mutation.

    Returns True when the caller is blocked; a 403 TENANT_FORBIDDEN has then
    been written to sink and the caller must stop without responding again.
    Returns False when access is allowed.
    """
    tenant = get_tenant(identity)
    if tenant.is_super_admin:
        return False
    if entity_school_id != tenant.school_id:
        logger.warning(
            "Cross-tenant access denied: user %s (school %s) -> entity in school %s",
            tenant.user_id, tenant.school_id, entity_school_id,
        )
        sink.fail(403, TENANT_FORBIDDEN_MESSAGE, "TENANT_FORBIDDEN")
        return True
    return False
