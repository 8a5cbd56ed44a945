# Overview: Service-layer operations for tenants; schools and their user accounts.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ForbiddenError, ValidationError
from ..extensions import db
from ..models import School, User
from ..roles import Role, SUPER_ADMIN_ROLE
from .auth_service import create_user
from .tenant_service import CallerIdentity, get_tenant, scoped_query


def create_school(name: str, code: str | None = None) -> School:
    if not name or not name.strip():
        raise ValidationError("name is required")

    school = School(name=name.strip(), code=code.strip().upper() if code else None, is_active=True)
    db.session.add(school)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A school with this code already exists")
    return school


def list_schools() -> list[School]:
    return db.session.query(School).order_by(School.name, School.id).all()


def create_school_user(
    identity: CallerIdentity,
    *,
    email: str,
    password: str,
    full_name: str,
    role,
    school_id: int | None = None,
) -> User:
    """
    Create a user account on behalf of an admin.

    Super admins may create users in any school; school admins only in
    their own. Super admin accounts are never created through the API.
    """
    try:
        role = Role.parse(role)
    except ValueError as exc:
        raise ValidationError(str(exc))

    if role == SUPER_ADMIN_ROLE:
        raise ForbiddenError("Super admin accounts cannot be created through the API.")

    tenant = get_tenant(identity)
    if not tenant.is_super_admin:
        if school_id is not None and school_id != tenant.school_id:
            raise ForbiddenError("You can only create users in your own school.")
        school_id = tenant.school_id

    return create_user(email=email, password=password, full_name=full_name, role=role, school_id=school_id)


def list_school_users(identity: CallerIdentity, role: str | None = None) -> list[User]:
    extra = {}
    if role:
        try:
            extra["role"] = Role.parse(role).value
        except ValueError as exc:
            raise ValidationError(str(exc))
    return scoped_query(User, identity, **extra).order_by(User.email).all()
