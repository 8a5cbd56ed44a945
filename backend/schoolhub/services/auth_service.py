# Overview: Service-layer operations for auth; password hashing, user creation, login.

"""
Authentication Service with Multi-Tenant Support

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

MULTI-TENANT: Every user except a super admin belongs to exactly one school
(school_id). Super admins have no school and are exempt from tenant scoping.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Authentication rejects inactive users and users of inactive schools
"""

import re

import bcrypt

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import School, User
from ..roles import Role, SUPER_ADMIN_ROLE
from schoolhub.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash (timing-safe)."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    email: str,
    password: str,
    full_name: str,
    role,
    school_id: int | None = None,
) -> User:
    """
    Create a user with a bcrypt password hash.

    MULTI-TENANT: Non-super-admin users require an active school.
    Super admins must not be attached to a school.

    Raises:
        ValidationError: bad role, missing/unknown school, weak password
        ConflictError: email already registered
    """
    try:
        role = Role.parse(role)
    except ValueError as exc:
        raise ValidationError(str(exc))

    if role == SUPER_ADMIN_ROLE:
        if school_id is not None:
            raise ValidationError("Super admins cannot belong to a school")
    else:
        if school_id is None:
            raise ValidationError("school_id is required for this role")
        school = db.session.query(School).filter_by(id=school_id).first()
        if not school:
            raise ValidationError("School not found")
        if not school.is_active:
            raise ValidationError("School is not active")

    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if not full_name or not str(full_name).strip():
        raise ValidationError("full_name is required")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ConflictError("A user with this email already exists")

    user = User(
        email=email,
        full_name=str(full_name).strip(),
        role=role.value,
        school_id=school_id,
        password_hash=hash_password(password),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials are valid and the account (and its school)
    is active, None otherwise. Updates last_login_at on success.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if user.school_id is not None:
        school = db.session.query(School).filter_by(id=user.school_id).first()
        if not school or not school.is_active:
            return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
