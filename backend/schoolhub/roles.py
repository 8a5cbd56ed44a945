# Overview: Closed set of user roles and the role groups used by routes.

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    """
    User roles.

    Stored role strings are parsed into this enum once, when a session is
    validated; everything downstream compares enum members, never raw strings.
    """
    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    TEACHER = "teacher"
    PARENT = "parent"
    FINANCE = "finance"
    CANTEEN_STAFF = "canteen_staff"
    BUS_SUPERVISOR = "bus_supervisor"

    @classmethod
    def parse(cls, value) -> "Role":
        """
        Normalize a stored or client-supplied role value.

        Accepts enum members and strings in any case ("SCHOOL_ADMIN",
        "School_Admin"). Raises ValueError for anything outside the set.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid role: {value!r}")
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Invalid role: {value!r}") from None


SUPER_ADMIN_ROLE = Role.SUPER_ADMIN

# Route-level role groups
FINANCE_ADMIN_ROLES = (Role.FINANCE, Role.SCHOOL_ADMIN)
TOPUP_ROLES = (Role.PARENT, Role.SCHOOL_ADMIN)
WALLET_HISTORY_ROLES = (Role.PARENT, Role.SCHOOL_ADMIN, Role.FINANCE)
POS_STAFF_ROLES = (Role.CANTEEN_STAFF, Role.SCHOOL_ADMIN, Role.TEACHER)
SCHOOL_STAFF_ROLES = (
    Role.SCHOOL_ADMIN,
    Role.TEACHER,
    Role.FINANCE,
    Role.CANTEEN_STAFF,
    Role.BUS_SUPERVISOR,
)
