"""Auth-related enums."""

from enum import Enum


class AdminRole(str, Enum):
    """
    Admin roles.

    - SUPER_ADMIN: Platform admin (may have no tenant, sees every tenant)
    - MANAGER: Tenant manager (settings, bulk operations)
    - STAFF: Tenant back-office staff
    - INSTRUCTOR: Course instructor
    """

    SUPER_ADMIN = "SUPER_ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"
    INSTRUCTOR = "INSTRUCTOR"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


# Roles allowed to trigger the cross-tenant reminder sweep by hand
ROLES_CAN_TRIGGER_BULK_REMINDERS = frozenset({AdminRole.SUPER_ADMIN, AdminRole.MANAGER})
