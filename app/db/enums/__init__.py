"""Enum definitions for application constants."""

from app.db.enums.auth import AdminRole, ROLES_CAN_TRIGGER_BULK_REMINDERS
from app.db.enums.certifications import (
    CertificationStatus,
    CourseCategory,
    ReminderType,
)

__all__ = [
    "AdminRole",
    "CertificationStatus",
    "CourseCategory",
    "ROLES_CAN_TRIGGER_BULK_REMINDERS",
    "ReminderType",
]
