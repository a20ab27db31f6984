"""SQLAlchemy ORM models."""

from app.db.models.certifications import Achievement, CertificationReminder
from app.db.models.tenants import AdminUser, Tenant
from app.db.models.training import Course, Customer

__all__ = [
    "Achievement",
    "AdminUser",
    "CertificationReminder",
    "Course",
    "Customer",
    "Tenant",
]
