"""Pydantic schemas for API request/response models."""

from app.schemas.auth import AdminSession, TokenPayload
from app.schemas.certification import (
    ActionResponse,
    BulkReminderResponse,
    CertificationListResponse,
    CertificationRead,
    EmailCertificateRequest,
    ReminderRead,
)

__all__ = [
    # Auth
    "AdminSession",
    "TokenPayload",
    # Certifications
    "ActionResponse",
    "BulkReminderResponse",
    "CertificationListResponse",
    "CertificationRead",
    "EmailCertificateRequest",
    "ReminderRead",
]
