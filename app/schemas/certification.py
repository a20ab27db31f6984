"""Pydantic schemas for certifications and reminders."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.db.enums import CertificationStatus


# =============================================================================
# Certifications
# =============================================================================

class CustomerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str


class CourseSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    category: str


class AttachedFile(BaseModel):
    """Uploaded certificate file metadata (path is never exposed)."""
    original_name: str | None = None
    size_bytes: int | None = None
    uploaded_at: datetime | None = None


class CertificationRead(BaseModel):
    """Certification with its derived state."""
    id: UUID
    customer: CustomerSummary
    course: CourseSummary
    certification_date: datetime
    expiry_date: datetime | None
    effective_expiry_date: datetime | None
    is_expired: bool
    status: CertificationStatus
    days_until_expiry: int | None
    reminders_sent: int
    next_reminder_date: datetime | None
    certificate_number: str | None
    attached_file: AttachedFile | None = None


class CertificationListResponse(BaseModel):
    items: list[CertificationRead]
    total: int


# =============================================================================
# Reminders
# =============================================================================

class ReminderRead(BaseModel):
    """Audit row for one reminder attempt."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    achievement_id: UUID
    reminder_type: str
    scheduled_for: datetime
    sent_at: datetime
    email_sent: bool
    email_subject: str
    error: str | None


class EmailCertificateRequest(BaseModel):
    """Optional overrides for the certificate delivery email."""
    subject: str | None = Field(None, min_length=1, max_length=300)
    message: str | None = Field(None, min_length=1, max_length=10000)


class ActionResponse(BaseModel):
    success: bool
    message: str


class BulkReminderResponse(ActionResponse):
    selected: int
    sent: int
    errors: int
    skipped: int
