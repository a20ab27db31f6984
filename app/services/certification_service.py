"""Certification service - tenant-scoped reads and certificate delivery."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import UUID

from sqlalchemy import Select, and_, select
from sqlalchemy.orm import Session, joinedload

from app.core.config import Settings, settings
from app.core.structured_logging import build_log_context, mask_email
from app.db.enums import CertificationStatus, CourseCategory
from app.db.models import Achievement, CertificationReminder, Course
from app.services.certification_reminder_service import (
    CertificationNotFoundError,
    branding_for,
    effective_expiry_before,
    load_achievement,
    utcnow,
)
from app.services.certification_status import (
    EXPIRING_WINDOW_DAYS,
    Classification,
    classify,
    ensure_utc,
)
from app.services.email_transport import (
    EmailAttachment,
    EmailTransport,
    EmailTransportError,
    OutboundEmail,
    SendResult,
)
from app.services.reminder_templates import render_certificate_delivery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CertificationFilter:
    """
    Supported listing filters. The tenant predicate is not optional.
    """

    tenant_id: UUID
    status: CertificationStatus | None = None
    category: CourseCategory | None = None

    def build_statement(self, now: datetime, default_validity_years: int | None = None) -> Select:
        stmt = (
            select(Achievement)
            .join(Achievement.course)
            .options(joinedload(Achievement.customer), joinedload(Achievement.course))
            .where(Achievement.tenant_id == self.tenant_id)
        )

        if self.status == CertificationStatus.ACTIVE:
            stmt = stmt.where(Achievement.is_expired.is_(False))
        elif self.status == CertificationStatus.EXPIRED:
            stmt = stmt.where(Achievement.is_expired.is_(True))
        elif self.status == CertificationStatus.EXPIRING:
            # No lower bound: past-expiry rows the sweep has not flagged yet stay here
            stmt = stmt.where(
                and_(
                    Achievement.is_expired.is_(False),
                    effective_expiry_before(
                        now + timedelta(days=EXPIRING_WINDOW_DAYS),
                        default_validity_years,
                        inclusive=True,
                    ),
                )
            )

        if self.category is not None:
            stmt = stmt.where(Course.category == self.category.value)

        # Final ordering is by effective expiry, applied to the classified views
        return stmt.order_by(Achievement.id)


@dataclass(frozen=True)
class CertificationView:
    achievement: Achievement
    classification: Classification

    @property
    def sort_key(self) -> tuple:
        """Unflagged first, then soonest effective expiry; no expiry sorts last."""
        expiry = self.classification.effective_expiry
        return (
            self.achievement.is_expired,
            expiry is None,
            expiry or datetime.min.replace(tzinfo=timezone.utc),
        )


def _view(achievement: Achievement, now: datetime, config: Settings) -> CertificationView:
    return CertificationView(
        achievement=achievement,
        classification=classify(
            achievement.expiry_date,
            achievement.is_expired,
            now,
            certification_date=achievement.certification_date,
            default_validity_years=config.DEFAULT_VALIDITY_YEARS,
        ),
    )


def list_certifications(
    db: Session,
    filters: CertificationFilter,
    *,
    now: datetime | None = None,
    config: Settings = settings,
) -> list[CertificationView]:
    """List a tenant's certifications with their derived state."""
    now = ensure_utc(now or utcnow())
    stmt = filters.build_statement(now, config.DEFAULT_VALIDITY_YEARS)
    rows = db.execute(stmt).unique().scalars().all()
    return sorted((_view(achievement, now, config) for achievement in rows), key=lambda view: view.sort_key)


def get_certification(
    db: Session,
    achievement_id: UUID,
    tenant_id: UUID | None,
    *,
    now: datetime | None = None,
    config: Settings = settings,
) -> CertificationView:
    achievement = load_achievement(db, achievement_id, tenant_id)
    if achievement is None:
        raise CertificationNotFoundError(str(achievement_id))
    return _view(achievement, ensure_utc(now or utcnow()), config)


def list_reminder_history(
    db: Session,
    achievement_id: UUID,
    tenant_id: UUID | None,
) -> list[CertificationReminder]:
    """Audit rows for one certification, oldest first."""
    if load_achievement(db, achievement_id, tenant_id) is None:
        raise CertificationNotFoundError(str(achievement_id))
    return list(
        db.execute(
            select(CertificationReminder)
            .where(CertificationReminder.achievement_id == achievement_id)
            .order_by(CertificationReminder.sent_at.asc())
        )
        .scalars()
        .all()
    )


# =============================================================================
# Certificate delivery
# =============================================================================

def _resolve_attachment_path(stored_path: str, config: Settings) -> Path:
    path = Path(stored_path)
    if path.is_absolute():
        return path
    return Path(config.CERTIFICATE_UPLOAD_ROOT) / path


def load_certificate_attachment(
    achievement: Achievement,
    config: Settings = settings,
) -> EmailAttachment | None:
    """
    Read the attached certificate file, if there is one.

    An unreadable file is logged and skipped; the email still goes out.
    """
    attached = achievement.attached_file or {}
    stored_path = attached.get("path")
    if not stored_path:
        return None

    path = _resolve_attachment_path(stored_path, config)
    filename = attached.get("original_name") or path.name
    try:
        content = path.read_bytes()
    except OSError as e:
        logger.warning(
            "Could not read certificate file %s: %s",
            path,
            e,
            extra=build_log_context(
                tenant_id=str(achievement.tenant_id),
                achievement_id=str(achievement.id),
            ),
        )
        return None

    content_type = mimetypes.guess_type(filename)[0] or "application/pdf"
    return EmailAttachment(filename=filename, content=content, content_type=content_type)


def default_certificate_subject(achievement: Achievement) -> str:
    return f"Your {achievement.course.title} Certificate"


def default_certificate_message(achievement: Achievement, company_name: str) -> str:
    return (
        f"Dear {achievement.customer.first_name},\n\n"
        f"Please find attached your certificate for the {achievement.course.title} course.\n\n"
        "Congratulations on completing the training!\n\n"
        f"Best regards,\n{company_name}"
    )


def send_certificate_email(
    achievement: Achievement,
    transport: EmailTransport,
    *,
    subject: str | None = None,
    message: str | None = None,
    config: Settings = settings,
) -> SendResult:
    """
    Email the issued certificate to the customer.

    Raises:
        EmailTransportError: transport failed or reported failure
    """
    branding = branding_for(achievement.tenant, config)
    subject = subject or default_certificate_subject(achievement)
    message = message or default_certificate_message(achievement, branding.company_name)

    rendered = render_certificate_delivery(
        customer_name=achievement.customer.full_name,
        course_title=achievement.course.title,
        category=achievement.course.category,
        certification_date=ensure_utc(achievement.certification_date),
        expiry_date=ensure_utc(achievement.expiry_date),
        certificate_number=achievement.certificate_number,
        subject=subject,
        message=message,
        branding=branding,
    )
    attachment = load_certificate_attachment(achievement, config)

    result = transport.send(
        OutboundEmail(
            to_email=achievement.customer.email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            from_name=config.EMAIL_FROM_NAME or branding.company_name,
            attachments=[attachment] if attachment else [],
        )
    )
    if not result.success:
        raise EmailTransportError(result.error or "Email send failed")

    logger.info(
        "Certificate emailed to %s (attachment=%s)",
        mask_email(achievement.customer.email),
        attachment is not None,
        extra=build_log_context(
            tenant_id=str(achievement.tenant_id),
            achievement_id=str(achievement.id),
        ),
    )
    return result
