"""Admin certification endpoints: listing, history, reminders, certificate delivery."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.deps import (
    get_current_session,
    get_db,
    get_reminder_service,
    get_tenant_scope,
    require_csrf_header,
)
from app.core.rate_limit import limiter
from app.core.structured_logging import build_log_context
from app.db.enums import CertificationStatus, CourseCategory
from app.schemas.auth import AdminSession
from app.schemas.certification import (
    ActionResponse,
    AttachedFile,
    CertificationListResponse,
    CertificationRead,
    CourseSummary,
    CustomerSummary,
    EmailCertificateRequest,
    ReminderRead,
)
from app.services import certification_service
from app.services.certification_reminder_service import (
    CertificationNotFoundError,
    CertificationReminderService,
    ReminderInProgressError,
    ReminderSendError,
)
from app.services.certification_service import CertificationFilter, CertificationView
from app.services.email_transport import EmailTransport, get_email_transport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/certifications", tags=["Admin - Certifications"])


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Certification not found"})


def _to_read(view: CertificationView) -> CertificationRead:
    achievement = view.achievement
    attached = achievement.attached_file
    return CertificationRead(
        id=achievement.id,
        customer=CustomerSummary.model_validate(achievement.customer),
        course=CourseSummary.model_validate(achievement.course),
        certification_date=achievement.certification_date,
        expiry_date=achievement.expiry_date,
        effective_expiry_date=view.classification.effective_expiry,
        is_expired=achievement.is_expired,
        status=view.classification.state,
        days_until_expiry=view.classification.days_until_expiry,
        reminders_sent=achievement.reminders_sent,
        next_reminder_date=achievement.next_reminder_date,
        certificate_number=achievement.certificate_number,
        attached_file=AttachedFile.model_validate(attached) if attached else None,
    )


@router.get("", response_model=CertificationListResponse)
def list_certifications(
    status: CertificationStatus | None = Query(None),
    category: CourseCategory | None = Query(None),
    tenant_id: UUID = Depends(get_tenant_scope),
    db: Session = Depends(get_db),
):
    """List the tenant's certifications, soonest expiry first (expired last)."""
    views = certification_service.list_certifications(
        db,
        CertificationFilter(tenant_id=tenant_id, status=status, category=category),
    )
    return CertificationListResponse(items=[_to_read(v) for v in views], total=len(views))


@router.get("/{achievement_id}/reminders", response_model=list[ReminderRead])
def list_reminders(
    achievement_id: UUID,
    session: AdminSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Reminder audit history for one certification."""
    try:
        return certification_service.list_reminder_history(db, achievement_id, session.tenant_id)
    except CertificationNotFoundError:
        return _not_found()


@router.post(
    "/{achievement_id}/remind",
    response_model=ActionResponse,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit("30/minute")
def send_reminder(
    request: Request,
    achievement_id: UUID,
    session: AdminSession = Depends(get_current_session),
    service: CertificationReminderService = Depends(get_reminder_service),
):
    """Send a manual renewal reminder now, regardless of the schedule."""
    log_context = build_log_context(
        tenant_id=str(session.tenant_id) if session.tenant_id else None,
        admin_id=str(session.admin_id),
        achievement_id=str(achievement_id),
        route=request.url.path,
        method=request.method,
    )
    try:
        service.send_single_reminder(achievement_id, session.tenant_id)
    except CertificationNotFoundError:
        return _not_found()
    except ReminderInProgressError:
        return JSONResponse(status_code=409, content={"error": "Reminder already in progress"})
    except ReminderSendError as e:
        logger.error("Manual reminder failed: %s", e, extra=log_context)
        return JSONResponse(status_code=500, content={"error": "Failed to send reminder"})
    except Exception:
        logger.exception("Manual reminder failed", extra=log_context)
        return JSONResponse(status_code=500, content={"error": "Failed to send reminder"})

    logger.info("Manual reminder sent", extra=log_context)
    return ActionResponse(success=True, message="Reminder sent successfully")


@router.post(
    "/{achievement_id}/email-certificate",
    response_model=ActionResponse,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit("30/minute")
def email_certificate(
    request: Request,
    achievement_id: UUID,
    payload: EmailCertificateRequest | None = None,
    session: AdminSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport),
):
    """Email the issued certificate (with the uploaded file when available)."""
    payload = payload or EmailCertificateRequest()
    try:
        view = certification_service.get_certification(db, achievement_id, session.tenant_id)
    except CertificationNotFoundError:
        return _not_found()

    try:
        certification_service.send_certificate_email(
            view.achievement,
            transport,
            subject=payload.subject,
            message=payload.message,
        )
    except Exception:
        logger.exception(
            "Certificate email failed",
            extra=build_log_context(
                tenant_id=str(view.achievement.tenant_id),
                admin_id=str(session.admin_id),
                achievement_id=str(achievement_id),
                route=request.url.path,
                method=request.method,
            ),
        )
        return JSONResponse(status_code=500, content={"error": "Failed to email certificate"})

    return ActionResponse(success=True, message="Certificate emailed successfully")
