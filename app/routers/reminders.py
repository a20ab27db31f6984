"""
Reminder sweep trigger.

Called daily by an external cron (X-Cron-Secret header) or on demand by a
SUPER_ADMIN / MANAGER from the admin UI.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.deps import (
    get_current_session,
    get_db,
    get_reminder_service,
    has_valid_cron_secret,
    require_csrf_header,
)
from app.core.rate_limit import limiter
from app.core.structured_logging import build_log_context
from app.db.enums import ROLES_CAN_TRIGGER_BULK_REMINDERS
from app.schemas.auth import AdminSession
from app.schemas.certification import BulkReminderResponse
from app.services.certification_reminder_service import CertificationReminderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/reminders", tags=["Admin - Reminders"])


def authorize_bulk_trigger(
    request: Request,
    db: Session = Depends(get_db),
    cron_authorized: bool = Depends(has_valid_cron_secret),
) -> AdminSession | None:
    """
    Allow the cron caller, or an admin allowed to run the sweep.

    Returns None for the cron caller.

    Raises:
        HTTPException 401: Neither a valid cron secret nor an admin session
        HTTPException 403: Admin role not allowed, or missing CSRF header
    """
    if cron_authorized:
        return None

    session = get_current_session(request, db)
    if session.role not in ROLES_CAN_TRIGGER_BULK_REMINDERS:
        raise HTTPException(
            status_code=403,
            detail=f"Role '{session.role.value}' not authorized for this action",
        )
    require_csrf_header(request)
    return session


@router.post("/bulk", response_model=BulkReminderResponse)
@limiter.limit("5/minute")
def send_bulk_reminders(
    request: Request,
    session: AdminSession | None = Depends(authorize_bulk_trigger),
    service: CertificationReminderService = Depends(get_reminder_service),
):
    """Run the reminder sweep across every tenant and report the counts."""
    log_context = build_log_context(
        admin_id=str(session.admin_id) if session else None,
        route=request.url.path,
        method=request.method,
    )
    logger.info(
        "Bulk reminder sweep triggered by %s",
        "admin" if session else "cron",
        extra=log_context,
    )
    try:
        result = service.run_bulk_sweep()
    except Exception:
        logger.exception("Bulk reminder sweep failed", extra=log_context)
        return JSONResponse(status_code=500, content={"error": "Failed to send bulk reminders"})

    return BulkReminderResponse(
        success=True,
        message="Bulk certification reminders sent successfully",
        **result.as_dict(),
    )
