"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import decode_session_token, verify_secret
from app.db.enums import AdminRole
from app.db.models import AdminUser
from app.db.session import SessionLocal
from app.schemas.auth import AdminSession
from app.services.certification_reminder_service import CertificationReminderService
from app.services.email_transport import EmailTransport, get_email_transport


# Cookie and header names
COOKIE_NAME = "trainkit_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"
CRON_SECRET_HEADER = "X-Cron-Secret"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_admin(request: Request, db: Session = Depends(get_db)) -> AdminUser:
    """
    Get authenticated admin from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - Admin exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    try:
        admin_id = UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    admin = db.get(AdminUser, admin_id)
    if not admin:
        raise HTTPException(status_code=401, detail="Admin not found")

    if not admin.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if admin.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return admin


def get_current_session(request: Request, db: Session = Depends(get_db)) -> AdminSession:
    """
    Get full session context: admin_id, tenant_id, role.

    This is the PRIMARY auth dependency for admin endpoints.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Unknown role
    """
    admin = get_current_admin(request, db)

    # Validate role is a known enum value - return 403 not 500
    if not AdminRole.has_value(admin.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{admin.role}'. Contact administrator.",
        )

    return AdminSession(
        admin_id=admin.id,
        tenant_id=admin.tenant_id,
        role=AdminRole(admin.role),
        email=admin.email,
        display_name=admin.display_name,
    )


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints called with the session cookie.

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


def has_valid_cron_secret(x_cron_secret: str | None = Header(None)) -> bool:
    """True when the request carries the configured cron secret."""
    return verify_secret(x_cron_secret, settings.CRON_SECRET)


def get_tenant_scope(session: AdminSession = Depends(get_current_session)) -> UUID:
    """
    Get tenant_id for query scoping.

    Every list query MUST filter by this value to ensure tenant isolation.

    Raises:
        HTTPException 400: Platform admin without a tenant
    """
    if session.tenant_id is None:
        raise HTTPException(status_code=400, detail="Tenant ID required")
    return session.tenant_id


def get_reminder_service(
    transport: EmailTransport = Depends(get_email_transport),
) -> CertificationReminderService:
    """Reminder service bound to the request-independent session factory."""
    return CertificationReminderService(SessionLocal, transport, config=settings)
