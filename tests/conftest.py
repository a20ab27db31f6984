"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema rebuilt for each test
- Tenant / customer / course / achievement factories
- JWT session cookies for admin roles
- Recording email transport (nothing leaves the process)
- HTTPX AsyncClient with proper headers
"""
import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

# Must be set before the app (and its engine / limiter) is imported
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from app.main import app
from app.core.deps import COOKIE_NAME, get_db
from app.core.security import create_session_token
from app.db.base import Base
from app.db.enums import AdminRole, CourseCategory
from app.db.models import Achievement, AdminUser, Course, Customer, Tenant
from app.db.session import SessionLocal, engine
from app.services.email_transport import OutboundEmail, SendResult, get_email_transport


NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def schema() -> Generator[None, None, None]:
    """Fresh schema per test (the in-memory database lives as long as the engine)."""
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(schema) -> Generator[Session, None, None]:
    """
    Session for arranging and asserting.

    Fixtures commit, because the services under test open their own sessions.
    """
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def test_tenant(db: Session) -> Tenant:
    tenant = Tenant(
        name="Northern Gas Training",
        slug=f"northern-{uuid.uuid4().hex[:8]}",
        contact_email="bookings@northerngas.example",
        contact_phone="0161 000 0000",
        website="www.northerngas.example",
    )
    db.add(tenant)
    db.commit()
    return tenant


@pytest.fixture(scope="function")
def other_tenant(db: Session) -> Tenant:
    tenant = Tenant(name="Southern Heat Academy", slug=f"southern-{uuid.uuid4().hex[:8]}")
    db.add(tenant)
    db.commit()
    return tenant


@pytest.fixture(scope="function")
def make_achievement(db: Session):
    """
    Factory for achievements with their own customer and course.

    make_achievement(tenant, expiry_in=timedelta(days=45), next_reminder_in=timedelta(0))
    """
    def _make(
        tenant: Tenant,
        *,
        now: datetime = NOW,
        certification_date: datetime | None = None,
        expiry_in: timedelta | None = timedelta(days=45),
        next_reminder_in: timedelta | None = None,
        is_expired: bool = False,
        reminders_sent: int = 0,
        category: CourseCategory = CourseCategory.GAS_SAFE,
        course_title: str = "Domestic Gas Safety (ACS)",
        certificate_number: str | None = "GS-2024-0042",
        email: str | None = None,
        attached_file: dict | None = None,
    ) -> Achievement:
        customer = Customer(
            tenant_id=tenant.id,
            first_name="Dana",
            last_name="Fletcher",
            email=email or f"dana-{uuid.uuid4().hex[:6]}@example.com",
        )
        course = Course(tenant_id=tenant.id, title=course_title, category=category.value)
        db.add_all([customer, course])
        db.flush()

        achievement = Achievement(
            tenant_id=tenant.id,
            customer_id=customer.id,
            course_id=course.id,
            certification_date=certification_date or now - timedelta(days=5 * 365),
            expiry_date=now + expiry_in if expiry_in is not None else None,
            is_expired=is_expired,
            reminders_sent=reminders_sent,
            next_reminder_date=now + next_reminder_in if next_reminder_in is not None else None,
            certificate_number=certificate_number,
            attached_file=attached_file,
        )
        db.add(achievement)
        db.commit()
        return achievement

    return _make


# =============================================================================
# Email Fixtures
# =============================================================================

class RecordingTransport:
    """Email transport double: records messages, optionally fails."""

    def __init__(self):
        self.sent: list[OutboundEmail] = []
        self.fail_with: str | None = None
        self.raise_error: Exception | None = None

    def send(self, message: OutboundEmail) -> SendResult:
        if self.raise_error is not None:
            raise self.raise_error
        if self.fail_with is not None:
            return SendResult(success=False, error=self.fail_with)
        self.sent.append(message)
        return SendResult(success=True, message_id=f"<{uuid.uuid4().hex}@test>")


@pytest.fixture(scope="function")
def transport() -> RecordingTransport:
    return RecordingTransport()


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    admin: AdminUser
    token: str
    cookie_name: str = COOKIE_NAME


@pytest.fixture(scope="function")
def make_auth(db: Session):
    """Factory: create an admin with the given role and mint its session token."""
    def _make(role: AdminRole, tenant: Tenant | None) -> TestAuth:
        admin = AdminUser(
            tenant_id=tenant.id if tenant else None,
            email=f"admin-{uuid.uuid4().hex[:8]}@trainkit.example",
            display_name=f"Test {role.value.title()}",
            role=role.value,
        )
        db.add(admin)
        db.commit()
        token = create_session_token(
            admin_id=admin.id,
            tenant_id=admin.tenant_id,
            role=admin.role,
            token_version=admin.token_version,
        )
        return TestAuth(admin=admin, token=token)

    return _make


@pytest.fixture(scope="function")
def test_auth(make_auth, test_tenant: Tenant) -> TestAuth:
    """Tenant MANAGER session."""
    return make_auth(AdminRole.MANAGER, test_tenant)


# =============================================================================
# Client Fixtures
# =============================================================================

@asynccontextmanager
async def _client(db: Session, transport: RecordingTransport, **kwargs) -> AsyncGenerator[AsyncClient, None]:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_transport] = lambda: transport

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        **kwargs,
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(db: Session, transport: RecordingTransport) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient (cron caller, auth failures).
    """
    async with _client(db, transport) as c:
        yield c


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    transport: RecordingTransport,
    test_auth: TestAuth,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create authenticated AsyncClient with JWT cookie and CSRF header.
    """
    async with _client(
        db,
        transport,
        cookies={test_auth.cookie_name: test_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c


@pytest.fixture(scope="function")
def client_for(db: Session, transport: RecordingTransport):
    """
    Factory for clients bound to another admin:

        async with client_for(make_auth(AdminRole.STAFF, tenant)) as c: ...
    """
    def _make(auth: TestAuth, *, csrf: bool = True):
        headers = {"X-Requested-With": "XMLHttpRequest"} if csrf else {}
        return _client(db, transport, cookies={auth.cookie_name: auth.token}, headers=headers)

    return _make
