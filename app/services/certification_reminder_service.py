"""Certification reminder orchestration.

Two entry points share one per-certification unit of work:

- send_single_reminder: admin-triggered, tenant-scoped (CUSTOM reminder)
- run_bulk_sweep: cron or admin-triggered, spans every tenant

Each certification is claimed, classified, rendered, sent and recorded in
its own session. A failed send writes a failed audit row and nothing else,
so the certification stays due and the next sweep retries it.
"""

from __future__ import annotations

import logging
import operator
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session, joinedload

from app.core.config import Settings, settings
from app.core.structured_logging import build_log_context, mask_email
from app.db.enums import ReminderType
from app.db.models import Achievement, CertificationReminder, Tenant
from app.services.certification_status import Classification, add_years, classify, ensure_utc
from app.services.email_transport import EmailTransport, OutboundEmail
from app.services.reminder_schedule import (
    day_bounds,
    is_due,
    next_reminder_date,
    reminder_type_for,
)
from app.services.reminder_templates import (
    Branding,
    ReminderContext,
    RenderedEmail,
    render_reminder,
)

logger = logging.getLogger(__name__)


class CertificationNotFoundError(Exception):
    """Achievement id does not resolve (within the caller's tenant)."""


class ReminderInProgressError(Exception):
    """Another reminder run currently holds this certification."""


class ReminderSendError(Exception):
    """The reminder email could not be sent; the failure has been recorded."""


@dataclass(frozen=True)
class ReminderOutcome:
    achievement_id: UUID
    reminder_type: ReminderType
    email_sent: bool
    subject: str
    reminders_sent: int
    next_reminder_date: datetime | None
    error: str | None = None


@dataclass
class SweepResult:
    selected: int = 0
    sent: int = 0
    errors: int = 0
    skipped: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def branding_for(tenant: Tenant | None, config: Settings = settings) -> Branding:
    """Tenant contact details, falling back to the platform defaults."""
    if tenant is None:
        return Branding(
            company_name=config.COMPANY_NAME,
            phone=config.COMPANY_PHONE,
            email=config.COMPANY_EMAIL,
            website=config.COMPANY_WEBSITE,
        )
    return Branding(
        company_name=tenant.name or config.COMPANY_NAME,
        phone=tenant.contact_phone or config.COMPANY_PHONE,
        email=tenant.contact_email or config.COMPANY_EMAIL,
        website=tenant.website or config.COMPANY_WEBSITE,
    )


def effective_expiry_before(bound: datetime, default_validity_years: int | None, *, inclusive: bool = False):
    """
    SQL predicate: the effective expiry falls before ``bound`` (or on it when inclusive).

    Under a default validity policy, a missing expiry date counts as
    certification_date + N years. The bound is shifted back by N years
    instead of shifting the column, which keeps the comparison portable.
    """
    compare = operator.le if inclusive else operator.lt
    predicate = compare(Achievement.expiry_date, bound)
    if default_validity_years is None:
        return predicate
    return or_(
        predicate,
        and_(
            Achievement.expiry_date.is_(None),
            compare(Achievement.certification_date, add_years(bound, -default_validity_years)),
        ),
    )


def load_achievement(db: Session, achievement_id: UUID, tenant_id: UUID | None) -> Achievement | None:
    """Load an achievement with customer, course and tenant; tenant-scoped unless tenant_id is None."""
    stmt = (
        select(Achievement)
        .options(
            joinedload(Achievement.customer),
            joinedload(Achievement.course),
            joinedload(Achievement.tenant),
        )
        .where(Achievement.id == achievement_id)
        .execution_options(populate_existing=True)
    )
    if tenant_id is not None:
        stmt = stmt.where(Achievement.tenant_id == tenant_id)
    return db.execute(stmt).unique().scalar_one_or_none()


class CertificationReminderService:
    """Runs reminder units of work against an injected session factory and transport."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        transport: EmailTransport,
        *,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.transport = transport
        self.config = config or settings
        self.clock = clock

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def send_single_reminder(
        self,
        achievement_id: UUID,
        tenant_id: UUID | None = None,
    ) -> ReminderOutcome:
        """
        Send a manual (CUSTOM) reminder for one certification.

        Raises:
            CertificationNotFoundError: unknown id, or outside the caller's tenant
            ReminderInProgressError: a sweep is processing it right now
            ReminderSendError: the send failed (a failed audit row was written)
        """
        now = ensure_utc(self.clock())
        with self.session_factory() as db:
            if load_achievement(db, achievement_id, tenant_id) is None:
                raise CertificationNotFoundError(str(achievement_id))
            if not self._claim(db, achievement_id):
                raise ReminderInProgressError(str(achievement_id))

            try:
                achievement = load_achievement(db, achievement_id, tenant_id)
                outcome = self._process(db, achievement, now, manual=True)
            except Exception:
                db.rollback()
                self._release(db, achievement_id)
                raise

        if not outcome.email_sent:
            raise ReminderSendError(outcome.error or "Reminder email was not sent")
        return outcome

    def run_bulk_sweep(self) -> SweepResult:
        """
        Send every due reminder across all tenants, one certification at a time.

        A failure on one certification is counted and the sweep moves on.
        """
        now = ensure_utc(self.clock())
        result = SweepResult()

        with self.session_factory() as db:
            due_ids = self.list_due_achievement_ids(db, now)
        result.selected = len(due_ids)
        logger.info("Reminder sweep found %s certifications needing reminders", result.selected)

        for achievement_id in due_ids:
            try:
                outcome = self._process_due(achievement_id, now)
            except Exception:
                result.errors += 1
                logger.exception(
                    "Error processing reminder for certification %s",
                    achievement_id,
                    extra=build_log_context(achievement_id=str(achievement_id)),
                )
                continue

            if outcome is None:
                result.skipped += 1
            elif outcome.email_sent:
                result.sent += 1
            else:
                result.errors += 1

        logger.info(
            "Reminder sweep complete (selected=%s sent=%s errors=%s skipped=%s)",
            result.selected,
            result.sent,
            result.errors,
            result.skipped,
        )
        return result

    def list_due_achievement_ids(self, db: Session, now: datetime) -> list[UUID]:
        """Certifications with a reminder scheduled today or earlier, or newly expired and unflagged."""
        start_of_today, start_of_tomorrow = day_bounds(now)
        stmt = (
            select(Achievement.id)
            .where(
                or_(
                    Achievement.next_reminder_date < start_of_tomorrow,
                    and_(
                        effective_expiry_before(start_of_today, self.config.DEFAULT_VALIDITY_YEARS),
                        Achievement.is_expired.is_(False),
                    ),
                )
            )
            .order_by(Achievement.created_at, Achievement.id)
        )
        return list(db.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    def _process_due(self, achievement_id: UUID, now: datetime) -> ReminderOutcome | None:
        """Bulk path for one certification. None means it was skipped."""
        with self.session_factory() as db:
            if not self._claim(db, achievement_id):
                logger.info(
                    "Certification %s is claimed by another reminder run; skipping",
                    achievement_id,
                    extra=build_log_context(achievement_id=str(achievement_id)),
                )
                return None

            try:
                achievement = load_achievement(db, achievement_id, None)
                # Re-check after claiming: a concurrent run may have handled it already
                if achievement is None or not is_due(
                    achievement.next_reminder_date,
                    self._classify(achievement, now).effective_expiry,
                    achievement.is_expired,
                    now,
                ):
                    db.rollback()
                    self._release(db, achievement_id)
                    return None
                return self._process(db, achievement, now, manual=False)
            except Exception:
                db.rollback()
                self._release(db, achievement_id)
                raise

    def _process(
        self,
        db: Session,
        achievement: Achievement,
        now: datetime,
        *,
        manual: bool,
    ) -> ReminderOutcome:
        log_context = build_log_context(
            tenant_id=str(achievement.tenant_id),
            achievement_id=str(achievement.id),
        )

        self._sync_expired_flag(achievement, now)
        classification = self._classify(achievement, now)
        rendered = self._render(achievement, classification)
        reminder_type = ReminderType.CUSTOM if manual else reminder_type_for(classification)

        error = self._deliver(achievement, rendered)

        if error is None:
            achievement.reminders_sent += 1
            achievement.next_reminder_date = next_reminder_date(classification, now)
            achievement.reminder_claimed_until = None
            self._record(db, achievement, reminder_type, rendered, now, email_sent=True)
            db.commit()
            logger.info(
                "Sent %s reminder to %s for %s",
                reminder_type.value,
                mask_email(achievement.customer.email),
                achievement.course.title,
                extra=log_context,
            )
        else:
            # Nothing but the audit row survives a failed send, so the
            # certification is still due on the next sweep.
            achievement_id = achievement.id
            db.rollback()
            self._record(db, achievement, reminder_type, rendered, now, email_sent=False, error=error)
            self._release(db, achievement_id, commit=False)
            db.commit()
            logger.error(
                "Failed to send %s reminder for certification %s: %s",
                reminder_type.value,
                achievement_id,
                error,
                extra=log_context,
            )
            db.refresh(achievement)

        return ReminderOutcome(
            achievement_id=achievement.id,
            reminder_type=reminder_type,
            email_sent=error is None,
            subject=rendered.subject,
            reminders_sent=achievement.reminders_sent,
            next_reminder_date=ensure_utc(achievement.next_reminder_date),
            error=error,
        )

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _classify(self, achievement: Achievement, now: datetime) -> Classification:
        return classify(
            achievement.expiry_date,
            achievement.is_expired,
            now,
            certification_date=achievement.certification_date,
            default_validity_years=self.config.DEFAULT_VALIDITY_YEARS,
        )

    def _sync_expired_flag(self, achievement: Achievement, now: datetime) -> None:
        """Flag certifications whose expiry date is before today."""
        if achievement.is_expired:
            return
        expiry = self._classify(achievement, now).effective_expiry
        start_of_today, _ = day_bounds(now)
        if expiry is not None and expiry < start_of_today:
            achievement.is_expired = True

    def _render(self, achievement: Achievement, classification: Classification) -> RenderedEmail:
        return render_reminder(
            ReminderContext(
                customer_name=achievement.customer.full_name,
                course_title=achievement.course.title,
                category=achievement.course.category,
                certification_date=ensure_utc(achievement.certification_date),
                expiry_date=classification.effective_expiry,
                certificate_number=achievement.certificate_number,
                state=classification.state,
                days_until_expiry=classification.days_until_expiry,
                branding=branding_for(achievement.tenant, self.config),
            )
        )

    def _deliver(self, achievement: Achievement, rendered: RenderedEmail) -> str | None:
        """Send the email; returns an error description instead of raising."""
        message = OutboundEmail(
            to_email=achievement.customer.email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            from_name=self.config.EMAIL_FROM_NAME or (achievement.tenant.name if achievement.tenant else None),
        )
        try:
            result = self.transport.send(message)
        except Exception as e:
            # Missing SMTP configuration lands here too; an admin can fix it and retrigger
            return str(e) or e.__class__.__name__
        if not result.success:
            return result.error or "Email send failed"
        return None

    def _record(
        self,
        db: Session,
        achievement: Achievement,
        reminder_type: ReminderType,
        rendered: RenderedEmail,
        now: datetime,
        *,
        email_sent: bool,
        error: str | None = None,
    ) -> None:
        db.add(
            CertificationReminder(
                tenant_id=achievement.tenant_id,
                achievement_id=achievement.id,
                reminder_type=reminder_type.value,
                scheduled_for=now,
                sent_at=now,
                email_sent=email_sent,
                email_subject=rendered.subject,
                email_content=rendered.text,
                error=error,
            )
        )

    def _claim(self, db: Session, achievement_id: UUID) -> bool:
        """Atomically take the processing claim; False if another run holds a live one."""
        # Read per claim, not per sweep, so claims late in a long sweep are not born stale
        now = ensure_utc(self.clock())
        ttl = timedelta(minutes=self.config.REMINDER_CLAIM_TTL_MINUTES)
        result = db.execute(
            update(Achievement)
            .where(
                Achievement.id == achievement_id,
                or_(
                    Achievement.reminder_claimed_until.is_(None),
                    Achievement.reminder_claimed_until <= now,
                ),
            )
            .values(reminder_claimed_until=now + ttl)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    def _release(self, db: Session, achievement_id: UUID, *, commit: bool = True) -> None:
        db.execute(
            update(Achievement)
            .where(Achievement.id == achievement_id)
            .values(reminder_claimed_until=None)
            .execution_options(synchronize_session=False)
        )
        if commit:
            db.commit()
