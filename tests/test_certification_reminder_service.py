"""Tests for the certification reminder service (single reminders and the bulk sweep)."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.core.config import settings
from app.db.enums import ReminderType
from app.db.models import CertificationReminder
from app.db.session import SessionLocal
from app.services.certification_reminder_service import (
    CertificationNotFoundError,
    CertificationReminderService,
    ReminderInProgressError,
    ReminderSendError,
)
from app.services.certification_status import ensure_utc
from app.services.email_transport import EmailTransportError, SendResult


NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(transport):
    return CertificationReminderService(SessionLocal, transport, clock=lambda: NOW)


def _audit_rows(db, achievement_id):
    return db.execute(
        select(CertificationReminder)
        .where(CertificationReminder.achievement_id == achievement_id)
        .order_by(CertificationReminder.sent_at)
    ).scalars().all()


# =============================================================================
# Bulk sweep
# =============================================================================

def test_sweep_sends_renewal_due_and_reschedules(db, service, transport, test_tenant, make_achievement):
    achievement = make_achievement(
        test_tenant,
        expiry_in=timedelta(days=45),
        next_reminder_in=timedelta(0),
        reminders_sent=1,
    )

    result = service.run_bulk_sweep()

    assert result.as_dict() == {"selected": 1, "sent": 1, "errors": 0, "skipped": 0}
    assert len(transport.sent) == 1
    assert transport.sent[0].subject == (
        "Reminder: Your Domestic Gas Safety (ACS) certification expires in 45 days"
    )
    assert "RENEWAL DUE" in transport.sent[0].html

    db.refresh(achievement)
    assert achievement.reminders_sent == 2
    assert ensure_utc(achievement.next_reminder_date) == NOW + timedelta(days=14)
    assert achievement.reminder_claimed_until is None

    rows = _audit_rows(db, achievement.id)
    assert len(rows) == 1
    assert rows[0].reminder_type == ReminderType.THREE_MONTHS.value
    assert rows[0].email_sent is True
    assert rows[0].error is None
    assert rows[0].tenant_id == test_tenant.id


def test_sweep_flags_newly_expired_and_stops_scheduling(db, service, transport, test_tenant, make_achievement):
    achievement = make_achievement(test_tenant, expiry_in=timedelta(days=-1))

    result = service.run_bulk_sweep()

    assert result.sent == 1
    assert transport.sent[0].subject == (
        "URGENT: Your Domestic Gas Safety (ACS) certification has expired"
    )
    db.refresh(achievement)
    assert achievement.is_expired is True
    assert achievement.next_reminder_date is None
    assert achievement.reminders_sent == 1
    assert _audit_rows(db, achievement.id)[0].reminder_type == ReminderType.EXPIRED.value


def test_sweep_ignores_certifications_not_due(service, transport, test_tenant, make_achievement):
    make_achievement(test_tenant, expiry_in=timedelta(days=200), next_reminder_in=timedelta(days=1))
    make_achievement(test_tenant, expiry_in=None)
    make_achievement(test_tenant, expiry_in=timedelta(days=-30), is_expired=True)
    # Expired earlier today: not flagged until tomorrow's sweep
    make_achievement(test_tenant, expiry_in=timedelta(hours=-2))

    result = service.run_bulk_sweep()

    assert result.as_dict() == {"selected": 0, "sent": 0, "errors": 0, "skipped": 0}
    assert transport.sent == []


def test_sweep_spans_tenants_with_tenant_branding(db, service, transport, test_tenant, other_tenant, make_achievement):
    first = make_achievement(test_tenant, next_reminder_in=timedelta(days=-2))
    second = make_achievement(other_tenant, next_reminder_in=timedelta(0))

    result = service.run_bulk_sweep()

    assert result.sent == 2
    bodies = {message.to_email: message.text for message in transport.sent}
    db.refresh(first)
    db.refresh(second)
    assert "Northern Gas Training" in bodies[first.customer.email]
    # Tenant without contact details falls back to the platform defaults
    assert "Southern Heat Academy" in bodies[second.customer.email]
    assert "01234 567890" in bodies[second.customer.email]


def test_send_failure_is_counted_and_sweep_continues(db, transport, test_tenant, make_achievement):
    failing = make_achievement(test_tenant, next_reminder_in=timedelta(0), email="bounce@example.com")
    healthy = make_achievement(test_tenant, next_reminder_in=timedelta(0))
    scheduled_for = failing.next_reminder_date

    class FlakyTransport:
        def __init__(self):
            self.sent = []

        def send(self, message):
            if message.to_email == "bounce@example.com":
                raise EmailTransportError("SMTP send failed: 550 mailbox unavailable")
            self.sent.append(message)
            return SendResult(success=True)

    flaky = FlakyTransport()
    service = CertificationReminderService(SessionLocal, flaky, clock=lambda: NOW)

    result = service.run_bulk_sweep()

    assert result.as_dict() == {"selected": 2, "sent": 1, "errors": 1, "skipped": 0}
    assert len(flaky.sent) == 1

    db.refresh(failing)
    assert failing.reminders_sent == 0
    assert failing.next_reminder_date == scheduled_for
    assert failing.reminder_claimed_until is None

    rows = _audit_rows(db, failing.id)
    assert len(rows) == 1
    assert rows[0].email_sent is False
    assert "550 mailbox unavailable" in rows[0].error

    db.refresh(healthy)
    assert healthy.reminders_sent == 1

    # Still due on the next run
    with SessionLocal() as session:
        assert failing.id in service.list_due_achievement_ids(session, NOW)


def test_failed_send_for_newly_expired_stays_due(db, service, transport, test_tenant, make_achievement):
    achievement = make_achievement(test_tenant, expiry_in=timedelta(days=-3))
    transport.fail_with = "Email configuration not available"

    result = service.run_bulk_sweep()

    assert result.errors == 1
    db.refresh(achievement)
    assert achievement.is_expired is False
    assert achievement.reminders_sent == 0

    transport.fail_with = None
    service.clock = lambda: NOW + timedelta(hours=1)
    retry = service.run_bulk_sweep()

    assert retry.sent == 1
    db.refresh(achievement)
    assert achievement.is_expired is True
    assert [row.email_sent for row in _audit_rows(db, achievement.id)] == [False, True]


def test_sweep_applies_default_validity_to_missing_expiry(db, service, transport, test_tenant, make_achievement, monkeypatch):
    # Certified five years and a month ago, no stored expiry
    achievement = make_achievement(
        test_tenant,
        expiry_in=None,
        certification_date=NOW - timedelta(days=5 * 365 + 30),
    )

    with SessionLocal() as session:
        assert service.list_due_achievement_ids(session, NOW) == []

    monkeypatch.setattr(settings, "DEFAULT_VALIDITY_YEARS", 5)
    with SessionLocal() as session:
        assert service.list_due_achievement_ids(session, NOW) == [achievement.id]

    result = service.run_bulk_sweep()

    assert result.sent == 1
    db.refresh(achievement)
    assert achievement.is_expired is True
    assert achievement.next_reminder_date is None
    assert _audit_rows(db, achievement.id)[0].reminder_type == ReminderType.EXPIRED.value


def test_default_validity_does_not_select_unexpired(service, test_tenant, make_achievement, monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_VALIDITY_YEARS", 5)
    make_achievement(test_tenant, expiry_in=None, certification_date=NOW - timedelta(days=365))

    with SessionLocal() as session:
        assert service.list_due_achievement_ids(session, NOW) == []


def test_sweep_skips_certification_claimed_by_another_run(db, service, transport, test_tenant, make_achievement):
    achievement = make_achievement(test_tenant, next_reminder_in=timedelta(0))
    achievement.reminder_claimed_until = NOW + timedelta(minutes=10)
    db.commit()

    result = service.run_bulk_sweep()

    assert result.as_dict() == {"selected": 1, "sent": 0, "errors": 0, "skipped": 1}
    assert transport.sent == []


def test_stale_claim_is_taken_over(db, service, transport, test_tenant, make_achievement):
    achievement = make_achievement(test_tenant, next_reminder_in=timedelta(0))
    achievement.reminder_claimed_until = NOW - timedelta(minutes=1)
    db.commit()

    result = service.run_bulk_sweep()

    assert result.sent == 1


def test_overlapping_sweep_respects_claims_taken_late_in_a_long_sweep(db, transport, test_tenant, make_achievement, monkeypatch):
    monkeypatch.setattr(settings, "REMINDER_CLAIM_TTL_MINUTES", 15)
    make_achievement(test_tenant, next_reminder_in=timedelta(0), email="first@example.com")
    make_achievement(test_tenant, next_reminder_in=timedelta(0), email="second@example.com")

    clock = {"now": NOW}
    overlapping_results = []
    overlapping = CertificationReminderService(
        SessionLocal, transport, clock=lambda: NOW + timedelta(minutes=21)
    )

    class SlowTransport:
        def __init__(self):
            self.calls = 0

        def send(self, message):
            self.calls += 1
            if self.calls == 1:
                # The first send takes 20 minutes
                clock["now"] = NOW + timedelta(minutes=20)
            else:
                # Another sweep starts while the second send is in flight
                overlapping_results.append(overlapping.run_bulk_sweep())
            return transport.send(message)

    first = CertificationReminderService(SessionLocal, SlowTransport(), clock=lambda: clock["now"])
    result = first.run_bulk_sweep()

    assert result.as_dict() == {"selected": 2, "sent": 2, "errors": 0, "skipped": 0}
    assert overlapping_results[0].as_dict() == {"selected": 1, "sent": 0, "errors": 0, "skipped": 1}
    assert sorted(message.to_email for message in transport.sent) == [
        "first@example.com",
        "second@example.com",
    ]


def test_due_state_is_rechecked_after_claiming(db, service, transport, test_tenant, make_achievement, monkeypatch):
    achievement = make_achievement(test_tenant, next_reminder_in=timedelta(days=3))
    # Simulate a stale selection: another run already rescheduled it
    monkeypatch.setattr(service, "list_due_achievement_ids", lambda _db, _now: [achievement.id])

    result = service.run_bulk_sweep()

    assert result.as_dict() == {"selected": 1, "sent": 0, "errors": 0, "skipped": 1}
    assert transport.sent == []
    db.refresh(achievement)
    assert achievement.reminder_claimed_until is None


def test_second_sweep_does_not_double_send(service, transport, test_tenant, make_achievement):
    make_achievement(test_tenant, next_reminder_in=timedelta(0))

    assert service.run_bulk_sweep().sent == 1
    assert service.run_bulk_sweep().selected == 0
    assert len(transport.sent) == 1


# =============================================================================
# Single reminder
# =============================================================================

def test_single_reminder_for_never_expiring_certification(db, service, transport, test_tenant, make_achievement):
    achievement = make_achievement(test_tenant, expiry_in=None)

    outcome = service.send_single_reminder(achievement.id, test_tenant.id)

    assert outcome.email_sent is True
    assert outcome.reminder_type == ReminderType.CUSTOM
    assert outcome.next_reminder_date is None
    assert outcome.reminders_sent == 1

    message = transport.sent[0]
    assert message.subject == "Reminder: Your Domestic Gas Safety (ACS) certification renewal"
    assert "RENEWAL REMINDER" in message.html
    assert "Expiry Date" not in message.text

    db.refresh(achievement)
    assert achievement.next_reminder_date is None
    rows = _audit_rows(db, achievement.id)
    assert rows[0].reminder_type == ReminderType.CUSTOM.value


def test_single_reminder_reschedules_from_cadence(db, service, test_tenant, make_achievement):
    achievement = make_achievement(test_tenant, expiry_in=timedelta(days=20), next_reminder_in=timedelta(days=5))

    outcome = service.send_single_reminder(achievement.id, test_tenant.id)

    assert outcome.next_reminder_date == NOW + timedelta(days=7)


def test_single_reminder_outside_tenant_is_not_found(service, transport, test_tenant, other_tenant, make_achievement):
    achievement = make_achievement(other_tenant)

    with pytest.raises(CertificationNotFoundError):
        service.send_single_reminder(achievement.id, test_tenant.id)
    with pytest.raises(CertificationNotFoundError):
        service.send_single_reminder(uuid.uuid4(), test_tenant.id)
    assert transport.sent == []


def test_platform_scope_reaches_any_tenant(service, transport, other_tenant, make_achievement):
    achievement = make_achievement(other_tenant)

    outcome = service.send_single_reminder(achievement.id, None)

    assert outcome.email_sent is True
    assert len(transport.sent) == 1


def test_single_reminder_failure_records_audit_only(db, service, transport, test_tenant, make_achievement):
    achievement = make_achievement(test_tenant, next_reminder_in=timedelta(days=5), reminders_sent=2)
    scheduled = achievement.next_reminder_date
    transport.raise_error = EmailTransportError("Email configuration not available")

    with pytest.raises(ReminderSendError):
        service.send_single_reminder(achievement.id, test_tenant.id)

    db.refresh(achievement)
    assert achievement.reminders_sent == 2
    assert achievement.next_reminder_date == scheduled
    assert achievement.reminder_claimed_until is None

    rows = _audit_rows(db, achievement.id)
    assert len(rows) == 1
    assert rows[0].email_sent is False
    assert rows[0].reminder_type == ReminderType.CUSTOM.value
    assert rows[0].error == "Email configuration not available"


def test_single_reminder_while_claimed_is_rejected(db, service, transport, test_tenant, make_achievement):
    achievement = make_achievement(test_tenant)
    achievement.reminder_claimed_until = NOW + timedelta(minutes=5)
    db.commit()

    with pytest.raises(ReminderInProgressError):
        service.send_single_reminder(achievement.id, test_tenant.id)
    assert transport.sent == []
