"""Reminder cadence: when the next renewal reminder should go out."""

from __future__ import annotations

from datetime import datetime, time, timedelta

from app.db.enums import ReminderType
from app.services.certification_status import (
    EXPIRING_WINDOW_DAYS,
    URGENT_WINDOW_DAYS,
    Classification,
    ensure_utc,
)

# Tiered cadence, largest window first: (days-until-expiry floor, interval)
CADENCE: tuple[tuple[int, timedelta], ...] = (
    (EXPIRING_WINDOW_DAYS, timedelta(days=30)),
    (URGENT_WINDOW_DAYS, timedelta(days=14)),
    (0, timedelta(days=7)),
)


def next_reminder_date(classification: Classification, now: datetime) -> datetime | None:
    """
    Next scheduled reminder, or None when no further automated reminder applies.

    Never earlier than ``now`` and never after the expiry date.
    """
    days = classification.days_until_expiry
    if classification.is_expired or days is None or days <= 0:
        return None

    now = ensure_utc(now)
    for floor, interval in CADENCE:
        if days > floor:
            return min(now + interval, classification.effective_expiry)
    return None


def reminder_type_for(classification: Classification) -> ReminderType:
    """Audit classification for an automated reminder."""
    if classification.is_expired:
        return ReminderType.EXPIRED
    days = classification.days_until_expiry
    if days is None:
        return ReminderType.SIX_MONTHS
    if days <= URGENT_WINDOW_DAYS:
        return ReminderType.ONE_MONTH
    if days <= EXPIRING_WINDOW_DAYS:
        return ReminderType.THREE_MONTHS
    return ReminderType.SIX_MONTHS


def day_bounds(now: datetime) -> tuple[datetime, datetime]:
    """UTC start of today and start of tomorrow."""
    now = ensure_utc(now)
    start_of_today = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    return start_of_today, start_of_today + timedelta(days=1)


def is_due(
    next_reminder: datetime | None,
    expiry_date: datetime | None,
    is_expired: bool,
    now: datetime,
) -> bool:
    """
    Whether the bulk sweep should pick this certification up.

    Due when its scheduled reminder falls on or before today, or when it has
    just passed its expiry date and has not been flagged yet.
    """
    start_of_today, start_of_tomorrow = day_bounds(now)
    if next_reminder is not None and ensure_utc(next_reminder) < start_of_tomorrow:
        return True
    return expiry_date is not None and ensure_utc(expiry_date) < start_of_today and not is_expired
