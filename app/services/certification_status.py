"""Certification state classification.

Pure date arithmetic: no database, no email. The persisted ``is_expired``
flag is only a cache of what this module derives from the dates.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from app.db.enums import CertificationStatus

SECONDS_PER_DAY = 24 * 60 * 60

# A certification is "expiring" inside this many days of its expiry date
EXPIRING_WINDOW_DAYS = 90
# ...and its reminders become urgent inside this many days
URGENT_WINDOW_DAYS = 30


@dataclass(frozen=True)
class Classification:
    state: CertificationStatus
    days_until_expiry: int | None  # None when the certification never expires
    effective_expiry: datetime | None

    @property
    def is_expired(self) -> bool:
        return self.state == CertificationStatus.EXPIRED


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def add_years(value: datetime, years: int) -> datetime:
    """Shift by whole years; 29 February lands on 28 February."""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


def days_until(expiry_date: datetime, now: datetime) -> int:
    """Whole days until expiry, rounded up (negative once past)."""
    delta = ensure_utc(expiry_date) - ensure_utc(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def resolve_expiry(
    expiry_date: datetime | None,
    certification_date: datetime | None,
    default_validity_years: int | None,
) -> datetime | None:
    """Apply the configured validity policy to a missing expiry date."""
    if expiry_date is not None:
        return ensure_utc(expiry_date)
    if default_validity_years is None or certification_date is None:
        return None
    return add_years(ensure_utc(certification_date), default_validity_years)


def classify(
    expiry_date: datetime | None,
    is_expired: bool,
    now: datetime,
    *,
    certification_date: datetime | None = None,
    default_validity_years: int | None = None,
) -> Classification:
    """
    Derive active / expiring / expired.

    - expired: the cached flag is set, or the expiry is at least a day past
    - expiring: within EXPIRING_WINDOW_DAYS of expiry
    - active: everything else, including certifications that never expire
    """
    effective_expiry = resolve_expiry(expiry_date, certification_date, default_validity_years)

    if effective_expiry is None:
        state = CertificationStatus.EXPIRED if is_expired else CertificationStatus.ACTIVE
        return Classification(state=state, days_until_expiry=None, effective_expiry=None)

    days = days_until(effective_expiry, now)
    if is_expired or days < 0:
        state = CertificationStatus.EXPIRED
    elif days <= EXPIRING_WINDOW_DAYS:
        state = CertificationStatus.EXPIRING
    else:
        state = CertificationStatus.ACTIVE

    return Classification(state=state, days_until_expiry=days, effective_expiry=effective_expiry)
