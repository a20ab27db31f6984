"""Tests for certification state classification."""

from datetime import datetime, timedelta, timezone

import pytest

from app.db.enums import CertificationStatus
from app.services.certification_status import add_years, classify, days_until, resolve_expiry


NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def test_days_until_rounds_partial_days_up():
    assert days_until(NOW + timedelta(days=44, hours=1), NOW) == 45
    assert days_until(NOW + timedelta(days=45), NOW) == 45
    assert days_until(NOW - timedelta(hours=3), NOW) == 0
    assert days_until(NOW - timedelta(days=1, hours=1), NOW) == -1


def test_days_until_treats_naive_values_as_utc():
    naive_expiry = (NOW + timedelta(days=10)).replace(tzinfo=None)
    assert days_until(naive_expiry, NOW) == 10


@pytest.mark.parametrize("days", [0, 1, 30, 45, 90])
def test_within_ninety_days_is_expiring(days):
    result = classify(NOW + timedelta(days=days), False, NOW)
    assert result.state == CertificationStatus.EXPIRING
    assert result.days_until_expiry == days


@pytest.mark.parametrize("days", [91, 200, 1000])
def test_beyond_ninety_days_is_active(days):
    result = classify(NOW + timedelta(days=days), False, NOW)
    assert result.state == CertificationStatus.ACTIVE


def test_past_expiry_is_expired_even_without_flag():
    result = classify(NOW - timedelta(days=10), False, NOW)
    assert result.state == CertificationStatus.EXPIRED
    assert result.is_expired
    assert result.days_until_expiry == -10


def test_flag_wins_over_future_expiry():
    result = classify(NOW + timedelta(days=200), True, NOW)
    assert result.state == CertificationStatus.EXPIRED


def test_missing_expiry_never_expires_by_default():
    result = classify(None, False, NOW, certification_date=NOW - timedelta(days=4000))
    assert result.state == CertificationStatus.ACTIVE
    assert result.days_until_expiry is None
    assert result.effective_expiry is None


def test_missing_expiry_uses_default_validity_when_configured():
    certified = NOW - timedelta(days=5 * 365 - 30)
    result = classify(
        None,
        False,
        NOW,
        certification_date=certified,
        default_validity_years=5,
    )
    assert result.effective_expiry == add_years(certified, 5)
    assert result.state == CertificationStatus.EXPIRING


def test_resolve_expiry_prefers_stored_date():
    stored = NOW + timedelta(days=3)
    assert resolve_expiry(stored, NOW - timedelta(days=100), 5) == stored


def test_add_years_handles_leap_day():
    leap = datetime(2024, 2, 29, tzinfo=timezone.utc)
    assert add_years(leap, 5) == datetime(2029, 2, 28, tzinfo=timezone.utc)
    assert add_years(leap, 4) == leap.replace(year=2028)
