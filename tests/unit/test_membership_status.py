# tests/unit/test_membership_status.py
from datetime import date, datetime, timedelta, timezone

import pytest

from gymtrack.utils import membership
from gymtrack.utils.membership import ACTIVE, EXPIRED, EXPIRING_SOON

NOW = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def test_stored_expired_wins_regardless_of_date():
    assert membership.effective_status("expired", NOW + timedelta(days=365), NOW) == EXPIRED
    assert membership.effective_status("expired", None, NOW) == EXPIRED


@pytest.mark.parametrize("legacy", ["inactive", "pending", "", None, "ACTIVE"])
def test_legacy_stored_values_map_to_expired(legacy):
    assert membership.effective_status(legacy, NOW + timedelta(days=60), NOW) == EXPIRED


def test_fourteen_days_out_is_expiring_soon():
    assert membership.effective_status("active", NOW + timedelta(days=14), NOW) == EXPIRING_SOON


def test_fifteen_days_out_is_active():
    assert membership.effective_status("active", NOW + timedelta(days=15), NOW) == ACTIVE


def test_yesterday_is_expired():
    assert membership.effective_status("active", NOW - timedelta(days=1), NOW) == EXPIRED


def test_same_calendar_day_is_expiring_soon_not_expired():
    # expiry earlier in the day than "now" still counts as day 0
    earlier_today = NOW.replace(hour=0, minute=1)
    assert membership.effective_status("active", earlier_today, NOW) == EXPIRING_SOON
    assert membership.days_until_expiry(earlier_today, NOW) == 0


@pytest.mark.parametrize("bad", [None, "", "not-a-date", "2024-13-45", 12345])
def test_missing_or_garbage_expiry_fails_open_to_active(bad):
    assert membership.effective_status("active", bad, NOW) == ACTIVE
    assert membership.days_until_expiry(bad, NOW) is None


def test_accepts_iso_strings_dates_and_naive_datetimes():
    assert membership.effective_status("active", "2024-01-10T00:00:00.000000Z", NOW) == EXPIRING_SOON
    assert membership.effective_status("active", "2024-01-10", NOW) == EXPIRING_SOON
    assert membership.effective_status("active", date(2024, 3, 1), NOW) == ACTIVE
    assert membership.effective_status("active", datetime(2023, 12, 31, 23, 0), NOW) == EXPIRED


def test_always_returns_one_of_three_values():
    for stored in ("active", "expired", "inactive", None):
        for offset in range(-30, 31, 3):
            status = membership.effective_status(stored, NOW + timedelta(days=offset), NOW)
            assert status in membership.EFFECTIVE_STATUSES


def test_access_and_broadcast_eligibility():
    soon = NOW + timedelta(days=5)
    assert membership.is_access_allowed("active", soon, NOW)
    assert not membership.is_access_allowed("expired", soon, NOW)
    assert membership.is_broadcast_eligible("active", soon, "a@example.com", NOW)
    assert not membership.is_broadcast_eligible("active", soon, "   ", NOW)
    assert not membership.is_broadcast_eligible("active", soon, None, NOW)
    assert not membership.is_broadcast_eligible("expired", soon, "a@example.com", NOW)


def test_can_renew():
    assert membership.can_renew("expired", None, NOW)
    assert membership.can_renew("active", NOW + timedelta(days=3), NOW)
    assert membership.can_renew("active", NOW, NOW)
    assert not membership.can_renew("active", NOW + timedelta(days=40), NOW)
    assert not membership.can_renew("active", None, NOW)
