# tests/unit/test_helpers.py
from datetime import date, datetime, timezone

from gymtrack.utils import helpers


def test_add_months_normal_month():
    start = datetime(2024, 3, 15, tzinfo=timezone.utc)
    expiry = helpers.add_months(start, 1)
    assert (expiry.year, expiry.month, expiry.day) == (2024, 4, 15)


def test_add_months_year_rollover():
    expiry = helpers.add_months(datetime(2023, 12, 31), 1)
    assert (expiry.year, expiry.month, expiry.day) == (2024, 1, 31)


def test_add_months_clamps_to_month_end():
    assert helpers.add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert helpers.add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert helpers.add_months(date(2024, 1, 31), 12) == date(2025, 1, 31)


def test_timestamp_round_trip_is_fixed_width_utc():
    value = datetime(2024, 1, 1, 9, 5, tzinfo=timezone.utc)
    stored = helpers.to_db_timestamp(value)
    assert stored == "2024-01-01T09:05:00.000000Z"
    assert helpers.parse_timestamp(stored) == value
    assert helpers.to_db_timestamp(None) is None


def test_parse_timestamp_handles_dates_naive_and_garbage():
    assert helpers.parse_timestamp(date(2024, 2, 1)) == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert helpers.parse_timestamp(datetime(2024, 2, 1, 8)).tzinfo is not None
    assert helpers.parse_timestamp("2024-02-01 08:00:00") == datetime(2024, 2, 1, 8, tzinfo=timezone.utc)
    assert helpers.parse_timestamp("garbage") is None
    assert helpers.parse_timestamp("") is None


def test_validate_email():
    assert helpers.validate_email("john@example.com")
    assert not helpers.validate_email("john@")
    assert not helpers.validate_email("")
    assert not helpers.validate_email(None)


def test_format_currency():
    assert helpers.format_currency(1500) == "₹1,500.00"
    assert helpers.format_currency(None) == "₹0.00"


def test_generate_member_code():
    now = datetime(2025, 6, 1, tzinfo=timezone.utc)
    code = helpers.generate_member_code("Iron Forge", "John Smith", "+91 98765-44321", "Monthly", now)
    assert code == "25IFJOHN4321M"


def test_generate_member_code_falls_back_for_blank_gym_name():
    now = datetime(2025, 6, 1, tzinfo=timezone.utc)
    code = helpers.generate_member_code("   ", "Al", "1234", "quarterly", now)
    assert code == "25XXAL1234Q"
