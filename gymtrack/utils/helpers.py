import calendar
import re
from datetime import date, datetime, timezone

DB_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """Return an aware UTC datetime. Naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value):
    """
    Parse a stored timestamp into an aware UTC datetime.

    Accepts datetimes, dates (midnight UTC) and ISO-8601 strings, including
    the trailing ``Z`` form. Returns None for anything missing or unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    s = str(value).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(s))
    except ValueError:
        return None


def to_db_timestamp(value):
    """Serialize to the fixed-width UTC form used in every TEXT timestamp column."""
    if value is None:
        return None
    return as_utc(value).strftime(DB_TIMESTAMP_FORMAT)


def add_months(start, months):
    """Add calendar months, clamping the day to the end of the target month (Jan 31 + 1 -> Feb 28/29)."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def validate_email(email):
    """Validate email format"""
    if not email:
        return False
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


def validate_phone(phone):
    """Phone numbers only need to be present; formats vary too much by region."""
    return bool(phone and str(phone).strip())


def format_currency(amount):
    return f"₹{(amount or 0):,.2f}"


def generate_member_code(gym_name, member_name, phone_number, plan_name, now=None):
    """
    Build the human-facing member code shown on cards and QR codes.

    Layout: two-digit year, gym initials, first four letters of the member
    name, last four phone digits, plan initial. e.g. ``25IFJOHN4321M``.
    """
    now = now or utcnow()
    year_digits = str(now.year)[-2:]

    initials = "".join(word[0] for word in (gym_name or "GYM").split() if word).upper()
    initials = initials or "XX"

    name_prefix = (member_name or "USER")[:4].upper()
    phone_suffix = re.sub(r'\D', '', phone_number or "0000")[-4:]
    plan_initial = (plan_name or "PLAN")[:1].upper()

    return f"{year_digits}{initials}{name_prefix}{phone_suffix}{plan_initial}"
