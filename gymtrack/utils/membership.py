"""
Membership status derivation.

The stored status on a member row is only ever ``active`` or ``expired``.
What the rest of the system acts on (kiosk access, badges, email
eligibility, renewal) is the *effective* status computed here from the
stored status and the expiry date.
"""
from .helpers import parse_timestamp, utcnow

ACTIVE = 'active'
EXPIRING_SOON = 'expiring soon'
EXPIRED = 'expired'

STORED_STATUSES = (ACTIVE, EXPIRED)
EFFECTIVE_STATUSES = (ACTIVE, EXPIRING_SOON, EXPIRED)

EXPIRING_SOON_DAYS = 14


def days_until_expiry(expiry_date, now=None):
    """Whole calendar days from ``now`` to ``expiry_date``; None if the date is missing or bad."""
    expiry = parse_timestamp(expiry_date)
    if expiry is None:
        return None
    current = parse_timestamp(now) if now is not None else utcnow()
    if current is None:
        current = utcnow()
    return (expiry.date() - current.date()).days


def effective_status(stored_status, expiry_date, now=None):
    """
    Derive the effective membership status.

    - stored ``expired`` (or any legacy value such as ``inactive``) -> expired
    - active with no/unparseable expiry -> active
    - active, expiry already passed (negative days) -> expired
    - active, 0..14 days left -> expiring soon
    - otherwise active
    """
    if stored_status != ACTIVE:
        return EXPIRED

    days = days_until_expiry(expiry_date, now)
    if days is None:
        return ACTIVE
    if days < 0:
        return EXPIRED
    if days <= EXPIRING_SOON_DAYS:
        return EXPIRING_SOON
    return ACTIVE


def is_access_allowed(stored_status, expiry_date, now=None):
    return effective_status(stored_status, expiry_date, now) != EXPIRED


def is_broadcast_eligible(stored_status, expiry_date, email, now=None):
    """Member gets bulk/announcement email: not expired AND has a non-empty address."""
    return bool(email and email.strip()) and is_access_allowed(stored_status, expiry_date, now)


def can_renew(stored_status, expiry_date, now=None):
    """Renewal is offered when expired, expiring soon, or when today is the expiry day."""
    if effective_status(stored_status, expiry_date, now) in (EXPIRED, EXPIRING_SOON):
        return True
    return days_until_expiry(expiry_date, now) == 0
