from concurrent.futures import ThreadPoolExecutor

from flask import current_app, has_app_context

from . import email_utils
from .membership import is_access_allowed, is_broadcast_eligible
from .results import EmailBroadcastSummary

DEFAULT_WORKERS = 4


def run_bounded(items, func, max_workers=None):
    """
    Run ``func(item)`` for every item on a bounded thread pool.

    Each worker gets its own application context so models can reach
    ``current_app``. A failing item is logged and yields None; it never
    stops the other items. Results are returned in input order.
    """
    items = list(items)
    if not items:
        return []

    app = current_app._get_current_object() if has_app_context() else None
    if max_workers is None:
        max_workers = app.config.get('BULK_EMAIL_WORKERS', DEFAULT_WORKERS) if app else DEFAULT_WORKERS
    max_workers = max(1, min(int(max_workers), len(items)))

    def _call(item):
        try:
            if app is None:
                return func(item)
            with app.app_context():
                return func(item)
        except Exception:
            if app is not None:
                app.logger.exception(f"Bulk item {item!r} failed")
            return None

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(_call, items))


def broadcast_email(members, compose, gym_id=None, now=None, max_workers=None):
    """
    Email every broadcast-eligible member and tally the outcome.

    ``compose(member)`` returns ``(subject, html_body)``. Members whose
    effective status is expired are skipped and counted nowhere; eligible
    members without an address only bump ``no_email_address``.
    """
    summary = EmailBroadcastSummary()
    recipients = []
    skipped = 0
    for member in members:
        if is_broadcast_eligible(member.membership_status, member.expiry_date, member.email, now):
            recipients.append(member)
        elif is_access_allowed(member.membership_status, member.expiry_date, now):
            summary.no_email_address += 1
        else:
            skipped += 1

    def _send(member):
        subject, html_body = compose(member)
        return email_utils.send_email(member.email, subject, html_body, gym_id)

    summary.attempted = len(recipients)
    for result in run_bounded(recipients, _send, max_workers):
        if result is not None and result.success:
            summary.successful += 1
        else:
            summary.failed += 1

    if has_app_context():
        current_app.logger.info(f"Email broadcast for gym {gym_id}: {summary!r}, {skipped} not eligible")
    return summary
