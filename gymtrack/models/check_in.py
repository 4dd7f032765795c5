"""
Check-in sessions.

A check-in opens a session that ends by itself at ``check_out_time``
(check-in time plus the gym's session length); there is no manual
check-out. A member may hold at most one session whose check-out time is
still in the future, and the gym's occupancy is simply the number of such
sessions. All inserts go through ``record_check_in``; rows are only deleted
together with their member.
"""
import sqlite3
from datetime import timedelta

from flask import current_app

from .database import execute_query, transaction
from .gym import DEFAULT_SESSION_HOURS, resolve_gym_config
from .member import Member
from ..utils.helpers import add_months, as_utc, parse_timestamp, to_db_timestamp, utcnow
from ..utils.membership import EXPIRED
from ..utils.results import (
    Result,
    ALREADY_CHECKED_IN,
    CONFIGURATION_ERROR,
    MEMBERSHIP_EXPIRED,
    NOT_FOUND,
    STORAGE_ERROR,
    VALIDATION_FAILED,
)


class CheckIn:
    def __init__(self, id=None, member_table_id=None, gym_id=None, check_in_time=None,
                 check_out_time=None, created_at=None):
        self.id = id
        self.member_table_id = member_table_id
        self.gym_id = gym_id
        self.check_in_time = parse_timestamp(check_in_time)
        self.check_out_time = parse_timestamp(check_out_time)
        self.created_at = parse_timestamp(created_at)

        # extras added by JOINs
        self.member_name = None
        self.member_code = None

    @property
    def member_ref(self):
        return self.member_table_id

    @classmethod
    def _db_path(cls):
        return current_app.config.get('DATABASE_PATH', 'gymtrack.db')

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        check_in = cls(
            id=row['id'], member_table_id=row['member_table_id'], gym_id=row['gym_id'],
            check_in_time=row['check_in_time'], check_out_time=row['check_out_time'],
            created_at=row['created_at']
        )
        keys = row.keys()
        if 'member_name' in keys:
            check_in.member_name = row['member_name'] or 'Unknown Member'
        if 'member_code' in keys:
            check_in.member_code = row['member_code'] or 'N/A'
        return check_in

    def to_dict(self):
        return {
            'id': self.id,
            'member_table_id': self.member_table_id,
            'gym_id': self.gym_id,
            'check_in_time': to_db_timestamp(self.check_in_time),
            'check_out_time': to_db_timestamp(self.check_out_time),
            'member_name': self.member_name,
            'member_code': self.member_code,
        }

    # --- Data access methods ---
    @classmethod
    def get_for_member(cls, member_ref):
        query = 'SELECT * FROM check_ins WHERE member_table_id = ? ORDER BY check_in_time DESC'
        rows = execute_query(query, (member_ref,), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_recent_for_gym(cls, gym_id, limit=100):
        """Kiosk feed: newest first, with the member's name and code."""
        query = '''
            SELECT c.*, m.name AS member_name, m.member_id AS member_code
            FROM check_ins c
            LEFT JOIN members m ON c.member_table_id = m.id
            WHERE c.gym_id = ?
            ORDER BY c.check_in_time DESC
            LIMIT ?
        '''
        rows = execute_query(query, (gym_id, limit), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_attendance_summary(cls, member_ref):
        query = 'SELECT check_in_time FROM check_ins WHERE member_table_id = ? ORDER BY check_in_time DESC'
        rows = execute_query(query, (member_ref,), cls._db_path(), fetch=True)
        times = [parse_timestamp(r['check_in_time']) for r in rows]
        return {
            'total_check_ins': len(times),
            'last_check_in_time': times[0] if times else None,
            'recent_check_ins': times[:5],
        }

    @classmethod
    def get_daily_trends(cls, gym_id, now=None, days=7):
        """Check-ins per UTC day for the last ``days`` days (today included), oldest first."""
        now = as_utc(now) if now else utcnow()
        start = (now - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
        query = 'SELECT check_in_time FROM check_ins WHERE gym_id = ? AND check_in_time >= ?'
        rows = execute_query(query, (gym_id, to_db_timestamp(start)), cls._db_path(), fetch=True)

        counts = {}
        for row in rows:
            day = parse_timestamp(row['check_in_time']).date()
            counts[day] = counts.get(day, 0) + 1

        trends = []
        for offset in range(days):
            day = (start + timedelta(days=offset)).date()
            trends.append({'date': day.strftime('%a'), 'day': day.isoformat(), 'count': counts.get(day, 0)})
        return trends

    @classmethod
    def get_monthly_history(cls, member_ref, now=None, months=12):
        """Check-ins per calendar month for one member, oldest month first, current month last."""
        now = as_utc(now) if now else utcnow()
        first_month = add_months(now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), 1 - months)
        query = 'SELECT check_in_time FROM check_ins WHERE member_table_id = ? AND check_in_time >= ?'
        rows = execute_query(query, (member_ref, to_db_timestamp(first_month)), cls._db_path(), fetch=True)

        counts = {}
        for row in rows:
            when = parse_timestamp(row['check_in_time'])
            if when is not None:
                counts[(when.year, when.month)] = counts.get((when.year, when.month), 0) + 1

        history = []
        for offset in range(months):
            month = add_months(first_month, offset)
            history.append({'month': month.strftime('%b'), 'year': month.year,
                            'count': counts.get((month.year, month.month), 0)})
        return history

    @classmethod
    def count_active_for_gym(cls, gym_id, now=None):
        now = as_utc(now) if now else utcnow()
        query = 'SELECT COUNT(*) FROM check_ins WHERE gym_id = ? AND check_out_time > ?'
        rows = execute_query(query, (gym_id, to_db_timestamp(now)), cls._db_path(), fetch=True)
        return rows[0][0] if rows else 0

    @staticmethod
    def delete_for_member(conn, member_ref):
        """Remove a member's history on the member-deletion connection. Returns rows removed."""
        return conn.execute('DELETE FROM check_ins WHERE member_table_id = ?', (member_ref,)).rowcount

    def __repr__(self):
        return (f"<CheckIn id={self.id} member={self.member_name or self.member_table_id} gym={self.gym_id} "
                f"in={to_db_timestamp(self.check_in_time)} out={to_db_timestamp(self.check_out_time)}>")


def find_eligible_member(identifier, gym_id, now=None):
    """Look up a member by their code within one gym and refuse expired memberships."""
    identifier = (identifier or '').strip()
    if not identifier or not gym_id:
        return Result.failure(VALIDATION_FAILED, "Member identifier and Gym ID are required.")

    try:
        member = Member.get_by_code(identifier, gym_id)
    except sqlite3.Error as e:
        return Result.failure(STORAGE_ERROR, f"Could not look up member: {e}")

    if member is None:
        return Result.failure(NOT_FOUND, "Member not found at this gym.")
    if member.effective_status(now) == EXPIRED:
        return Result.failure(MEMBERSHIP_EXPIRED, f"Membership for {member.name} is expired. Please see reception.")
    return Result.success(member)


def record_check_in(member_ref, gym_id, now=None, config=None):
    """
    Open a session for the member unless one is still running.

    The overlap check and the insert share one IMMEDIATE transaction, so two
    near-simultaneous scans of the same member cannot both succeed.
    """
    if not member_ref or not gym_id:
        return Result.failure(VALIDATION_FAILED, "Member ID and Gym ID are required to record check-in.")

    now = as_utc(now) if now else utcnow()
    db_path = CheckIn._db_path()

    try:
        if config is None:
            config = resolve_gym_config(gym_id)
        if config is None:
            return Result.failure(CONFIGURATION_ERROR, "Could not retrieve gym session settings to record check-in.")
        if config.gym_id != gym_id:
            return Result.failure(CONFIGURATION_ERROR, "Gym settings belong to a different gym.")

        session_hours = config.session_hours or DEFAULT_SESSION_HOURS
        check_out_time = now + timedelta(hours=session_hours)

        with transaction(db_path) as conn:
            owner = conn.execute('SELECT id FROM members WHERE id = ? AND gym_id = ?',
                                 (member_ref, gym_id)).fetchone()
            if owner is None:
                return Result.failure(NOT_FOUND, "Member not found at this gym.")

            active = conn.execute(
                '''SELECT id FROM check_ins
                   WHERE member_table_id = ? AND gym_id = ? AND check_out_time > ?
                   LIMIT 1''',
                (member_ref, gym_id, to_db_timestamp(now))
            ).fetchone()
            if active is not None:
                return Result.failure(ALREADY_CHECKED_IN, "Member already has an active check-in session.")

            created_at = utcnow()
            cursor = conn.execute(
                '''INSERT INTO check_ins (member_table_id, gym_id, check_in_time, check_out_time, created_at)
                   VALUES (?, ?, ?, ?, ?)''',
                (member_ref, gym_id, to_db_timestamp(now), to_db_timestamp(check_out_time), to_db_timestamp(created_at))
            )
            check_in = CheckIn(id=cursor.lastrowid, member_table_id=member_ref, gym_id=gym_id,
                               check_in_time=now, check_out_time=check_out_time, created_at=created_at)
    except sqlite3.Error as e:
        current_app.logger.error(f"Check-in for member {member_ref} at gym {gym_id} failed: {e}")
        return Result.failure(STORAGE_ERROR, f"Database error while recording check-in: {e}")

    current_app.logger.info(f"Member {member_ref} checked in at gym {gym_id} until {to_db_timestamp(check_out_time)}")
    return Result.success(check_in)


def check_in_member(identifier, gym_id, now=None):
    """Kiosk flow: find the member by code, then record the session."""
    found = find_eligible_member(identifier, gym_id, now)
    if not found:
        return found
    return record_check_in(found.value.id, gym_id, now)


def current_occupancy(gym_id, now=None):
    """Sessions at this gym whose check-out time is still ahead of ``now``."""
    if not gym_id:
        return Result.failure(VALIDATION_FAILED, "Gym ID not provided.")
    try:
        return Result.success(CheckIn.count_active_for_gym(gym_id, now))
    except sqlite3.Error as e:
        return Result.failure(STORAGE_ERROR, f"Failed to fetch occupancy data: {e}")


def occupancy_snapshot(gym_id, now=None):
    """Occupancy next to the display capacity. Capacity is informational only."""
    occupancy = current_occupancy(gym_id, now)
    if not occupancy:
        return occupancy
    try:
        config = resolve_gym_config(gym_id)
    except sqlite3.Error as e:
        return Result.failure(STORAGE_ERROR, f"Failed to fetch gym settings: {e}")
    if config is None:
        return Result.failure(CONFIGURATION_ERROR, "Gym settings not found.")
    return Result.success({'current_occupancy': occupancy.value, 'max_capacity': config.max_capacity})
