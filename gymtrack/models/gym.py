import sqlite3

from flask import current_app, has_app_context

from .database import execute_query
from ..utils.results import Result, NOT_FOUND, VALIDATION_FAILED, STORAGE_ERROR

DEFAULT_SESSION_HOURS = 2
DEFAULT_MAX_CAPACITY = 100

SMTP_FIELDS = ('smtp_host', 'smtp_port', 'smtp_username', 'smtp_password')


class SmtpSettings:
    """One complete SMTP source, already picked by precedence."""

    def __init__(self, host, port, username, password, from_email=None, source=None):
        self.host = host
        self.port = int(port)
        self.username = username
        self.password = password
        self.from_email = from_email or username
        self.source = source

    @property
    def use_ssl(self):
        return self.port == 465

    def to_mail_config(self):
        """Flask-Mail style config keys for ``Mail.init_mail``."""
        return {
            'MAIL_SERVER': self.host,
            'MAIL_PORT': self.port,
            'MAIL_USE_SSL': self.use_ssl,
            'MAIL_USE_TLS': not self.use_ssl,
            'MAIL_USERNAME': self.username,
            'MAIL_PASSWORD': self.password,
            'MAIL_DEFAULT_SENDER': self.from_email,
        }

    def __repr__(self):
        return f"<SmtpSettings {self.source} {self.host}:{self.port}>"


class ResolvedGymConfig:
    """
    Session and capacity settings for one gym.

    SMTP is looked up only when ``smtp`` is first read, so check-ins never
    touch mail settings.
    """

    def __init__(self, gym_id, gym_name, formatted_gym_id, session_hours, max_capacity, smtp=None, gym=None):
        self.gym_id = gym_id
        self.gym_name = gym_name
        self.formatted_gym_id = formatted_gym_id
        self.session_hours = session_hours
        self.max_capacity = max_capacity
        self._smtp = smtp
        self._gym = gym

    @property
    def smtp(self):
        if self._smtp is None and self._gym is not None:
            self._smtp = resolve_smtp_settings(self._gym)
        return self._smtp

    def __repr__(self):
        return (f"<ResolvedGymConfig gym={self.gym_id} session_hours={self.session_hours} "
                f"max_capacity={self.max_capacity}>")


def _complete_smtp(row, source):
    """SmtpSettings when every field is present and the port is a usable number, else None."""
    if row is None or not all(row[f] for f in SMTP_FIELDS):
        return None
    try:
        port = int(row['smtp_port'])
    except (TypeError, ValueError):
        if has_app_context():
            current_app.logger.warning(f"Ignoring {source} SMTP settings: bad port {row['smtp_port']!r}")
        return None
    if not 1 <= port <= 65535:
        return None
    return SmtpSettings(row['smtp_host'], port, row['smtp_username'],
                        row['smtp_password'], row['smtp_from'], source=source)


def _system_default_smtp(db_path):
    rows = execute_query('SELECT * FROM system_settings WHERE id = 1', (), db_path, fetch=True)
    return _complete_smtp(rows[0] if rows else None, 'system')


def _environment_smtp():
    config = current_app.config
    return _complete_smtp({
        'smtp_host': config.get('MAIL_SERVER'),
        'smtp_port': config.get('MAIL_PORT', 587),
        'smtp_username': config.get('MAIL_USERNAME'),
        'smtp_password': config.get('MAIL_PASSWORD'),
        'smtp_from': config.get('MAIL_DEFAULT_SENDER'),
    }, 'environment')


def resolve_smtp_settings(gym=None):
    """gym-specific -> system default row -> environment. None when nothing is configured."""
    db_path = Gym._db_path()
    if gym is not None:
        smtp = gym.smtp_settings()
        if smtp:
            return smtp
    return _system_default_smtp(db_path) or _environment_smtp()


def resolve_gym_config(gym_id):
    """
    Resolve everything a gym-scoped operation needs, with defaults applied.

    Returns None when the gym does not exist; callers treat that as a
    configuration error rather than guessing defaults for an unknown gym.
    """
    gym = Gym.get_by_id(gym_id)
    if gym is None:
        return None
    config = current_app.config
    return ResolvedGymConfig(
        gym_id=gym.id,
        gym_name=gym.name,
        formatted_gym_id=gym.formatted_gym_id,
        session_hours=gym.session_time_hours or config.get('DEFAULT_SESSION_HOURS', DEFAULT_SESSION_HOURS),
        max_capacity=gym.max_capacity or config.get('DEFAULT_MAX_CAPACITY', DEFAULT_MAX_CAPACITY),
        gym=gym,
    )


class Gym:
    def __init__(self, id=None, name=None, formatted_gym_id=None, owner_email=None,
                 session_time_hours=None, max_capacity=None, smtp_host=None, smtp_port=None,
                 smtp_username=None, smtp_password=None, smtp_from=None, created_at=None):
        self.id = id
        self.name = name
        self.formatted_gym_id = formatted_gym_id
        self.owner_email = owner_email
        self.session_time_hours = session_time_hours
        self.max_capacity = max_capacity
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.smtp_from = smtp_from
        self.created_at = created_at

    @classmethod
    def _db_path(cls):
        return current_app.config.get('DATABASE_PATH', 'gymtrack.db')

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        return cls(**{key: row[key] for key in row.keys()})

    @classmethod
    def get_by_id(cls, gym_id):
        rows = execute_query('SELECT * FROM gyms WHERE id = ?', (gym_id,), cls._db_path(), fetch=True)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_by_formatted_id(cls, formatted_gym_id):
        rows = execute_query('SELECT * FROM gyms WHERE formatted_gym_id = ?',
                             (formatted_gym_id,), cls._db_path(), fetch=True)
        return cls._from_row(rows[0]) if rows else None

    def smtp_settings(self):
        return _complete_smtp({
            'smtp_host': self.smtp_host,
            'smtp_port': self.smtp_port,
            'smtp_username': self.smtp_username,
            'smtp_password': self.smtp_password,
            'smtp_from': self.smtp_from,
        }, 'gym')

    def save(self):
        db_path = self._db_path()
        params = (self.name, self.formatted_gym_id, self.owner_email, self.session_time_hours,
                  self.max_capacity, self.smtp_host, self.smtp_port, self.smtp_username,
                  self.smtp_password, self.smtp_from)
        if self.id:
            query = '''UPDATE gyms SET name = ?, formatted_gym_id = ?, owner_email = ?,
                       session_time_hours = ?, max_capacity = ?, smtp_host = ?, smtp_port = ?,
                       smtp_username = ?, smtp_password = ?, smtp_from = ?
                       WHERE id = ?'''
            execute_query(query, params + (self.id,), db_path)
        else:
            query = '''INSERT INTO gyms (name, formatted_gym_id, owner_email, session_time_hours,
                       max_capacity, smtp_host, smtp_port, smtp_username, smtp_password, smtp_from)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)'''
            self.id = execute_query(query, params, db_path)
        return self.id

    @classmethod
    def update_settings(cls, gym_id, session_time_hours=None, max_capacity=None):
        """Update session length (1-24 h) and display capacity (1-10000). Capacity is never enforced."""
        updates = {}
        if session_time_hours is not None:
            if not _is_int_between(session_time_hours, 1, 24):
                return Result.failure(VALIDATION_FAILED, "Session time must be a whole number of hours between 1 and 24.")
            updates['session_time_hours'] = session_time_hours
        if max_capacity is not None:
            if not _is_int_between(max_capacity, 1, 10000):
                return Result.failure(VALIDATION_FAILED, "Max capacity must be a whole number between 1 and 10000.")
            updates['max_capacity'] = max_capacity

        if not updates:
            return Result.success(message="Nothing to update.")

        try:
            gym = cls.get_by_id(gym_id)
            if gym is None:
                return Result.failure(NOT_FOUND, "Gym not found.")
            for key, value in updates.items():
                setattr(gym, key, value)
            gym.save()
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to update gym settings: {e}")
        return Result.success(gym)

    @classmethod
    def update_smtp_settings(cls, gym_id, host, port, username, password, from_email=None):
        if not (host and username and password) or not _is_int_between(port, 1, 65535):
            return Result.failure(VALIDATION_FAILED, "SMTP host, port, username and password are required.")
        try:
            gym = cls.get_by_id(gym_id)
            if gym is None:
                return Result.failure(NOT_FOUND, "Gym not found.")
            gym.smtp_host, gym.smtp_port = host, int(port)
            gym.smtp_username, gym.smtp_password = username, password
            gym.smtp_from = from_email
            gym.save()
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to update SMTP settings: {e}")
        return Result.success(gym)

    @classmethod
    def revert_smtp_settings(cls, gym_id):
        """Clear gym-specific SMTP so the system default is used again."""
        try:
            gym = cls.get_by_id(gym_id)
            if gym is None:
                return Result.failure(NOT_FOUND, "Gym not found.")
            gym.smtp_host = gym.smtp_port = gym.smtp_username = None
            gym.smtp_password = gym.smtp_from = None
            gym.save()
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to revert SMTP settings: {e}")
        return Result.success(gym)

    def __repr__(self):
        return f"<Gym id={self.id} {self.formatted_gym_id} name={self.name!r}>"


def _is_int_between(value, low, high):
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return low <= value <= high
