import sqlite3

from flask import current_app

from .database import execute_query
from .gym import Gym
from ..utils import email_utils
from ..utils.fanout import broadcast_email
from ..utils.helpers import as_utc, to_db_timestamp, utcnow
from ..utils.results import Result, EmailBroadcastSummary, NOT_FOUND, STORAGE_ERROR, VALIDATION_FAILED


def validate_announcement_fields(title, content):
    errors = []
    if not 3 <= len((title or '').strip()) <= 100:
        errors.append("title: must be 3-100 characters")
    if not 10 <= len((content or '').strip()) <= 1000:
        errors.append("content: must be 10-1000 characters")
    return errors


class Announcement:
    def __init__(self, id=None, gym_id=None, formatted_gym_id=None, title=None, content=None,
                 created_at=None):
        self.id = id
        self.gym_id = gym_id
        self.formatted_gym_id = formatted_gym_id
        self.title = title
        self.content = content
        self.created_at = created_at

    @classmethod
    def _db_path(cls):
        return current_app.config.get('DATABASE_PATH', 'gymtrack.db')

    @classmethod
    def _from_row(cls, row):
        return cls(
            id=row['id'], gym_id=row['gym_id'], formatted_gym_id=row['formatted_gym_id'],
            title=row['title'], content=row['content'], created_at=row['created_at']
        )

    @classmethod
    def get_by_id(cls, announcement_id):
        rows = execute_query('SELECT * FROM announcements WHERE id = ?', (announcement_id,),
                             cls._db_path(), fetch=True)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_for_gym(cls, formatted_gym_id):
        """Newest first"""
        query = 'SELECT * FROM announcements WHERE formatted_gym_id = ? ORDER BY created_at DESC, id DESC'
        rows = execute_query(query, (formatted_gym_id,), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    def save(self):
        db_path = self._db_path()
        if self.id:
            query = '''UPDATE announcements SET gym_id = ?, formatted_gym_id = ?, title = ?, content = ?
                       WHERE id = ?'''
            execute_query(query, (self.gym_id, self.formatted_gym_id, self.title, self.content, self.id), db_path)
        else:
            query = '''INSERT INTO announcements (gym_id, formatted_gym_id, title, content, created_at)
                       VALUES (?, ?, ?, ?, ?)'''
            self.id = execute_query(query, (self.gym_id, self.formatted_gym_id, self.title, self.content,
                                            self.created_at), db_path)
        return self.id

    @classmethod
    def create(cls, formatted_gym_id, title, content, broadcast_email=True, now=None):
        """
        Post an announcement and, optionally, email it to the gym's members.

        The broadcast uses the same eligibility rule and counters as a bulk
        member email. The announcement stays saved even if the member lookup
        for the broadcast fails afterwards.
        """
        errors = validate_announcement_fields(title, content)
        if errors:
            return Result.failure(VALIDATION_FAILED, f"Validation failed: {'; '.join(errors)}")

        now = as_utc(now) if now else utcnow()
        try:
            gym = Gym.get_by_formatted_id(formatted_gym_id)
            if gym is None:
                return Result.failure(NOT_FOUND, "Gym not found.")
            announcement = cls(gym_id=gym.id, formatted_gym_id=gym.formatted_gym_id, title=title.strip(),
                               content=content.strip(), created_at=to_db_timestamp(now))
            announcement.save()
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to create announcement: {e}")

        summary = EmailBroadcastSummary()
        if broadcast_email:
            summary = announcement._broadcast(gym, now)
        return Result.success({'announcement': announcement, 'email_broadcast': summary})

    def _broadcast(self, gym, now):
        from .member import Member

        try:
            members = Member.get_for_gym(gym.id)
        except sqlite3.Error as e:
            current_app.logger.error(f"Announcement {self.id} saved but members could not be fetched: {e}")
            return EmailBroadcastSummary()

        def compose(member):
            return email_utils.build_announcement_email(member.name, self, gym.name)

        return broadcast_email(members, compose, gym.id, now)

    @classmethod
    def delete_many(cls, announcement_ids, formatted_gym_id):
        """Delete announcements belonging to one gym. Returns how many rows went."""
        ids = list(dict.fromkeys(announcement_ids or []))
        if not ids:
            return Result.failure(VALIDATION_FAILED, "No announcement IDs provided for deletion.")
        marks = ', '.join('?' for _ in ids)
        try:
            rows = execute_query(
                f'SELECT id FROM announcements WHERE formatted_gym_id = ? AND id IN ({marks})',
                (formatted_gym_id, *ids), cls._db_path(), fetch=True
            )
            found = [r['id'] for r in rows]
            if found:
                found_marks = ', '.join('?' for _ in found)
                execute_query(f'DELETE FROM announcements WHERE id IN ({found_marks})', tuple(found), cls._db_path())
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to delete announcements: {e}")
        return Result.success({'success_count': len(found), 'error_count': len(ids) - len(found)})

    def to_dict(self):
        return {
            'id': self.id,
            'gym_id': self.gym_id,
            'formatted_gym_id': self.formatted_gym_id,
            'title': self.title,
            'content': self.content,
            'created_at': self.created_at,
        }

    def __repr__(self):
        return f"<Announcement id={self.id} gym={self.formatted_gym_id} {self.title!r}>"
