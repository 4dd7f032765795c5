# tests/unit/test_models_announcement.py
import sqlite3
from datetime import timedelta

from gymtrack.models.announcement import Announcement
from gymtrack.models.member import Member
from gymtrack.utils import email_utils
from gymtrack.utils.results import NOT_FOUND, VALIDATION_FAILED


def _record_sends(monkeypatch):
    sent = []

    def fake_send(to, subject, html, gym_id=None):
        sent.append((to, subject))
        return email_utils.EmailResult(True, "fake")

    monkeypatch.setattr(email_utils, "send_email", fake_send)
    return sent


def test_create_broadcasts_to_eligible_members(gym, make_member, now, monkeypatch):
    sent = _record_sends(monkeypatch)
    make_member(name="Ann", email="ann@example.com", expiry_date=now + timedelta(days=30))
    make_member(name="Ben", email=None)
    make_member(name="Cat", email="cat@example.com", status="expired")

    result = Announcement.create("GYM-IF01", "Holiday hours", "We are closed on Monday.", now=now)

    assert result
    announcement = result.value["announcement"]
    assert announcement.id is not None
    assert result.value["email_broadcast"].to_dict() == {
        "attempted": 1, "successful": 1, "no_email_address": 1, "failed": 0,
    }
    assert sent == [("ann@example.com", "New Announcement from Iron Forge: Holiday hours")]


def test_create_without_broadcast_sends_nothing(gym, make_member, now, monkeypatch):
    sent = _record_sends(monkeypatch)
    make_member(email="ann@example.com")
    result = Announcement.create("GYM-IF01", "Quiet post", "Dashboard only message.", broadcast_email=False, now=now)
    assert result.value["email_broadcast"].attempted == 0
    assert sent == []


def test_create_validation_and_unknown_gym(gym):
    assert Announcement.create("GYM-IF01", "Hi", "long enough content").error == VALIDATION_FAILED
    assert Announcement.create("GYM-IF01", "Title", "too short").error == VALIDATION_FAILED
    assert Announcement.create("GYM-IF01", "Title", "x" * 1001).error == VALIDATION_FAILED
    assert Announcement.create("GYM-NOPE", "Title", "long enough content").error == NOT_FOUND


def test_member_fetch_failure_keeps_announcement(gym, now, monkeypatch):
    def broken(gym_id):
        raise sqlite3.OperationalError("no such table: members")

    monkeypatch.setattr(Member, "get_for_gym", classmethod(lambda cls, gym_id: broken(gym_id)))
    result = Announcement.create("GYM-IF01", "Still saved", "Broadcast could not run.", now=now)
    assert result
    assert result.value["email_broadcast"].attempted == 0
    assert Announcement.get_by_id(result.value["announcement"].id) is not None


def test_get_for_gym_newest_first_and_delete_many(gym, now):
    first = Announcement.create("GYM-IF01", "First", "First announcement body", broadcast_email=False, now=now)
    second = Announcement.create("GYM-IF01", "Second", "Second announcement body", broadcast_email=False,
                                 now=now + timedelta(hours=1))
    titles = [a.title for a in Announcement.get_for_gym("GYM-IF01")]
    assert titles == ["Second", "First"]

    ids = [first.value["announcement"].id, second.value["announcement"].id, 999]
    result = Announcement.delete_many(ids, "GYM-IF01")
    assert result.value == {"success_count": 2, "error_count": 1}
    assert Announcement.get_for_gym("GYM-IF01") == []
    assert Announcement.delete_many([], "GYM-IF01").error == VALIDATION_FAILED
