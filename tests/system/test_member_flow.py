# tests/system/test_member_flow.py
from datetime import datetime, timedelta, timezone

from gymtrack.models.announcement import Announcement
from gymtrack.models.check_in import check_in_member, current_occupancy, occupancy_snapshot
from gymtrack.models.gym import Gym
from gymtrack.models.member import Member
from gymtrack.models.membership_plan import MembershipPlan
from gymtrack.utils.results import ALREADY_CHECKED_IN, MEMBERSHIP_EXPIRED


def test_expiring_member_session_lifecycle(gym, make_member):
    now = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    member = make_member(name="Eve", member_code="24IFEVE0001M",
                         expiry_date=datetime(2024, 1, 10, tzinfo=timezone.utc))
    assert member.effective_status(now) == "expiring soon"
    assert member.days_until_expiry(now) == 9

    first = check_in_member("24IFEVE0001M", gym.id, now)
    assert first
    assert first.value.check_out_time == first.value.check_in_time + timedelta(hours=2)

    second = check_in_member("24IFEVE0001M", gym.id, now + timedelta(minutes=90))
    assert second.error == ALREADY_CHECKED_IN

    third = check_in_member("24IFEVE0001M", gym.id, first.value.check_out_time + timedelta(seconds=1))
    assert third


def test_register_check_in_expire_and_renew(smtp_app, now):
    gym = Gym(name="Peak Fitness", formatted_gym_id="GYM-PK01", session_time_hours=1, max_capacity=20)
    gym.save()
    monthly = MembershipPlan.create(gym.id, "monthly", "Monthly", 999, 1).value
    quarterly = MembershipPlan.create(gym.id, "quarterly", "Quarterly", 2700, 3).value

    with smtp_app.mail.record_messages() as outbox:
        registered = Member.register(gym.id, "Sam Carter", "sam@example.com", "90000 11223", 26,
                                     monthly.id, now=now)
        assert registered, registered.message
        member = registered.value["member"]
        assert member.member_id == "24PFSAM 1223M"
    assert [m.recipients for m in outbox] == [["sam@example.com"]]
    assert outbox[0].subject == "Welcome to Peak Fitness, Sam Carter!"

    assert check_in_member(member.member_id, gym.id, now)
    assert occupancy_snapshot(gym.id, now).value == {"current_occupancy": 1, "max_capacity": 20}

    # a month and a bit later the membership has lapsed
    later = now + timedelta(days=32)
    assert current_occupancy(gym.id, later).value == 0
    assert Member.get_by_id(member.id).effective_status(later) == "expired"
    assert check_in_member(member.member_id, gym.id, later).error == MEMBERSHIP_EXPIRED

    # moving to a quarterly plan counts from the original join date
    renewed = Member.change_plan(member.id, gym.id, quarterly.id, "Sam Carter", "sam@example.com",
                                 "90000 11223", 26)
    assert renewed
    assert Member.get_by_id(member.id).effective_status(later) == "active"
    assert check_in_member(member.member_id, gym.id, later)

    with smtp_app.mail.record_messages() as outbox:
        posted = Announcement.create("GYM-PK01", "New classes", "Spin classes start next week.", now=later)
    assert posted.value["email_broadcast"].successful == 1
    assert outbox[0].subject == "New Announcement from Peak Fitness: New classes"

    assert [a.title for a in Announcement.get_for_gym("GYM-PK01")] == [
        "New classes", "Welcome New Member: Sam Carter!",
    ]
