from datetime import datetime, timezone

import pytest

from gymtrack import create_app
from gymtrack.models.database import execute_query
from gymtrack.models.gym import Gym
from gymtrack.models.member import Member
from gymtrack.models.membership_plan import MembershipPlan
from gymtrack.utils.helpers import to_db_timestamp

# Fixed clock used across tests so status boundaries don't depend on today's date
NOW = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


# -------------------------------------------------------------------
# Flask app fixture: fresh SQLite file per test, Flask-Mail suppressed
# -------------------------------------------------------------------
@pytest.fixture()
def flask_app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "DATABASE_PATH": str(tmp_path / "gymtrack_test.db"),
        "MAIL_SERVER": None,
        "MAIL_USERNAME": None,
        "MAIL_PASSWORD": None,
        "BULK_EMAIL_WORKERS": 4,
    })
    yield app


@pytest.fixture()
def app_ctx(flask_app):
    with flask_app.app_context():
        yield flask_app


@pytest.fixture()
def smtp_app(flask_app):
    """App with environment SMTP set, so sends go through Flask-Mail (suppressed under TESTING)."""
    flask_app.config.update({
        "MAIL_SERVER": "smtp.example.com",
        "MAIL_PORT": 587,
        "MAIL_USERNAME": "frontdesk@example.com",
        "MAIL_PASSWORD": "secret",
    })
    with flask_app.app_context():
        yield flask_app


# -------------------------------------------------------------------
# Seed helpers
# -------------------------------------------------------------------
@pytest.fixture()
def gym(app_ctx):
    g = Gym(name="Iron Forge", formatted_gym_id="GYM-IF01", owner_email="owner@ironforge.test",
            session_time_hours=2, max_capacity=50)
    g.save()
    return g


@pytest.fixture()
def plan(gym):
    p = MembershipPlan(gym_id=gym.id, plan_id_text="monthly", plan_name="Monthly",
                       price=1500.0, duration_months=1)
    p.save()
    return p


@pytest.fixture()
def make_member(gym, plan):
    """Insert a member row directly with an explicit status/expiry."""
    counter = {"n": 0}

    def _make(name="Member", email="member@example.com", status="active", expiry_date=None,
              gym_id=None, member_code=None):
        counter["n"] += 1
        n = counter["n"]
        if isinstance(expiry_date, datetime):
            expiry_date = to_db_timestamp(expiry_date)
        m = Member(
            gym_id=gym_id or gym.id,
            plan_id=plan.id,
            member_id=member_code or f"24IF{name[:4].upper()}{n:04d}M",
            name=name,
            email=email,
            phone_number=f"98765{n:05d}",
            age=30,
            membership_status=status,
            membership_type=plan.plan_name,
            plan_price=plan.price,
            join_date=to_db_timestamp(NOW),
            expiry_date=expiry_date,
        )
        m.save()
        return m

    return _make


@pytest.fixture()
def email_logs(app_ctx):
    def _rows():
        return execute_query("SELECT * FROM email_logs ORDER BY id", (), app_ctx.config["DATABASE_PATH"], fetch=True)
    return _rows


@pytest.fixture()
def now():
    return NOW
