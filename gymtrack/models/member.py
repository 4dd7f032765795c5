import sqlite3

from flask import current_app

from .database import execute_query, transaction
from .gym import Gym
from .membership_plan import MembershipPlan
from ..utils import email_utils
from ..utils.fanout import broadcast_email, run_bounded
from ..utils.helpers import (
    add_months,
    as_utc,
    generate_member_code,
    parse_timestamp,
    to_db_timestamp,
    utcnow,
    validate_email,
    validate_phone,
)
from ..utils.membership import (
    ACTIVE,
    STORED_STATUSES,
    can_renew,
    days_until_expiry,
    effective_status,
    is_broadcast_eligible,
)
from ..utils.results import (
    Result,
    BulkStatusSummary,
    NO_MATCHING_MEMBERS,
    NOT_FOUND,
    STORAGE_ERROR,
    VALIDATION_FAILED,
)


def validate_member_fields(name, email, phone_number, age):
    """Return a list of field errors for the add/edit member form."""
    errors = []
    if not name or not 2 <= len(name.strip()) <= 100:
        errors.append("name: must be 2-100 characters")
    if email and not validate_email(email):
        errors.append("email: invalid email address")
    if not validate_phone(phone_number):
        errors.append("phone_number: phone number is required")
    if isinstance(age, bool) or not isinstance(age, int) or age <= 0:
        errors.append("age: must be a positive whole number")
    return errors


def _unique_ids(ids):
    seen = []
    for i in ids or []:
        if i not in seen:
            seen.append(i)
    return seen


class Member:
    """
    A gym member row.

      id                 persistent key (check-ins point here)
      member_id          human-facing code, unique per gym, printed in the QR code
      membership_status  stored status, only 'active' or 'expired'
      membership_type    plan name snapshot taken when the plan was assigned
      plan_price         plan price snapshot
      join_date / expiry_date  stored timestamps; expiry may be missing or malformed
    """

    def __init__(self, id=None, gym_id=None, plan_id=None, member_id=None, name=None, email=None,
                 phone_number=None, age=None, membership_status=ACTIVE, membership_type=None,
                 plan_price=None, join_date=None, expiry_date=None, created_at=None):
        self.id = id
        self.gym_id = gym_id
        self.plan_id = plan_id
        self.member_id = member_id
        self.name = name
        self.email = email
        self.phone_number = phone_number
        self.age = age
        self.membership_status = membership_status
        self.membership_type = membership_type
        self.plan_price = plan_price
        self.join_date = join_date
        self.expiry_date = expiry_date
        self.created_at = created_at

    @property
    def member_code(self):
        return self.member_id

    # --- Derived status ---
    def effective_status(self, now=None):
        return effective_status(self.membership_status, self.expiry_date, now)

    def days_until_expiry(self, now=None):
        return days_until_expiry(self.expiry_date, now)

    def can_renew(self, now=None):
        return can_renew(self.membership_status, self.expiry_date, now)

    def is_broadcast_eligible(self, now=None):
        return is_broadcast_eligible(self.membership_status, self.expiry_date, self.email, now)

    def to_dict(self, now=None):
        return {
            'id': self.id,
            'gym_id': self.gym_id,
            'plan_id': self.plan_id,
            'member_id': self.member_id,
            'name': self.name,
            'email': self.email,
            'phone_number': self.phone_number,
            'age': self.age,
            'membership_status': self.membership_status,
            'effective_status': self.effective_status(now),
            'membership_type': self.membership_type or 'N/A',
            'plan_price': self.plan_price or 0,
            'join_date': self.join_date,
            'expiry_date': self.expiry_date,
        }

    # -------------------- Fetchers --------------------

    @classmethod
    def _db_path(cls):
        return current_app.config.get('DATABASE_PATH', 'gymtrack.db')

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        return cls(**{key: row[key] for key in row.keys()})

    @classmethod
    def get_by_id(cls, member_ref):
        rows = execute_query('SELECT * FROM members WHERE id = ?', (member_ref,), cls._db_path(), fetch=True)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_by_code(cls, member_code, gym_id):
        """Code lookups are always gym-scoped; the same code at another gym is a miss."""
        rows = execute_query('SELECT * FROM members WHERE member_id = ? AND gym_id = ?',
                             (member_code, gym_id), cls._db_path(), fetch=True)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_for_gym(cls, gym_id):
        rows = execute_query('SELECT * FROM members WHERE gym_id = ? ORDER BY created_at DESC, id DESC',
                             (gym_id,), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_by_ids(cls, member_refs, gym_id):
        member_refs = _unique_ids(member_refs)
        if not member_refs:
            return []
        marks = ', '.join('?' for _ in member_refs)
        query = f'SELECT * FROM members WHERE gym_id = ? AND id IN ({marks}) ORDER BY id'
        rows = execute_query(query, (gym_id, *member_refs), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    def save(self):
        db_path = self._db_path()
        params = (self.gym_id, self.plan_id, self.member_id, self.name, self.email, self.phone_number,
                  self.age, self.membership_status, self.membership_type, self.plan_price,
                  self.join_date, self.expiry_date)
        if self.id:
            query = '''UPDATE members SET gym_id = ?, plan_id = ?, member_id = ?, name = ?, email = ?,
                       phone_number = ?, age = ?, membership_status = ?, membership_type = ?,
                       plan_price = ?, join_date = ?, expiry_date = ?
                       WHERE id = ?'''
            execute_query(query, params + (self.id,), db_path)
        else:
            query = '''INSERT INTO members (gym_id, plan_id, member_id, name, email, phone_number, age,
                       membership_status, membership_type, plan_price, join_date, expiry_date)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)'''
            self.id = execute_query(query, params, db_path)
        return self.id

    # -------------------- Lifecycle --------------------

    @classmethod
    def register(cls, gym_id, name, email, phone_number, age, plan_id, now=None):
        """
        Register a member on a plan.

        join_date is now and expiry_date is now plus the plan's duration in
        months. The plan name and price are copied onto the member. A welcome
        email (with QR code) goes out when there is an address, and a
        dashboard-only welcome announcement is posted.
        """
        from .announcement import Announcement

        errors = validate_member_fields(name, email, phone_number, age)
        if errors:
            return Result.failure(VALIDATION_FAILED, f"Validation failed: {'; '.join(errors)}")

        now = as_utc(now) if now else utcnow()
        try:
            gym = Gym.get_by_id(gym_id)
            if gym is None:
                return Result.failure(NOT_FOUND, "Gym not found.")
            plan = MembershipPlan.get_for_gym(plan_id, gym_id)
            if plan is None:
                return Result.failure(VALIDATION_FAILED, "Invalid or inactive membership plan for this gym.")
            if plan.duration_months is None:
                return Result.failure(VALIDATION_FAILED, f"Selected plan '{plan.plan_name}' has an invalid duration.")

            member = cls(
                gym_id=gym_id,
                plan_id=plan.id,
                member_id=generate_member_code(gym.name, name, phone_number, plan.plan_name, now),
                name=name.strip(),
                email=email or None,
                phone_number=phone_number,
                age=age,
                membership_status=ACTIVE,
                membership_type=plan.plan_name,
                plan_price=plan.price,
                join_date=to_db_timestamp(now),
                expiry_date=to_db_timestamp(add_months(now, plan.duration_months)),
            )
            member.save()
        except sqlite3.IntegrityError:
            return Result.failure(VALIDATION_FAILED, "A member with this member ID already exists at this gym.")
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to add member to database: {e}")

        email_status = 'Email not sent (member has no email).'
        if member.email:
            email_status = email_utils.send_welcome_email(member, gym.name).message

        title = f"Welcome New Member: {member.name}!"
        content = (f"Let's all give a warm welcome to {member.name} (ID: {member.member_id}), who joined us "
                   f"with a {member.membership_type} membership! We're excited to have them in the "
                   f"{gym.name} community.")
        announced = Announcement.create(gym.formatted_gym_id, title, content, broadcast_email=False, now=now)
        if not announced:
            current_app.logger.warning(f"Failed to create welcome announcement for {member.name}: {announced.message}")

        return Result.success({'member': member, 'email_status': email_status})

    @classmethod
    def change_plan(cls, member_ref, gym_id, plan_id, name, email, phone_number, age):
        """
        Edit contact details and move the member to another plan.

        The new expiry is counted from the ORIGINAL join date, not from
        today, and the stored status goes back to active.
        """
        errors = validate_member_fields(name, email, phone_number, age)
        if errors:
            return Result.failure(VALIDATION_FAILED, f"Validation failed: {'; '.join(errors)}")

        try:
            member = cls.get_by_id(member_ref)
            if member is None or member.gym_id != gym_id:
                return Result.failure(NOT_FOUND, "Member not found at this gym.")
            plan = MembershipPlan.get_for_gym(plan_id, gym_id)
            if plan is None or plan.duration_months is None:
                return Result.failure(VALIDATION_FAILED, "Invalid or inactive new membership plan.")

            if member.join_date:
                join_date = parse_timestamp(member.join_date)
                if join_date is None:
                    return Result.failure(VALIDATION_FAILED, "Could not parse existing member's join date.")
            else:
                join_date = utcnow()

            member.name = name.strip()
            member.email = email or None
            member.phone_number = phone_number
            member.age = age
            member.plan_id = plan.id
            member.membership_type = plan.plan_name
            member.plan_price = plan.price
            member.membership_status = ACTIVE
            member.expiry_date = to_db_timestamp(add_months(join_date, plan.duration_months))
            member.save()
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to update member: {e}")
        return Result.success(member, "Member details updated.")

    @classmethod
    def set_status(cls, member_ref, new_status):
        """Manual override of the stored status, with a notification email."""
        if new_status not in STORED_STATUSES:
            return Result.failure(VALIDATION_FAILED, "Invalid status. Can only set to 'active' or 'expired'.")
        try:
            member = cls.get_by_id(member_ref)
            if member is None:
                return Result.failure(NOT_FOUND, "Member not found.")
            member.membership_status = new_status
            member.save()
            gym = Gym.get_by_id(member.gym_id)
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to update status: {e}")

        if member.email and gym is not None:
            email_utils.send_status_change_email(member, new_status, gym.name)
        return Result.success(member)

    @classmethod
    def delete(cls, member_ref):
        """Delete a member together with their check-in history."""
        from .check_in import CheckIn

        try:
            with transaction(cls._db_path()) as conn:
                if conn.execute('SELECT id FROM members WHERE id = ?', (member_ref,)).fetchone() is None:
                    return Result.failure(NOT_FOUND, "Member not found.")
                removed = CheckIn.delete_for_member(conn, member_ref)
                conn.execute('DELETE FROM members WHERE id = ?', (member_ref,))
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to delete member: {e}")
        current_app.logger.info(f"Deleted member {member_ref} and {removed} check-in(s)")
        return Result.success({'check_ins_removed': removed})

    @classmethod
    def delete_many(cls, member_refs):
        member_refs = _unique_ids(member_refs)
        if not member_refs:
            return Result.failure(VALIDATION_FAILED, "No member IDs provided for deletion.")
        success_count = error_count = 0
        last_error = None
        for member_ref in member_refs:
            result = cls.delete(member_ref)
            if result:
                success_count += 1
            else:
                error_count += 1
                last_error = result.message
        return Result.success({'success_count': success_count, 'error_count': error_count}, last_error)

    # -------------------- Bulk operations --------------------

    @classmethod
    def bulk_set_status(cls, member_refs, new_status, gym_id):
        """
        Set the stored status of many members in one statement, then notify.

        Notification is best-effort: a failed email never undoes the status
        change, it just isn't counted in ``email_sent_count``.
        """
        member_refs = _unique_ids(member_refs)
        if not member_refs:
            return Result.failure(VALIDATION_FAILED, "No member IDs provided for status update.")
        if new_status not in STORED_STATUSES:
            return Result.failure(VALIDATION_FAILED, "Invalid status. Can only set to 'active' or 'expired'.")

        try:
            members = cls.get_by_ids(member_refs, gym_id)
            if not members:
                return Result.failure(NO_MATCHING_MEMBERS, "No matching members found to update.")
            gym = Gym.get_by_id(gym_id)

            marks = ', '.join('?' for _ in members)
            params = (gym_id, *[m.id for m in members])
            with transaction(cls._db_path()) as conn:
                cursor = conn.execute(
                    f'UPDATE members SET membership_status = ? WHERE gym_id = ? AND id IN ({marks})',
                    (new_status,) + params
                )
                success_count = cursor.rowcount
                # rows deleted since the lookup above are neither updated nor notified
                updated = [cls._from_row(r) for r in conn.execute(
                    f'SELECT * FROM members WHERE gym_id = ? AND id IN ({marks}) ORDER BY id', params
                ).fetchall()]
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to update member status: {e}")

        error_count = len(member_refs) - success_count

        email_sent_count = 0
        recipients = [m for m in updated if m.email and m.email.strip()]
        if gym is not None and recipients:
            results = run_bounded(
                recipients,
                lambda m: email_utils.send_status_change_email(m, new_status, gym.name)
            )
            email_sent_count = sum(1 for r in results if r is not None and r.success)

        summary = BulkStatusSummary(success_count, error_count, email_sent_count)
        current_app.logger.info(f"Bulk status '{new_status}' for gym {gym_id}: {summary!r}")
        message = "Some members could not be updated." if error_count else None
        return Result.success(summary, message)

    @classmethod
    def bulk_send_email(cls, member_refs, subject, body, gym_id, include_qr_code=False, now=None):
        """
        Send a custom email to the selected members.

        ``{{gymName}}`` and ``{{gymId}}`` are filled in for subject and body.
        The QR code is only attached when exactly one member was selected.
        """
        member_refs = _unique_ids(member_refs)
        if not member_refs:
            return Result.failure(VALIDATION_FAILED, "No member IDs provided for email.")
        if not (subject and subject.strip()) or not (body and body.strip()):
            return Result.failure(VALIDATION_FAILED, "Subject and body are required for email.")

        try:
            gym = Gym.get_by_id(gym_id)
            if gym is None:
                return Result.failure(NOT_FOUND, "Gym not found.")
            members = cls.get_by_ids(member_refs, gym_id)
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to fetch member details: {e}")
        if not members:
            return Result.failure(NO_MATCHING_MEMBERS, "No matching members found for the provided IDs.")

        subject = email_utils.apply_placeholders(subject, gym.name, gym.formatted_gym_id)
        body = email_utils.apply_placeholders(body, gym.name, gym.formatted_gym_id)
        single_recipient = len(member_refs) == 1

        def compose(member):
            qr_code = member.member_id if (single_recipient and include_qr_code) else None
            return subject, email_utils.build_custom_email_body(member.name, body, gym.name, qr_code)

        summary = broadcast_email(members, compose, gym_id, now)
        return Result.success(summary)

    # -------------------- Analytics --------------------

    @classmethod
    def get_membership_distribution(cls, gym_id):
        """Stored-active members grouped by plan name snapshot, largest group first."""
        query = '''
            SELECT COALESCE(NULLIF(membership_type, ''), 'Other') AS type, COUNT(*) AS count
            FROM members
            WHERE gym_id = ? AND membership_status = ?
            GROUP BY 1
            ORDER BY count DESC, type
        '''
        rows = execute_query(query, (gym_id, ACTIVE), cls._db_path(), fetch=True)
        return [{'type': r['type'], 'count': r['count']} for r in rows]

    @classmethod
    def get_new_members_yearly(cls, gym_id, now=None):
        """Members joined per year, from the gym's creation year to this one. Empty if the gym has no creation date."""
        now = as_utc(now) if now else utcnow()
        gym = Gym.get_by_id(gym_id)
        created = parse_timestamp(gym.created_at) if gym else None
        if created is None or created.year > now.year:
            return []

        counts = {year: 0 for year in range(created.year, now.year + 1)}
        rows = execute_query('SELECT join_date FROM members WHERE gym_id = ?', (gym_id,), cls._db_path(), fetch=True)
        for row in rows:
            joined = parse_timestamp(row['join_date'])
            if joined is not None and joined.year in counts:
                counts[joined.year] += 1
        return [{'year': str(year), 'count': count} for year, count in sorted(counts.items())]

    @classmethod
    def get_earnings_summary(cls, gym_id):
        """
        Revenue figures for the gym profile page.

        Current monthly revenue sums the live price of each stored-active
        member's plan. The top plan is the one held by the most of those
        members; on a tie the first one seen wins.
        """
        db_path = cls._db_path()
        plan_rows = execute_query('SELECT price FROM plans WHERE gym_id = ? AND is_active = 1',
                                  (gym_id,), db_path, fetch=True)
        total_value = round(sum(float(r['price'] or 0) for r in plan_rows))

        query = '''
            SELECT p.plan_name AS plan_name, p.price AS price
            FROM members m
            LEFT JOIN plans p ON m.plan_id = p.id
            WHERE m.gym_id = ? AND m.membership_status = ?
            ORDER BY m.id
        '''
        rows = execute_query(query, (gym_id, ACTIVE), db_path, fetch=True)

        revenue = 0.0
        plan_counts = {}
        for row in rows:
            price = float(row['price'] or 0)
            if price > 0:
                revenue += price
                name = row['plan_name'] or 'Unknown Plan'
                plan_counts[name] = plan_counts.get(name, 0) + 1

        top_plan, top_count = None, 0
        for name, count in plan_counts.items():
            if count > top_count:
                top_plan, top_count = name, count

        active_count = len(rows)
        return {
            'total_value_of_active_plans': total_value,
            'current_monthly_revenue': revenue,
            'average_revenue_per_active_member': revenue / active_count if active_count else 0,
            'top_performing_plan_name': top_plan,
            'active_member_count': active_count,
        }

    def __repr__(self):
        return f"<Member id={self.id} {self.member_id} gym={self.gym_id} status={self.membership_status}>"
