import re
import sqlite3

from flask import current_app

from .database import execute_query
from .gym import Gym
from ..utils.results import Result, NOT_FOUND, VALIDATION_FAILED, STORAGE_ERROR

PLAN_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')


def validate_plan_fields(plan_id_text, name, price, duration_months):
    """Return a list of field errors; empty when the plan form is valid."""
    errors = []
    plan_id_text = (plan_id_text or '').strip()
    name = (name or '').strip()
    if not 3 <= len(plan_id_text) <= 20:
        errors.append("plan_id_text: must be 3-20 characters")
    elif not PLAN_ID_PATTERN.match(plan_id_text):
        errors.append("plan_id_text: only letters, numbers, underscores and hyphens")
    if not 3 <= len(name) <= 50:
        errors.append("name: must be 3-50 characters")
    try:
        price = float(price)
        if not 0.01 <= price <= 1000000:
            errors.append("price: must be between 0.01 and 1000000")
    except (TypeError, ValueError):
        errors.append("price: must be a number")
    if isinstance(duration_months, bool) or not isinstance(duration_months, int) \
            or not 1 <= duration_months <= 120:
        errors.append("duration_months: whole number of months between 1 and 120")
    return errors


class MembershipPlan:
    def __init__(self, id=None, gym_id=None, plan_id_text=None, plan_name=None, price=None,
                 duration_months=None, is_active=True, created_at=None):
        self.id = id
        self.gym_id = gym_id
        self.plan_id_text = plan_id_text
        self.plan_name = plan_name
        self.price = price
        self.duration_months = duration_months
        self.is_active = bool(is_active)
        self.created_at = created_at

    @property
    def name(self):
        return self.plan_name

    @classmethod
    def _db_path(cls):
        return current_app.config.get('DATABASE_PATH', 'gymtrack.db')

    @classmethod
    def _from_row(cls, row):
        return cls(
            id=row['id'], gym_id=row['gym_id'], plan_id_text=row['plan_id_text'],
            plan_name=row['plan_name'], price=row['price'], duration_months=row['duration_months'],
            is_active=row['is_active'], created_at=row['created_at']
        )

    @classmethod
    def get_active_for_gym(cls, gym_id):
        """Active plans for one gym, cheapest first"""
        query = 'SELECT * FROM plans WHERE gym_id = ? AND is_active = 1 ORDER BY price ASC'
        rows = execute_query(query, (gym_id,), cls._db_path(), fetch=True) or []
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_for_gym(cls, plan_id, gym_id, active_only=True):
        """A plan only counts if it belongs to the gym (and is active, unless asked otherwise)."""
        query = 'SELECT * FROM plans WHERE id = ? AND gym_id = ?'
        if active_only:
            query += ' AND is_active = 1'
        rows = execute_query(query, (plan_id, gym_id), cls._db_path(), fetch=True)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def code_taken(cls, gym_id, plan_id_text, exclude_id=None):
        """Plan codes are unique within a gym; ``exclude_id`` skips the plan being edited."""
        query = 'SELECT id FROM plans WHERE gym_id = ? AND plan_id_text = ?'
        params = [gym_id, plan_id_text]
        if exclude_id is not None:
            query += ' AND id != ?'
            params.append(exclude_id)
        return bool(execute_query(query, tuple(params), cls._db_path(), fetch=True))

    @classmethod
    def create(cls, gym_id, plan_id_text, name, price, duration_months):
        errors = validate_plan_fields(plan_id_text, name, price, duration_months)
        if errors:
            return Result.failure(VALIDATION_FAILED, f"Validation failed: {'; '.join(errors)}")
        plan = cls(gym_id=gym_id, plan_id_text=plan_id_text.strip(), plan_name=name.strip(),
                   price=float(price), duration_months=duration_months)
        try:
            if Gym.get_by_id(gym_id) is None:
                return Result.failure(NOT_FOUND, "Gym not found.")
            if cls.code_taken(gym_id, plan.plan_id_text):
                return Result.failure(VALIDATION_FAILED, f"Plan ID '{plan.plan_id_text}' already exists for this gym.")
            plan.save()
        except sqlite3.IntegrityError:
            return Result.failure(VALIDATION_FAILED, f"Plan ID '{plan.plan_id_text}' already exists for this gym.")
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to add plan: {e}")
        return Result.success(plan)

    @classmethod
    def update(cls, plan_id, gym_id, plan_id_text, name, price, duration_months):
        """Edit a plan's code, name, price and duration. ``is_active`` is left as it is."""
        errors = validate_plan_fields(plan_id_text, name, price, duration_months)
        if errors:
            return Result.failure(VALIDATION_FAILED, f"Validation failed: {'; '.join(errors)}")
        plan_id_text = plan_id_text.strip()
        try:
            plan = cls.get_for_gym(plan_id, gym_id, active_only=False)
            if plan is None:
                return Result.failure(NOT_FOUND, "Plan not found for this gym.")
            if cls.code_taken(gym_id, plan_id_text, exclude_id=plan.id):
                return Result.failure(
                    VALIDATION_FAILED, f"Plan ID '{plan_id_text}' already exists for another plan in this gym.")
            execute_query(
                '''UPDATE plans SET plan_id_text = ?, plan_name = ?, price = ?, duration_months = ?
                   WHERE id = ? AND gym_id = ?''',
                (plan_id_text, name.strip(), float(price), duration_months, plan.id, gym_id), cls._db_path()
            )
        except sqlite3.IntegrityError:
            return Result.failure(
                VALIDATION_FAILED, f"Plan ID '{plan_id_text}' already exists for another plan in this gym.")
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to update plan: {e}")
        plan.plan_id_text, plan.plan_name = plan_id_text, name.strip()
        plan.price, plan.duration_months = float(price), duration_months
        return Result.success(plan)

    def save(self):
        db_path = self._db_path()
        if self.id:
            query = '''UPDATE plans SET gym_id = ?, plan_id_text = ?, plan_name = ?, price = ?,
                       duration_months = ?, is_active = ? WHERE id = ?'''
            execute_query(query, (self.gym_id, self.plan_id_text, self.plan_name, self.price,
                                  self.duration_months, int(self.is_active), self.id), db_path)
        else:
            query = '''INSERT INTO plans (gym_id, plan_id_text, plan_name, price, duration_months, is_active)
                       VALUES (?, ?, ?, ?, ?, ?)'''
            self.id = execute_query(query, (self.gym_id, self.plan_id_text, self.plan_name, self.price,
                                            self.duration_months, int(self.is_active)), db_path)
        return self.id

    @classmethod
    def soft_delete(cls, plan_id, gym_id):
        """Deactivate; members keep their snapshot of name and price."""
        try:
            plan = cls.get_for_gym(plan_id, gym_id, active_only=False)
            if plan is None:
                return Result.failure(NOT_FOUND, "Plan not found for this gym.")
            plan.is_active = False
            plan.save()
        except sqlite3.Error as e:
            return Result.failure(STORAGE_ERROR, f"Failed to deactivate plan: {e}")
        return Result.success(plan)

    def __repr__(self):
        return f"<MembershipPlan id={self.id} gym={self.gym_id} {self.plan_name} {self.duration_months}m>"
