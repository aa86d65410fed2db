"""Learner accounts, daily streaks and the XP ledger.

Credentials are stored and compared as plain text. This module stands in
for an external auth service and makes no security claims.
"""
import logging
from datetime import datetime

from adaptive_tutor.db import transaction
from adaptive_tutor.errors import DuplicateError, NotFound, ValidationError
from adaptive_tutor.models import User

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {
    "name", "grade", "language", "current_subject",
    "weekly_goal_topics", "weekly_goal_minutes", "parent_contact",
}


def _validate_registration(name: str, username: str, password: str, grade: int) -> None:
    if len(name) < 2:
        raise ValidationError("Name must be at least 2 characters")
    if len(username) < 3:
        raise ValidationError("Username must be at least 3 characters")
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")
    if not 6 <= grade <= 12:
        raise ValidationError("Grade must be between 6 and 12")


def create_user(db_path: str, name: str, username: str, password: str, grade: int,
                language: str = "English", parent_contact: str | None = None) -> User:
    _validate_registration(name, username, password, grade)
    with transaction(db_path) as conn:
        if conn.execute("SELECT 1 FROM users WHERE username = ?", (username,)).fetchone():
            raise DuplicateError("Username already exists")
        cur = conn.execute(
            """INSERT INTO users (username, name, grade, language, password, last_active, parent_contact)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (username, name, grade, language, password, datetime.now().isoformat(), parent_contact),
        )
        row = conn.execute("SELECT * FROM users WHERE id = ?", (cur.lastrowid,)).fetchone()
    return User.from_row(row)


def get_user(db_path: str, user_id: int) -> User | None:
    with transaction(db_path) as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return User.from_row(row) if row else None


def get_user_by_username(db_path: str, username: str) -> User | None:
    with transaction(db_path) as conn:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    return User.from_row(row) if row else None


def authenticate(db_path: str, username: str, password: str) -> User | None:
    """Plain-text credential check; returns the user or None."""
    with transaction(db_path) as conn:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    if row is None or row["password"] != password:
        return None
    return User.from_row(row)


def update_user(db_path: str, user_id: int, **fields) -> User:
    """Onboarding and profile edits. The password is not changeable here."""
    if "password" in fields:
        raise ValidationError("Password cannot be changed through a profile update")
    unknown = set(fields) - PROFILE_FIELDS
    if unknown:
        raise ValidationError(f"cannot update {', '.join(sorted(unknown))}")
    if not fields:
        raise ValidationError("nothing to update")
    if "name" in fields and len(fields["name"]) < 2:
        raise ValidationError("Name must be at least 2 characters")
    if "grade" in fields and not 6 <= fields["grade"] <= 12:
        raise ValidationError("Grade must be between 6 and 12")
    for goal in ("weekly_goal_topics", "weekly_goal_minutes"):
        if goal in fields and fields[goal] < 1:
            raise ValidationError(f"{goal} must be at least 1")

    assignments = ", ".join(f"{col} = ?" for col in fields)
    with transaction(db_path) as conn:
        cur = conn.execute(
            f"UPDATE users SET {assignments} WHERE id = ?", (*fields.values(), user_id)
        )
        if cur.rowcount == 0:
            raise NotFound(f"user {user_id} not found")
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    logger.info("user %s updated %s", user_id, ", ".join(sorted(fields)))
    return User.from_row(row)


def next_streak(streak: int, last_active: datetime, now: datetime) -> int:
    """Streak after a visit at `now`, given the previous visit."""
    days = (now - last_active).days
    if days == 1:
        return streak + 1
    if days > 1:
        return 1
    return streak


def record_login(db_path: str, user_id: int, now: datetime | None = None) -> User:
    """Update streak and last-active time for a visit."""
    now = now or datetime.now()
    user = get_user(db_path, user_id)
    if user is None:
        raise NotFound(f"user {user_id} not found")
    streak = next_streak(user.streak, datetime.fromisoformat(user.last_active), now)
    with transaction(db_path) as conn:
        conn.execute(
            "UPDATE users SET streak = ?, last_active = ? WHERE id = ?",
            (streak, now.isoformat(), user_id),
        )
    user.streak = streak
    user.last_active = now.isoformat()
    return user


def add_xp(db_path: str, user_id: int, amount: int) -> int:
    """Credit XP to a user; returns the new total."""
    with transaction(db_path) as conn:
        cur = conn.execute(
            "UPDATE users SET xp_points = xp_points + ? WHERE id = ?", (amount, user_id)
        )
        if cur.rowcount == 0:
            raise NotFound(f"user {user_id} not found")
        total = conn.execute("SELECT xp_points FROM users WHERE id = ?", (user_id,)).fetchone()[0]
    logger.debug("user %s +%d XP (total %d)", user_id, amount, total)
    return total
