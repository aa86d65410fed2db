"""Persistent learner state: topic progress, sessions, badges and parent summaries."""
import logging
from datetime import datetime

from adaptive_tutor.config import BADGE_XP_AWARD
from adaptive_tutor.db import transaction
from adaptive_tutor.errors import DuplicateError, NotFound, ValidationError
from adaptive_tutor.models import ParentSummary, UserBadge, UserProgress, UserSession

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = {"mastery_percentage", "questions_attempted", "questions_correct"}
SESSION_FIELDS = {"end_time", "questions_attempted", "questions_correct", "xp_earned", "summary"}


def _clamp_mastery(value: int) -> int:
    return max(0, min(100, int(value)))


def _check_fields(fields: dict, allowed: set) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationError(f"cannot update {', '.join(sorted(unknown))}")


# --- Topic progress ---


def get_user_progress(db_path: str, user_id: int, topic_id: int) -> UserProgress | None:
    with transaction(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM user_progress WHERE user_id = ? AND topic_id = ?", (user_id, topic_id)
        ).fetchone()
    return UserProgress.from_row(row) if row else None


def get_user_progress_by_user(db_path: str, user_id: int) -> list[UserProgress]:
    with transaction(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM user_progress WHERE user_id = ? ORDER BY topic_id", (user_id,)
        ).fetchall()
    return [UserProgress.from_row(r) for r in rows]


def create_user_progress(db_path: str, user_id: int, topic_id: int, initial_mastery: int = 0,
                         questions_attempted: int = 0, questions_correct: int = 0) -> UserProgress:
    """Create the single progress record for (user, topic)."""
    with transaction(db_path) as conn:
        if not conn.execute("SELECT 1 FROM topics WHERE id = ?", (topic_id,)).fetchone():
            raise ValidationError(f"unknown topic {topic_id}")
        if conn.execute(
            "SELECT 1 FROM user_progress WHERE user_id = ? AND topic_id = ?", (user_id, topic_id)
        ).fetchone():
            raise DuplicateError("Progress for this topic already exists")
        cur = conn.execute(
            """INSERT INTO user_progress
                (user_id, topic_id, mastery_percentage, questions_attempted, questions_correct, last_attempted)
            VALUES (?, ?, ?, ?, ?, ?)""",
            (user_id, topic_id, _clamp_mastery(initial_mastery), questions_attempted, questions_correct,
             datetime.now().isoformat()),
        )
        row = conn.execute("SELECT * FROM user_progress WHERE id = ?", (cur.lastrowid,)).fetchone()
    return UserProgress.from_row(row)


def update_user_progress(db_path: str, user_id: int, topic_id: int, **fields) -> UserProgress:
    """Apply field updates and stamp last_attempted. Raises NotFound if absent."""
    _check_fields(fields, PROGRESS_FIELDS)
    if "mastery_percentage" in fields:
        fields["mastery_percentage"] = _clamp_mastery(fields["mastery_percentage"])
    fields["last_attempted"] = datetime.now().isoformat()
    assignments = ", ".join(f"{col} = ?" for col in fields)
    with transaction(db_path) as conn:
        cur = conn.execute(
            f"UPDATE user_progress SET {assignments} WHERE user_id = ? AND topic_id = ?",
            (*fields.values(), user_id, topic_id),
        )
        if cur.rowcount == 0:
            raise NotFound("Progress not found")
        row = conn.execute(
            "SELECT * FROM user_progress WHERE user_id = ? AND topic_id = ?", (user_id, topic_id)
        ).fetchone()
    return UserProgress.from_row(row)


# --- Sessions ---


def create_user_session(db_path: str, user_id: int, topic_id: int) -> UserSession:
    with transaction(db_path) as conn:
        if not conn.execute("SELECT 1 FROM topics WHERE id = ?", (topic_id,)).fetchone():
            raise ValidationError(f"unknown topic {topic_id}")
        cur = conn.execute(
            "INSERT INTO user_sessions (user_id, topic_id, start_time) VALUES (?, ?, ?)",
            (user_id, topic_id, datetime.now().isoformat()),
        )
        row = conn.execute("SELECT * FROM user_sessions WHERE id = ?", (cur.lastrowid,)).fetchone()
    return UserSession.from_row(row)


def get_user_session(db_path: str, session_id: int) -> UserSession | None:
    with transaction(db_path) as conn:
        row = conn.execute("SELECT * FROM user_sessions WHERE id = ?", (session_id,)).fetchone()
    return UserSession.from_row(row) if row else None


def get_user_sessions(db_path: str, user_id: int) -> list[UserSession]:
    with transaction(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM user_sessions WHERE user_id = ? ORDER BY id", (user_id,)
        ).fetchall()
    return [UserSession.from_row(r) for r in rows]


def update_user_session(db_path: str, session_id: int, **fields) -> UserSession:
    """Update a session. Setting end_time finalizes it and credits xp_earned to the user."""
    _check_fields(fields, SESSION_FIELDS)
    if not fields:
        raise ValidationError("nothing to update")
    assignments = ", ".join(f"{col} = ?" for col in fields)
    with transaction(db_path) as conn:
        row = conn.execute("SELECT * FROM user_sessions WHERE id = ?", (session_id,)).fetchone()
        if row is None:
            raise NotFound("Session not found")
        if row["end_time"] is not None:
            raise ValidationError(f"session {session_id} is already finalized")
        conn.execute(
            f"UPDATE user_sessions SET {assignments} WHERE id = ?", (*fields.values(), session_id)
        )
        row = conn.execute("SELECT * FROM user_sessions WHERE id = ?", (session_id,)).fetchone()
        if fields.get("end_time") and row["xp_earned"]:
            conn.execute(
                "UPDATE users SET xp_points = xp_points + ? WHERE id = ?",
                (row["xp_earned"], row["user_id"]),
            )
    return UserSession.from_row(row)


# --- Badges ---


def create_user_badge(db_path: str, user_id: int, badge_name: str, badge_description: str) -> UserBadge:
    """Append a badge and award the fixed badge XP to the user."""
    with transaction(db_path) as conn:
        cur = conn.execute(
            """INSERT INTO user_badges (user_id, badge_name, badge_description, date_earned)
            VALUES (?, ?, ?, ?)""",
            (user_id, badge_name, badge_description, datetime.now().isoformat()),
        )
        conn.execute(
            "UPDATE users SET xp_points = xp_points + ? WHERE id = ?", (BADGE_XP_AWARD, user_id)
        )
        row = conn.execute("SELECT * FROM user_badges WHERE id = ?", (cur.lastrowid,)).fetchone()
    logger.info("user %s earned badge %r", user_id, badge_name)
    return UserBadge.from_row(row)


def get_user_badges(db_path: str, user_id: int) -> list[UserBadge]:
    with transaction(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM user_badges WHERE user_id = ? ORDER BY id", (user_id,)
        ).fetchall()
    return [UserBadge.from_row(r) for r in rows]


# --- Parent summaries ---


def create_parent_summary(db_path: str, user_id: int, session_id: int, content: str) -> ParentSummary:
    with transaction(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO parent_summaries (user_id, session_id, content) VALUES (?, ?, ?)",
            (user_id, session_id, content),
        )
        row = conn.execute("SELECT * FROM parent_summaries WHERE id = ?", (cur.lastrowid,)).fetchone()
    return ParentSummary.from_row(row)


def get_parent_summaries_by_user(db_path: str, user_id: int) -> list[ParentSummary]:
    with transaction(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM parent_summaries WHERE user_id = ? ORDER BY id", (user_id,)
        ).fetchall()
    return [ParentSummary.from_row(r) for r in rows]


def mark_summary_sent(db_path: str, summary_id: int, sent_at: datetime | None = None) -> ParentSummary:
    """Record delivery of a summary by the messaging collaborator."""
    sent_at = sent_at or datetime.now()
    with transaction(db_path) as conn:
        cur = conn.execute(
            "UPDATE parent_summaries SET sent = 1, sent_at = ? WHERE id = ?",
            (sent_at.isoformat(), summary_id),
        )
        if cur.rowcount == 0:
            raise NotFound(f"summary {summary_id} not found")
        row = conn.execute("SELECT * FROM parent_summaries WHERE id = ?", (summary_id,)).fetchone()
    return ParentSummary.from_row(row)
