"""Question bank and topic catalog access."""
import json

from adaptive_tutor.db import transaction
from adaptive_tutor.errors import ValidationError
from adaptive_tutor.models import Question, Topic


def get_topic(db_path: str, topic_id: int) -> Topic | None:
    with transaction(db_path) as conn:
        row = conn.execute("SELECT * FROM topics WHERE id = ?", (topic_id,)).fetchone()
    return Topic.from_row(row) if row else None


def get_topics_by_subject(db_path: str, subject: str) -> list[Topic]:
    with transaction(db_path) as conn:
        rows = conn.execute(
            'SELECT * FROM topics WHERE subject = ? ORDER BY "order"', (subject,)
        ).fetchall()
    return [Topic.from_row(r) for r in rows]


def get_question(db_path: str, question_id: int) -> Question | None:
    with transaction(db_path) as conn:
        row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
    return Question.from_row(row) if row else None


def get_questions_for_topic(db_path: str, topic_id: int, difficulty: int | None = None) -> list[Question]:
    """Questions of a topic in insertion order, optionally of one difficulty.

    An unknown topic or an empty filter yields an empty list.
    """
    with transaction(db_path) as conn:
        if difficulty is None:
            rows = conn.execute(
                "SELECT * FROM questions WHERE topic_id = ? ORDER BY id", (topic_id,)
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM questions WHERE topic_id = ? AND difficulty = ? ORDER BY id",
                (topic_id, difficulty),
            ).fetchall()
    return [Question.from_row(r) for r in rows]


def add_question(db_path: str, topic_id: int, text: str, options: list, correct_option: int,
                 difficulty: int, hint: str | None = None) -> Question:
    if not 0 <= correct_option < len(options):
        raise ValidationError(f"correct option {correct_option} outside {len(options)} options")
    with transaction(db_path) as conn:
        if not conn.execute("SELECT 1 FROM topics WHERE id = ?", (topic_id,)).fetchone():
            raise ValidationError(f"unknown topic {topic_id}")
        cur = conn.execute(
            """INSERT INTO questions (topic_id, text, options, correct_option, difficulty, hint)
            VALUES (?, ?, ?, ?, ?, ?)""",
            (topic_id, text, json.dumps(list(options)), correct_option, difficulty, hint),
        )
        row = conn.execute("SELECT * FROM questions WHERE id = ?", (cur.lastrowid,)).fetchone()
    return Question.from_row(row)
