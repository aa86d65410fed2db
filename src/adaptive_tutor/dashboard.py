"""Learner dashboard: per-topic mastery and overall stats."""
from datetime import datetime, timedelta

from adaptive_tutor.db import transaction
from adaptive_tutor.progress import get_user_badges
from adaptive_tutor.scorer import round_half_up


def get_mastery_label(score: float) -> str:
    if score >= 80:
        return "MASTERED"
    elif score >= 50:
        return "PROFICIENT"
    elif score > 0:
        return "LEARNING"
    return "NOT STARTED"


def get_mastery_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 50:
        return "yellow"
    elif score > 0:
        return "dark_orange"
    return "red"


def get_topic_scores(db_path: str, user_id: int, subject: str = "Mathematics") -> list[dict]:
    with transaction(db_path) as conn:
        rows = conn.execute(
            """SELECT t.id, t.name, t."order", t.is_locked,
                COALESCE(p.mastery_percentage, 0) AS mastery,
                COALESCE(p.questions_attempted, 0) AS attempted,
                COALESCE(p.questions_correct, 0) AS correct,
                p.id IS NOT NULL AS assessed
            FROM topics t
            LEFT JOIN user_progress p ON p.topic_id = t.id AND p.user_id = ?
            WHERE t.subject = ?
            ORDER BY t."order"
            """,
            (user_id, subject),
        ).fetchall()
    return [
        {
            "topic_id": r["id"],
            "name": r["name"],
            "order": r["order"],
            "is_locked": bool(r["is_locked"]),
            "assessed": bool(r["assessed"]),
            "mastery": r["mastery"],
            "attempted": r["attempted"],
            "correct": r["correct"],
            "label": get_mastery_label(r["mastery"]),
        }
        for r in rows
    ]


def weekly_goal_percent(done: int, goal: int) -> int:
    if goal <= 0:
        return 100
    return min(100, round_half_up(done / goal * 100))


def get_learner_stats(db_path: str, user_id: int, now: datetime | None = None) -> dict:
    week_start = ((now or datetime.now()) - timedelta(days=7)).isoformat()
    with transaction(db_path) as conn:
        user = conn.execute(
            "SELECT xp_points, streak, weekly_goal_topics, weekly_goal_minutes FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
        topics_this_week = conn.execute(
            "SELECT COUNT(*) FROM user_progress WHERE user_id = ? AND last_attempted >= ?",
            (user_id, week_start),
        ).fetchone()[0]
        sessions = conn.execute(
            "SELECT COUNT(*) FROM user_sessions WHERE user_id = ? AND end_time IS NOT NULL", (user_id,)
        ).fetchone()[0]
        row = conn.execute(
            """SELECT SUM(questions_attempted) AS t, SUM(questions_correct) AS c
            FROM user_sessions WHERE user_id = ? AND end_time IS NOT NULL""",
            (user_id,),
        ).fetchone()
    avg = round(row["c"] / row["t"] * 100, 1) if row["t"] else 0.0
    goal = user["weekly_goal_topics"] if user else 0
    return {
        "xp_points": user["xp_points"] if user else 0,
        "streak": user["streak"] if user else 0,
        "sessions_completed": sessions,
        "badges": [b.badge_name for b in get_user_badges(db_path, user_id)],
        "avg_accuracy": avg,
        "weekly_topics_done": topics_this_week,
        "weekly_goal_topics": goal,
        "weekly_goal_minutes": user["weekly_goal_minutes"] if user else 0,
        "weekly_goal_percent": weekly_goal_percent(topics_this_week, goal),
    }
