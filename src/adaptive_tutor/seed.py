"""Seed the database with the topic catalog and its question bank."""
import json
from pathlib import Path
from adaptive_tutor.db import get_connection

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the database has already been seeded with topics."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM topics").fetchone()[0]
    conn.close()
    return count > 0


def load_catalog() -> dict:
    return json.loads((CONTENT_DIR / "catalog.json").read_text(encoding="utf-8"))


def seed_topics(db_path: str, catalog: dict | None = None) -> dict:
    """Insert topics and their questions. Returns a name -> topic id map."""
    catalog = catalog or load_catalog()
    conn = get_connection(db_path)
    ids = {}
    for topic in catalog["topics"]:
        cur = conn.execute(
            'INSERT INTO topics (name, subject, "order", is_locked) VALUES (?, ?, ?, ?)',
            (topic["name"], topic["subject"], topic["order"], int(topic["is_locked"])),
        )
        ids[topic["name"]] = cur.lastrowid
        for q in topic.get("questions", []):
            conn.execute(
                """INSERT INTO questions
                (topic_id, text, options, correct_option, difficulty, hint)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (cur.lastrowid, q["text"], json.dumps(q["options"]), q["correct_option"],
                 q["difficulty"], q.get("hint")),
            )
    conn.commit()
    conn.close()
    return ids


def seed_all(db_path: str) -> None:
    """Seed the catalog once."""
    if is_seeded(db_path):
        return
    seed_topics(db_path)
