"""Difficulty adaptation: session question selection and per-answer level changes."""
import math

from adaptive_tutor.config import MAX_DIFFICULTY, MIN_DIFFICULTY, SESSION_SIZE


def clamp_difficulty(level: int, lowest: int = MIN_DIFFICULTY, highest: int = MAX_DIFFICULTY) -> int:
    return max(lowest, min(highest, level))


def select_session_questions(questions: list, difficulty: int, size: int = SESSION_SIZE) -> list:
    """Build the fixed question sequence for a session.

    Questions at `difficulty` come first, then the rest of the bank in its
    original order, cut at `size`. A short bank yields a short session.
    """
    matching = [q for q in questions if q.difficulty == difficulty]
    if len(matching) >= size:
        return matching[:size]
    others = [q for q in questions if q.difficulty != difficulty]
    return (matching + others)[:size]


def next_difficulty(difficulty: int, correct: bool, correct_so_far: int, session_length: int,
                    lowest: int = MIN_DIFFICULTY, highest: int = MAX_DIFFICULTY) -> int:
    """Difficulty after one answer.

    `correct_so_far` is the session's correct count before this answer is
    counted. A correct answer steps up when that count is odd; a wrong one
    steps down when session_length - correct_so_far is odd.
    """
    if correct:
        if correct_so_far % 2 == 1:
            return clamp_difficulty(difficulty + 1, lowest, highest)
    elif (session_length - correct_so_far) % 2 == 1:
        return clamp_difficulty(difficulty - 1, lowest, highest)
    return difficulty


def ease(difficulty: int, lowest: int = MIN_DIFFICULTY) -> int:
    """One level easier, bypassing the parity rule."""
    return max(lowest, difficulty - 1)


def starting_level(mastery: int) -> int:
    """Level suggested by a diagnostic mastery score (1 beginner .. 3 advanced)."""
    return clamp_difficulty(math.ceil(mastery / 33))


def level_label(level: int) -> str:
    return {1: "Beginner", 2: "Intermediate"}.get(level, "Advanced")
