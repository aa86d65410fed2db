"""Short placement check that creates a learner's first progress record for a topic."""
import logging
from dataclasses import dataclass

from adaptive_tutor.adapter import level_label, starting_level
from adaptive_tutor.config import DIAGNOSTIC_SIZE
from adaptive_tutor.errors import ValidationError
from adaptive_tutor.progress import create_user_progress
from adaptive_tutor.questions import get_questions_for_topic, get_topic
from adaptive_tutor.scorer import round_half_up

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticResult:
    score: int
    total: int
    mastery: int
    level: int

    @property
    def label(self) -> str:
        return level_label(self.level)

    @property
    def message(self) -> str:
        if self.mastery > 66:
            return "Great job! You're ready for more advanced content."
        if self.mastery > 33:
            return "Good start! We'll help you build on this foundation."
        return "Don't worry! We'll help you improve step by step."


def get_diagnostic_questions(db_path: str, topic_id: int) -> list:
    if get_topic(db_path, topic_id) is None:
        raise ValidationError(f"unknown topic {topic_id}")
    return get_questions_for_topic(db_path, topic_id)[:DIAGNOSTIC_SIZE]


def grade_diagnostic(questions: list, answers: list) -> int:
    if len(answers) != len(questions):
        raise ValidationError(f"expected {len(questions)} answers, got {len(answers)}")
    return sum(1 for q, a in zip(questions, answers) if q.is_correct(a))


def complete_diagnostic(db_path: str, user_id: int, topic_id: int, score: int, total: int) -> DiagnosticResult:
    """Store the baseline mastery; fails with DuplicateError if the topic was already assessed."""
    if total <= 0 or not 0 <= score <= total:
        raise ValidationError(f"invalid diagnostic score {score}/{total}")
    mastery = round_half_up(score / total * 100)
    create_user_progress(db_path, user_id, topic_id, mastery)
    result = DiagnosticResult(score=score, total=total, mastery=mastery, level=starting_level(mastery))
    logger.info("user %s diagnostic on topic %s: %d/%d, level %d",
                user_id, topic_id, score, total, result.level)
    return result


def skip_diagnostic(db_path: str, user_id: int, topic_id: int) -> DiagnosticResult:
    """Skipping places the learner at the bottom level."""
    return complete_diagnostic(db_path, user_id, topic_id, 0, DIAGNOSTIC_SIZE)
