"""End-of-session scoring: accuracy, mastery, XP, badges and the parent digest."""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

from adaptive_tutor import progress
from adaptive_tutor.config import (
    ACCURACY_BONUS_THRESHOLD, ACCURACY_BONUS_XP, BADGE_ACCURACY_THRESHOLD,
    BADGE_MASTERY_CEILING, XP_PER_CORRECT,
)
from adaptive_tutor.errors import DuplicateError, TutorError, ValidationError

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calc_accuracy(correct: int, total: int) -> int:
    if total <= 0:
        raise ValidationError("cannot score a session without questions")
    if not 0 <= correct <= total:
        raise ValidationError(f"correct answers {correct} outside 0..{total}")
    return round_half_up(correct / total * 100)


def calc_mastery_delta(accuracy: int) -> int:
    return round_half_up(accuracy / 5)


def calc_new_mastery(previous: int, accuracy: int) -> int:
    """Mastery only grows here, capped at 100."""
    return min(100, previous + calc_mastery_delta(accuracy))


def calc_xp(correct: int, accuracy: int) -> int:
    bonus = ACCURACY_BONUS_XP if accuracy >= ACCURACY_BONUS_THRESHOLD else 0
    return correct * XP_PER_CORRECT + bonus


def badge_eligible(accuracy: int, previous_mastery: int | None) -> bool:
    """Explorer badge gate, judged on mastery before this session is applied."""
    if accuracy < BADGE_ACCURACY_THRESHOLD:
        return False
    return previous_mastery is None or previous_mastery < BADGE_MASTERY_CEILING


def badge_name(topic_name: str) -> str:
    return f"{topic_name} Explorer"


def parent_summary_text(user_name: str, topic_name: str, accuracy: int, streak: int) -> str:
    days = "day" if streak == 1 else "days"
    return (
        f"{user_name} completed today's goal. Topic: {topic_name}. "
        f"Accuracy: {accuracy}%. Streak: {streak} {days}."
    )


@dataclass
class SessionOutcome:
    questions_attempted: int
    questions_correct: int
    accuracy: int
    previous_mastery: int | None
    new_mastery: int
    xp_earned: int
    badge_earned: bool
    badge_name: str
    badge_description: str
    parent_summary: str
    session_summary: str

    @property
    def mastery_delta(self) -> int:
        return self.new_mastery - (self.previous_mastery or 0)


def score_session(correct: int, total: int, previous_mastery: int | None,
                  topic_name: str, user_name: str, streak: int) -> SessionOutcome:
    accuracy = calc_accuracy(correct, total)
    return SessionOutcome(
        questions_attempted=total,
        questions_correct=correct,
        accuracy=accuracy,
        previous_mastery=previous_mastery,
        new_mastery=calc_new_mastery(previous_mastery or 0, accuracy),
        xp_earned=calc_xp(correct, accuracy),
        badge_earned=badge_eligible(accuracy, previous_mastery),
        badge_name=badge_name(topic_name),
        badge_description=f"Completed {topic_name} with at least {BADGE_ACCURACY_THRESHOLD}% accuracy",
        parent_summary=parent_summary_text(user_name, topic_name, accuracy, streak),
        session_summary=f"Completed {total} questions with {accuracy}% accuracy.",
    )


@dataclass
class CompletionReport:
    session_id: int
    outcome: SessionOutcome
    failures: dict = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failures


def record_outcome(db_path: str, user_id: int, topic_id: int, session_id: int,
                   outcome: SessionOutcome) -> CompletionReport:
    """Persist a scored session.

    Each write is attempted on its own; failures are collected in the
    report instead of stopping the remaining writes.
    """
    report = CompletionReport(session_id=session_id, outcome=outcome)

    def save_progress():
        # Mastery is applied to the stored value, which may have moved since the session began.
        current = progress.get_user_progress(db_path, user_id, topic_id)
        if current is None:
            try:
                progress.create_user_progress(
                    db_path, user_id, topic_id, outcome.new_mastery,
                    questions_attempted=outcome.questions_attempted,
                    questions_correct=outcome.questions_correct,
                )
                return
            except DuplicateError:
                current = progress.get_user_progress(db_path, user_id, topic_id)
        progress.update_user_progress(
            db_path, user_id, topic_id,
            mastery_percentage=calc_new_mastery(current.mastery_percentage, outcome.accuracy),
            questions_attempted=current.questions_attempted + outcome.questions_attempted,
            questions_correct=current.questions_correct + outcome.questions_correct,
        )

    def finalize_session():
        progress.update_user_session(
            db_path, session_id,
            end_time=datetime.now().isoformat(),
            questions_attempted=outcome.questions_attempted,
            questions_correct=outcome.questions_correct,
            xp_earned=outcome.xp_earned,
            summary=outcome.session_summary,
        )

    def award_badge():
        progress.create_user_badge(db_path, user_id, outcome.badge_name, outcome.badge_description)

    def save_summary():
        progress.create_parent_summary(db_path, user_id, session_id, outcome.parent_summary)

    steps = [("progress", save_progress), ("session", finalize_session)]
    if outcome.badge_earned:
        steps.append(("badge", award_badge))
    steps.append(("summary", save_summary))

    for name, step in steps:
        try:
            step()
        except TutorError as e:
            logger.warning("session %s: %s step failed: %s", session_id, name, e)
            report.failures[name] = e
    return report
