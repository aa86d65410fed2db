"""Learning-session orchestration.

A SessionEngine owns the in-memory state of every active session: the
fixed question sequence, the answer pointer, the running correct count,
the current difficulty and a disengagement detector. Persistence goes
through the progress store; scoring happens once, when the last question
is answered, after which the in-memory state is dropped.
"""
import logging
import threading
from dataclasses import dataclass, field

from adaptive_tutor import adapter, progress, scorer
from adaptive_tutor.config import (
    DETECTION_GRACE_SECONDS, IDLE_THRESHOLD_SECONDS, MIN_DIFFICULTY, SESSION_SIZE,
)
from adaptive_tutor.detector import DETECTED, DisengagementDetector
from adaptive_tutor.errors import NotFound, ValidationError
from adaptive_tutor.questions import get_questions_for_topic, get_topic
from adaptive_tutor.users import get_user

logger = logging.getLogger(__name__)

NOT_STARTED = "not-started"
ACTIVE = "active"
COMPLETING = "completing"
COMPLETED = "completed"


@dataclass
class SessionState:
    session_id: int
    user_id: int
    topic_id: int
    topic_name: str
    user_name: str
    streak: int
    questions: list
    previous_mastery: int | None
    detector: DisengagementDetector
    difficulty: int = MIN_DIFFICULTY
    index: int = 0
    correct: int = 0
    status: str = NOT_STARTED
    hint_shown: bool = False
    last_answer: dict | None = None

    @property
    def current_question(self):
        if self.index < len(self.questions):
            return self.questions[self.index]
        return None

    @property
    def running_accuracy(self) -> int | None:
        if self.index == 0:
            return None
        return scorer.round_half_up(self.correct / self.index * 100)


@dataclass
class SessionView:
    """What the presentation layer renders after each call."""
    session_id: int
    status: str
    topic_name: str
    difficulty: int
    question_number: int
    total_questions: int
    checkpoint: bool = False
    question: str | None = None
    options: tuple = ()
    hint: str | None = None
    accuracy: int | None = None
    mastery: int = 0
    last_answer: dict | None = None
    report: scorer.CompletionReport | None = field(default=None, repr=False)


class SessionEngine:
    def __init__(self, db_path: str, session_size: int = SESSION_SIZE,
                 idle_after: float = IDLE_THRESHOLD_SECONDS,
                 detect_after: float = DETECTION_GRACE_SECONDS,
                 timer_factory=threading.Timer, on_checkpoint=None):
        self.db_path = db_path
        self.session_size = session_size
        self.idle_after = idle_after
        self.detect_after = detect_after
        self._timer_factory = timer_factory
        self._on_checkpoint = on_checkpoint
        self._sessions: dict[int, SessionState] = {}

    # --- lifecycle ---

    def start_session(self, user_id: int, topic_id: int) -> SessionView:
        user = get_user(self.db_path, user_id)
        if user is None:
            raise ValidationError(f"unknown user {user_id}")
        for other in self._sessions.values():
            if other.user_id == user_id:
                raise ValidationError(
                    f"user {user_id} already has session {other.session_id} in progress"
                )
        topic = get_topic(self.db_path, topic_id)
        if topic is None:
            raise ValidationError(f"unknown topic {topic_id}")
        bank = get_questions_for_topic(self.db_path, topic_id)
        if not bank:
            raise ValidationError(f"topic {topic.name!r} has no questions")

        existing = progress.get_user_progress(self.db_path, user_id, topic_id)
        questions = adapter.select_session_questions(bank, MIN_DIFFICULTY, self.session_size)
        record = progress.create_user_session(self.db_path, user_id, topic_id)

        state = SessionState(
            session_id=record.id, user_id=user_id, topic_id=topic_id, topic_name=topic.name,
            user_name=user.name, streak=user.streak,
            questions=questions,
            previous_mastery=existing.mastery_percentage if existing else None,
            detector=self._make_detector(record.id),
        )
        state.status = ACTIVE
        self._sessions[record.id] = state
        state.detector.start()
        logger.info("session %s started: user %s, topic %r, %d questions",
                    record.id, user_id, topic.name, len(questions))
        return self._view(state)

    def submit_answer(self, session_id: int, option_index: int) -> SessionView:
        state = self._active(session_id)
        if state.detector.state == DETECTED:
            raise ValidationError("session is paused at a disengagement checkpoint")
        question = state.current_question
        if not 0 <= option_index < len(question.options):
            raise ValidationError(f"option {option_index} outside {len(question.options)} options")

        state.detector.register_interaction()
        is_correct = question.is_correct(option_index)
        new_difficulty = adapter.next_difficulty(
            state.difficulty, is_correct, state.correct, len(state.questions)
        )
        if new_difficulty != state.difficulty:
            logger.info("session %s: difficulty %d -> %d", session_id, state.difficulty, new_difficulty)
        state.difficulty = new_difficulty
        if is_correct:
            state.correct += 1
        state.last_answer = {
            "question_id": question.id,
            "correct": is_correct,
            "correct_option": question.correct_option,
            "correct_text": question.correct_text,
        }
        state.index += 1
        state.hint_shown = False

        if state.index >= len(state.questions):
            return self._complete(state)
        return self._view(state)

    def request_hint(self, session_id: int) -> SessionView:
        state = self._active(session_id)
        state.detector.register_interaction()
        state.hint_shown = True
        return self._view(state)

    def continue_after_checkpoint(self, session_id: int) -> SessionView:
        state = self._at_checkpoint(session_id)
        state.detector.reset()
        return self._view(state)

    def simplify_after_checkpoint(self, session_id: int) -> SessionView:
        state = self._at_checkpoint(session_id)
        state.difficulty = adapter.ease(state.difficulty)
        logger.info("session %s: learner asked for an easier path, difficulty now %d",
                    session_id, state.difficulty)
        state.detector.reset()
        return self._view(state)

    def view(self, session_id: int) -> SessionView:
        return self._view(self._get(session_id))

    def abandon(self, session_id: int) -> None:
        """Drop an unfinished session without scoring it."""
        state = self._sessions.pop(session_id, None)
        if state is not None:
            state.detector.stop()
            logger.info("session %s abandoned at question %d", session_id, state.index + 1)

    def shutdown(self) -> None:
        for session_id in list(self._sessions):
            self.abandon(session_id)

    # --- internals ---

    def _make_detector(self, session_id: int) -> DisengagementDetector:
        def on_change(new_state):
            if new_state == DETECTED and self._on_checkpoint is not None:
                self._on_checkpoint(session_id)

        return DisengagementDetector(
            idle_after=self.idle_after, detect_after=self.detect_after,
            timer_factory=self._timer_factory, on_change=on_change,
        )

    def _get(self, session_id: int) -> SessionState:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise NotFound(f"no active session {session_id}") from None

    def _active(self, session_id: int) -> SessionState:
        state = self._get(session_id)
        if state.status != ACTIVE:
            raise ValidationError(f"session {session_id} is {state.status}")
        return state

    def _at_checkpoint(self, session_id: int) -> SessionState:
        state = self._active(session_id)
        if state.detector.state != DETECTED:
            raise ValidationError(f"session {session_id} is not at a checkpoint")
        return state

    def _complete(self, state: SessionState) -> SessionView:
        state.status = COMPLETING
        state.detector.stop()
        outcome = scorer.score_session(
            correct=state.correct, total=len(state.questions),
            previous_mastery=state.previous_mastery, topic_name=state.topic_name,
            user_name=state.user_name, streak=state.streak,
        )
        report = scorer.record_outcome(
            self.db_path, state.user_id, state.topic_id, state.session_id, outcome
        )
        state.status = COMPLETED
        del self._sessions[state.session_id]
        logger.info("session %s completed: %d%% accuracy, %d XP", state.session_id,
                    outcome.accuracy, outcome.xp_earned)
        return self._view(state, report)

    def _view(self, state: SessionState, report=None) -> SessionView:
        question = state.current_question
        mastery = state.previous_mastery or 0
        if report is not None:
            mastery = report.outcome.new_mastery
        view = SessionView(
            session_id=state.session_id,
            status=state.status,
            topic_name=state.topic_name,
            difficulty=state.difficulty,
            question_number=min(state.index + 1, len(state.questions)),
            total_questions=len(state.questions),
            checkpoint=state.status == ACTIVE and state.detector.state == DETECTED,
            accuracy=state.running_accuracy,
            mastery=mastery,
            last_answer=state.last_answer,
            report=report,
        )
        if question is not None and not view.checkpoint:
            view.question = question.text
            view.options = question.options
            view.hint = question.hint if state.hint_shown else None
        return view
