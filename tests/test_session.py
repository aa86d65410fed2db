import pytest

from adaptive_tutor.errors import NotFound, ValidationError
from adaptive_tutor.progress import (
    create_user_progress, get_parent_summaries_by_user, get_user_badges, get_user_progress,
    get_user_session, get_user_sessions,
)
from adaptive_tutor.questions import add_question
from adaptive_tutor.session import ACTIVE, COMPLETED, SessionEngine
from adaptive_tutor.users import create_user


@pytest.fixture
def engine(seeded_db, clock):
    engine = SessionEngine(seeded_db, idle_after=10, detect_after=5, timer_factory=clock.timer)
    yield engine
    engine.shutdown()


def answer_key(engine, session_id):
    state = engine._sessions[session_id]
    return [q.correct_option for q in state.questions]


def wrong(option):
    return 0 if option != 0 else 1


def test_start_session(engine, learner, seeded_db):
    view = engine.start_session(learner.id, 1)
    assert view.status == ACTIVE
    assert view.question_number == 1
    assert view.total_questions == 3
    assert view.difficulty == 1
    assert view.question == "What is 1/4 + 2/4 equal to?"
    assert view.options == ("1/2", "3/4", "3/8", "Cannot add")
    assert view.accuracy is None
    assert view.checkpoint is False
    record = get_user_session(seeded_db, view.session_id)
    assert record.end_time is None


def test_start_session_validation(engine, learner):
    with pytest.raises(ValidationError):
        engine.start_session(learner.id, 999)
    with pytest.raises(ValidationError):
        engine.start_session(999, 1)
    # Percentages has no questions yet
    with pytest.raises(ValidationError):
        engine.start_session(learner.id, 3)


def test_failed_start_leaves_no_session_record(engine, learner, seeded_db):
    with pytest.raises(ValidationError):
        engine.start_session(learner.id, 3)
    assert get_user_sessions(seeded_db, learner.id) == []


def test_question_set_is_fixed_at_start(engine, learner, seeded_db):
    view = engine.start_session(learner.id, 1)
    before = list(engine._sessions[view.session_id].questions)
    add_question(seeded_db, 1, "Extra?", ["x", "y"], 0, 1)
    key = answer_key(engine, view.session_id)
    engine.submit_answer(view.session_id, key[0])
    assert engine._sessions[view.session_id].questions == before


def test_answer_advances_and_reports_feedback(engine, learner):
    view = engine.start_session(learner.id, 1)
    view = engine.submit_answer(view.session_id, 0)  # correct is 1
    assert view.question_number == 2
    assert view.last_answer["correct"] is False
    assert view.last_answer["correct_text"] == "3/4"
    assert view.accuracy == 0


def test_answer_option_out_of_range(engine, learner):
    view = engine.start_session(learner.id, 1)
    with pytest.raises(ValidationError):
        engine.submit_answer(view.session_id, 4)
    assert engine.view(view.session_id).question_number == 1


def test_difficulty_follows_parity_rule(engine, learner):
    view = engine.start_session(learner.id, 1)
    key = answer_key(engine, view.session_id)
    view = engine.submit_answer(view.session_id, key[0])
    assert view.difficulty == 1
    view = engine.submit_answer(view.session_id, key[1])
    assert view.difficulty == 2


def test_wrong_answer_lowers_difficulty(engine, learner):
    view = engine.start_session(learner.id, 1)
    key = answer_key(engine, view.session_id)
    engine.submit_answer(view.session_id, key[0])
    view = engine.submit_answer(view.session_id, key[1])
    assert view.difficulty == 2
    # 3 questions, 2 correct so far: 3 - 2 is odd
    view = engine.submit_answer(view.session_id, wrong(key[2]))
    assert view.difficulty == 1


def test_hint(engine, learner):
    view = engine.start_session(learner.id, 1)
    assert view.hint is None
    view = engine.request_hint(view.session_id)
    assert view.hint.startswith("When adding fractions")
    view = engine.submit_answer(view.session_id, 1)
    assert view.hint is None


def test_checkpoint_suspends_questions(engine, learner, clock):
    view = engine.start_session(learner.id, 1)
    clock.advance(15)
    view = engine.view(view.session_id)
    assert view.checkpoint is True
    assert view.question is None
    with pytest.raises(ValidationError):
        engine.submit_answer(view.session_id, 1)


def test_continue_after_checkpoint(engine, learner, clock):
    view = engine.start_session(learner.id, 1)
    clock.advance(15)
    view = engine.continue_after_checkpoint(view.session_id)
    assert view.checkpoint is False
    assert view.difficulty == 1
    assert view.question is not None


def test_simplify_after_checkpoint(engine, learner, clock):
    view = engine.start_session(learner.id, 1)
    key = answer_key(engine, view.session_id)
    engine.submit_answer(view.session_id, key[0])
    engine.submit_answer(view.session_id, key[1])
    clock.advance(15)
    view = engine.simplify_after_checkpoint(view.session_id)
    assert view.difficulty == 1
    assert view.checkpoint is False
    clock.advance(15)
    view = engine.simplify_after_checkpoint(view.session_id)
    assert view.difficulty == 1


def test_checkpoint_actions_require_checkpoint(engine, learner):
    view = engine.start_session(learner.id, 1)
    with pytest.raises(ValidationError):
        engine.continue_after_checkpoint(view.session_id)
    with pytest.raises(ValidationError):
        engine.simplify_after_checkpoint(view.session_id)


def test_answers_keep_learner_engaged(engine, learner, clock):
    view = engine.start_session(learner.id, 1)
    clock.advance(12)
    engine.submit_answer(view.session_id, 1)
    clock.advance(12)
    assert engine.view(view.session_id).checkpoint is False


def test_on_checkpoint_callback(seeded_db, learner, clock):
    raised = []
    engine = SessionEngine(seeded_db, idle_after=10, detect_after=5, timer_factory=clock.timer,
                           on_checkpoint=raised.append)
    view = engine.start_session(learner.id, 1)
    clock.advance(15)
    assert raised == [view.session_id]
    engine.shutdown()


def test_completion_scores_and_persists(engine, learner, seeded_db, clock):
    create_user_progress(seeded_db, learner.id, 1, 33)
    view = engine.start_session(learner.id, 1)
    session_id = view.session_id
    key = answer_key(engine, session_id)
    for option in key:
        view = engine.submit_answer(session_id, option)

    assert view.status == COMPLETED
    report = view.report
    assert report.complete
    assert report.outcome.accuracy == 100
    assert report.outcome.xp_earned == 25
    assert view.mastery == 53

    assert get_user_progress(seeded_db, learner.id, 1).mastery_percentage == 53
    final = get_user_session(seeded_db, session_id)
    assert final.end_time is not None
    assert (final.questions_attempted, final.questions_correct) == (3, 3)
    assert [b.badge_name for b in get_user_badges(seeded_db, learner.id)] == ["Fractions Explorer"]
    summaries = get_parent_summaries_by_user(seeded_db, learner.id)
    assert summaries[0].content == (
        "Maya completed today's goal. Topic: Fractions. Accuracy: 100%. Streak: 0 days."
    )
    # Session state is discarded and its detector silenced
    with pytest.raises(NotFound):
        engine.view(session_id)
    assert clock.live == []


def test_low_accuracy_earns_no_badge(engine, learner, seeded_db):
    view = engine.start_session(learner.id, 1)
    key = answer_key(engine, view.session_id)
    for option in key:
        view = engine.submit_answer(view.session_id, wrong(option))
    assert view.report.outcome.accuracy == 0
    assert view.report.outcome.xp_earned == 0
    assert get_user_badges(seeded_db, learner.id) == []
    assert get_user_progress(seeded_db, learner.id, 1).mastery_percentage == 0


def test_session_size_limit(seeded_db, learner, clock):
    for i in range(6):
        add_question(seeded_db, 2, f"Extra {i}", ["a", "b"], 0, 1)
    engine = SessionEngine(seeded_db, timer_factory=clock.timer)
    view = engine.start_session(learner.id, 2)
    assert view.total_questions == 5
    engine.shutdown()


def test_abandon(engine, learner, seeded_db, clock):
    view = engine.start_session(learner.id, 1)
    engine.abandon(view.session_id)
    assert clock.live == []
    with pytest.raises(NotFound):
        engine.submit_answer(view.session_id, 0)
    assert get_user_session(seeded_db, view.session_id).end_time is None


def test_two_thirds_misses_badge_threshold(engine, learner, seeded_db):
    create_user_progress(seeded_db, learner.id, 1, 33)
    view = engine.start_session(learner.id, 1)
    key = answer_key(engine, view.session_id)
    engine.submit_answer(view.session_id, key[0])
    engine.submit_answer(view.session_id, key[1])
    view = engine.submit_answer(view.session_id, wrong(key[2]))
    assert view.report.outcome.accuracy == 67
    assert view.report.outcome.xp_earned == 10
    assert view.mastery == 46
    assert get_user_badges(seeded_db, learner.id) == []


def test_one_session_in_flight_per_learner(engine, learner, seeded_db):
    first = engine.start_session(learner.id, 1)
    with pytest.raises(ValidationError):
        engine.start_session(learner.id, 1)
    with pytest.raises(ValidationError):
        engine.start_session(learner.id, 2)
    assert len(get_user_sessions(seeded_db, learner.id)) == 1

    engine.abandon(first.session_id)
    second = engine.start_session(learner.id, 1)
    assert second.status == ACTIVE


def test_other_learners_start_independently(engine, learner, seeded_db):
    other = create_user(seeded_db, name="Leo", username="leo", password="secret2", grade=8)
    engine.start_session(learner.id, 1)
    view = engine.start_session(other.id, 1)
    assert view.status == ACTIVE


def test_back_to_back_sessions_accumulate_progress(engine, learner, seeded_db):
    for _ in range(2):
        view = engine.start_session(learner.id, 1)
        for option in answer_key(engine, view.session_id):
            view = engine.submit_answer(view.session_id, option)
        assert view.report.complete
    stored = get_user_progress(seeded_db, learner.id, 1)
    assert stored.mastery_percentage == 40
    assert (stored.questions_attempted, stored.questions_correct) == (6, 6)
