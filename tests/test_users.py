from datetime import datetime, timedelta

import pytest

from adaptive_tutor.errors import DuplicateError, NotFound, ValidationError
from adaptive_tutor.users import (
    add_xp, authenticate, create_user, get_user, get_user_by_username, next_streak, record_login,
    update_user,
)


def test_create_user_defaults(seeded_db):
    user = create_user(seeded_db, name="Maya", username="maya", password="secret1", grade=7)
    assert user.id is not None
    assert user.xp_points == 0
    assert user.streak == 0
    assert user.current_subject == "Mathematics"
    assert get_user_by_username(seeded_db, "maya").id == user.id


def test_create_user_duplicate_username(seeded_db):
    create_user(seeded_db, name="Maya", username="maya", password="secret1", grade=7)
    with pytest.raises(DuplicateError):
        create_user(seeded_db, name="Other", username="maya", password="secret2", grade=8)


@pytest.mark.parametrize("fields", [
    {"name": "M", "username": "maya", "password": "secret1", "grade": 7},
    {"name": "Maya", "username": "ma", "password": "secret1", "grade": 7},
    {"name": "Maya", "username": "maya", "password": "short", "grade": 7},
    {"name": "Maya", "username": "maya", "password": "secret1", "grade": 5},
    {"name": "Maya", "username": "maya", "password": "secret1", "grade": 13},
])
def test_create_user_validation(seeded_db, fields):
    with pytest.raises(ValidationError):
        create_user(seeded_db, **fields)


def test_authenticate(seeded_db, learner):
    assert authenticate(seeded_db, "maya", "secret1").id == learner.id
    assert authenticate(seeded_db, "maya", "wrong!!") is None
    assert authenticate(seeded_db, "nobody", "secret1") is None


def test_next_streak_rules():
    last = datetime(2026, 3, 1, 18, 0)
    assert next_streak(4, last, last + timedelta(hours=3)) == 4
    assert next_streak(4, last, last + timedelta(days=1, hours=2)) == 5
    assert next_streak(4, last, last + timedelta(days=3)) == 1


def test_record_login_consecutive_day(seeded_db, learner):
    first = datetime.fromisoformat(learner.last_active)
    user = record_login(seeded_db, learner.id, now=first + timedelta(days=1))
    assert user.streak == 1
    user = record_login(seeded_db, learner.id, now=first + timedelta(days=2))
    assert user.streak == 2
    assert get_user(seeded_db, learner.id).streak == 2


def test_record_login_unknown_user(seeded_db):
    with pytest.raises(NotFound):
        record_login(seeded_db, 999)


def test_add_xp(seeded_db, learner):
    assert add_xp(seeded_db, learner.id, 30) == 30
    assert add_xp(seeded_db, learner.id, 5) == 35
    with pytest.raises(NotFound):
        add_xp(seeded_db, 999, 5)


def test_update_user_profile(seeded_db, learner):
    user = update_user(seeded_db, learner.id, weekly_goal_topics=5, weekly_goal_minutes=20,
                       current_subject="Science", parent_contact="parent@example.com")
    assert (user.weekly_goal_topics, user.weekly_goal_minutes) == (5, 20)
    assert user.current_subject == "Science"
    assert get_user(seeded_db, learner.id).parent_contact == "parent@example.com"


def test_update_user_never_changes_password(seeded_db, learner):
    with pytest.raises(ValidationError):
        update_user(seeded_db, learner.id, password="newpass1", weekly_goal_topics=4)
    assert authenticate(seeded_db, "maya", "secret1") is not None
    assert get_user(seeded_db, learner.id).weekly_goal_topics == 3


@pytest.mark.parametrize("fields", [
    {},
    {"username": "someone"},
    {"xp_points": 1000},
    {"grade": 14},
    {"name": "M"},
    {"weekly_goal_topics": 0},
])
def test_update_user_validation(seeded_db, learner, fields):
    with pytest.raises(ValidationError):
        update_user(seeded_db, learner.id, **fields)


def test_update_unknown_user(seeded_db):
    with pytest.raises(NotFound):
        update_user(seeded_db, 999, language="Spanish")
