import pytest

from adaptive_tutor.db import init_db
from adaptive_tutor.seed import seed_all
from adaptive_tutor.users import create_user


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_tutor.db")
    return db_path


@pytest.fixture
def seeded_db(tmp_db):
    """Temporary database holding the packaged topic catalog."""
    init_db(tmp_db)
    seed_all(tmp_db)
    return tmp_db


@pytest.fixture
def learner(seeded_db):
    return create_user(seeded_db, name="Maya", username="maya", password="secret1", grade=7)


class ManualTimer:
    def __init__(self, clock, interval, function):
        self.clock = clock
        self.interval = interval
        self.function = function
        self.daemon = False
        self.deadline = None
        self.cancelled = False
        self.fired = False

    def start(self):
        self.deadline = self.clock.now + self.interval
        self.clock.timers.append(self)

    def cancel(self):
        self.cancelled = True


class ManualClock:
    """Deterministic stand-in for threading.Timer."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def timer(self, interval, function):
        return ManualTimer(self, interval, function)

    @property
    def live(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [t for t in self.live if t.deadline <= target]
            if not due:
                break
            t = min(due, key=lambda t: t.deadline)
            self.now = t.deadline
            t.fired = True
            t.function()
        self.now = target


@pytest.fixture
def clock():
    return ManualClock()
