"""Data classes for the tutor domain model."""
import json
from dataclasses import dataclass
from typing import Optional

from adaptive_tutor.errors import ValidationError


@dataclass
class User:
    id: int
    username: str
    name: str
    grade: int
    language: str
    last_active: str
    xp_points: int = 0
    streak: int = 0
    current_subject: str = "Mathematics"
    weekly_goal_topics: int = 3
    weekly_goal_minutes: int = 15
    parent_contact: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            id=row["id"], username=row["username"], name=row["name"],
            grade=row["grade"], language=row["language"], last_active=row["last_active"],
            xp_points=row["xp_points"], streak=row["streak"],
            current_subject=row["current_subject"],
            weekly_goal_topics=row["weekly_goal_topics"],
            weekly_goal_minutes=row["weekly_goal_minutes"],
            parent_contact=row["parent_contact"],
        )


@dataclass
class Topic:
    id: int
    name: str
    subject: str
    order: int
    is_locked: bool = True

    @classmethod
    def from_row(cls, row) -> "Topic":
        return cls(
            id=row["id"], name=row["name"], subject=row["subject"],
            order=row["order"], is_locked=bool(row["is_locked"]),
        )


@dataclass(frozen=True)
class Question:
    id: int
    topic_id: int
    text: str
    options: tuple
    correct_option: int
    difficulty: int
    hint: Optional[str] = None

    def __post_init__(self):
        if not 0 <= self.correct_option < len(self.options):
            raise ValidationError(
                f"question {self.id}: correct option {self.correct_option} "
                f"outside {len(self.options)} options"
            )

    def is_correct(self, option_index: int) -> bool:
        return option_index == self.correct_option

    @property
    def correct_text(self) -> str:
        return self.options[self.correct_option]

    @classmethod
    def from_row(cls, row) -> "Question":
        return cls(
            id=row["id"], topic_id=row["topic_id"], text=row["text"],
            options=tuple(json.loads(row["options"])),
            correct_option=row["correct_option"], difficulty=row["difficulty"],
            hint=row["hint"],
        )


@dataclass
class UserProgress:
    id: int
    user_id: int
    topic_id: int
    last_attempted: str
    mastery_percentage: int = 0
    questions_attempted: int = 0
    questions_correct: int = 0

    @classmethod
    def from_row(cls, row) -> "UserProgress":
        return cls(
            id=row["id"], user_id=row["user_id"], topic_id=row["topic_id"],
            last_attempted=row["last_attempted"],
            mastery_percentage=row["mastery_percentage"],
            questions_attempted=row["questions_attempted"],
            questions_correct=row["questions_correct"],
        )


@dataclass
class UserSession:
    id: int
    user_id: int
    topic_id: int
    start_time: str
    end_time: Optional[str] = None
    questions_attempted: int = 0
    questions_correct: int = 0
    xp_earned: int = 0
    summary: Optional[str] = None

    @property
    def is_finalized(self) -> bool:
        return self.end_time is not None

    @classmethod
    def from_row(cls, row) -> "UserSession":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass
class UserBadge:
    id: int
    user_id: int
    badge_name: str
    badge_description: str
    date_earned: str

    @classmethod
    def from_row(cls, row) -> "UserBadge":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass
class ParentSummary:
    id: int
    user_id: int
    session_id: int
    content: str
    sent: bool = False
    sent_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "ParentSummary":
        return cls(
            id=row["id"], user_id=row["user_id"], session_id=row["session_id"],
            content=row["content"], sent=bool(row["sent"]), sent_at=row["sent_at"],
        )
