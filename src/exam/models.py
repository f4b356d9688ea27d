"""
Domain types for the exam session engine.

These are plain dataclasses shared by the stores, the engine and the API
layer. Store implementations translate their rows into these types so the
engine never sees ORM objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

OPTION_LETTERS = ("A", "B", "C", "D", "E")


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionStatus(str, Enum):
    """Session states. ``completed`` is terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class BlueprintBlock:
    """One blueprint line: draw ``count`` questions of a subject (and difficulty)."""

    subject: str
    count: int
    difficulty: str | None = None


@dataclass
class Exam:
    id: int
    title: str
    duration_minutes: int
    created_by: int | None = None
    created_at: datetime | None = None


@dataclass
class Question:
    """A bank question. Options are keyed by letter A-E."""

    id: int
    question_text: str
    options: dict[str, str]
    correct_option: str
    subject: str
    difficulty: str | None = None


@dataclass
class Session:
    """A single student's timed attempt at one exam."""

    id: int
    exam_id: int
    student_id: int
    started_at: datetime
    expires_at: datetime
    status: SessionStatus = SessionStatus.ACTIVE
    completed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def seconds_remaining(self, now: datetime) -> int:
        if not self.is_active:
            return 0
        return max(0, int((self.expires_at - now).total_seconds()))


@dataclass
class Answer:
    session_id: int
    question_id: int
    selected_option: str | None
    saved_at: datetime | None = None
    is_correct: bool | None = None  # set at scoring time only


@dataclass
class AssignedQuestion:
    """A question as delivered to a student: text and options, no answer key."""

    question_id: int
    order: int
    question_text: str
    options: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.question_id,
            "question_order": self.order,
            "question_text": self.question_text,
            "options": dict(self.options),
        }


@dataclass
class StartedSession:
    """Payload returned by ``start``."""

    session_id: int
    exam_id: int
    started_at: datetime
    expires_at: datetime
    created: bool
    questions: list[AssignedQuestion] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "exam_id": self.exam_id,
            "started_at": self.started_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "created": self.created,
            "questions": [q.to_dict() for q in self.questions],
        }


@dataclass
class ScoreResult:
    """
    Output of the scorer.

    ``percentage`` is None when the exam has no assigned questions; that is
    the "no questions" condition, not a zero score.
    """

    score: int
    total: int
    percentage: Decimal | None
    correctness: dict[int, bool] = field(default_factory=dict)

    @property
    def has_questions(self) -> bool:
        return self.total > 0


@dataclass
class Result:
    """Persisted outcome of one scored session."""

    session_id: int
    exam_id: int
    student_id: int
    score: int
    total_questions: int
    percentage: Decimal | None
    started_at: datetime
    completed_at: datetime


@dataclass
class SubmissionResult:
    """Payload returned by ``submit``."""

    session_id: int
    score: int
    total: int
    percentage: Decimal | None

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "score": self.score,
            "total": self.total,
            "percentage": float(self.percentage) if self.percentage is not None else None,
            "no_questions": self.percentage is None,
        }


@dataclass
class SessionStatusView:
    session_id: int
    exam_id: int
    status: SessionStatus
    expires_at: datetime
    seconds_remaining: int
    answered: int

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "exam_id": self.exam_id,
            "status": self.status.value,
            "expires_at": self.expires_at.isoformat(),
            "seconds_remaining": self.seconds_remaining,
            "answered": self.answered,
        }
