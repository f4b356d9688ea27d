"""
Session store contract consumed by the assembler and the engine.

Implementations:
- src.exam.sql_store.SqlSessionStore: SQLAlchemy (PostgreSQL / SQLite)
- src.exam.memory_store.InMemorySessionStore: process-local, thread-safe

Every method is a single short unit of work. Backend failures surface as
``StoreUnavailable``; implementations must not leave partial writes behind.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from decimal import Decimal

from src.exam.models import Answer, AssignedQuestion, Exam, Result, Session


class SessionStore(ABC):
    # ------------------------------------------------------------------
    # Exams and the question bank
    # ------------------------------------------------------------------

    @abstractmethod
    def create_exam(self, title: str, duration_minutes: int, created_by: int | None = None) -> Exam:
        pass

    @abstractmethod
    def get_exam(self, exam_id: int) -> Exam | None:
        pass

    @abstractmethod
    def add_question(
        self,
        question_text: str,
        options: Mapping[str, str],
        correct_option: str,
        subject: str,
        difficulty: str | None = None,
        created_by: int | None = None,
    ) -> int:
        """Insert a bank question and return its id."""

    @abstractmethod
    def find_question_ids(self, subject: str, difficulty: str | None = None) -> list[int]:
        """Ids of bank questions matching subject (and difficulty when given)."""

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    @abstractmethod
    def save_assignment(self, exam_id: int, question_ids: Sequence[int]) -> None:
        """
        Persist the ordered assignment atomically, order 1..N.

        Raises AlreadyAssigned if the exam already has one.
        """

    @abstractmethod
    def get_assigned_question_count(self, exam_id: int) -> int:
        pass

    @abstractmethod
    def get_assigned_question_ids(self, exam_id: int) -> list[int]:
        """Assigned question ids in order."""

    @abstractmethod
    def get_assigned_questions(self, exam_id: int) -> list[AssignedQuestion]:
        """Assigned questions in order, without correct options."""

    @abstractmethod
    def get_correct_options(self, question_ids: Iterable[int]) -> dict[int, str]:
        pass

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @abstractmethod
    def find_active_session(self, exam_id: int, student_id: int) -> Session | None:
        pass

    @abstractmethod
    def create_session_if_absent(
        self,
        exam_id: int,
        student_id: int,
        started_at: datetime,
        expires_at: datetime,
    ) -> Session:
        """
        Atomic create-or-return.

        If an active session for (exam, student) exists, return it instead of
        creating a second one; concurrent callers converge on one row.
        """

    @abstractmethod
    def sweep_expired(self, student_id: int, now: datetime) -> int:
        """Complete every active session of the student whose expiry has passed."""

    @abstractmethod
    def get_session(self, session_id: int) -> Session | None:
        pass

    @abstractmethod
    def transition_to_completed_if_active(self, session_id: int, now: datetime | None = None) -> bool:
        """
        Conditionally move a session to completed.

        Returns False if the session is already terminal, or when ``now`` is
        given and the session has expired by then.
        """

    # ------------------------------------------------------------------
    # Answers and results
    # ------------------------------------------------------------------

    @abstractmethod
    def upsert_answer(
        self,
        session_id: int,
        question_id: int,
        selected_option: str | None,
        saved_at: datetime,
    ) -> None:
        """Insert or overwrite the answer for (session, question)."""

    @abstractmethod
    def list_answers(self, session_id: int) -> list[Answer]:
        pass

    @abstractmethod
    def record_correctness(self, session_id: int, flags: Mapping[int, bool]) -> None:
        """Store per-answer correctness computed at scoring time."""

    @abstractmethod
    def insert_result(
        self,
        session_id: int,
        exam_id: int,
        student_id: int,
        score: int,
        total: int,
        percentage: Decimal | None,
        started_at: datetime,
        completed_at: datetime,
    ) -> None:
        """Insert the result row; a second insert for the session raises SessionInvalid."""

    @abstractmethod
    def complete_with_result(
        self,
        session_id: int,
        now: datetime,
        flags: Mapping[int, bool],
        result: Result,
    ) -> bool:
        """
        Finalize a scored session in one unit of work.

        Applies the conditional transition of ``transition_to_completed_if_active``
        and, only if it wins, records the correctness flags and inserts the
        result. Returns False without writing anything when the transition
        loses. A failure part way leaves the session active with no result.
        """

    @abstractmethod
    def get_result(self, session_id: int) -> Result | None:
        pass

    def ping(self) -> None:
        """Raise StoreUnavailable if the backend is unreachable."""
