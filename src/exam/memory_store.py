"""
In-memory session store.

Process-local implementation of SessionStore used by the test suite and
for local runs without a database. A single lock serializes every
operation, which gives the same atomicity guarantees the SQL store gets
from conditional updates and unique indexes.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from src.exam.errors import AlreadyAssigned, SessionInvalid
from src.exam.models import (
    Answer,
    AssignedQuestion,
    Exam,
    Question,
    Result,
    Session,
    SessionStatus,
    utcnow,
)
from src.exam.store import SessionStore


class InMemorySessionStore(SessionStore):
    """Dict-backed store. Returned objects are copies; mutating them has no effect."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = {
            "exam": itertools.count(1),
            "question": itertools.count(1),
            "session": itertools.count(1),
        }
        self._exams: dict[int, Exam] = {}
        self._questions: dict[int, Question] = {}
        self._assignments: dict[int, list[int]] = {}
        self._sessions: dict[int, Session] = {}
        self._answers: dict[tuple[int, int], Answer] = {}
        self._results: dict[int, Result] = {}

    # ------------------------------------------------------------------
    # Exams and the question bank
    # ------------------------------------------------------------------

    def create_exam(self, title: str, duration_minutes: int, created_by: int | None = None) -> Exam:
        with self._lock:
            exam = Exam(
                id=next(self._ids["exam"]),
                title=title,
                duration_minutes=duration_minutes,
                created_by=created_by,
                created_at=utcnow(),
            )
            self._exams[exam.id] = exam
            return replace(exam)

    def get_exam(self, exam_id: int) -> Exam | None:
        with self._lock:
            exam = self._exams.get(exam_id)
            return replace(exam) if exam else None

    def add_question(
        self,
        question_text: str,
        options: Mapping[str, str],
        correct_option: str,
        subject: str,
        difficulty: str | None = None,
        created_by: int | None = None,
    ) -> int:
        with self._lock:
            question = Question(
                id=next(self._ids["question"]),
                question_text=question_text,
                options={k.upper(): v for k, v in options.items() if v},
                correct_option=correct_option.upper(),
                subject=subject,
                difficulty=difficulty,
            )
            self._questions[question.id] = question
            return question.id

    def find_question_ids(self, subject: str, difficulty: str | None = None) -> list[int]:
        with self._lock:
            return [
                q.id
                for q in self._questions.values()
                if q.subject == subject and (difficulty is None or q.difficulty == difficulty)
            ]

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def save_assignment(self, exam_id: int, question_ids: Sequence[int]) -> None:
        with self._lock:
            if self._assignments.get(exam_id):
                raise AlreadyAssigned(f"Questions already assigned to exam {exam_id}")
            self._assignments[exam_id] = list(question_ids)

    def get_assigned_question_count(self, exam_id: int) -> int:
        with self._lock:
            return len(self._assignments.get(exam_id, []))

    def get_assigned_question_ids(self, exam_id: int) -> list[int]:
        with self._lock:
            return list(self._assignments.get(exam_id, []))

    def get_assigned_questions(self, exam_id: int) -> list[AssignedQuestion]:
        with self._lock:
            return [
                AssignedQuestion(
                    question_id=qid,
                    order=order,
                    question_text=self._questions[qid].question_text,
                    options=dict(self._questions[qid].options),
                )
                for order, qid in enumerate(self._assignments.get(exam_id, []), start=1)
            ]

    def get_correct_options(self, question_ids: Iterable[int]) -> dict[int, str]:
        with self._lock:
            return {
                qid: self._questions[qid].correct_option
                for qid in question_ids
                if qid in self._questions
            }

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _active_for(self, exam_id: int, student_id: int) -> Session | None:
        for session in self._sessions.values():
            if (
                session.exam_id == exam_id
                and session.student_id == student_id
                and session.status == SessionStatus.ACTIVE
            ):
                return session
        return None

    def find_active_session(self, exam_id: int, student_id: int) -> Session | None:
        with self._lock:
            session = self._active_for(exam_id, student_id)
            return replace(session) if session else None

    def create_session_if_absent(
        self,
        exam_id: int,
        student_id: int,
        started_at: datetime,
        expires_at: datetime,
    ) -> Session:
        with self._lock:
            existing = self._active_for(exam_id, student_id)
            if existing is not None:
                return replace(existing)
            session = Session(
                id=next(self._ids["session"]),
                exam_id=exam_id,
                student_id=student_id,
                started_at=started_at,
                expires_at=expires_at,
            )
            self._sessions[session.id] = session
            return replace(session)

    def sweep_expired(self, student_id: int, now: datetime) -> int:
        swept = 0
        with self._lock:
            for session in self._sessions.values():
                if (
                    session.student_id == student_id
                    and session.status == SessionStatus.ACTIVE
                    and session.expires_at <= now
                ):
                    session.status = SessionStatus.COMPLETED
                    session.completed_at = now
                    swept += 1
        return swept

    def get_session(self, session_id: int) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
            return replace(session) if session else None

    def transition_to_completed_if_active(self, session_id: int, now: datetime | None = None) -> bool:
        with self._lock:
            return self._transition(session_id, now)

    def _transition(self, session_id: int, now: datetime | None) -> bool:
        session = self._sessions.get(session_id)
        if session is None or session.status != SessionStatus.ACTIVE:
            return False
        if now is not None and session.expires_at <= now:
            return False
        session.status = SessionStatus.COMPLETED
        session.completed_at = now or utcnow()
        return True

    # ------------------------------------------------------------------
    # Answers and results
    # ------------------------------------------------------------------

    def upsert_answer(
        self,
        session_id: int,
        question_id: int,
        selected_option: str | None,
        saved_at: datetime,
    ) -> None:
        with self._lock:
            self._answers[(session_id, question_id)] = Answer(
                session_id=session_id,
                question_id=question_id,
                selected_option=selected_option,
                saved_at=saved_at,
            )

    def list_answers(self, session_id: int) -> list[Answer]:
        with self._lock:
            return [
                replace(answer)
                for (sid, _), answer in sorted(self._answers.items())
                if sid == session_id
            ]

    def record_correctness(self, session_id: int, flags: Mapping[int, bool]) -> None:
        with self._lock:
            self._apply_correctness(session_id, flags)

    def _apply_correctness(self, session_id: int, flags: Mapping[int, bool]) -> None:
        for question_id, is_correct in flags.items():
            answer = self._answers.get((session_id, question_id))
            if answer is not None:
                answer.is_correct = is_correct

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
        with self._lock:
            if session_id in self._results:
                raise SessionInvalid(SessionInvalid.COMPLETED, session_id)
            self._results[session_id] = Result(
                session_id=session_id,
                exam_id=exam_id,
                student_id=student_id,
                score=score,
                total_questions=total,
                percentage=percentage,
                started_at=started_at,
                completed_at=completed_at,
            )

    def complete_with_result(
        self,
        session_id: int,
        now: datetime,
        flags: Mapping[int, bool],
        result: Result,
    ) -> bool:
        with self._lock:
            if session_id in self._results:
                raise SessionInvalid(SessionInvalid.COMPLETED, session_id)
            if not self._transition(session_id, now):
                return False
            self._apply_correctness(session_id, flags)
            self._results[session_id] = replace(result)
            return True

    def get_result(self, session_id: int) -> Result | None:
        with self._lock:
            result = self._results.get(session_id)
            return replace(result) if result else None

    def ping(self) -> None:
        return None
