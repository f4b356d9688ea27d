"""
Session Lifecycle Engine.

Per (exam, student) the session moves ``absent -> active -> completed``;
completed is terminal. There is no background timer: expiry is enforced
lazily whenever start, save_answer or submit touches the student or the
session, and nothing is accepted past ``expires_at`` regardless of when
the sweep runs.

Atomicity lives in the store:
- start converges concurrent callers through create_session_if_absent
- submit wins or loses on complete_with_result, which applies the
  conditional transition together with the result write, so exactly one
  caller scores a session and a sweep that lands first rejects it
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from loguru import logger

from src.exam.errors import ExamNotFound, InvalidAnswer, NotAssigned, SessionInvalid
from src.exam.models import (
    OPTION_LETTERS,
    Result,
    Session,
    SessionStatus,
    SessionStatusView,
    StartedSession,
    SubmissionResult,
    utcnow,
)
from src.exam.scorer import score_answers
from src.exam.store import SessionStore


class SessionLifecycleEngine:
    """Owns session creation, answer admission, expiry and scoring."""

    def __init__(self, store: SessionStore, clock: Callable[[], datetime] = utcnow):
        self._store = store
        self._clock = clock

    @property
    def store(self) -> SessionStore:
        return self._store

    # ------------------------------------------------------------------
    # start
    # ------------------------------------------------------------------

    def start(self, exam_id: int, student_id: int) -> StartedSession:
        """
        Start or resume the student's session for an exam.

        A live session is returned unchanged (same id, same expiry). A new
        session requires the exam to exist and to have its questions
        assigned. Correct options are never part of the payload.
        """
        now = self._clock()
        self._sweep(student_id, now)

        existing = self._store.find_active_session(exam_id, student_id)
        if existing is not None and not existing.is_expired(now):
            logger.info(f"Resuming session {existing.id} for exam={exam_id} student={student_id}")
            return self._started(existing, created=False)

        exam = self._store.get_exam(exam_id)
        if exam is None:
            raise ExamNotFound(f"Exam {exam_id} not found")

        if self._store.get_assigned_question_count(exam_id) == 0:
            raise NotAssigned(f"Exam {exam_id} questions not assigned yet")

        expires_at = now + timedelta(minutes=exam.duration_minutes)
        session = self._store.create_session_if_absent(exam_id, student_id, now, expires_at)
        logger.info(
            f"Session {session.id} active for exam={exam_id} student={student_id} "
            f"until {session.expires_at.isoformat()}"
        )
        return self._started(session, created=True)

    def _started(self, session: Session, created: bool) -> StartedSession:
        return StartedSession(
            session_id=session.id,
            exam_id=session.exam_id,
            started_at=session.started_at,
            expires_at=session.expires_at,
            created=created,
            questions=self._store.get_assigned_questions(session.exam_id),
        )

    # ------------------------------------------------------------------
    # save_answer
    # ------------------------------------------------------------------

    def save_answer(
        self,
        session_id: int,
        student_id: int,
        question_id: int,
        selected_option: str | None,
    ) -> None:
        """
        Autosave one answer. Re-saving a question overwrites the previous selection.

        Raises:
            InvalidAnswer: option outside A-E, or question not in the exam
            SessionInvalid: unknown session, other student's session,
                completed, or past its expiry
        """
        option = normalize_option(selected_option)
        now = self._clock()
        session = self._admit(session_id, student_id, now)

        if question_id not in self._store.get_assigned_question_ids(session.exam_id):
            raise InvalidAnswer(f"Question {question_id} is not part of exam {session.exam_id}")

        self._store.upsert_answer(session_id, question_id, option, now)
        logger.debug(f"Saved answer session={session_id} question={question_id} option={option}")

    # ------------------------------------------------------------------
    # submit
    # ------------------------------------------------------------------

    def submit(self, session_id: int, student_id: int) -> SubmissionResult:
        """
        Submit and score a session, exactly once.

        Scoring reads the saved answers first; the active -> completed
        transition, the correctness flags and the result are then written
        together by complete_with_result. A concurrent submit or an expiry
        sweep that gets there first makes this call fail with SessionInvalid.
        A store failure leaves the session active, so the submit can be retried.
        """
        now = self._clock()
        session = self._admit(session_id, student_id, now)

        question_ids = self._store.get_assigned_question_ids(session.exam_id)
        answers = self._store.list_answers(session_id)
        correct_options = self._store.get_correct_options(question_ids)
        result = score_answers(answers, correct_options, question_ids)

        record = Result(
            session_id=session_id,
            exam_id=session.exam_id,
            student_id=student_id,
            score=result.score,
            total_questions=result.total,
            percentage=result.percentage,
            started_at=session.started_at,
            completed_at=now,
        )
        if not self._store.complete_with_result(session_id, now, result.correctness, record):
            latest = self._store.get_session(session_id)
            if latest is not None and latest.is_active:
                # Expired between admission and the transition
                self._sweep(student_id, now)
                raise self._reject(SessionInvalid.EXPIRED, session_id, student_id)
            raise self._reject(SessionInvalid.COMPLETED, session_id, student_id)

        if result.has_questions:
            logger.info(
                f"Session {session_id} submitted: {result.score}/{result.total} ({result.percentage}%)"
            )
        else:
            logger.warning(f"Session {session_id} submitted for an exam with no questions")

        return SubmissionResult(
            session_id=session_id,
            score=result.score,
            total=result.total,
            percentage=result.percentage,
        )

    # ------------------------------------------------------------------
    # status and sweeping
    # ------------------------------------------------------------------

    def get_session_status(self, session_id: int, student_id: int) -> SessionStatusView:
        """Status of a session the student owns; completed sessions are reported, not rejected."""
        now = self._clock()
        session = self._store.get_session(session_id)
        if session is None:
            raise self._reject(SessionInvalid.NOT_FOUND, session_id, student_id)
        if session.student_id != student_id:
            raise self._reject(SessionInvalid.WRONG_OWNER, session_id, student_id)

        if session.is_active and session.is_expired(now):
            self._sweep(student_id, now)
            session = self._store.get_session(session_id) or session

        answered = sum(1 for a in self._store.list_answers(session_id) if a.selected_option is not None)
        return SessionStatusView(
            session_id=session.id,
            exam_id=session.exam_id,
            status=session.status,
            expires_at=session.expires_at,
            seconds_remaining=session.seconds_remaining(now),
            answered=answered,
        )

    def sweep(self, student_id: int) -> int:
        """Complete the student's expired sessions now; returns how many were closed."""
        return self._sweep(student_id, self._clock())

    def _sweep(self, student_id: int, now: datetime) -> int:
        swept = self._store.sweep_expired(student_id, now)
        if swept:
            logger.info(f"Swept {swept} expired session(s) for student={student_id}")
        return swept

    # ------------------------------------------------------------------
    # admission
    # ------------------------------------------------------------------

    def _admit(self, session_id: int, student_id: int, now: datetime) -> Session:
        """Return the session if it is the student's, active and unexpired."""
        session = self._store.get_session(session_id)
        if session is None:
            raise self._reject(SessionInvalid.NOT_FOUND, session_id, student_id)
        if session.student_id != student_id:
            raise self._reject(SessionInvalid.WRONG_OWNER, session_id, student_id)
        if session.status != SessionStatus.ACTIVE:
            raise self._reject(SessionInvalid.COMPLETED, session_id, student_id)
        if session.is_expired(now):
            self._sweep(student_id, now)
            raise self._reject(SessionInvalid.EXPIRED, session_id, student_id)
        return session

    @staticmethod
    def _reject(reason: str, session_id: int, student_id: int) -> SessionInvalid:
        logger.warning(f"Rejected session={session_id} student={student_id}: {reason}")
        return SessionInvalid(reason, session_id)


def normalize_option(selected_option: str | None) -> str | None:
    """Upper-case an option letter; None clears the selection."""
    if selected_option is None:
        return None
    option = str(selected_option).strip().upper()
    if option not in OPTION_LETTERS:
        raise InvalidAnswer(f"Selected option must be one of {', '.join(OPTION_LETTERS)}")
    return option
