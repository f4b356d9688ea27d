"""
SQLAlchemy implementation of the session store.

Works against PostgreSQL (production) and SQLite (tests, local runs).
Each public method runs in its own short transaction. Race-sensitive
writes rely on the database rather than read-then-write:

- create_session_if_absent: partial unique index on active sessions;
  the losing insert rolls back and re-reads the winner.
- transition_to_completed_if_active / sweep_expired: conditional UPDATE
  on status, rowcount decides who won.
- upsert_answer: INSERT .. ON CONFLICT DO UPDATE where the dialect has it.
- insert_result: unique session_id.
- complete_with_result: the conditional UPDATE, correctness flags and
  result insert share one transaction, so a failure rolls all three back.
"""

from __future__ import annotations

from collections.abc import Generator, Iterable, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy import Engine, func, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as DbSession, sessionmaker

from src.db.database import create_session_factory, session_scope
from src.db.models import (
    AnswerRow,
    ExamQuestionRow,
    ExamRow,
    ExamSessionRow,
    QuestionRow,
    ResultRow,
)
from src.exam.errors import AlreadyAssigned, SessionInvalid, StoreUnavailable
from src.exam.models import (
    OPTION_LETTERS,
    Answer,
    AssignedQuestion,
    Exam,
    Result,
    Session,
    SessionStatus,
    utcnow,
)
from src.exam.store import SessionStore

ACTIVE = SessionStatus.ACTIVE.value
COMPLETED = SessionStatus.COMPLETED.value


def _to_exam(row: ExamRow) -> Exam:
    return Exam(
        id=row.id,
        title=row.title,
        duration_minutes=row.duration_minutes,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _to_session(row: ExamSessionRow) -> Session:
    return Session(
        id=row.id,
        exam_id=row.exam_id,
        student_id=row.student_id,
        started_at=row.started_at,
        expires_at=row.expires_at,
        status=SessionStatus(row.status),
        completed_at=row.completed_at,
    )


def _to_answer(row: AnswerRow) -> Answer:
    return Answer(
        session_id=row.session_id,
        question_id=row.question_id,
        selected_option=row.selected_option,
        saved_at=row.saved_at,
        is_correct=row.is_correct,
    )


def _to_result_row(result: Result) -> ResultRow:
    return ResultRow(
        session_id=result.session_id,
        exam_id=result.exam_id,
        student_id=result.student_id,
        score=result.score,
        total_questions=result.total_questions,
        percentage=result.percentage,
        started_at=result.started_at,
        completed_at=result.completed_at,
    )


def _completion(session_id: int, now: datetime | None):
    """Conditional active -> completed UPDATE; also requires expires_at > now when now is given."""
    stmt = update(ExamSessionRow).where(
        ExamSessionRow.id == session_id,
        ExamSessionRow.status == ACTIVE,
    )
    if now is not None:
        stmt = stmt.where(ExamSessionRow.expires_at > now)
    return stmt.values(status=COMPLETED, completed_at=now or utcnow()).execution_options(
        synchronize_session=False
    )


class SqlSessionStore(SessionStore):
    """Session store backed by a SQLAlchemy engine."""

    def __init__(self, engine: Engine, session_factory: sessionmaker[DbSession] | None = None):
        self._engine = engine
        self._factory = session_factory or create_session_factory(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _unit(self, operation: str) -> Generator[DbSession, None, None]:
        """One transaction; driver and constraint failures become StoreUnavailable."""
        try:
            with session_scope(self._factory) as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Store operation '{operation}' failed: {e}")
            raise StoreUnavailable(f"{operation} failed: {e.__class__.__name__}") from e

    # ------------------------------------------------------------------
    # Exams and the question bank
    # ------------------------------------------------------------------

    def create_exam(self, title: str, duration_minutes: int, created_by: int | None = None) -> Exam:
        with self._unit("create_exam") as db:
            row = ExamRow(
                title=title,
                duration_minutes=duration_minutes,
                created_by=created_by,
                created_at=utcnow(),
            )
            db.add(row)
            db.flush()
            return _to_exam(row)

    def get_exam(self, exam_id: int) -> Exam | None:
        with self._unit("get_exam") as db:
            row = db.get(ExamRow, exam_id)
            return _to_exam(row) if row else None

    def add_question(
        self,
        question_text: str,
        options: Mapping[str, str],
        correct_option: str,
        subject: str,
        difficulty: str | None = None,
        created_by: int | None = None,
    ) -> int:
        by_letter = {k.upper(): v for k, v in options.items()}
        with self._unit("add_question") as db:
            row = QuestionRow(
                question_text=question_text,
                correct_option=correct_option.upper(),
                subject=subject,
                difficulty=difficulty,
                created_by=created_by,
                **{f"option_{letter.lower()}": by_letter.get(letter) or None for letter in OPTION_LETTERS},
            )
            db.add(row)
            db.flush()
            return row.id

    def find_question_ids(self, subject: str, difficulty: str | None = None) -> list[int]:
        stmt = select(QuestionRow.id).where(QuestionRow.subject == subject)
        if difficulty is not None:
            stmt = stmt.where(QuestionRow.difficulty == difficulty)
        with self._unit("find_question_ids") as db:
            return list(db.execute(stmt.order_by(QuestionRow.id)).scalars())

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def save_assignment(self, exam_id: int, question_ids: Sequence[int]) -> None:
        with self._unit("save_assignment") as db:
            exists = db.execute(
                select(ExamQuestionRow.exam_id).where(ExamQuestionRow.exam_id == exam_id).limit(1)
            ).first()
            if exists is not None:
                raise AlreadyAssigned(f"Questions already assigned to exam {exam_id}")

            db.add_all(
                ExamQuestionRow(exam_id=exam_id, question_id=qid, question_order=order)
                for order, qid in enumerate(question_ids, start=1)
            )
            try:
                db.flush()
            except IntegrityError as e:
                # A concurrent assignment won the unique (exam_id, question_order) race
                raise AlreadyAssigned(f"Questions already assigned to exam {exam_id}") from e

    def get_assigned_question_count(self, exam_id: int) -> int:
        with self._unit("get_assigned_question_count") as db:
            return db.execute(
                select(func.count()).select_from(ExamQuestionRow).where(ExamQuestionRow.exam_id == exam_id)
            ).scalar_one()

    def get_assigned_question_ids(self, exam_id: int) -> list[int]:
        stmt = (
            select(ExamQuestionRow.question_id)
            .where(ExamQuestionRow.exam_id == exam_id)
            .order_by(ExamQuestionRow.question_order)
        )
        with self._unit("get_assigned_question_ids") as db:
            return list(db.execute(stmt).scalars())

    def get_assigned_questions(self, exam_id: int) -> list[AssignedQuestion]:
        stmt = (
            select(QuestionRow, ExamQuestionRow.question_order)
            .join(ExamQuestionRow, ExamQuestionRow.question_id == QuestionRow.id)
            .where(ExamQuestionRow.exam_id == exam_id)
            .order_by(ExamQuestionRow.question_order)
        )
        with self._unit("get_assigned_questions") as db:
            return [
                AssignedQuestion(
                    question_id=question.id,
                    order=order,
                    question_text=question.question_text,
                    options=question.options(),
                )
                for question, order in db.execute(stmt)
            ]

    def get_correct_options(self, question_ids: Iterable[int]) -> dict[int, str]:
        ids = list(question_ids)
        if not ids:
            return {}
        with self._unit("get_correct_options") as db:
            rows = db.execute(
                select(QuestionRow.id, QuestionRow.correct_option).where(QuestionRow.id.in_(ids))
            )
            return {qid: option for qid, option in rows}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @staticmethod
    def _active_row(db: DbSession, exam_id: int, student_id: int) -> ExamSessionRow | None:
        return db.execute(
            select(ExamSessionRow).where(
                ExamSessionRow.exam_id == exam_id,
                ExamSessionRow.student_id == student_id,
                ExamSessionRow.status == ACTIVE,
            )
        ).scalar_one_or_none()

    def find_active_session(self, exam_id: int, student_id: int) -> Session | None:
        with self._unit("find_active_session") as db:
            row = self._active_row(db, exam_id, student_id)
            return _to_session(row) if row else None

    def create_session_if_absent(
        self,
        exam_id: int,
        student_id: int,
        started_at: datetime,
        expires_at: datetime,
    ) -> Session:
        with self._unit("create_session_if_absent") as db:
            existing = self._active_row(db, exam_id, student_id)
            if existing is not None:
                return _to_session(existing)

            row = ExamSessionRow(
                exam_id=exam_id,
                student_id=student_id,
                started_at=started_at,
                expires_at=expires_at,
                status=ACTIVE,
            )
            db.add(row)
            try:
                db.flush()
            except IntegrityError:
                db.rollback()
                winner = self._active_row(db, exam_id, student_id)
                if winner is None:
                    raise StoreUnavailable(
                        f"create_session_if_absent lost a race but found no active session "
                        f"for exam={exam_id} student={student_id}"
                    )
                logger.debug(f"Concurrent start for exam={exam_id} student={student_id}; using session {winner.id}")
                return _to_session(winner)
            return _to_session(row)

    def sweep_expired(self, student_id: int, now: datetime) -> int:
        stmt = (
            update(ExamSessionRow)
            .where(
                ExamSessionRow.student_id == student_id,
                ExamSessionRow.status == ACTIVE,
                ExamSessionRow.expires_at <= now,
            )
            .values(status=COMPLETED, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        with self._unit("sweep_expired") as db:
            return db.execute(stmt).rowcount

    def get_session(self, session_id: int) -> Session | None:
        with self._unit("get_session") as db:
            row = db.get(ExamSessionRow, session_id)
            return _to_session(row) if row else None

    def transition_to_completed_if_active(self, session_id: int, now: datetime | None = None) -> bool:
        with self._unit("transition_to_completed_if_active") as db:
            return db.execute(_completion(session_id, now)).rowcount == 1

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
        with self._unit("upsert_answer") as db:
            dialect = db.get_bind().dialect.name
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            elif dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert
            else:
                db.merge(
                    AnswerRow(
                        session_id=session_id,
                        question_id=question_id,
                        selected_option=selected_option,
                        saved_at=saved_at,
                    )
                )
                return

            stmt = insert(AnswerRow).values(
                session_id=session_id,
                question_id=question_id,
                selected_option=selected_option,
                saved_at=saved_at,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[AnswerRow.session_id, AnswerRow.question_id],
                set_={
                    "selected_option": stmt.excluded.selected_option,
                    "saved_at": stmt.excluded.saved_at,
                },
            )
            db.execute(stmt)

    def list_answers(self, session_id: int) -> list[Answer]:
        with self._unit("list_answers") as db:
            rows = db.execute(
                select(AnswerRow).where(AnswerRow.session_id == session_id).order_by(AnswerRow.question_id)
            ).scalars()
            return [_to_answer(row) for row in rows]

    def record_correctness(self, session_id: int, flags: Mapping[int, bool]) -> None:
        if not flags:
            return
        with self._unit("record_correctness") as db:
            self._apply_correctness(db, session_id, flags)

    def _apply_correctness(self, db: DbSession, session_id: int, flags: Mapping[int, bool]) -> None:
        for question_id, is_correct in flags.items():
            db.execute(
                update(AnswerRow)
                .where(AnswerRow.session_id == session_id, AnswerRow.question_id == question_id)
                .values(is_correct=is_correct)
                .execution_options(synchronize_session=False)
            )

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
        result = Result(
            session_id=session_id,
            exam_id=exam_id,
            student_id=student_id,
            score=score,
            total_questions=total,
            percentage=percentage,
            started_at=started_at,
            completed_at=completed_at,
        )
        with self._unit("insert_result") as db:
            self._add_result(db, result)

    def _add_result(self, db: DbSession, result: Result) -> None:
        db.add(_to_result_row(result))
        try:
            db.flush()
        except IntegrityError as e:
            raise SessionInvalid(SessionInvalid.COMPLETED, result.session_id) from e

    def complete_with_result(
        self,
        session_id: int,
        now: datetime,
        flags: Mapping[int, bool],
        result: Result,
    ) -> bool:
        with self._unit("complete_with_result") as db:
            if db.execute(_completion(session_id, now)).rowcount != 1:
                return False
            self._apply_correctness(db, session_id, flags)
            self._add_result(db, result)
            return True

    def get_result(self, session_id: int) -> Result | None:
        with self._unit("get_result") as db:
            row = db.execute(select(ResultRow).where(ResultRow.session_id == session_id)).scalar_one_or_none()
            if row is None:
                return None
            return Result(
                session_id=row.session_id,
                exam_id=row.exam_id,
                student_id=row.student_id,
                score=row.score,
                total_questions=row.total_questions,
                percentage=row.percentage,
                started_at=row.started_at,
                completed_at=row.completed_at,
            )

    def ping(self) -> None:
        with self._unit("ping") as db:
            db.execute(text("SELECT 1"))
