"""
Exam models for assembly, sessions and scoring.

Implements:
- ExamRow: Exam definition (title, duration)
- QuestionRow: Bank question with up to five options
- ExamQuestionRow: One-time ordered assignment of questions to an exam
- ExamSessionRow: A student's timed attempt
- AnswerRow: Autosaved answer, upserted per (session, question)
- ResultRow: Scored outcome, at most one per session

Integrity rules enforced by the schema:
- One active session per (exam, student): partial unique index on status = 'active'
- Dense assignment order: unique (exam_id, question_order)
- Exactly-once scoring: unique results.session_id
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ExamRow(Base):
    __tablename__ = "exams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (CheckConstraint("duration_minutes > 0", name="ck_exams_duration_positive"),)

    def __repr__(self) -> str:
        return f"<ExamRow id={self.id} title={self.title!r} duration={self.duration_minutes}>"


class QuestionRow(Base):
    """Bank question. option_a/option_b are required; c-e are optional."""

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    option_a: Mapped[str] = mapped_column(Text, nullable=False)
    option_b: Mapped[str] = mapped_column(Text, nullable=False)
    option_c: Mapped[str | None] = mapped_column(Text)
    option_d: Mapped[str | None] = mapped_column(Text)
    option_e: Mapped[str | None] = mapped_column(Text)
    correct_option: Mapped[str] = mapped_column(String(1), nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int | None] = mapped_column(Integer)

    __table_args__ = (Index("idx_questions_subject_difficulty", "subject", "difficulty"),)

    def options(self) -> dict[str, str]:
        """Non-empty options keyed by letter."""
        values = {
            "A": self.option_a,
            "B": self.option_b,
            "C": self.option_c,
            "D": self.option_d,
            "E": self.option_e,
        }
        return {letter: value for letter, value in values.items() if value}


class ExamQuestionRow(Base):
    __tablename__ = "exam_questions"

    exam_id: Mapped[int] = mapped_column(
        ForeignKey("exams.id", ondelete="CASCADE"), primary_key=True
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="RESTRICT"), primary_key=True
    )
    question_order: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("exam_id", "question_order", name="uq_exam_question_order"),
    )


class ExamSessionRow(Base):
    __tablename__ = "exam_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exam_id: Mapped[int] = mapped_column(ForeignKey("exams.id", ondelete="CASCADE"), nullable=False)
    student_id: Mapped[int] = mapped_column(Integer, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint("status IN ('active', 'completed')", name="ck_exam_sessions_status"),
        Index(
            "uq_exam_sessions_one_active",
            "exam_id",
            "student_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("idx_exam_sessions_student_status", "student_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<ExamSessionRow id={self.id} exam={self.exam_id} student={self.student_id} status={self.status}>"


class AnswerRow(Base):
    __tablename__ = "answers"

    session_id: Mapped[int] = mapped_column(
        ForeignKey("exam_sessions.id", ondelete="CASCADE"), primary_key=True
    )
    question_id: Mapped[int] = mapped_column(ForeignKey("questions.id"), primary_key=True)
    selected_option: Mapped[str | None] = mapped_column(String(1))
    is_correct: Mapped[bool | None] = mapped_column(Boolean)
    saved_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class ResultRow(Base):
    __tablename__ = "results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    exam_id: Mapped[int] = mapped_column(ForeignKey("exams.id"), nullable=False)
    student_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    # NULL percentage means the exam had no assigned questions
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
