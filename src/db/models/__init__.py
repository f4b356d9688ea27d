# SQLAlchemy models
from .base import Base
from .exam import (
    AnswerRow,
    ExamQuestionRow,
    ExamRow,
    ExamSessionRow,
    QuestionRow,
    ResultRow,
)

__all__ = [
    # Base
    "Base",
    # Exam
    "ExamRow",
    "QuestionRow",
    "ExamQuestionRow",
    "ExamSessionRow",
    "AnswerRow",
    "ResultRow",
]
