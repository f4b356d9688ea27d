"""
Exam session engine.

Components:
- assembler: BlueprintAssembler, one-time randomized question assignment
- engine: SessionLifecycleEngine, start / autosave / submit with lazy expiry
- scorer: score_answers, pure scoring
- store: SessionStore contract, with SQL and in-memory implementations
"""

from src.exam.assembler import BlueprintAssembler
from src.exam.engine import SessionLifecycleEngine
from src.exam.errors import (
    AlreadyAssigned,
    ExamEngineError,
    ExamNotFound,
    InsufficientQuestions,
    InvalidAnswer,
    InvalidBlueprint,
    NotAssigned,
    SessionInvalid,
    StoreUnavailable,
)
from src.exam.memory_store import InMemorySessionStore
from src.exam.models import BlueprintBlock, SessionStatus
from src.exam.scorer import score_answers
from src.exam.store import SessionStore

__all__ = [
    "AlreadyAssigned",
    "BlueprintAssembler",
    "BlueprintBlock",
    "ExamEngineError",
    "ExamNotFound",
    "InMemorySessionStore",
    "InsufficientQuestions",
    "InvalidAnswer",
    "InvalidBlueprint",
    "NotAssigned",
    "SessionInvalid",
    "SessionLifecycleEngine",
    "SessionStatus",
    "SessionStore",
    "StoreUnavailable",
    "score_answers",
]
