"""
Error taxonomy for the exam session engine.

Every rejection carries a stable ``kind`` so callers can tell a transient
store failure (retry later) from a terminal condition (session invalid,
exam already assigned). The engine never retries on its own.
"""

from __future__ import annotations


class ExamEngineError(Exception):
    """Base class for all engine rejections."""

    kind = "ExamEngineError"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "detail": self.message}


class InvalidBlueprint(ExamEngineError):
    """Blueprint is empty or a block is missing subject/count."""

    kind = "InvalidBlueprint"


class AlreadyAssigned(ExamEngineError):
    """The exam already has its question assignment."""

    kind = "AlreadyAssigned"


class InsufficientQuestions(ExamEngineError):
    """A blueprint block asks for more questions than the pool holds."""

    kind = "InsufficientQuestions"

    def __init__(self, subject: str, requested: int, available: int):
        super().__init__(
            f"Not enough questions for subject: {subject} "
            f"(requested {requested}, available {available})"
        )
        self.subject = subject
        self.requested = requested
        self.available = available


class NotAssigned(ExamEngineError):
    """Exam questions have not been assigned yet."""

    kind = "NotAssigned"


class ExamNotFound(ExamEngineError):
    kind = "ExamNotFound"


class SessionInvalid(ExamEngineError):
    """
    Session cannot accept the operation.

    Callers only see the kind; ``reason`` is kept for logs and diagnostics:
    not_found, wrong_owner, completed or expired.
    """

    kind = "SessionInvalid"

    NOT_FOUND = "not_found"
    WRONG_OWNER = "wrong_owner"
    COMPLETED = "completed"
    EXPIRED = "expired"

    def __init__(self, reason: str, session_id: int | None = None):
        super().__init__(f"Invalid session ({reason})")
        self.reason = reason
        self.session_id = session_id


class InvalidAnswer(ExamEngineError):
    """Selected option is not A-E, or the question is not part of the exam."""

    kind = "InvalidAnswer"


class StoreUnavailable(ExamEngineError):
    """The backing store failed; the operation was aborted."""

    kind = "StoreUnavailable"
    retryable = True
