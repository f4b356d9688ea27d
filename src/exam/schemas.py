"""
Request models for engine operations.

Each operation gets an explicitly typed request; validation happens here,
before the engine touches the store. Field aliases accept the camelCase
keys that existing clients send (``sessionId``, ``questionId``).
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.exam.errors import InvalidBlueprint
from src.exam.models import BlueprintBlock


class BlueprintBlockRequest(BaseModel):
    """One blueprint block as sent by an admin."""

    model_config = ConfigDict(extra="forbid")

    subject: str = Field(..., min_length=1, description="Question subject to draw from")
    difficulty: Optional[str] = Field(None, description="Restrict the pool to one difficulty")
    count: int = Field(..., ge=1, description="Number of questions to draw")

    @field_validator("subject")
    @classmethod
    def subject_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("subject must not be blank")
        return value.strip()

    def to_block(self) -> BlueprintBlock:
        return BlueprintBlock(subject=self.subject, count=self.count, difficulty=self.difficulty)


class AssignQuestionsRequest(BaseModel):
    """
    Assignment payload.

    Blocks stay raw here; parse_blueprint validates them inside the assembler
    so a malformed block is reported as InvalidBlueprint.
    """

    blueprint: list[dict[str, Any]] = Field(..., description="Blueprint blocks: subject, optional difficulty, count")


class CreateExamRequest(BaseModel):
    title: str = Field(..., min_length=1)
    duration_minutes: int = Field(..., gt=0, description="Total allotted time in minutes")


class SaveAnswerRequest(BaseModel):
    """Autosave payload. A null option clears the selection."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: int = Field(..., alias="sessionId")
    question_id: int = Field(..., alias="questionId")
    selected_option: Optional[str] = None


class SubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: int = Field(..., alias="sessionId")


def parse_blueprint(raw: Any) -> list[BlueprintBlock]:
    """
    Validate a raw blueprint into blocks.

    Accepts a list of dicts, ``BlueprintBlockRequest`` or ``BlueprintBlock``
    items. Anything malformed raises ``InvalidBlueprint``.
    """
    if not isinstance(raw, (list, tuple)) or len(raw) == 0:
        raise InvalidBlueprint("Invalid blueprint: expected a non-empty list of blocks")

    blocks: list[BlueprintBlock] = []
    for index, item in enumerate(raw):
        if isinstance(item, BlueprintBlock):
            item = {"subject": item.subject, "difficulty": item.difficulty, "count": item.count}
        elif isinstance(item, BlueprintBlockRequest):
            blocks.append(item.to_block())
            continue
        try:
            blocks.append(BlueprintBlockRequest.model_validate(item).to_block())
        except ValidationError as e:
            raise InvalidBlueprint(
                f"Blueprint block {index + 1} must include subject and count: {e.errors()[0]['msg']}"
            ) from e
    return blocks
