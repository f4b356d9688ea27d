"""
Exam router: assignment, session lifecycle and submission.

Endpoints for:
- Exam creation (admin)
- Randomized question assignment from a blueprint (admin)
- Start / autosave / submit (student)
- Session status (student)

Handlers only translate HTTP to engine calls; engine errors are mapped to
status codes by the application's exception handler.
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from loguru import logger

from src.api.dependencies import (
    Principal,
    get_assembler,
    get_engine,
    get_store,
    require_role,
)
from src.exam.assembler import BlueprintAssembler
from src.exam.engine import SessionLifecycleEngine
from src.exam.schemas import (
    AssignQuestionsRequest,
    CreateExamRequest,
    SaveAnswerRequest,
    SubmitRequest,
)
from src.exam.store import SessionStore

router = APIRouter()

admin_only = require_role("admin")
student_only = require_role("student")


@router.post("", status_code=201)
def create_exam(
    request: CreateExamRequest,
    principal: Principal = Depends(admin_only),
    store: SessionStore = Depends(get_store),
) -> Dict[str, Any]:
    """Create an exam definition."""
    exam = store.create_exam(request.title, request.duration_minutes, created_by=principal.id)
    logger.info(f"Exam {exam.id} created by {principal.id}")
    return {"exam_id": exam.id}


@router.post("/{exam_id}/questions", status_code=201)
def assign_questions(
    exam_id: int,
    request: AssignQuestionsRequest,
    principal: Principal = Depends(admin_only),
    assembler: BlueprintAssembler = Depends(get_assembler),
) -> Dict[str, Any]:
    """
    Assign randomized questions to an exam.

    The blueprint is validated by the assembler so malformed blocks are
    reported as InvalidBlueprint rather than a generic validation error.
    """
    question_ids = assembler.assign(exam_id, request.blueprint)
    return {
        "message": "Questions assigned successfully",
        "exam_id": exam_id,
        "total_questions": len(question_ids),
        "question_ids": question_ids,
    }


@router.post("/{exam_id}/start")
def start_exam(
    exam_id: int,
    response: Response,
    principal: Principal = Depends(student_only),
    engine: SessionLifecycleEngine = Depends(get_engine),
) -> Dict[str, Any]:
    started = engine.start(exam_id, principal.id)
    response.status_code = 201 if started.created else 200
    body = started.to_dict()
    if not started.created:
        body["message"] = "Exam already started"
    return body


@router.post("/answer")
def save_answer(
    request: SaveAnswerRequest,
    principal: Principal = Depends(student_only),
    engine: SessionLifecycleEngine = Depends(get_engine),
) -> Dict[str, str]:
    engine.save_answer(request.session_id, principal.id, request.question_id, request.selected_option)
    return {"message": "Answer saved"}


@router.post("/submit")
def submit_exam(
    request: SubmitRequest,
    principal: Principal = Depends(student_only),
    engine: SessionLifecycleEngine = Depends(get_engine),
) -> Dict[str, Any]:
    return engine.submit(request.session_id, principal.id).to_dict()


@router.get("/sessions/{session_id}")
def get_session_status(
    session_id: int,
    principal: Principal = Depends(student_only),
    engine: SessionLifecycleEngine = Depends(get_engine),
) -> Dict[str, Any]:
    return engine.get_session_status(session_id, principal.id).to_dict()
