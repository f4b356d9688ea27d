"""
FastAPI application for the exam session engine.

Provides REST API for:
- Exam creation and one-time blueprint assignment (admin)
- Session start, answer autosave and submission (student)
- Health checks

The store and engine are constructed in the lifespan handler and torn
down with the application; nothing is created at import time.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config import Settings, get_settings
from src.api.routers import exam_router
from src.core.logs import setup_logging
from src.db.database import create_db_engine, init_db
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
from src.exam.models import utcnow
from src.exam.sql_store import SqlSessionStore
from src.exam.store import SessionStore

ERROR_STATUS: dict[type[ExamEngineError], int] = {
    InvalidBlueprint: 400,
    InvalidAnswer: 400,
    ExamNotFound: 404,
    NotAssigned: 409,
    AlreadyAssigned: 409,
    InsufficientQuestions: 422,
    SessionInvalid: 403,
    StoreUnavailable: 503,
}


def status_for(error: ExamEngineError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


def create_app(
    settings: Settings | None = None,
    store: SessionStore | None = None,
    clock: Callable[[], datetime] = utcnow,
    rng: random.Random | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Defaults to the cached environment settings
        store: Use this store instead of opening ``settings.database_url``
        clock: Time source for the engine
        rng: Random source for the blueprint assembler
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        # Startup
        setup_logging(settings.log_level, settings.log_file)
        logger.info("Starting exam session engine...")

        db_engine = None
        session_store = store
        if session_store is None:
            db_engine = create_db_engine(settings.database_url, echo=settings.sql_echo)
            init_db(db_engine)
            session_store = SqlSessionStore(db_engine)
            logger.info(f"Using database {settings.database_label()}")

        assembler_rng = rng
        if assembler_rng is None and settings.assignment_seed is not None:
            assembler_rng = random.Random(settings.assignment_seed)

        app.state.store = session_store
        app.state.engine = SessionLifecycleEngine(session_store, clock=clock)
        app.state.assembler = BlueprintAssembler(session_store, rng=assembler_rng)
        logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

        yield

        # Shutdown
        logger.info("Shutting down exam session engine...")
        if db_engine is not None:
            db_engine.dispose()

    app = FastAPI(
        title="Exam Session Engine",
        description="""
    Timed, randomly assembled multiple-choice exams.

    ## Flow

    ```
    POST /exams/{id}/questions   (admin, once per exam)
        ↓
    POST /exams/{id}/start       (student, idempotent while live)
        ↓
    POST /exams/answer           (autosave, last write wins)
        ↓
    POST /exams/submit           (scored exactly once)
    ```
    """,
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ExamEngineError)
    async def handle_engine_error(request: Request, exc: ExamEngineError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.get("/", tags=["Health"])
    def root() -> dict[str, str]:
        """Root endpoint returning service info."""
        return {
            "service": "exam-session-engine",
            "version": "1.0.0",
            "status": "ok",
        }

    @app.get("/health", tags=["Health"])
    def health_check(request: Request) -> JSONResponse:
        """Health check with an actual store round-trip."""
        result: dict[str, Any] = {"timestamp": utcnow().isoformat()}
        try:
            request.app.state.store.ping()
            result.update(status="healthy", components={"database": "ok"})
            return JSONResponse(status_code=200, content=result)
        except StoreUnavailable as e:
            result.update(status="unhealthy", components={"database": "error"}, errors={"database": e.message})
            return JSONResponse(status_code=503, content=result)

    app.include_router(exam_router.router, prefix="/exams", tags=["Exams"])
    return app
