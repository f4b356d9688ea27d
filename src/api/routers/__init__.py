"""API routers for the exam session engine."""

from src.api.routers import exam_router

__all__ = ["exam_router"]
