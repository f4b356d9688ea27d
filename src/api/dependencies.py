"""
Request-scoped dependencies for the API.

The store, engine and assembler are built once in the application lifespan
and stored on ``app.state``; handlers get them through these functions.

Authentication happens upstream: the gateway verifies credentials and
forwards the principal as ``X-User-Id`` and ``X-User-Role`` headers.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request

from src.exam.assembler import BlueprintAssembler
from src.exam.engine import SessionLifecycleEngine
from src.exam.store import SessionStore


@dataclass(frozen=True)
class Principal:
    id: int
    role: str


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_engine(request: Request) -> SessionLifecycleEngine:
    return request.app.state.engine


def get_assembler(request: Request) -> BlueprintAssembler:
    return request.app.state.assembler


def get_principal(
    x_user_id: int | None = Header(None),
    x_user_role: str | None = Header(None),
) -> Principal:
    if x_user_id is None or not x_user_role:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return Principal(id=x_user_id, role=x_user_role.lower())


def require_role(*roles: str) -> Callable[..., Principal]:
    """Dependency factory: the principal must hold one of ``roles``."""

    def _check(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=403, detail="Access denied")
        return principal

    return _check
