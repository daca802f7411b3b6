"""
FastAPI dependencies for authentication.

Provides ``db_session``, ``get_auth_service`` and ``get_current_user``
dependencies that are used across all protected routes.
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auth.service import AuthService
from database.models import User
from database.session import get_db_session


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


async def get_current_user(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(db_session),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Extract and verify the Bearer token, returning the authenticated user.

    A missing header is ``Unauthorized`` (401), not a validation error.
    """
    return await service.authenticate(session, authorization)
