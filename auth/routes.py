"""
Auth API routes — register, login, password reset, profile.

Route prefix: /users
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_auth_service, get_current_user
from auth.service import AuthService
from database.models import User
from utils.schemas import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


# ── Endpoints ──────────────────────────────────────────────────────────


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(
    req: RegisterRequest,
    session: AsyncSession = Depends(db_session),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """Register a new user."""
    user = await service.register(session, req)
    logger.info("Registered user %s", user.id)
    return user


@router.post("/login", response_model=LoginResponse)
async def login(
    req: LoginRequest,
    session: AsyncSession = Depends(db_session),
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """Login with email + password."""
    user, user_session = await service.login(session, req)
    logger.info("Login: user %s", user.id)
    return {"user": user, "session": user_session}


@router.post(
    "/password/forgot",
    response_model=ForgotPasswordResponse,
    response_model_exclude_none=True,
)
async def forgot_password(
    req: ForgotPasswordRequest,
    session: AsyncSession = Depends(db_session),
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    return await service.forgot_password(session, req)


@router.post("/password/reset", response_model=MessageResponse)
async def reset_password(
    req: ResetPasswordRequest,
    session: AsyncSession = Depends(db_session),
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    return await service.reset_password(session, req)


@router.get("/me", response_model=UserOut)
async def get_profile(user: User = Depends(get_current_user)) -> User:
    return user


@router.put("/me", response_model=UserOut)
async def update_profile(
    req: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(db_session),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """Update email and/or display name of the authenticated user."""
    return await service.update_profile(session, user, req)
