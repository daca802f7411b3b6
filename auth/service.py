"""
AuthService — registration, login, password reset and profile access.

The service holds configuration only; the DB session is passed into every
call so one instance can be shared by all concurrent requests.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from auth.errors import NotFound, Unauthorized, ValidationError
from auth.password import hash_password, verify_password
from config.settings import Settings
from database import helpers
from database.models import User, UserSession
from utils.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
)
from utils.validators import validate_email, validate_name, validate_password

logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "if the account exists, a reset token was generated"
RESET_DONE_MESSAGE = "password reset successfully"


class AuthService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.session_ttl = timedelta(seconds=settings.session_ttl_seconds)
        self.reset_ttl = timedelta(seconds=settings.reset_ttl_seconds)
        # checked against on unknown emails so both login paths pay for bcrypt
        self._dummy_hash = hash_password("not-a-real-password", rounds=settings.bcrypt_rounds)

    # ── Registration / login ───────────────────────────────────────────

    async def register(self, db: AsyncSession, req: RegisterRequest) -> User:
        email = validate_email(req.email)
        name = validate_name(req.name)
        validate_password(req.password, self.settings.min_password_length)

        password_hash = await run_in_threadpool(
            hash_password, req.password, rounds=self.settings.bcrypt_rounds,
        )
        return await helpers.create_user(db, email, name, password_hash)

    async def login(self, db: AsyncSession, req: LoginRequest) -> Tuple[User, UserSession]:
        """
        Check credentials and issue a session.

        Unknown email and wrong password raise the same ``Unauthorized``.
        """
        email = validate_email(req.email)
        try:
            user = await helpers.get_user_by_email(db, email)
        except NotFound:
            await run_in_threadpool(verify_password, req.password, self._dummy_hash)
            raise Unauthorized("invalid credentials")

        if not await run_in_threadpool(verify_password, req.password, user.password_hash):
            raise Unauthorized("invalid credentials")

        expires_at = _now() + self.session_ttl
        session = await helpers.create_session(
            db, user.id, expires_at, token_bytes=self.settings.token_bytes,
        )
        return user, session

    # ── Password reset ─────────────────────────────────────────────────

    async def forgot_password(self, db: AsyncSession, req: ForgotPasswordRequest) -> Dict[str, Any]:
        """
        Issue a reset token if the account exists.

        The message is the same whether or not the email is registered.
        With ``expose_reset_token`` on, an issued token is returned inline
        instead of being sent out-of-band.
        """
        email = validate_email(req.email)
        response: Dict[str, Any] = {"message": RESET_REQUESTED_MESSAGE}
        try:
            user = await helpers.get_user_by_email(db, email)
        except NotFound:
            return response

        expires_at = _now() + self.reset_ttl
        reset = await helpers.create_password_reset(
            db, user.id, expires_at, token_bytes=self.settings.token_bytes,
        )
        if self.settings.expose_reset_token:
            response["token"] = reset.token
            response["expires_at"] = reset.expires_at
        return response

    async def reset_password(self, db: AsyncSession, req: ResetPasswordRequest) -> Dict[str, Any]:
        token = req.token.strip()
        if not token:
            raise ValidationError("token is required")
        validate_password(req.new_password, self.settings.min_password_length)

        new_hash = await run_in_threadpool(
            hash_password, req.new_password, rounds=self.settings.bcrypt_rounds,
        )
        try:
            await helpers.consume_password_reset(db, token, new_hash)
        except NotFound:
            raise ValidationError("invalid or expired token")
        return {"message": RESET_DONE_MESSAGE}

    # ── Profile ────────────────────────────────────────────────────────

    async def authenticate(self, db: AsyncSession, authorization: Optional[str]) -> User:
        """Resolve an ``Authorization: Bearer <token>`` header to a user."""
        if not authorization or not authorization.startswith("Bearer "):
            raise Unauthorized()
        token = authorization[len("Bearer "):].strip()
        if not token:
            raise Unauthorized()
        try:
            return await helpers.get_user_by_session_token(db, token)
        except NotFound:
            raise Unauthorized()

    async def update_profile(
        self,
        db: AsyncSession,
        user: User,
        req: UpdateProfileRequest,
    ) -> User:
        if req.email is None and req.name is None:
            raise ValidationError("provide email or name")

        email = validate_email(req.email) if req.email is not None else None
        name = (
            validate_name(req.name, "name cannot be empty")
            if req.name is not None
            else None
        )
        return await helpers.update_user(db, user.id, email=email, name=name)


def _now() -> datetime:
    return datetime.now(timezone.utc)
