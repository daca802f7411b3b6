"""
Database helper functions — users, sessions and password-reset tokens.

Every helper takes the request's ``AsyncSession`` as its first argument;
nothing here reaches for a global engine.  Raw SQLAlchemy / driver errors
never leave this module: ``translate_db_error`` maps them onto the auth
error taxonomy.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth.errors import AuthError, Conflict, Internal, NotFound
from auth.tokens import generate_token
from database.models import PasswordReset, User, UserSession, utcnow

logger = logging.getLogger(__name__)

_PG_UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: BaseException) -> bool:
    """True if *exc* is a unique-constraint violation on any supported backend."""
    if not isinstance(exc, IntegrityError):
        return False
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code is not None:
        return code == _PG_UNIQUE_VIOLATION
    if getattr(orig, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_UNIQUE":
        return True
    return "UNIQUE constraint failed" in str(orig)


def translate_db_error(
    exc: SQLAlchemyError,
    message: str,
    conflict_message: str = "already exists",
) -> AuthError:
    """Classify a storage error: uniqueness → ``Conflict``, anything else → ``Internal``."""
    if is_unique_violation(exc):
        return Conflict(conflict_message)
    logger.error("%s: %s", message, exc)
    return Internal(message, detail=str(exc))


# ── Users ───────────────────────────────────────────────────────────


async def create_user(
    session: AsyncSession,
    email: str,
    name: str,
    password_hash: str,
) -> User:
    """Insert a user. Duplicate email → ``Conflict``."""
    user = User(email=email, name=name, password_hash=password_hash)
    session.add(user)
    try:
        await session.flush()
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise translate_db_error(exc, "failed to create user", "email already exists") from exc
    logger.info("Created user %s", user.id)
    return user


async def get_user_by_email(session: AsyncSession, email: str) -> User:
    try:
        result = await session.execute(select(User).where(User.email == email))
    except SQLAlchemyError as exc:
        raise translate_db_error(exc, "failed to load user") from exc
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("user not found")
    return user


async def get_user_by_id(session: AsyncSession, user_id: int) -> User:
    try:
        user = await session.get(User, user_id)
    except SQLAlchemyError as exc:
        raise translate_db_error(exc, "failed to load user") from exc
    if user is None:
        raise NotFound("user not found")
    return user


async def update_user(
    session: AsyncSession,
    user_id: int,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> User:
    """
    Update the given fields; ``None`` leaves a column untouched.

    Raises ``NotFound`` for an unknown id and ``Conflict`` when the new
    email belongs to another account.
    """
    user = await get_user_by_id(session, user_id)
    if email is not None:
        user.email = email
    if name is not None:
        user.name = name
    user.updated_at = utcnow()
    try:
        await session.flush()
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise translate_db_error(exc, "failed to update user", "email already exists") from exc
    return user


# ── Sessions ────────────────────────────────────────────────────────


async def create_session(
    session: AsyncSession,
    user_id: int,
    expires_at: datetime,
    token_bytes: int = 32,
) -> UserSession:
    """Persist a fresh random session token for *user_id*."""
    row = UserSession(
        user_id=user_id,
        token=generate_token(token_bytes),
        expires_at=expires_at,
    )
    session.add(row)
    try:
        await session.flush()
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise translate_db_error(exc, "failed to create session") from exc
    logger.info("Session issued for user %s (expires %s)", user_id, expires_at.isoformat())
    return row


async def get_user_by_session_token(session: AsyncSession, token: str) -> User:
    """
    Resolve a bearer token to its user.

    Unknown and expired tokens both raise the same ``NotFound``.
    """
    try:
        result = await session.execute(
            select(User)
            .join(UserSession, UserSession.user_id == User.id)
            .where(UserSession.token == token, UserSession.expires_at > utcnow())
        )
    except SQLAlchemyError as exc:
        raise translate_db_error(exc, "failed to load session") from exc
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("session not found")
    return user


# ── Password resets ─────────────────────────────────────────────────


async def create_password_reset(
    session: AsyncSession,
    user_id: int,
    expires_at: datetime,
    token_bytes: int = 32,
) -> PasswordReset:
    """Persist a single-use reset token for *user_id*."""
    row = PasswordReset(
        user_id=user_id,
        token=generate_token(token_bytes),
        expires_at=expires_at,
    )
    session.add(row)
    try:
        await session.flush()
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise translate_db_error(exc, "failed to create reset token") from exc
    logger.info("Password reset issued for user %s", user_id)
    return row


async def consume_password_reset(
    session: AsyncSession,
    token: str,
    new_hash: str,
) -> User:
    """
    Atomically redeem a reset token and set the owner's new password hash.

    Runs as one transaction: lock the unexpired token row
    (``SELECT … FOR UPDATE``), update the user, delete the token, commit.
    A concurrent consumer blocks on the row lock and then finds nothing,
    so at most one caller succeeds; the others get ``NotFound``.  Any
    failure rolls everything back.
    """
    try:
        result = await session.execute(
            select(PasswordReset)
            .where(PasswordReset.token == token, PasswordReset.expires_at > utcnow())
            .with_for_update()
        )
        reset = result.scalar_one_or_none()
        if reset is None:
            raise NotFound("reset token not found")

        user = await session.get(User, reset.user_id)
        if user is None:
            raise NotFound("user not found")
        user.password_hash = new_hash
        user.updated_at = utcnow()
        await session.flush()

        deleted = await session.execute(
            delete(PasswordReset).where(PasswordReset.id == reset.id)
        )
        if deleted.rowcount != 1:
            raise NotFound("reset token not found")

        await session.commit()
    except AuthError:
        await session.rollback()
        raise
    except SQLAlchemyError as exc:
        await session.rollback()
        raise translate_db_error(exc, "failed to reset password") from exc

    logger.info("Password reset completed for user %s", user.id)
    return user
