"""
Password hashing and verification.

Uses bcrypt for password hashing with automatic
salting and configurable work factor.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import Internal

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt (auto-salted, adaptive work factor)."""
    try:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()
    except (ValueError, TypeError) as exc:
        logger.error("Password hashing failed: %s", exc)
        raise Internal("failed to hash password", detail=str(exc)) from exc


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except (ValueError, TypeError) as exc:
        logger.warning("Password check rejected by bcrypt: %s", exc)
        return False
