"""
Error taxonomy for the auth flow.

Every error carries the HTTP status it maps to and a client-safe message.
``Internal`` keeps its detail for the logs only.
"""

from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    status_code: int = 500
    default_message: str = "internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "invalid input"


class Unauthorized(AuthError):
    status_code = 401
    default_message = "unauthorized"


class NotFound(AuthError):
    status_code = 404
    default_message = "not found"


class Conflict(AuthError):
    """Uniqueness violation."""

    status_code = 409
    default_message = "already exists"


class Internal(AuthError):
    """Storage / hashing / entropy failure. ``detail`` is never sent to clients."""

    status_code = 500

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.detail = detail
