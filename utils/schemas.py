"""
Pydantic schemas for the user accounts API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


# ═══════════════════════════════════════════════════════════════════════════════
# Requests — unknown fields are rejected
# ═══════════════════════════════════════════════════════════════════════════════


class _StrictBody(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RegisterRequest(_StrictBody):
    email: str = ""
    password: str = ""
    name: str = ""


class LoginRequest(_StrictBody):
    email: str = ""
    password: str = ""


class ForgotPasswordRequest(_StrictBody):
    email: str = ""


class ResetPasswordRequest(_StrictBody):
    token: str = ""
    new_password: str = ""


class UpdateProfileRequest(_StrictBody):
    """Both fields optional; absent and ``null`` mean "leave unchanged"."""

    email: Optional[str] = None
    name: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


class UserOut(BaseModel):
    """Public view of a user. The password hash is never part of it."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    created_at: datetime
    updated_at: datetime


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    token: str
    expires_at: datetime


class LoginResponse(BaseModel):
    user: UserOut
    session: SessionOut


class ForgotPasswordResponse(BaseModel):
    message: str
    token: Optional[str] = None
    expires_at: Optional[datetime] = None


class MessageResponse(BaseModel):
    message: str
