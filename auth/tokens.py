"""
Opaque bearer tokens for sessions and password resets.
"""

from __future__ import annotations

import logging
import secrets

from auth.errors import Internal

logger = logging.getLogger(__name__)

MIN_TOKEN_BYTES = 16


def generate_token(byte_length: int = 32) -> str:
    """
    Return ``byte_length`` bytes from the OS CSPRNG, hex-encoded.

    Raises ``ValueError`` for lengths below ``MIN_TOKEN_BYTES`` and
    ``Internal`` if the entropy source fails.
    """
    if byte_length < MIN_TOKEN_BYTES:
        raise ValueError(f"token length must be at least {MIN_TOKEN_BYTES} bytes")
    try:
        return secrets.token_hex(byte_length)
    except OSError as exc:
        logger.error("Random source unavailable: %s", exc)
        raise Internal("failed to generate token", detail=str(exc)) from exc
