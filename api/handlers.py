"""
Exception handlers — every error leaves the API as ``{"error": "<message>"}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth.errors import AuthError, Internal

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def describe_validation_errors(errors: List[Dict[str, Any]]) -> str:
    """Turn pydantic / FastAPI request errors into one readable message."""
    if not errors:
        return "invalid request body"
    err = errors[0]
    kind = err.get("type", "")
    loc = [str(part) for part in err.get("loc", ()) if part != "body"]
    field = ".".join(loc)

    if kind == "json_invalid":
        return "body must contain a single valid JSON object"
    if kind == "extra_forbidden":
        return f'unknown field "{field}"'
    if kind == "missing" and not field:
        return "request body is required"
    if kind in ("model_attributes_type", "dict_type", "model_type"):
        return "body must be a JSON object"
    if field:
        return f"{field}: {err.get('msg', 'invalid value')}"
    return err.get("msg", "invalid request body")


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        if isinstance(exc, Internal):
            logger.error(
                "%s %s failed: %s (%s)",
                request.method, request.url.path, exc.message, exc.detail,
            )
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, describe_validation_errors(list(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "internal server error")
