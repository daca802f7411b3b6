"""
Global middleware.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from config.settings import Settings

logger = logging.getLogger(__name__)

_BODY_TOO_LARGE = "request body too large"


class RequestDeadlineMiddleware:
    """
    Raw ASGI deadline: the downstream call runs inside ``wait_for``, so on
    timeout the handler itself is cancelled and its DB session unwinds
    (rollback + connection back to the pool).
    """

    def __init__(self, app: ASGIApp, timeout: float):
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(self.app(scope, receive, send_wrapper), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "%s %s exceeded %.1fs deadline",
                scope.get("method"), scope.get("path"), self.timeout,
            )
            if not response_started:
                response = JSONResponse(status_code=504, content={"error": "request timed out"})
                await response(scope, receive, send)


class BodySizeLimitMiddleware:
    """
    Raw ASGI body cap. ``Content-Length`` is checked up front; chunked bodies
    are counted as they are read and cut off with a 413 past the limit.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        for key, value in scope.get("headers") or []:
            if key.lower() == b"content-length" and value.isdigit():
                if int(value) > self.max_body_bytes:
                    response = JSONResponse(status_code=413, content={"error": _BODY_TOO_LARGE})
                    await response(scope, receive, send)
                    return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    # FastAPI re-raises HTTPException from body parsing unchanged
                    raise HTTPException(status_code=413, detail=_BODY_TOO_LARGE)
            return message

        await self.app(scope, limited_receive, send)


def register_middleware(app: FastAPI, settings: Settings) -> None:
    """Attach app-level middleware: request deadline, body cap, timing / request id."""

    app.add_middleware(RequestDeadlineMiddleware, timeout=settings.request_timeout_seconds)
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "[%s] %s %s → %d — %.3fs",
            request_id, request.method, request.url.path, response.status_code, elapsed,
        )
        return response
