"""
Fireside Backend — Request ID Middleware
==========================================

What:  Tags each request with a short correlation ID and echoes it back in the
       X-Request-ID response header.
How:   Reuses the client's X-Request-ID when sent (the web client sets one per
       highlight gesture), otherwise generates one. The value lives in a
       ContextVar so exception handlers and loggers can read it without being
       handed the request.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local; concurrent requests share a thread.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns request.state.request_id and the X-Request-ID header."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
