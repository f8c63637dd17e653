"""Middleware for cross-cutting request concerns."""

import logging
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from interviewer_bot.core.logging import log_event, set_request_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every log line and response of a request with one request ID."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        set_request_id(request_id)

        log_event(
            "request.started",
            level=logging.INFO,
            component="middleware",
            operation="request_id",
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            log_event(
                "request.completed",
                level=logging.INFO,
                component="middleware",
                operation="request_id",
                status_code=response.status_code,
            )
            return response
        finally:
            set_request_id(None)
