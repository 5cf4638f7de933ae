# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
HTTP middleware: CORS headers on every response (including errors and preflight)
and a request id bound to the logging context.
"""
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from utils.responses import CORS_HEADERS


class CorsMiddleware(BaseHTTPMiddleware):
    """Answer preflight requests and stamp CORS headers on everything else."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        response = await call_next(request)
        for key, value in CORS_HEADERS.items():
            response.headers.setdefault(key, value)
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Use the caller's X-Request-Id or generate one, bind it to the log context and echo it back."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()
        response.headers["X-Request-Id"] = request_id
        return response
