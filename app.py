# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
Main entry point for the book club API.
Builds the FastAPI application, registers the server, club, member and session
routers, error handlers and middleware.
"""
import os
import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from routers import club, member, server, session
from utils.database import DatabaseHandler
from utils.errors import ApiError, MethodNotSupported
from utils.log_config import setup_logging
from utils.middleware import CorsMiddleware, RequestIdMiddleware
from utils.responses import error_response

# Load environment variables
load_dotenv(override=True)

# Configure logging
setup_logging(os.getenv("LOG_LEVEL", "WARNING"), os.getenv("LOG_FORMAT", "console"))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await DatabaseHandler.aclose()


def setup_error_handlers(app: FastAPI) -> None:
    """Every error leaves as {"success": false, "error": ...} with CORS headers."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
        return error_response(exc.message, exc.status_code, **exc.extra)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            error = MethodNotSupported("Method not allowed")
            return error_response(error.message, error.status_code)
        return error_response(str(exc.detail), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed JSON or wrongly typed fields; report the first problem."""
        errors = exc.errors()
        if not errors:
            return error_response("Invalid request", 400)
        first = errors[0]
        if first.get("type") == "json_invalid":
            return error_response("Invalid JSON body", 400)
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        return error_response(message, 400)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return error_response(str(exc) or "Internal server error", 500)


def create_app() -> FastAPI:
    app = FastAPI(title="Book Club API", lifespan=lifespan)
    setup_error_handlers(app)

    # Added last runs first: CORS wraps everything, including preflight
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(CorsMiddleware)

    app.include_router(server.router)
    app.include_router(club.router)
    app.include_router(member.router)
    app.include_router(session.router)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
