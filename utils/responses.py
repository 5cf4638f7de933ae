# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
JSON response helpers shared by every endpoint.
"""
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
}


def success_response(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(data), headers=CORS_HEADERS)


def error_response(error: str, status_code: int = 400, **extra: Any) -> JSONResponse:
    """Standard error envelope: {"success": false, "error": error, ...extra}."""
    content = {"success": False, "error": error, **extra}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content), headers=CORS_HEADERS)
