# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
Error kinds raised by the store adapter, validation rules and cascade planner.
Each carries the HTTP status it maps to; the app's exception handlers turn them
into the JSON error envelope.
"""
from typing import Any, Optional


class ApiError(Exception):
    """Base class for errors that are reported to the caller as JSON."""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, **self.extra}


class ValidationError(ApiError):
    status_code = 400


class NotFoundError(ApiError):
    status_code = 404


class MethodNotSupported(ApiError):
    status_code = 405


class StoreError(ApiError):
    """A call to the Supabase REST endpoint failed."""
    status_code = 500


class PartialSuccessError(ApiError):
    """
    Raised when a flow fails after some of its writes were committed.
    Nothing is rolled back; the response says what did complete.
    """

    def __init__(self, error: str, message: str, status_code: int = 500, **extra: Any) -> None:
        super().__init__(error, status_code, partial_success=True, **extra)
        self.extra["message"] = message

    @classmethod
    def wrap(cls, exc: ApiError, message: str, **extra: Any) -> "PartialSuccessError":
        """Re-raise an error from a later step, keeping its status and error text."""
        carried = {k: v for k, v in exc.extra.items() if k not in ("partial_success", "message")}
        return cls(exc.message, message, status_code=exc.status_code, **{**carried, **extra})
