"""
Module: backend/utils/errors.py
Business error taxonomy shared by services and routes. Each error carries a
stable code so clients can branch without parsing messages.
"""
from __future__ import annotations
from typing import Any


class ModerationError(Exception):
    code = "MODERATION_ERROR"
    http_status = 400
    hint: str | None = None

    def __init__(self, message: str, *, details: dict[str, Any] | None = None, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if hint is not None:
            self.hint = hint

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "hint": self.hint, "details": self.details}


class Unauthenticated(ModerationError):
    code = "UNAUTHENTICATED"
    http_status = 401
    hint = "請重新登入"


class Forbidden(ModerationError):
    code = "FORBIDDEN"
    http_status = 403
    hint = "檢查角色與擁有權"


class NotFound(ModerationError):
    code = "NOT_FOUND"
    http_status = 404


class InvalidArgument(ModerationError):
    code = "INVALID_ARGUMENT"
    http_status = 400
    hint = "檢查請求參數"


class Conflict(ModerationError):
    code = "CONFLICT"
    http_status = 409
    hint = "重新讀取最新狀態後再試"


class StoreUnavailable(Exception):
    """Infrastructure failure of the backing store, never a rule violation."""
    code = "STORE_UNAVAILABLE"
    http_status = 503
