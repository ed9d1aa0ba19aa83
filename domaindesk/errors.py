# -*- coding: utf-8 -*-
"""Exceptions raised by the store and turned into JSON responses by the API."""

from typing import Any, Dict, Optional


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": False, "message": self.message, "error": type(self).__name__}
        body.update(self.extra)
        return body


class ValidationError(ApiError):
    status_code = 400


class AuthError(ApiError):
    status_code = 401


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class InvalidTransition(Conflict):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move ticket from '{current}' to '{target}'", current=current, target=target)
