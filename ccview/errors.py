"""Request-level errors surfaced to the HTTP layer."""

from __future__ import annotations


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class OversizeError(AppError):
    status_code = 413
    code = "FILE_TOO_LARGE"


class InvalidInputError(AppError):
    status_code = 400
    code = "INVALID_INPUT"
