"""Typed API errors. Each carries the HTTP status the boundary layer responds with."""

from typing import Any


class ApiError(Exception):
    """Base for errors surfaced to clients in the standard error envelope."""

    status_code = 500

    def __init__(self, message: str, errors: list[Any] | None = None) -> None:
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class ValidationError(ApiError):
    """Malformed or missing input."""

    status_code = 400


class AuthError(ApiError):
    """Bad credentials or bad token."""

    status_code = 401


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    """Uniqueness violation (username or email already taken)."""

    status_code = 409


class InternalError(ApiError):
    """Store or logic inconsistency; message is safe to show, details are logged."""

    status_code = 500


class InvalidTokenError(Exception):
    """Raised when a JWT fails signature, expiry or claim checks."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
