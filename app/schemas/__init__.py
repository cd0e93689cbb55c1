"""Pydantic request/response schemas."""

from app.schemas.common import ApiResponse, ErrorResponse
from app.schemas.health import HealthResponse
from app.schemas.users import (
    LoginData,
    LoginRequest,
    RefreshTokenRequest,
    RegistrationForm,
    TokenPair,
    UserOut,
)

__all__ = [
    "ApiResponse",
    "ErrorResponse",
    "HealthResponse",
    "LoginData",
    "LoginRequest",
    "RefreshTokenRequest",
    "RegistrationForm",
    "TokenPair",
    "UserOut",
]
