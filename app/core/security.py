"""Password hashing and JWT issuing/verification for access and refresh tokens."""

import uuid
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt

from app.core.config import settings
from app.core.errors import InvalidTokenError

if TYPE_CHECKING:
    from app.models.user import User

# bcrypt only looks at the first 72 bytes of the password.
BCRYPT_MAX_BYTES = 72

PASSWORD_MAX_LEN = 128


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def _encode(payload: dict[str, Any], secret: str) -> str:
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def _decode(token: str, secret: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as e:
        raise InvalidTokenError(str(e) or type(e).__name__) from e
    if not payload.get("sub"):
        raise InvalidTokenError("Token has no subject")
    return payload


def issue_access_token(user: "User") -> str:
    """
    Create a short-lived access token.

    Carries the user id plus username/email/fullName so clients can render
    the session without an extra request.
    """
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(user.id),
        "username": user.username,
        "email": user.email,
        "fullName": user.full_name,
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return _encode(payload, settings.ACCESS_TOKEN_SECRET.get_secret_value())


def issue_refresh_token(user: "User") -> str:
    """Create a long-lived refresh token carrying only the user id."""
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(user.id),
        # jti keeps tokens minted in the same second distinct.
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    }
    return _encode(payload, settings.REFRESH_TOKEN_SECRET.get_secret_value())


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an access token; return its claims.
    Raises InvalidTokenError on bad signature, expiry or missing subject.
    """
    return _decode(token, settings.ACCESS_TOKEN_SECRET.get_secret_value())


def verify_refresh_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a refresh token; return its claims.
    Raises InvalidTokenError on bad signature, expiry or missing subject.
    """
    return _decode(token, settings.REFRESH_TOKEN_SECRET.get_secret_value())
