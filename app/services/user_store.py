"""Credential store: persistence of user records and their refresh-token slot."""

import logging
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, ValidationError
from app.models.user import User

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("username", "email", "full_name", "password_hash", "avatar_url")
BCRYPT_HASH_PREFIXES = ("$2a$", "$2b$", "$2y$")

# Same sizes as the String columns in app/models/user.py.
FULL_NAME_MAX_LEN = 255
EMAIL_MAX_LEN = 320
USERNAME_MAX_LEN = 255


def check_profile_fields(full_name: str, email: str, username: str) -> None:
    """Length and email-shape checks on profile fields; raises ValidationError."""
    too_long = [
        name
        for name, value, limit in (
            ("fullName", full_name, FULL_NAME_MAX_LEN),
            ("email", email, EMAIL_MAX_LEN),
            ("username", username, USERNAME_MAX_LEN),
        )
        if len(value) > limit
    ]
    if too_long:
        raise ValidationError("Field value too long", errors=too_long)
    if "@" not in email:
        raise ValidationError("Invalid email address", errors=["email"])


def _validate_user(user: User) -> None:
    """Full-record check run before saves that may touch profile or credentials."""
    missing = [f for f in REQUIRED_FIELDS if not (getattr(user, f) or "").strip()]
    if missing:
        raise ValidationError("All fields are required", errors=missing)
    check_profile_fields(user.full_name, user.email, user.username)
    if not user.password_hash.startswith(BCRYPT_HASH_PREFIXES):
        raise ValidationError("Password must be stored as a hash", errors=["password_hash"])


class UserStore:
    """
    Read/write access to users. Every write commits immediately.

    Uniqueness of username and email is enforced by the database; the caller
    checks first to give a friendlier error, and the constraint catches races.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_username_or_email(
        self, username: str | None, email: str | None
    ) -> User | None:
        conditions = []
        if username:
            conditions.append(User.username == username.strip().lower())
        if email:
            conditions.append(User.email == email.strip())
        if not conditions:
            return None
        return self.db.query(User).filter(or_(*conditions)).first()

    def find_by_id(self, user_id: str) -> User | None:
        return self.db.get(User, user_id)

    def create(self, **fields: Any) -> User:
        """Insert a new user; raises ConflictError if username or email is taken."""
        user = User(**fields)
        _validate_user(user)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info("User insert rejected by unique constraint: %s", e.orig)
            raise ConflictError("User with email or username already exists") from e
        except DataError as e:
            self.db.rollback()
            logger.info("User insert rejected by column constraint: %s", e.orig)
            raise ValidationError("Invalid user fields") from e
        self.db.refresh(user)
        return user

    def save(self, user: User, validate: bool = True) -> User:
        """
        Persist mutations of an existing record.

        Pass validate=False for session-state-only updates (refresh_token),
        which must not depend on the rest of the record being re-validated.
        """
        if validate:
            _validate_user(user)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("User with email or username already exists") from e
        self.db.refresh(user)
        return user

    def update_refresh_token(self, user_id: str, token: str | None) -> User | None:
        """Overwrite (or clear with None) the user's single refresh-token slot."""
        user = self.find_by_id(user_id)
        if user is None:
            return None
        user.refresh_token = token
        return self.save(user, validate=False)
