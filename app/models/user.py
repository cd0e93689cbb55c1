"""ORM model for user accounts and their server-side session slot."""

import uuid

from sqlalchemy import Column, DateTime, String, Text, func

from app.models.base import Base


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Registered account.

    username is stored lower-cased, so its unique index is case-insensitive.
    refresh_token holds the single live refresh token; a new login or refresh
    overwrites it and logout sets it to NULL.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(320), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    avatar_url = Column(String(2048), nullable=False)
    cover_image_url = Column(String(2048), nullable=False, default="")
    refresh_token = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
