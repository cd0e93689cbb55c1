"""Shared FastAPI dependencies: store, uploader, current user."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.errors import AuthError, InvalidTokenError
from app.core.security import decode_access_token
from app.models.user import User
from app.services.uploads import MediaUploader, get_uploader
from app.services.user_store import UserStore

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

security = HTTPBearer(auto_error=False)


def get_user_store(db: Annotated[Session, Depends(get_db)]) -> UserStore:
    return UserStore(db)


def get_media_uploader(
    settings: Annotated[Settings, Depends(get_settings)],
) -> MediaUploader:
    return get_uploader(settings)


def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    store: Annotated[UserStore, Depends(get_user_store)],
) -> User:
    """Dependency: require a valid access token (cookie or Bearer header) and return its user."""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise AuthError("Unauthorized request")
    try:
        payload = decode_access_token(token)
    except InvalidTokenError as e:
        raise AuthError("Invalid Access Token") from e
    user = store.find_by_id(str(payload["sub"]))
    if user is None:
        raise AuthError("Invalid Access Token")
    return user
