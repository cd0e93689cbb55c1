"""User account endpoints: register, login, logout, refresh-token."""

import shutil
import tempfile
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status

from app.api.deps import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_current_user,
    get_media_uploader,
    get_user_store,
)
from app.core.config import Settings, get_settings
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.users import (
    LoginData,
    LoginRequest,
    RefreshTokenRequest,
    RegistrationForm,
    TokenPair,
    UserOut,
)
from app.services import sessions
from app.services.uploads import MediaUploader
from app.services.user_store import UserStore

router = APIRouter()

# Extensions are kept only so uploaded media keeps a sensible suffix.
MAX_SUFFIX_LEN = 10


def _stage_upload(upload: UploadFile | None, directory: str, stem: str) -> str | None:
    """Copy an incoming file into the request's temp directory; return its path."""
    if upload is None or not upload.filename:
        return None
    suffix = Path(upload.filename).suffix.lower()[:MAX_SUFFIX_LEN]
    path = Path(directory) / f"{stem}{suffix}"
    with path.open("wb") as buffer:
        shutil.copyfileobj(upload.file, buffer)
    return str(path)


def _set_session_cookies(response: Response, settings: Settings, tokens: TokenPair) -> None:
    for name, value in (
        (ACCESS_TOKEN_COOKIE, tokens.access_token),
        (REFRESH_TOKEN_COOKIE, tokens.refresh_token),
    ):
        response.set_cookie(
            name,
            value,
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite=settings.COOKIE_SAMESITE,
            path="/",
        )


def _clear_session_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(
            name,
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite=settings.COOKIE_SAMESITE,
            path="/",
        )


@router.post(
    "/register",
    response_model=ApiResponse[UserOut],
    status_code=status.HTTP_201_CREATED,
)
def register(
    store: Annotated[UserStore, Depends(get_user_store)],
    uploader: Annotated[MediaUploader, Depends(get_media_uploader)],
    full_name: Annotated[str, Form(alias="fullName", max_length=255)] = "",
    email: Annotated[str, Form(max_length=320)] = "",
    username: Annotated[str, Form(max_length=255)] = "",
    password: Annotated[str, Form(max_length=128)] = "",
    avatar: Annotated[UploadFile | None, File()] = None,
    cover_image: Annotated[UploadFile | None, File(alias="coverImage")] = None,
) -> ApiResponse[UserOut]:
    """
    Register a new account.

    Send `multipart/form-data` with `fullName`, `email`, `username`, `password`,
    an `avatar` image (required) and optionally a `coverImage`.
    """
    form = RegistrationForm(
        full_name=full_name, email=email, username=username, password=password
    )
    with tempfile.TemporaryDirectory(prefix="register-") as staging_dir:
        avatar_path = _stage_upload(avatar, staging_dir, "avatar")
        cover_path = _stage_upload(cover_image, staging_dir, "cover")
        user = sessions.register_user(store, uploader, form, avatar_path, cover_path)
    return ApiResponse[UserOut].of(
        status.HTTP_201_CREATED,
        UserOut.model_validate(user),
        "User registered successfully",
    )


@router.post("/login", response_model=ApiResponse[LoginData])
def login(
    body: LoginRequest,
    response: Response,
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[LoginData]:
    """
    Log in with username or email plus password.

    Sets `accessToken` and `refreshToken` http-only cookies and also returns
    both tokens in the body for clients that cannot read cookies.
    """
    user, tokens = sessions.login_user(store, body.username, body.email, body.password)
    _set_session_cookies(response, settings, tokens)
    data = LoginData(
        user=UserOut.model_validate(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )
    return ApiResponse[LoginData].of(status.HTTP_200_OK, data, "User logged in successfully")


@router.post("/logout", response_model=ApiResponse[dict])
def logout(
    response: Response,
    current_user: Annotated[User, Depends(get_current_user)],
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[dict]:
    """Clear the stored refresh token and both session cookies."""
    sessions.logout_user(store, current_user.id)
    _clear_session_cookies(response, settings)
    return ApiResponse[dict].of(status.HTTP_200_OK, {}, "User logged out")


@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
def refresh_token(
    request: Request,
    response: Response,
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    body: RefreshTokenRequest | None = None,
) -> ApiResponse[TokenPair]:
    """Rotate tokens using the refresh token from the cookie or the request body."""
    incoming = request.cookies.get(REFRESH_TOKEN_COOKIE) or (
        body.refresh_token if body is not None else None
    )
    tokens = sessions.refresh_session(store, incoming)
    _set_session_cookies(response, settings, tokens)
    return ApiResponse[TokenPair].of(status.HTTP_200_OK, tokens, "Access token refreshed")
