"""
Session lifecycle: register, login, logout and refresh-token rotation.

Each user has a single refresh-token slot. Login and refresh overwrite it and
logout clears it, so a refresh token stops working as soon as a newer one is
issued, even if it has not expired.
"""

import logging

from app.core.errors import (
    AuthError,
    ConflictError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from app.core.security import (
    PASSWORD_MAX_LEN,
    hash_password,
    issue_access_token,
    issue_refresh_token,
    verify_password,
    verify_refresh_token,
)
from app.models.user import User
from app.schemas.users import RegistrationForm, TokenPair
from app.services.uploads import MediaUploader
from app.services.user_store import UserStore, check_profile_fields

logger = logging.getLogger(__name__)


def _issue_and_store_tokens(store: UserStore, user_id: str) -> TokenPair:
    """Mint a token pair and persist the refresh token. Any failure becomes a 500."""
    try:
        user = store.find_by_id(user_id)
        if user is None:
            raise LookupError(f"user {user_id} vanished before token issue")
        access_token = issue_access_token(user)
        refresh_token = issue_refresh_token(user)
        user.refresh_token = refresh_token
        store.save(user, validate=False)
    except Exception as e:
        logger.exception("Token generation failed for user_id=%s: %s", user_id, e)
        raise InternalError(
            "Something went wrong while generating Access and Refresh Tokens"
        ) from e
    return TokenPair(access_token=access_token, refresh_token=refresh_token)


def register_user(
    store: UserStore,
    uploader: MediaUploader,
    form: RegistrationForm,
    avatar_path: str | None,
    cover_image_path: str | None = None,
) -> User:
    """
    Create an account from form fields and staged image files.

    The avatar is mandatory; a cover image that fails to upload is stored as "".
    Returns the freshly re-read record.
    """
    fields = (form.full_name, form.email, form.username, form.password)
    if any(not (f or "").strip() for f in fields):
        raise ValidationError("All fields are required")

    username = form.username.strip().lower()
    email = form.email.strip()
    full_name = form.full_name.strip()
    # Rejected input must not leave uploaded media behind.
    check_profile_fields(full_name, email, username)
    if len(form.password) > PASSWORD_MAX_LEN:
        raise ValidationError("Field value too long", errors=["password"])
    if store.find_by_username_or_email(username, email) is not None:
        raise ConflictError("User with email or username already exists")

    if not avatar_path:
        raise ValidationError("Avatar file is required")
    avatar = uploader.upload(avatar_path)
    if avatar is None:
        raise ValidationError("Avatar file is required")
    cover_image = uploader.upload(cover_image_path) if cover_image_path else None
    if cover_image_path and cover_image is None:
        logger.warning("Cover image upload failed for username=%s; storing empty", username)

    user = store.create(
        full_name=full_name,
        email=email,
        username=username,
        password_hash=hash_password(form.password),
        avatar_url=avatar.url,
        cover_image_url=cover_image.url if cover_image else "",
    )

    created = store.find_by_id(user.id)
    if created is None:
        raise InternalError("Something went wrong while registering the user")
    logger.info("Registered user_id=%s username=%s", created.id, created.username)
    return created


def login_user(
    store: UserStore,
    username: str | None,
    email: str | None,
    password: str,
) -> tuple[User, TokenPair]:
    """Check credentials, rotate the refresh-token slot and return (user, tokens)."""
    if not (username and username.strip()) and not (email and email.strip()):
        raise ValidationError("Username or email is required")

    user = store.find_by_username_or_email(username, email)
    if user is None:
        raise NotFoundError("User does not exist")

    if not verify_password(password, user.password_hash):
        logger.info("Rejected login for user_id=%s: bad password", user.id)
        raise AuthError("Invalid user credentials")

    tokens = _issue_and_store_tokens(store, user.id)

    logged_in = store.find_by_id(user.id)
    if logged_in is None:
        raise InternalError("Something went wrong while generating Access and Refresh Tokens")
    logger.info("User logged in user_id=%s", logged_in.id)
    return logged_in, tokens


def logout_user(store: UserStore, user_id: str) -> None:
    """Clear the refresh-token slot; any outstanding refresh token stops working."""
    store.update_refresh_token(user_id, None)
    logger.info("User logged out user_id=%s", user_id)


def refresh_session(store: UserStore, incoming_token: str | None) -> TokenPair:
    """
    Exchange a refresh token for a new pair.

    The presented token must equal the one stored on the user; a token that
    was superseded by a later login or refresh is rejected.
    """
    if not incoming_token:
        raise AuthError("Unauthorized Request")

    try:
        claims = verify_refresh_token(incoming_token)
    except InvalidTokenError as e:
        raise AuthError(e.message or "Invalid Refresh Token") from e

    user = store.find_by_id(str(claims["sub"]))
    if user is None:
        raise AuthError("Invalid Refresh Token")

    if incoming_token != user.refresh_token:
        logger.warning("Rejected stale refresh token for user_id=%s", user.id)
        raise AuthError("Refresh Token Expired")

    tokens = _issue_and_store_tokens(store, user.id)
    logger.info("Access token refreshed user_id=%s", user.id)
    return tokens
