"""Tests for app.services.sessions: register, login, logout and refresh rotation."""

import tempfile
import unittest
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import jwt

from app.core.config import settings
from app.core.errors import (
    AuthError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from app.core.security import verify_password, verify_refresh_token
from app.models import User
from app.schemas.users import RegistrationForm
from app.services import sessions
from app.services.uploads import LocalMediaUploader
from app.services.user_store import UserStore
from tests.utils import make_session, stub_uploader


def _form(**kwargs: str) -> RegistrationForm:
    defaults = {"full_name": "A B", "email": "a@x.com", "username": "ab", "password": "p1"}
    defaults.update(kwargs)
    return RegistrationForm(**defaults)


class _StoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.store = UserStore(self.db)
        self.uploader = stub_uploader()

    def tearDown(self) -> None:
        self.db.close()

    def register(self, **kwargs: str) -> User:
        return sessions.register_user(
            self.store, self.uploader, _form(**kwargs), "/tmp/x/avatar.png", None
        )


class TestRegister(_StoreTestCase):
    def test_register_creates_user(self) -> None:
        user = self.register()
        self.assertEqual(user.username, "ab")
        self.assertNotEqual(user.password_hash, "p1")
        self.assertTrue(verify_password("p1", user.password_hash))
        self.assertEqual(user.avatar_url, "https://cdn.example.com/avatar.png")
        self.assertEqual(user.cover_image_url, "")
        self.assertIsNone(user.refresh_token)

    def test_username_lower_cased(self) -> None:
        user = self.register(username="  MixedCase ")
        self.assertEqual(user.username, "mixedcase")

    def test_blank_fields_rejected(self) -> None:
        for field in ("full_name", "email", "username", "password"):
            with self.subTest(field=field):
                with self.assertRaises(ValidationError) as ctx:
                    self.register(**{field: "   "})
                self.assertEqual(ctx.exception.status_code, 400)
                self.assertEqual(ctx.exception.message, "All fields are required")
        self.assertEqual(self.db.query(User).count(), 0)
        self.uploader.upload.assert_not_called()

    def test_over_long_fields_rejected_before_upload(self) -> None:
        cases = (
            ("username", "u" * 256),
            ("email", "e" * 320 + "@x.com"),
            ("full_name", "n" * 256),
            ("password", "p" * 129),
        )
        for field, value in cases:
            with self.subTest(field=field):
                with self.assertRaises(ValidationError) as ctx:
                    self.register(**{field: value})
                self.assertEqual(ctx.exception.message, "Field value too long")
        self.assertEqual(self.db.query(User).count(), 0)
        self.uploader.upload.assert_not_called()

    def test_invalid_email_leaves_no_uploaded_files(self) -> None:
        with tempfile.TemporaryDirectory() as media, tempfile.TemporaryDirectory() as staging:
            avatar_path = Path(staging) / "avatar.png"
            avatar_path.write_bytes(b"\x89PNG avatar")
            uploader = LocalMediaUploader(
                static_dir=media,
                public_base_url="http://testserver",
                static_url_path="/static",
            )
            with self.assertRaises(ValidationError) as ctx:
                sessions.register_user(
                    self.store, uploader, _form(email="not-an-email"), str(avatar_path)
                )
            self.assertEqual(ctx.exception.message, "Invalid email address")
            uploads = Path(media) / "uploads"
            self.assertEqual(list(uploads.iterdir()) if uploads.exists() else [], [])
        self.assertEqual(self.db.query(User).count(), 0)

    def test_duplicate_username_or_email_conflicts(self) -> None:
        self.register()
        for kwargs in ({"email": "new@x.com"}, {"username": "new"}, {"username": "AB", "email": "n@x.com"}):
            with self.subTest(**kwargs):
                with self.assertRaises(ConflictError) as ctx:
                    self.register(**kwargs)
                self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(self.db.query(User).count(), 1)

    def test_missing_avatar_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            sessions.register_user(self.store, self.uploader, _form(), None, "/tmp/x/cover.png")
        self.assertEqual(ctx.exception.message, "Avatar file is required")
        self.assertEqual(self.db.query(User).count(), 0)

    def test_failed_avatar_upload_rejected(self) -> None:
        self.uploader = stub_uploader(avatar_url=None)
        with self.assertRaises(ValidationError):
            self.register()
        self.assertEqual(self.db.query(User).count(), 0)

    def test_cover_image_stored(self) -> None:
        user = sessions.register_user(
            self.store, self.uploader, _form(), "/tmp/x/avatar.png", "/tmp/x/cover.png"
        )
        self.assertEqual(user.cover_image_url, "https://cdn.example.com/cover.png")

    def test_failed_cover_upload_is_not_fatal(self) -> None:
        self.uploader = stub_uploader(cover_url=None)
        user = sessions.register_user(
            self.store, self.uploader, _form(), "/tmp/x/avatar.png", "/tmp/x/cover.png"
        )
        self.assertEqual(user.cover_image_url, "")

    def test_unreadable_created_record_is_internal_error(self) -> None:
        store = MagicMock(wraps=self.store)
        store.find_by_username_or_email.return_value = None
        store.find_by_id.return_value = None
        with self.assertRaises(InternalError) as ctx:
            sessions.register_user(store, self.uploader, _form(), "/tmp/x/avatar.png")
        self.assertEqual(ctx.exception.status_code, 500)


class TestLogin(_StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.register()

    def test_login_by_username(self) -> None:
        user, tokens = sessions.login_user(self.store, "ab", None, "p1")
        self.assertEqual(user.id, self.user.id)
        self.assertEqual(verify_refresh_token(tokens.refresh_token)["sub"], self.user.id)
        self.assertEqual(user.refresh_token, tokens.refresh_token)
        self.assertEqual(self.store.find_by_id(self.user.id).refresh_token, tokens.refresh_token)

    def test_login_by_email(self) -> None:
        user, _ = sessions.login_user(self.store, None, "a@x.com", "p1")
        self.assertEqual(user.id, self.user.id)

    def test_login_requires_identifier(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            sessions.login_user(self.store, None, "  ", "p1")
        self.assertEqual(ctx.exception.message, "Username or email is required")

    def test_unknown_user(self) -> None:
        with self.assertRaises(NotFoundError) as ctx:
            sessions.login_user(self.store, "nobody", None, "p1")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_wrong_password(self) -> None:
        with self.assertRaises(AuthError) as ctx:
            sessions.login_user(self.store, "ab", None, "wrong")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertIsNone(self.store.find_by_id(self.user.id).refresh_token)

    def test_token_failure_is_generic_internal_error(self) -> None:
        with patch("app.services.sessions.issue_access_token", side_effect=RuntimeError("boom")):
            with self.assertRaises(InternalError) as ctx:
                sessions.login_user(self.store, "ab", None, "p1")
        self.assertEqual(
            ctx.exception.message,
            "Something went wrong while generating Access and Refresh Tokens",
        )
        self.assertNotIn("boom", ctx.exception.message)

    def test_second_login_replaces_slot(self) -> None:
        _, first = sessions.login_user(self.store, "ab", None, "p1")
        _, second = sessions.login_user(self.store, "ab", None, "p1")
        self.assertNotEqual(first.refresh_token, second.refresh_token)
        self.assertEqual(self.store.find_by_id(self.user.id).refresh_token, second.refresh_token)


class TestRefreshAndLogout(_StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.register()
        _, self.tokens = sessions.login_user(self.store, "ab", None, "p1")

    def test_refresh_rotates(self) -> None:
        new = sessions.refresh_session(self.store, self.tokens.refresh_token)
        self.assertNotEqual(new.refresh_token, self.tokens.refresh_token)
        self.assertEqual(self.store.find_by_id(self.user.id).refresh_token, new.refresh_token)

    def test_reusing_rotated_token_rejected(self) -> None:
        sessions.refresh_session(self.store, self.tokens.refresh_token)
        with self.assertRaises(AuthError) as ctx:
            sessions.refresh_session(self.store, self.tokens.refresh_token)
        self.assertEqual(ctx.exception.message, "Refresh Token Expired")

    def test_token_superseded_by_login_rejected(self) -> None:
        sessions.login_user(self.store, "ab", None, "p1")
        with self.assertRaises(AuthError) as ctx:
            sessions.refresh_session(self.store, self.tokens.refresh_token)
        self.assertEqual(ctx.exception.message, "Refresh Token Expired")

    def test_missing_token(self) -> None:
        for token in (None, ""):
            with self.assertRaises(AuthError) as ctx:
                sessions.refresh_session(self.store, token)
            self.assertEqual(ctx.exception.message, "Unauthorized Request")

    def test_invalid_token_does_not_mutate_store(self) -> None:
        with self.assertRaises(AuthError) as ctx:
            sessions.refresh_session(self.store, "garbage")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(self.store.find_by_id(self.user.id).refresh_token, self.tokens.refresh_token)

    def test_expired_token_rejected(self) -> None:
        past = datetime.now(UTC) - timedelta(minutes=1)
        expired = jwt.encode(
            {"sub": self.user.id, "iat": past - timedelta(days=1), "exp": past},
            settings.REFRESH_TOKEN_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
        )
        with self.assertRaises(AuthError):
            sessions.refresh_session(self.store, expired)
        self.assertEqual(self.store.find_by_id(self.user.id).refresh_token, self.tokens.refresh_token)

    def test_unknown_user_in_token(self) -> None:
        token = jwt.encode(
            {"sub": "missing", "exp": datetime.now(UTC) + timedelta(days=1)},
            settings.REFRESH_TOKEN_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
        )
        with self.assertRaises(AuthError) as ctx:
            sessions.refresh_session(self.store, token)
        self.assertEqual(ctx.exception.message, "Invalid Refresh Token")

    def test_logout_invalidates_refresh_token(self) -> None:
        sessions.logout_user(self.store, self.user.id)
        self.assertIsNone(self.store.find_by_id(self.user.id).refresh_token)
        with self.assertRaises(AuthError):
            sessions.refresh_session(self.store, self.tokens.refresh_token)


if __name__ == "__main__":
    unittest.main()
