"""Shared fixtures: in-memory SQLite database and a stub uploader."""

from unittest.mock import MagicMock

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base
from app.services.uploads import UploadedMedia


def make_session_factory() -> sessionmaker:
    """Fresh in-memory database with all tables; one connection shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_session() -> Session:
    return make_session_factory()()


def stub_uploader(
    avatar_url: str | None = "https://cdn.example.com/avatar.png",
    cover_url: str | None = "https://cdn.example.com/cover.png",
) -> MagicMock:
    """Uploader returning avatar_url for paths containing 'avatar', cover_url otherwise."""

    def upload(local_path: str | None) -> UploadedMedia | None:
        if not local_path:
            return None
        url = avatar_url if "avatar" in local_path else cover_url
        return UploadedMedia(url=url) if url else None

    uploader = MagicMock()
    uploader.upload.side_effect = upload
    return uploader
