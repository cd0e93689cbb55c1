"""Media uploads: turn a staged local file into a durable public URL."""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import httpx

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/auto/upload"
UPLOADS_SUBDIR = "uploads"


class UploaderNotConfiguredError(Exception):
    """Raised when the selected media backend is missing required settings."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class UploadedMedia:
    url: str


class MediaUploader(Protocol):
    def upload(self, local_path: str | None) -> UploadedMedia | None:
        """Store the file and return its URL, or None if it could not be stored."""
        ...


class LocalMediaUploader:
    """Copies files under the static directory so the app serves them itself."""

    def __init__(self, static_dir: str, public_base_url: str, static_url_path: str) -> None:
        self.target_dir = Path(static_dir) / UPLOADS_SUBDIR
        self.url_prefix = f"{public_base_url.rstrip('/')}{static_url_path}/{UPLOADS_SUBDIR}"

    def upload(self, local_path: str | None) -> UploadedMedia | None:
        if not local_path:
            return None
        source = Path(local_path)
        if not source.is_file():
            logger.warning("Upload source missing: %s", local_path)
            return None
        name = f"{uuid.uuid4().hex}{source.suffix.lower()}"
        try:
            self.target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, self.target_dir / name)
        except OSError as e:
            logger.warning("Local upload failed for %s: %s", local_path, e)
            return None
        return UploadedMedia(url=f"{self.url_prefix}/{name}")


class CloudinaryUploader:
    """Unsigned uploads to Cloudinary using an upload preset."""

    def __init__(
        self,
        cloud_name: str,
        upload_preset: str,
        timeout: float,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = CLOUDINARY_UPLOAD_URL.format(cloud_name=cloud_name)
        self.upload_preset = upload_preset
        self.timeout = timeout
        self._client = client

    def upload(self, local_path: str | None) -> UploadedMedia | None:
        if not local_path:
            return None
        source = Path(local_path)
        if not source.is_file():
            logger.warning("Upload source missing: %s", local_path)
            return None
        client = self._client or httpx.Client()
        try:
            with source.open("rb") as fh:
                resp = client.post(
                    self.url,
                    data={"upload_preset": self.upload_preset},
                    files={"file": (source.name, fh)},
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            logger.warning("Cloudinary upload failed for %s: %s", source.name, e)
            return None
        finally:
            if self._client is None:
                client.close()
        if resp.status_code >= 400:
            logger.warning(
                "Cloudinary returned %s for %s: %s",
                resp.status_code,
                source.name,
                resp.text[:500],
            )
            return None
        try:
            body = resp.json()
        except ValueError:
            logger.warning("Cloudinary response for %s was not JSON", source.name)
            return None
        url = body.get("secure_url") or body.get("url")
        if not url:
            logger.warning("Cloudinary response for %s missing url", source.name)
            return None
        return UploadedMedia(url=url)


def get_uploader(settings: Settings) -> MediaUploader:
    """Build the uploader selected by MEDIA_BACKEND."""
    if settings.MEDIA_BACKEND == "cloudinary":
        if not settings.CLOUDINARY_CLOUD_NAME or not settings.CLOUDINARY_UPLOAD_PRESET:
            raise UploaderNotConfiguredError(
                "MEDIA_BACKEND=cloudinary requires CLOUDINARY_CLOUD_NAME and CLOUDINARY_UPLOAD_PRESET."
            )
        return CloudinaryUploader(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            upload_preset=settings.CLOUDINARY_UPLOAD_PRESET,
            timeout=settings.UPLOAD_REQUEST_TIMEOUT_SEC,
        )
    return LocalMediaUploader(
        static_dir=settings.STATIC_DIR,
        public_base_url=settings.PUBLIC_BASE_URL,
        static_url_path=settings.STATIC_URL_PATH,
    )
