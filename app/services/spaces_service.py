import logging
import os
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.services.errors import ImageStoreError

logger = logging.getLogger(__name__)

PUBLIC_URL_PREFIX = "/uploads"


def _join_path(*segments: str) -> str:
    cleaned = [segment.strip("/") for segment in segments if segment and segment.strip("/")]
    return "/".join(cleaned)


def profile_image_name(role: str, uid: str, extension: str) -> str:
    return f"{role}-{uid}{extension}"


def profile_image_path(role: str, uid: str, extension: str) -> str:
    """Deterministic path stored on the profile document before the bytes exist."""
    return f"{PUBLIC_URL_PREFIX}/{profile_image_name(role, uid, extension)}"


class LocalImageStore:
    """Writes profile images under ``UPLOAD_DIR``; served by the app at /uploads."""

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or settings.UPLOAD_DIR)

    def save(self, name: str, data: bytes, content_type: str | None = None) -> str:
        file_path = self.root / name
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(data)
        except OSError as exc:
            raise ImageStoreError("Could not store profile image", error=str(exc)) from exc
        return str(file_path)

    def delete(self, name: str) -> None:
        (self.root / name).unlink(missing_ok=True)


class SpacesImageStore:
    """Profile images in a DigitalOcean Space through the S3 API."""

    def __init__(self):
        session = boto3.session.Session()
        self.s3 = session.client(
            "s3",
            region_name=os.getenv("SPACES_REGION"),
            endpoint_url=os.getenv("SPACES_ENDPOINT"),
            aws_access_key_id=os.getenv("SPACES_KEY"),
            aws_secret_access_key=os.getenv("SPACES_SECRET"),
        )
        self.bucket = os.getenv("SPACES_NAME")
        self.cdn_url = os.getenv("SPACES_CDN_URL")
        self.base_path = (os.getenv("DO_SPACES_BASE_PATH") or "roflexi").strip("/")

    def _key(self, name: str) -> str:
        return _join_path(self.base_path, "uploads", name)

    def save(self, name: str, data: bytes, content_type: str | None = None) -> str:
        extra_args = {"ACL": "public-read"}
        if content_type:
            extra_args["ContentType"] = content_type

        key = self._key(name)
        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                **extra_args
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Spaces upload failed for %s: %s", key, exc)
            raise ImageStoreError("Could not store profile image", error=str(exc)) from exc
        return f"{self.cdn_url}/{key}"

    def delete(self, name: str) -> None:
        self.s3.delete_object(Bucket=self.bucket, Key=self._key(name))


def build_image_store():
    backend = settings.IMAGE_STORAGE_BACKEND
    if backend == "spaces":
        return SpacesImageStore()
    if backend != "local":
        logger.warning("Unknown IMAGE_STORAGE_BACKEND=%s, falling back to local disk", backend)
    return LocalImageStore()
