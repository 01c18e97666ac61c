import logging
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile

from app.core.config import get_settings
from app.core.errors import UploadError, ValidationError

logger = logging.getLogger(__name__)

AVATARS = "avatars"
BLOG_COVERS = "blogs"

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


@dataclass(frozen=True)
class MediaFile:
    content: bytes
    filename: str
    content_type: str

    @property
    def extension(self) -> str:
        ext = Path(self.filename).suffix.lower()
        return ext or EXTENSIONS.get(self.content_type, "")


@dataclass(frozen=True)
class StoredMedia:
    url: str
    key: str


class MediaStore(Protocol):
    def upload(self, media: MediaFile, namespace: str) -> StoredMedia: ...

    def delete(self, key: str) -> None: ...


def _new_key(media: MediaFile, namespace: str) -> str:
    return f"{namespace}/{uuid.uuid4().hex}{media.extension}"


class LocalMediaStore:
    """Keeps media on the local disk; ``app.main`` serves the directory under ``url_prefix``."""

    def __init__(self, root: str | Path, url_prefix: str = "/uploads") -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def upload(self, media: MediaFile, namespace: str) -> StoredMedia:
        key = _new_key(media, namespace)
        path = self.root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(media.content)
        except OSError as exc:
            logger.error("Failed to store media %s: %s", key, exc)
            raise UploadError("Failed to upload file") from exc
        return StoredMedia(url=f"{self.url_prefix}/{key}", key=key)

    def delete(self, key: str) -> None:
        path = self.root / key
        if path.suffix:
            path.unlink()
            return
        # Keys derived from a URL carry no extension.
        matches = list(path.parent.glob(f"{path.name}.*"))
        if not matches:
            raise FileNotFoundError(str(path))
        for match in matches:
            match.unlink()


class S3MediaStore:
    def __init__(self, client, bucket_name: str, public_base_url: str) -> None:
        self.s3_client = client
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url.rstrip("/")

    def upload(self, media: MediaFile, namespace: str) -> StoredMedia:
        key = _new_key(media, namespace)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=media.content,
                ContentType=media.content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to upload %s to S3: %s", key, exc)
            raise UploadError("Failed to upload file") from exc
        return StoredMedia(url=f"{self.public_base_url}/{key}", key=key)

    def delete(self, key: str) -> None:
        self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)


@lru_cache(maxsize=1)
def get_media_store() -> MediaStore:
    settings = get_settings()
    if settings.media_backend == "s3":
        if not settings.s3_bucket_name:
            raise ValueError("S3 bucket name must be configured for the s3 media backend")
        client = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
            region_name=settings.aws_region,
        )
        base_url = settings.s3_public_base_url or f"https://{settings.s3_bucket_name}.s3.{settings.aws_region}.amazonaws.com"
        return S3MediaStore(client, settings.s3_bucket_name, base_url)
    return LocalMediaStore(settings.upload_dir, settings.media_url_prefix)


def read_image_upload(upload: UploadFile | None) -> MediaFile | None:
    """Read an uploaded image into memory; an empty file field counts as no file."""
    if upload is None or not upload.filename:
        return None
    settings = get_settings()
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed")
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    content = upload.file.read(max_bytes + 1)
    if not content:
        raise ValidationError("Uploaded file is empty")
    if len(content) > max_bytes:
        raise ValidationError("File too large")
    return MediaFile(content=content, filename=upload.filename, content_type=content_type)


def is_absolute_url(url: str) -> bool:
    return url.startswith("http") or url.startswith("//")


def derive_media_key(url: str) -> str:
    """Rebuild a storage key from a relative media URL: the last two segments, extension stripped."""
    tail = "/".join(url.split("/")[-2:])
    return tail.split(".")[0]


def stored_media_key(url: str, key: str | None) -> str | None:
    if key:
        return key
    if url and not is_absolute_url(url):
        return derive_media_key(url)
    return None


def discard_media(store: MediaStore, key: str | None) -> None:
    if not key:
        return
    try:
        store.delete(key)
    except Exception as exc:
        logger.warning("Failed to delete media %s: %s", key, exc)


def replace_media(store: MediaStore, current_url: str, current_key: str | None, media: MediaFile, namespace: str) -> StoredMedia:
    """Drop the object behind ``current_url`` (best effort) and upload ``media`` in its place.

    External URLs are never deleted. Upload failures propagate.
    """
    discard_media(store, stored_media_key(current_url, current_key))
    return store.upload(media, namespace)
