"""
Object storage for offer images, backed by Cloudinary.

The interface mirrors a hosted bucket API: ``upload(bucket, path, content)``
and ``get_public_url(bucket, path)``. A bucket maps to a Cloudinary folder and
``path`` (minus its extension) to the public id inside it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import PurePosixPath
from typing import Protocol

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import cloudinary.utils

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}


class StorageError(Exception):
    pass


class ObjectStorage(Protocol):
    async def upload(self, bucket: str, path: str, content: bytes) -> str: ...

    def get_public_url(self, bucket: str, path: str) -> str: ...


def offer_image_path(user_id: int, filename: str | None) -> str:
    """``{user_id}/{epoch_ms}.{ext}``, ext taken from the upload's name."""
    ext = "jpg"
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise StorageError(f"Unsupported image type '.{ext}'")
    return f"{user_id}/{int(time.time() * 1000)}.{ext}"


def split_object_path(bucket: str, path: str) -> tuple[str, str]:
    """``(public_id, ext)`` for ``bucket/path``; rejects absolute and ``..`` paths."""
    rel = PurePosixPath(bucket) / PurePosixPath(path)
    if rel.is_absolute() or ".." in rel.parts or not rel.suffix:
        raise StorageError("Invalid object path")
    return str(rel.with_suffix("")), rel.suffix[1:].lower()


class CloudinaryStorage:
    def __init__(
        self,
        cloud_name: str | None,
        api_key: str | None,
        api_secret: str | None,
        max_bytes: int,
    ) -> None:
        self.configured = bool(cloud_name and api_key and api_secret)
        self.max_bytes = max_bytes
        if self.configured:
            cloudinary.config(
                cloud_name=cloud_name,
                api_key=api_key,
                api_secret=api_secret,
                secure=True,
            )

    async def upload(self, bucket: str, path: str, content: bytes) -> str:
        """Store ``content`` at ``bucket/path`` and return ``path``. Never overwrites."""
        if not self.configured:
            raise StorageError("Object storage is not configured")
        if not content:
            raise StorageError("Empty file")
        if len(content) > self.max_bytes:
            raise StorageError(f"File exceeds {self.max_bytes} bytes")
        public_id, _ = split_object_path(bucket, path)

        try:
            # The SDK is blocking
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                content,
                public_id=public_id,
                resource_type="image",
                overwrite=False,
                unique_filename=False,
            )
        except cloudinary.exceptions.Error as exc:
            raise StorageError(f"Upload failed: {exc}") from exc

        if result.get("existing"):
            raise StorageError(f"Object '{bucket}/{path}' already exists")
        logger.info("Stored %d bytes at %s (%s)", len(content), result.get("public_id"), result.get("format"))
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        public_id, ext = split_object_path(bucket, path)
        url, _ = cloudinary.utils.cloudinary_url(
            public_id, resource_type="image", format=ext, secure=True
        )
        return url
