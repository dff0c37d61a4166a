"""
On-disk stand-in for the Cloudinary bucket, used by the API tests.
"""

import asyncio
from pathlib import Path

from app.services.storage import StorageError, split_object_path


class DiskStorage:
    def __init__(self, root: Path, public_url: str, max_bytes: int) -> None:
        self.root = Path(root)
        self.public_url = public_url.rstrip("/")
        self.max_bytes = max_bytes

    async def upload(self, bucket: str, path: str, content: bytes) -> str:
        if not content:
            raise StorageError("Empty file")
        if len(content) > self.max_bytes:
            raise StorageError(f"File exceeds {self.max_bytes} bytes")
        split_object_path(bucket, path)
        target = self.root / bucket / path

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "xb") as fh:
                fh.write(content)

        try:
            await asyncio.to_thread(_write)
        except FileExistsError as exc:
            raise StorageError(f"Object '{bucket}/{path}' already exists") from exc
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_url}/{bucket}/{path}"
