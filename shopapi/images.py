# shopapi/images.py
import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ValidationError
from .models import DEFAULT_IMAGE

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".bmp", ".avif"}


@dataclass
class UploadedImage:
    filename: str
    content_type: Optional[str]
    data: bytes


# ---------------------------
# Asset host (local disk, served under a URL prefix)
# ---------------------------
class LocalAssetHost:
    def __init__(self, directory, url_prefix: str = "/uploads"):
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip("/")
        self.directory.mkdir(parents=True, exist_ok=True)

    def store(self, image: UploadedImage) -> str:
        extension = os.path.splitext(image.filename or "")[1].lower()
        if extension not in ALLOWED_EXTENSIONS:
            extension = mimetypes.guess_extension(image.content_type or "") or ""
        name = f"{uuid.uuid4().hex}{extension}"
        (self.directory / name).write_bytes(image.data)
        logger.info("Stored image %s (%d bytes)", name, len(image.data))
        return f"{self.url_prefix}/{name}"

    def owns(self, url: str) -> bool:
        return url.startswith(self.url_prefix + "/")

    def delete(self, url: str) -> bool:
        """Remove a stored asset. Returns False for URLs this host did not issue."""
        if not self.owns(url):
            return False
        name = os.path.basename(url[len(self.url_prefix) + 1:])
        try:
            (self.directory / name).unlink()
        except FileNotFoundError:
            return False
        logger.info("Deleted image %s", name)
        return True


# ---------------------------
# Ingestion policy
# ---------------------------
class ImageIngestor:
    def __init__(self, host, max_bytes: int = 5 * 1024 * 1024, placeholder: str = DEFAULT_IMAGE):
        self.host = host
        self.max_bytes = max_bytes
        self.placeholder = placeholder

    def accept(self, upload: Optional[UploadedImage]) -> Optional[UploadedImage]:
        if upload is None or not upload.filename:
            return None
        if not (upload.content_type or "").startswith("image/"):
            logger.info("Ignoring non-image upload %r (%s)", upload.filename, upload.content_type)
            return None
        if len(upload.data) > self.max_bytes:
            if self.max_bytes >= 1024 * 1024:
                limit = f"{self.max_bytes // (1024 * 1024)}MB"
            else:
                limit = f"{self.max_bytes} bytes"
            raise ValidationError(f"Image must be {limit} or smaller")
        return upload

    def new_image(self, upload: Optional[UploadedImage], url: Optional[str]) -> Optional[str]:
        """Image reference for a write, or None when neither a file nor a URL was given."""
        upload = self.accept(upload)
        if upload is not None:
            return self.host.store(upload)
        if url and url.strip():
            return url.strip()
        return None

    def discard(self, url: Optional[str]) -> None:
        """Best-effort removal of a replaced or orphaned asset; never raises."""
        if not url or url == self.placeholder:
            return
        try:
            self.host.delete(url)
        except Exception as exc:
            logger.warning("Could not delete image %s: %s", url, exc)
