"""Local storage for uploaded property images."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence
from uuid import uuid4

from estateshare.core.config import get_settings
from estateshare.services.errors import ValidationFailedError

LOGGER = logging.getLogger("estateshare.services.images")

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
PUBLIC_PREFIX = "/uploads/"


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content: bytes
    content_type: Optional[str] = None


class ImageStore:
    """Writes images below ``upload_dir`` and hands out ``/uploads/<name>`` references."""

    def __init__(self, root: Optional[str] = None, *, max_per_request: Optional[int] = None) -> None:
        settings = get_settings()
        self._root = Path(root or settings.upload_dir)
        self._max_per_request = max_per_request or settings.max_images_per_request

    def validate(self, uploads: Sequence[ImageUpload]) -> None:
        if len(uploads) > self._max_per_request:
            raise ValidationFailedError(f"At most {self._max_per_request} images may be uploaded at once")
        for upload in uploads:
            extension = Path(upload.filename or "").suffix.lower()
            if extension not in ALLOWED_EXTENSIONS:
                raise ValidationFailedError("Only image files (jpg, jpeg, png, gif, webp) are allowed")
            if upload.content_type and not upload.content_type.startswith("image/"):
                raise ValidationFailedError("Only image files (jpg, jpeg, png, gif, webp) are allowed")
            if not upload.content:
                raise ValidationFailedError(f"Image {upload.filename} is empty")

    def save_all(self, uploads: Sequence[ImageUpload]) -> List[str]:
        self.validate(uploads)
        self._root.mkdir(parents=True, exist_ok=True)
        references = []
        for upload in uploads:
            name = f"{uuid4().hex}{Path(upload.filename).suffix.lower()}"
            (self._root / name).write_bytes(upload.content)
            references.append(PUBLIC_PREFIX + name)
        LOGGER.info("images_stored", extra={"count": len(references)})
        return references

    def delete(self, reference: str) -> None:
        if not reference.startswith(PUBLIC_PREFIX):
            return
        path = self._root / reference[len(PUBLIC_PREFIX):]
        try:
            path.unlink()
        except FileNotFoundError:
            LOGGER.warning("image_missing_on_delete", extra={"reference": reference})
