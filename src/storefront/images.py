"""Image store used for product pictures."""

from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .errors import PersistenceError, UpstreamUnavailableError
from .models import ProductImage

logger = logging.getLogger(__name__)

PRODUCT_FOLDER = "products"
UPLOAD_FOLDER = "uploads"


class ImageStore(Protocol):
    """Opaque upload/delete collaborator (a CDN in production)."""

    def upload(self, data: bytes, filename: str, folder: str = PRODUCT_FOLDER) -> ProductImage:
        """Store image bytes and return their public URL and id."""
        ...

    def delete(self, public_id: str) -> None:
        """Delete a previously uploaded image."""
        ...


class LocalImageStore:
    """Writes images below a directory and serves them from ``base_url``.

    The public id is the path relative to the root directory, e.g.
    ``products/3f2a....webp``.
    """

    def __init__(self, root_dir: Path, base_url: str = "/uploads"):
        self.root_dir = Path(root_dir)
        self.base_url = base_url.rstrip("/")

    def _extension(self, filename: str) -> str:
        ext = Path(filename).suffix.lower()
        if not ext:
            ext = mimetypes.guess_extension(mimetypes.guess_type(filename)[0] or "") or ".bin"
        return ext

    def upload(self, data: bytes, filename: str, folder: str = PRODUCT_FOLDER) -> ProductImage:
        public_id = f"{folder}/{uuid.uuid4().hex}{self._extension(filename)}"
        target = self.root_dir / public_id
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error(f"Image upload failed for {filename}: {e}")
            raise PersistenceError(f"upload image {filename}", str(e)) from e
        return ProductImage(url=f"{self.base_url}/{public_id}", public_id=public_id)

    def delete(self, public_id: str) -> None:
        target = (self.root_dir / public_id).resolve()
        if self.root_dir.resolve() not in target.parents:
            logger.warning(f"Ignoring image id outside the upload directory: {public_id}")
            return
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise UpstreamUnavailableError("image store", str(e)) from e


@dataclass(frozen=True)
class ImageUpload:
    """An uploaded file waiting to be stored."""

    filename: str
    data: bytes
