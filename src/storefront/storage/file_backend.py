"""JSON file storage backend."""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from ..errors import PersistenceError, UpstreamUnavailableError
from ..models import _utc_now

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"
LOCK_FILE = ".storefront.lock"


class FileBackend:
    """Stores each collection as a JSON array in ``<data_dir>/<collection>.json``.

    Every read-modify-write runs under an exclusive lock file, and files are
    replaced atomically, so concurrent processes sharing a data directory
    never observe partial writes or lose conditional stock updates.
    """

    name = "file"

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _ensure_dir(self) -> None:
        """Ensure data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    @contextmanager
    def _lock(self) -> Iterator[None]:
        """Acquire exclusive lock on the data directory for read-modify-write operations."""
        self._ensure_dir()
        lock_path = self.data_dir / LOCK_FILE
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _read(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Cannot read {path}: {e}")
            raise UpstreamUnavailableError("file store", str(e)) from e

    def _write(self, path: Path, data: Any) -> None:
        """Write JSON to disk atomically."""
        self._ensure_dir()
        fd, temp_path = tempfile.mkstemp(
            dir=self.data_dir, prefix=f".{path.stem}_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(temp_path, path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            logger.error(f"Cannot write {path}: {e}")
            raise PersistenceError(f"write {path.name}", str(e)) from e

    def _load(self, collection: str) -> list[dict[str, Any]]:
        return self._read(self._path(collection), [])

    def _save(self, collection: str, docs: list[dict[str, Any]]) -> None:
        self._write(self._path(collection), docs)

    # --- Documents ---

    def list_documents(self, collection: str) -> list[dict[str, Any]]:
        return self._load(collection)

    def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        for doc in self._load(collection):
            if str(doc.get("id")) == doc_id:
                return doc
        return None

    def insert_document(self, collection: str, doc: dict[str, Any]) -> None:
        self.insert_documents(collection, [doc])

    def insert_documents(self, collection: str, docs: list[dict[str, Any]]) -> None:
        with self._lock():
            existing = self._load(collection)
            existing.extend(docs)
            self._save(collection, existing)

    def replace_document(self, collection: str, doc_id: str, doc: dict[str, Any]) -> bool:
        with self._lock():
            docs = self._load(collection)
            for i, existing in enumerate(docs):
                if str(existing.get("id")) == doc_id:
                    docs[i] = doc
                    self._save(collection, docs)
                    return True
        return False

    def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        with self._lock():
            docs = self._load(collection)
            for existing in docs:
                if str(existing.get("id")) == doc_id:
                    existing.update(fields)
                    self._save(collection, docs)
                    return True
        return False

    def delete_document(self, collection: str, doc_id: str) -> bool:
        return self.delete_documents(collection, [doc_id]) == 1

    def delete_documents(self, collection: str, doc_ids: list[str]) -> int:
        wanted = set(doc_ids)
        with self._lock():
            docs = self._load(collection)
            kept = [d for d in docs if str(d.get("id")) not in wanted]
            deleted = len(docs) - len(kept)
            if deleted:
                self._save(collection, kept)
        return deleted

    # --- Stock ---

    def _adjust_stock(self, product_id: str, size: str | None, delta: int) -> bool:
        with self._lock():
            products = self._load("products")
            for product in products:
                if str(product.get("id")) != product_id:
                    continue
                if size is None:
                    holder = product
                else:
                    variants = product.get("sizeVariants") or product.get("sizes") or []
                    # Bare size labels carry no stock count
                    if size in variants:
                        return True
                    holder = next(
                        (
                            v for v in variants
                            if isinstance(v, dict) and v.get("size") == size
                        ),
                        None,
                    )
                    if holder is None:
                        return False
                current = int(holder.get("stock", 0) or 0)
                if current + delta < 0:
                    return False
                holder["stock"] = current + delta
                product["updatedAt"] = _utc_now()
                self._save("products", products)
                return True
        return False

    def decrement_stock(self, product_id: str, size: str | None, amount: int) -> bool:
        return self._adjust_stock(product_id, size, -amount)

    def increment_stock(self, product_id: str, size: str | None, amount: int) -> bool:
        return self._adjust_stock(product_id, size, amount)

    # --- Settings ---

    def get_settings(self) -> dict[str, Any]:
        return self._read(self.data_dir / SETTINGS_FILE, {})

    def set_settings_fields(self, fields: dict[str, Any]) -> None:
        path = self.data_dir / SETTINGS_FILE
        with self._lock():
            settings = self._read(path, {})
            settings.update(fields)
            self._write(path, settings)

    def ping(self) -> None:
        try:
            self._ensure_dir()
        except OSError as e:
            raise UpstreamUnavailableError("file store", str(e)) from e

    def close(self) -> None:
        pass
