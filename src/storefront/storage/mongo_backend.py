"""MongoDB storage backend."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError

from ..errors import PersistenceError, UpstreamUnavailableError
from ..models import _utc_now

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "settings"
_NO_OBJECT_ID = {"_id": 0}
# Current and legacy field names of the size variant list
VARIANT_FIELDS = ("sizeVariants", "sizes")


class MongoBackend:
    """Stores collections in MongoDB, keyed by the string ``id`` field.

    The client (and its connection pool) is created on first use and reused
    for the lifetime of the backend; it is recreated after ``close()``.
    """

    name = "mongo"

    def __init__(
        self,
        uri: str,
        database: str,
        timeout_ms: int = 10000,
        max_pool_size: int = 10,
    ):
        self.uri = uri
        self.database_name = database
        self.timeout_ms = timeout_ms
        self.max_pool_size = max_pool_size
        self._client: MongoClient | None = None

    @property
    def db(self) -> Database:
        if self._client is None:
            self._client = MongoClient(
                self.uri,
                serverSelectionTimeoutMS=self.timeout_ms,
                connectTimeoutMS=self.timeout_ms,
                maxPoolSize=self.max_pool_size,
                minPoolSize=1,
            )
        return self._client[self.database_name]

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        """Map pymongo failures to storefront errors."""
        try:
            yield
        except ConnectionFailure as e:
            logger.error(f"MongoDB unreachable during {operation}: {e}")
            raise UpstreamUnavailableError("document store", str(e)) from e
        except PyMongoError as e:
            logger.error(f"MongoDB error during {operation}: {e}")
            raise PersistenceError(operation, str(e)) from e

    # --- Documents ---

    def list_documents(self, collection: str) -> list[dict[str, Any]]:
        with self._translate_errors(f"list {collection}"):
            return list(self.db[collection].find({}, _NO_OBJECT_ID))

    def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._translate_errors(f"get {collection}/{doc_id}"):
            return self.db[collection].find_one({"id": doc_id}, _NO_OBJECT_ID)

    def insert_document(self, collection: str, doc: dict[str, Any]) -> None:
        with self._translate_errors(f"insert into {collection}"):
            # insert_one adds _id to the dict it is given
            self.db[collection].insert_one(dict(doc))

    def insert_documents(self, collection: str, docs: list[dict[str, Any]]) -> None:
        if not docs:
            return
        with self._translate_errors(f"insert into {collection}"):
            self.db[collection].insert_many([dict(d) for d in docs])

    def replace_document(self, collection: str, doc_id: str, doc: dict[str, Any]) -> bool:
        with self._translate_errors(f"replace {collection}/{doc_id}"):
            res = self.db[collection].replace_one({"id": doc_id}, dict(doc))
            return res.matched_count > 0

    def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        with self._translate_errors(f"update {collection}/{doc_id}"):
            res = self.db[collection].update_one({"id": doc_id}, {"$set": fields})
            return res.matched_count > 0

    def delete_document(self, collection: str, doc_id: str) -> bool:
        with self._translate_errors(f"delete {collection}/{doc_id}"):
            res = self.db[collection].delete_one({"id": doc_id})
            return res.deleted_count > 0

    def delete_documents(self, collection: str, doc_ids: list[str]) -> int:
        if not doc_ids:
            return 0
        with self._translate_errors(f"delete from {collection}"):
            res = self.db[collection].delete_many({"id": {"$in": list(doc_ids)}})
            return res.deleted_count

    # --- Stock ---

    def _update_stock(self, query: dict[str, Any], inc: dict[str, int], operation: str) -> bool:
        with self._translate_errors(operation):
            res = self.db["products"].update_one(
                query, {"$inc": inc, "$set": {"updatedAt": _utc_now()}}
            )
            return res.modified_count == 1

    def _adjust_variant(self, product_id: str, size: str, delta: int) -> bool:
        operation = f"adjust stock of {product_id} (size {size})"
        for variants_field in VARIANT_FIELDS:
            match: dict[str, Any] = {"size": size}
            if delta < 0:
                match["stock"] = {"$gte": -delta}
            query = {"id": product_id, variants_field: {"$elemMatch": match}}
            if self._update_stock(query, {f"{variants_field}.$.stock": delta}, operation):
                return True
        # Bare size labels carry no stock count
        with self._translate_errors(operation):
            untracked = self.db["products"].find_one(
                {"id": product_id, "$or": [{f: size} for f in VARIANT_FIELDS]},
                {"_id": 0, "id": 1},
            )
        return untracked is not None

    def decrement_stock(self, product_id: str, size: str | None, amount: int) -> bool:
        if size is not None:
            return self._adjust_variant(product_id, size, -amount)
        return self._update_stock(
            {"id": product_id, "stock": {"$gte": amount}},
            {"stock": -amount},
            f"decrement stock of {product_id}",
        )

    def increment_stock(self, product_id: str, size: str | None, amount: int) -> bool:
        if size is not None:
            return self._adjust_variant(product_id, size, amount)
        return self._update_stock(
            {"id": product_id}, {"stock": amount}, f"increment stock of {product_id}"
        )

    # --- Settings ---

    def get_settings(self) -> dict[str, Any]:
        with self._translate_errors("read settings"):
            return self.db[SETTINGS_COLLECTION].find_one({}, _NO_OBJECT_ID) or {}

    def set_settings_fields(self, fields: dict[str, Any]) -> None:
        with self._translate_errors("write settings"):
            self.db[SETTINGS_COLLECTION].update_one({}, {"$set": fields}, upsert=True)

    def ping(self) -> None:
        with self._translate_errors("ping"):
            self.db.command("ping")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
