"""Protocol definition for storage backends."""

from __future__ import annotations

from typing import Any, Protocol


class StorageBackend(Protocol):
    """Protocol for document storage backends.

    Documents are plain dicts keyed by their string ``id`` field and grouped
    in named collections ("products", "orders", "categories"). Settings are
    a single document without an id.

    Implementations translate their own failures into storefront errors:
    an unreachable store raises UpstreamUnavailableError and a failed write
    raises PersistenceError.
    """

    name: str

    def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """Return every document of a collection, in insertion order."""
        ...

    def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return one document by id, or None."""
        ...

    def insert_document(self, collection: str, doc: dict[str, Any]) -> None:
        """Insert a single document."""
        ...

    def insert_documents(self, collection: str, docs: list[dict[str, Any]]) -> None:
        """Insert several documents."""
        ...

    def replace_document(self, collection: str, doc_id: str, doc: dict[str, Any]) -> bool:
        """Replace a document. Returns False when no document has this id."""
        ...

    def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        """Set top-level fields of a document. Returns False when not found."""
        ...

    def delete_document(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False when not found."""
        ...

    def delete_documents(self, collection: str, doc_ids: list[str]) -> int:
        """Delete several documents. Returns the number deleted."""
        ...

    def decrement_stock(self, product_id: str, size: str | None, amount: int) -> bool:
        """Atomically subtract ``amount`` from a product's stock.

        With ``size`` the matching size variant is decremented, otherwise the
        top-level stock. Variants are read from ``sizeVariants`` or, for
        older documents, ``sizes``; a size stored as a bare label is not
        stock-tracked and always succeeds. The update only applies when the
        current stock is at least ``amount``.

        Returns:
            True if the stock was decremented, False if insufficient or absent.
        """
        ...

    def increment_stock(self, product_id: str, size: str | None, amount: int) -> bool:
        """Add ``amount`` back to a product's stock (or size variant)."""
        ...

    def get_settings(self) -> dict[str, Any]:
        """Return the settings document ({} when absent)."""
        ...

    def set_settings_fields(self, fields: dict[str, Any]) -> None:
        """Set only the given fields of the settings document (upsert)."""
        ...

    def ping(self) -> None:
        """Check the store is reachable, raising UpstreamUnavailableError if not."""
        ...

    def close(self) -> None:
        """Release connections."""
        ...
