"""Product and category catalog."""

from __future__ import annotations

import logging
from typing import Any

from .errors import (
    PersistenceError,
    ProductNotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from .images import ImageStore, ImageUpload, PRODUCT_FOLDER
from .models import (
    DEFAULT_CATEGORIES,
    PRODUCT_STATUSES,
    Category,
    Product,
    ProductImage,
    _generate_id,
    _utc_now,
)
from .storage import StorageBackend

logger = logging.getLogger(__name__)

PRODUCTS = "products"
CATEGORIES = "categories"

# Fields callers may never set through create/update
_PROTECTED_FIELDS = {"id", "images", "image", "createdAt", "updatedAt"}


def _validate_product(product: Product) -> None:
    if not product.name or not product.name.strip():
        raise ValidationError("Product name is required", field="name")
    if product.price is None or product.price < 0:
        raise ValidationError("Price must be non-negative", field="price")
    if product.old_price is not None and product.old_price < 0:
        raise ValidationError("Old price must be non-negative", field="oldPrice")
    if product.stock < 0:
        raise ValidationError("Stock must be non-negative", field="stock")
    if product.status not in PRODUCT_STATUSES:
        raise ValidationError(
            f"Invalid product status {product.status!r}", field="status"
        )
    sizes = [v.size for v in product.size_variants]
    if len(sizes) != len(set(sizes)):
        raise ValidationError("Size labels must be unique", field="sizeVariants")
    if any(v.stock is not None and v.stock < 0 for v in product.size_variants):
        raise ValidationError("Size stock must be non-negative", field="sizeVariants")


class CatalogStore:
    """Products (with per-size stock) and categories."""

    def __init__(self, backend: StorageBackend, images: ImageStore):
        self.backend = backend
        self.images = images

    # --- Reads ---

    def list_products(self, status: str | None = None) -> list[Product]:
        """
        List products, optionally filtered by status.

        Returns an empty list when the store is unreachable.
        """
        try:
            docs = self.backend.list_documents(PRODUCTS)
        except UpstreamUnavailableError as e:
            logger.warning(f"Product list unavailable, returning empty list: {e}")
            return []
        products = [Product.from_dict(d) for d in docs]
        if status:
            products = [p for p in products if p.status == status]
        return products

    def find_product(self, product_id: str) -> Product | None:
        doc = self.backend.get_document(PRODUCTS, product_id)
        return Product.from_dict(doc) if doc else None

    def get_product(self, product_id: str) -> Product:
        """
        Get a product by ID.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        product = self.find_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    # --- Stock ---

    @staticmethod
    def has_stock(product: Product, size: str | None) -> bool:
        """True if the size variant (or the product, without size) has stock left."""
        if size is not None:
            variant = product.variant(size)
            return variant is not None and variant.available
        return product.stock > 0

    def decrement_stock(self, product_id: str, size: str | None, amount: int) -> bool:
        """
        Subtract stock with a conditional update at the storage layer.

        Returns False, leaving stock untouched, when fewer than ``amount``
        units remain.
        """
        return self.backend.decrement_stock(product_id, size, amount)

    def restore_stock(self, product_id: str, size: str | None, amount: int) -> None:
        """Undo a decrement that belongs to an order that was not placed."""
        if not self.backend.increment_stock(product_id, size, amount):
            logger.error(
                f"Could not restore {amount} unit(s) of product {product_id} (size {size})"
            )

    # --- Writes ---

    def _upload_all(self, uploads: list[ImageUpload]) -> list[ProductImage]:
        return [self.images.upload(u.data, u.filename, PRODUCT_FOLDER) for u in uploads]

    def create_product(
        self, fields: dict[str, Any], uploads: list[ImageUpload] | None = None
    ) -> Product:
        """Create a product from camelCase fields plus uploaded images."""
        now = _utc_now()
        data = {k: v for k, v in fields.items() if k not in _PROTECTED_FIELDS}
        data.update(id=_generate_id(), createdAt=now, updatedAt=now)
        product = Product.from_dict(data)
        _validate_product(product)

        product.images = self._upload_all(uploads or [])
        self.backend.insert_document(PRODUCTS, product.to_dict())
        logger.info(f"Created product {product.id} ({product.name})")
        return product

    def update_product(
        self,
        product_id: str,
        fields: dict[str, Any],
        uploads: list[ImageUpload] | None = None,
        existing_images: list[ProductImage] | None = None,
    ) -> Product:
        """
        Merge fields into a product and append newly uploaded images.

        Args:
            product_id: Product ID.
            fields: camelCase fields to overwrite.
            uploads: New image files.
            existing_images: Images to keep, in order. Defaults to the stored list.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        current = self.get_product(product_id)
        data = current.to_dict()
        data.update({k: v for k, v in fields.items() if k not in _PROTECTED_FIELDS})
        data["updatedAt"] = _utc_now()
        product = Product.from_dict(data)
        _validate_product(product)

        kept = current.images if existing_images is None else existing_images
        product.images = list(kept) + self._upload_all(uploads or [])
        if not self.backend.replace_document(PRODUCTS, product_id, product.to_dict()):
            raise ProductNotFoundError(product_id)
        logger.info(f"Updated product {product_id}")
        return product

    def delete_product(self, product_id: str) -> Product:
        """
        Delete a product and the images it owns.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        product = self.get_product(product_id)
        if not self.backend.delete_document(PRODUCTS, product_id):
            raise ProductNotFoundError(product_id)
        for image in product.images:
            if not image.public_id:
                continue
            try:
                self.images.delete(image.public_id)
            except (UpstreamUnavailableError, PersistenceError) as e:
                logger.error(f"Could not delete image {image.public_id} of {product_id}: {e}")
        logger.info(f"Deleted product {product_id}")
        return product

    # --- Categories ---

    def list_categories(self) -> list[Category]:
        """
        List categories, seeding the defaults into an empty store.

        Falls back to the built-in defaults when the store is unreachable.
        """
        try:
            docs = self.backend.list_documents(CATEGORIES)
            if not docs:
                docs = [c.to_dict() for c in DEFAULT_CATEGORIES]
                self.backend.insert_documents(CATEGORIES, docs)
                logger.info("Seeded default categories")
        except (UpstreamUnavailableError, PersistenceError) as e:
            logger.warning(f"Categories unavailable, using defaults: {e}")
            return list(DEFAULT_CATEGORIES)
        return [Category.from_dict(d) for d in docs]
