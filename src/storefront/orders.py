"""Order placement and fulfillment workflow."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from .catalog import CatalogStore
from .delivery import DeliveryPricingTable
from .errors import (
    InvalidPhoneError,
    InvalidStatusError,
    InvalidStatusTransitionError,
    MissingFieldError,
    OrderNotFoundError,
    OutOfStockError,
    PersistenceError,
    SizeRequiredError,
    StorefrontError,
    UpstreamUnavailableError,
    ValidationError,
)
from .models import ORDER_STATUSES, Order, OrderLine, _generate_order_id, _utc_now
from .storage import StorageBackend

logger = logging.getLogger(__name__)

ORDERS = "orders"

PHONE_PATTERN = re.compile(r"^(\+213|0)(5|6|7)[0-9]{8}$")
_WHITESPACE = re.compile(r"\s+")

# completed and cancelled are terminal
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"pending", "processing", "completed", "cancelled"},
    "processing": {"pending", "completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def normalize_phone(phone: str) -> str:
    """Strip whitespace and validate against the national mobile pattern.

    Raises:
        InvalidPhoneError: If the number is not a valid mobile number.
    """
    cleaned = _WHITESPACE.sub("", phone or "")
    if not PHONE_PATTERN.match(cleaned):
        raise InvalidPhoneError(phone)
    return cleaned


@dataclass
class OrderLineRequest:
    """A requested product, quantity and options."""

    product_id: str
    quantity: int = 1
    size: str | None = None
    color: str | None = None


@dataclass
class OrderRequest:
    """Checkout data submitted by the storefront."""

    customer_name: str
    customer_phone: str
    region: str
    commune: str
    lines: list[OrderLineRequest] = field(default_factory=list)
    delivery_type: str = "home"
    customer_phone2: str = ""
    address: str = ""
    notes: str = ""


class OrderWorkflow:
    """Validates, prices, persists and transitions orders."""

    def __init__(
        self,
        backend: StorageBackend,
        catalog: CatalogStore,
        delivery: DeliveryPricingTable,
    ):
        self.backend = backend
        self.catalog = catalog
        self.delivery = delivery

    # --- Placement ---

    def _validate_customer(self, request: OrderRequest) -> str:
        if not (request.customer_name or "").strip():
            raise MissingFieldError("customerName")
        if not (request.customer_phone or "").strip():
            raise MissingFieldError("customerPhone")
        phone = normalize_phone(request.customer_phone)
        if not (request.region or "").strip():
            raise MissingFieldError("region")
        if not (request.commune or "").strip():
            raise MissingFieldError("commune")
        self.delivery.check_delivery_type(request.delivery_type)
        if not request.lines:
            raise ValidationError("Order must contain at least one product", field="lines")
        return phone

    def _price_line(self, requested: OrderLineRequest) -> OrderLine:
        if requested.quantity < 1:
            raise ValidationError(
                f"Quantity must be at least 1 (product {requested.product_id})",
                field="quantity",
            )
        product = self.catalog.get_product(requested.product_id)

        size = (requested.size or "").strip() or None
        if product.size_variants:
            if size is None:
                raise SizeRequiredError(product.id)
        else:
            size = None

        if not self.catalog.has_stock(product, size):
            raise OutOfStockError(product.id, size)

        unit_price = product.price
        color = (requested.color or "").strip() or None
        if color:
            match = next((c for c in product.colors if c.name == color), None)
            if match is not None:
                unit_price = unit_price + match.price

        return OrderLine(
            product_id=product.id,
            title=product.name,
            unit_price=unit_price,
            quantity=requested.quantity,
            image=product.image,
            size=size,
            color=color,
        )

    def _reserve_stock(self, lines: list[OrderLine]) -> list[OrderLine]:
        """Decrement stock for every line, all or nothing."""
        taken: list[OrderLine] = []
        try:
            for line in lines:
                if not self.catalog.decrement_stock(line.product_id, line.size, line.quantity):
                    raise OutOfStockError(line.product_id, line.size)
                taken.append(line)
        except StorefrontError:
            self._release_stock(taken)
            raise
        return taken

    def _release_stock(self, lines: list[OrderLine]) -> None:
        for line in lines:
            try:
                self.catalog.restore_stock(line.product_id, line.size, line.quantity)
            except StorefrontError as e:
                logger.error(f"Stock restore failed for product {line.product_id}: {e}")

    def submit_order(self, request: OrderRequest) -> Order:
        """
        Validate, price and persist a new order.

        The whole order is rejected if any line fails; stock is decremented
        only once every line has been checked, and restored if a later step
        fails.

        Raises:
            ValidationError: Missing/malformed field, invalid phone, missing size.
            ProductNotFoundError: A line references an unknown product.
            OutOfStockError: A line's product or size is unavailable.
            PersistenceError: The order could not be saved.
        """
        phone = self._validate_customer(request)
        lines = [self._price_line(line) for line in request.lines]

        subtotal = sum(line.line_total for line in lines)
        delivery_price = self.delivery.get_price(request.region, request.delivery_type)
        now = _utc_now()
        order = Order(
            id=_generate_order_id(),
            customer_name=request.customer_name.strip(),
            customer_phone=phone,
            customer_phone2=(request.customer_phone2 or "").strip(),
            region=request.region.strip(),
            commune=request.commune.strip(),
            address=(request.address or "").strip(),
            delivery_type=request.delivery_type,
            lines=lines,
            subtotal=subtotal,
            delivery_price=delivery_price,
            total=subtotal + delivery_price,
            notes=request.notes or "",
            status="pending",
            created_at=now,
            updated_at=now,
        )

        taken = self._reserve_stock(lines)
        try:
            self.backend.insert_document(ORDERS, order.to_dict())
        except (PersistenceError, UpstreamUnavailableError) as e:
            logger.error(f"Saving order {order.id} failed, restoring stock: {e}")
            self._release_stock(taken)
            raise

        logger.info(
            f"Order {order.id} placed: {len(lines)} line(s), total {order.total} "
            f"({order.region}, {order.delivery_type})"
        )
        return order

    # --- Queries ---

    def list_orders(self, status: str | None = None) -> list[Order]:
        """List orders, newest first, optionally filtered by status."""
        orders = [Order.from_dict(d) for d in self.backend.list_documents(ORDERS)]
        if status:
            orders = [o for o in orders if o.status == status]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    def get_order(self, order_id: str) -> Order:
        """
        Get an order by ID.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        doc = self.backend.get_document(ORDERS, order_id)
        if doc is None:
            raise OrderNotFoundError(order_id)
        return Order.from_dict(doc)

    # --- Status ---

    def update_status(self, order_id: str, new_status: str) -> Order:
        """
        Move an order to a new status.

        Cancelling does not restock.

        Raises:
            InvalidStatusError: If the status is unknown.
            OrderNotFoundError: If order doesn't exist.
            InvalidStatusTransitionError: If the order is completed or cancelled.
        """
        if new_status not in ORDER_STATUSES:
            raise InvalidStatusError(new_status, ORDER_STATUSES)
        order = self.get_order(order_id)
        if new_status not in ALLOWED_TRANSITIONS.get(order.status, set()):
            raise InvalidStatusTransitionError(order_id, order.status, new_status)

        previous = order.status
        order.status = new_status
        order.updated_at = _utc_now()
        if not self.backend.update_fields(
            ORDERS, order_id, {"status": order.status, "updatedAt": order.updated_at}
        ):
            raise OrderNotFoundError(order_id)
        logger.info(f"Order {order_id} status {previous} -> {new_status}")
        return order

    def stats(self) -> dict[str, Any]:
        """Dashboard counters."""
        orders = self.list_orders()
        return {
            "totalProducts": len(self.catalog.list_products()),
            "totalOrders": len(orders),
            "totalRevenue": sum(o.total or 0 for o in orders),
            "pendingOrders": len([o for o in orders if o.status == "pending"]),
        }
