"""Data models for storefront."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
import re
import secrets
import string
import threading
import time
import uuid

from .errors import ValidationError

PRODUCT_STATUSES = ["active", "inactive"]
DELIVERY_TYPES = ["home", "office"]
ORDER_STATUSES = ["pending", "processing", "completed", "cancelled"]

_ID_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_NON_NUMERIC = re.compile(r"[^\d.-]")

_order_clock = threading.Lock()
_last_order_millis = 0


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp produced by _utc_now (or a JS Date)."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _generate_id() -> str:
    """Generate a new product ID."""
    return str(uuid.uuid4())


def _to_number(value: Any, field_name: str, default: float | None = 0) -> float | None:
    """Coerce a stored amount ("5000", "5 000 DA", 5000) to a number.

    Raises:
        ValidationError: If no number can be read from the value.
    """
    if value is None:
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    try:
        number = float(_NON_NUMERIC.sub("", str(value)))
    except ValueError:
        raise ValidationError(f"Invalid number for {field_name}: {value!r}", field=field_name) from None
    return int(number) if number.is_integer() else number


def _generate_order_id() -> str:
    """Generate an order ID: epoch milliseconds followed by a 4-char random suffix.

    The millisecond part never goes backwards within a process, even if the
    wall clock is stepped back.
    """
    global _last_order_millis
    with _order_clock:
        millis = max(time.time_ns() // 1_000_000, _last_order_millis)
        _last_order_millis = millis
    suffix = "".join(secrets.choice(_ID_SUFFIX_ALPHABET) for _ in range(4))
    return f"{millis}{suffix}"


@dataclass
class SizeVariant:
    """Per-size stock record of a product.

    ``stock`` is None for sizes stored as bare labels; those are not
    stock-tracked and always available.
    """

    size: str
    stock: int | None = 0

    @property
    def available(self) -> bool:
        return self.stock is None or self.stock > 0

    def to_dict(self) -> dict[str, Any] | str:
        if self.stock is None:
            return self.size
        return {"size": self.size, "stock": self.stock}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | str) -> "SizeVariant":
        if isinstance(data, str):
            return cls(size=data, stock=None)
        return cls(size=str(data["size"]), stock=int(data.get("stock") or 0))


@dataclass
class ColorOption:
    """A colour choice with a price surcharge."""

    name: str
    price: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "price": self.price}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ColorOption":
        return cls(name=data["name"], price=_to_number(data.get("price"), "colors.price"))


@dataclass
class ProductImage:
    """An image held by the image store."""

    url: str
    public_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"url": self.url}
        if self.public_id is not None:
            result["publicId"] = self.public_id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | str) -> "ProductImage":
        if isinstance(data, str):
            return cls(url=data)
        return cls(url=data["url"], public_id=data.get("publicId"))


@dataclass
class Product:
    """A catalog product."""

    id: str
    name: str
    price: float
    category: str = ""
    description: str = ""
    old_price: float | None = None
    stock: int = 0
    size_variants: list[SizeVariant] = field(default_factory=list)
    colors: list[ColorOption] = field(default_factory=list)
    images: list[ProductImage] = field(default_factory=list)
    status: str = "active"
    featured: bool = False
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    @property
    def image(self) -> str | None:
        """Canonical display image (first entry)."""
        return self.images[0].url if self.images else None

    def variant(self, size: str) -> SizeVariant | None:
        for v in self.size_variants:
            if v.size == size:
                return v
        return None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "price": self.price,
            "stock": self.stock,
            "sizeVariants": [v.to_dict() for v in self.size_variants],
            "colors": [c.to_dict() for c in self.colors],
            "images": [i.to_dict() for i in self.images],
            "image": self.image,
            "status": self.status,
            "featured": self.featured,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.old_price is not None:
            result["oldPrice"] = self.old_price
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        images = [ProductImage.from_dict(i) for i in data.get("images") or []]
        if not images and data.get("image"):
            images = [ProductImage(url=data["image"])]
        # Products written by the older admin keep their variants under "sizes"
        variants = data.get("sizeVariants") or data.get("sizes") or []
        return cls(
            id=str(data["id"]),
            name=data.get("name") or data.get("title", ""),
            price=_to_number(data.get("price"), "price"),
            category=data.get("category", ""),
            description=data.get("description", ""),
            old_price=_to_number(data.get("oldPrice") or None, "oldPrice", default=None),
            stock=int(data.get("stock", 0) or 0),
            size_variants=[SizeVariant.from_dict(v) for v in variants],
            colors=[ColorOption.from_dict(c) for c in data.get("colors") or []],
            images=images,
            status=data.get("status", "active"),
            featured=bool(data.get("featured", False)),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass
class Category:
    """A product category."""

    id: str
    name: str
    icon: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "icon": self.icon}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Category":
        return cls(id=str(data["id"]), name=data["name"], icon=data.get("icon", ""))


DEFAULT_CATEGORIES: list[Category] = [
    Category(id="1", name="Parure", icon="fas fa-layer-group"),
    Category(id="2", name="Bracelet", icon="fas fa-band-aid"),
    Category(id="3", name="Bague", icon="fas fa-ring"),
    Category(id="4", name="Boucles", icon="fas fa-gem"),
    Category(id="5", name="Montre", icon="fas fa-clock"),
    Category(id="6", name="Collier", icon="fas fa-necklace"),
]


@dataclass
class DeliveryRegion:
    """Delivery prices for one region (wilaya)."""

    name: str
    home_price: float = 0
    office_price: float = 0

    def price_for(self, delivery_type: str) -> float:
        if delivery_type == "office":
            return self.office_price or 0
        return self.home_price or 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "homePrice": self.home_price,
            "officePrice": self.office_price,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeliveryRegion":
        return cls(
            name=data["name"],
            home_price=_to_number(data.get("homePrice"), "homePrice"),
            office_price=_to_number(data.get("officePrice"), "officePrice"),
        )


@dataclass
class OrderLine:
    """One line of an order, snapshotting product data at order time."""

    product_id: str
    title: str
    unit_price: float
    quantity: int
    image: str | None = None
    size: str | None = None
    color: str | None = None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.product_id,
            "title": self.title,
            "image": self.image,
            "price": self.unit_price,
            "quantity": self.quantity,
            "size": self.size,
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderLine":
        return cls(
            product_id=str(data.get("id", "")),
            title=data.get("title", ""),
            unit_price=_to_number(data.get("price"), "price"),
            quantity=int(data.get("quantity", 1)),
            image=data.get("image"),
            size=data.get("size") or None,
            color=data.get("color") or None,
        )


@dataclass
class Order:
    """A placed order."""

    id: str
    customer_name: str
    customer_phone: str
    region: str
    commune: str
    lines: list[OrderLine]
    subtotal: float
    delivery_price: float
    total: float
    delivery_type: str = "home"
    customer_phone2: str = ""
    address: str = ""
    notes: str = ""
    status: str = "pending"
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        # "products" and "wilaya" are the keys the admin UI and exporters read
        return {
            "id": self.id,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "customerPhone2": self.customer_phone2,
            "wilaya": self.region,
            "commune": self.commune,
            "address": self.address,
            "deliveryType": self.delivery_type,
            "products": [line.to_dict() for line in self.lines],
            "subtotal": self.subtotal,
            "deliveryPrice": self.delivery_price,
            "total": self.total,
            "status": self.status,
            "notes": self.notes,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=str(data["id"]),
            customer_name=data.get("customerName", ""),
            customer_phone=data.get("customerPhone", ""),
            customer_phone2=data.get("customerPhone2", "") or "",
            region=data.get("wilaya", ""),
            commune=data.get("commune", ""),
            address=data.get("address", "") or "",
            delivery_type=data.get("deliveryType", "home"),
            lines=[OrderLine.from_dict(p) for p in data.get("products") or []],
            subtotal=_to_number(data.get("subtotal"), "subtotal"),
            delivery_price=_to_number(data.get("deliveryPrice"), "deliveryPrice"),
            total=_to_number(data.get("total"), "total"),
            status=data.get("status", "pending"),
            notes=data.get("notes", "") or "",
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", "") or data.get("createdAt", ""),
        )
