"""Custom exceptions for storefront."""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class ValidationError(StorefrontError):
    """Raised when a request field is missing or malformed."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class MissingFieldError(ValidationError):
    """Raised when a required field is empty."""

    def __init__(self, field: str):
        super().__init__(f"Missing required field: {field}", field=field)


class InvalidPhoneError(ValidationError):
    """Raised when a phone number does not match the national mobile pattern."""

    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(
            f"Invalid phone number: {phone!r} (examples: 0551925318, +213551925318)",
            field="customerPhone",
        )


class SizeRequiredError(ValidationError):
    """Raised when a product with size variants is ordered without a size."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Size required for product {product_id}", field="size")


class InvalidStatusError(ValidationError):
    """Raised when an order status value is unknown."""

    def __init__(self, status: str, allowed: list[str]):
        self.status = status
        super().__init__(
            f"Invalid status {status!r}. Allowed: {', '.join(allowed)}", field="status"
        )


class OutOfStockError(StorefrontError):
    """Raised when a requested product or size is not available."""

    def __init__(self, product_id: str, size: str | None = None):
        self.product_id = product_id
        self.size = size
        msg = f"Out of stock: product {product_id}"
        if size:
            msg = f"{msg} (size {size})"
        super().__init__(msg)


class ProductNotFoundError(StorefrontError):
    """Raised when a product ID doesn't exist."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class OrderNotFoundError(StorefrontError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class RegionNotFoundError(StorefrontError):
    """Raised when a delivery region index or name doesn't exist."""

    def __init__(self, key: str | int):
        self.key = key
        super().__init__(f"Delivery region not found: {key}")


class InvalidStatusTransitionError(StorefrontError):
    """Raised when an order cannot move from its current status."""

    def __init__(self, order_id: str, current: str, requested: str):
        self.order_id = order_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Order {order_id} cannot move from '{current}' to '{requested}'"
        )


class UpstreamUnavailableError(StorefrontError):
    """Raised when the document store or image store cannot be reached."""

    def __init__(self, service: str, reason: str | None = None):
        self.service = service
        msg = f"{service} unavailable"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class PersistenceError(StorefrontError):
    """Raised when a write fails after validation passed."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Failed to {operation}: {reason}")


class UnsupportedBackendError(StorefrontError):
    """Raised when the configured storage backend is not registered."""

    def __init__(self, backend: str, supported: list[str]):
        self.backend = backend
        self.supported = supported
        super().__init__(
            f"Unsupported storage backend '{backend}'. Supported: {', '.join(supported)}"
        )
