"""FastAPI REST API for the storefront and admin back-office."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from . import __version__
from .config import StoreConfig
from .delivery import REGIONS_FIELD, LEGACY_REGIONS_FIELD, regions_from_settings
from .errors import (
    InvalidPhoneError,
    InvalidStatusError,
    InvalidStatusTransitionError,
    MissingFieldError,
    OrderNotFoundError,
    OutOfStockError,
    PersistenceError,
    ProductNotFoundError,
    RegionNotFoundError,
    SizeRequiredError,
    StorefrontError,
    UnsupportedBackendError,
    UpstreamUnavailableError,
    ValidationError,
)
from .export import export_csv, export_filename
from .images import UPLOAD_FOLDER, ImageUpload
from .models import DeliveryRegion, ProductImage, _utc_now
from .orders import OrderLineRequest, OrderRequest
from .services import Services

logger = logging.getLogger(__name__)

MAX_PRODUCT_IMAGES = 4


# --- Pydantic Schemas ---


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, and snake_case names on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SizeVariantSchema(CamelModel):
    size: str = Field(..., min_length=1)
    stock: int = Field(default=0, ge=0)


class ColorSchema(CamelModel):
    name: str = Field(..., min_length=1)
    price: float = Field(default=0, ge=0)


class ProductPayload(CamelModel):
    """The ``product`` JSON field of the multipart product forms."""

    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("name", "title"))
    category: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    old_price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    size_variants: Optional[list[SizeVariantSchema | str]] = Field(
        default=None,
        validation_alias=AliasChoices("sizeVariants", "size_variants", "sizes"),
        serialization_alias="sizeVariants",
    )
    colors: Optional[list[ColorSchema]] = None
    status: Optional[Literal["active", "inactive"]] = None
    featured: Optional[bool] = None


class OrderLinePayload(CamelModel):
    product_id: str = Field(
        ..., validation_alias=AliasChoices("productId", "product_id", "id")
    )
    quantity: int = Field(default=1, ge=1)
    size: Optional[str] = None
    color: Optional[str] = None


class OrderCreateRequest(CamelModel):
    """Checkout body. ``wilaya`` and ``products`` are accepted for older clients."""

    customer_name: str = ""
    customer_phone: str = ""
    customer_phone2: str = Field(
        default="", validation_alias=AliasChoices("customerPhone2", "customer_phone2")
    )
    region: str = Field(default="", validation_alias=AliasChoices("region", "wilaya"))
    commune: str = ""
    address: str = ""
    delivery_type: str = "home"
    lines: list[OrderLinePayload] = Field(
        default_factory=list, validation_alias=AliasChoices("lines", "products")
    )
    notes: str = ""

    def to_request(self) -> OrderRequest:
        return OrderRequest(
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            customer_phone2=self.customer_phone2,
            region=self.region,
            commune=self.commune,
            address=self.address,
            delivery_type=self.delivery_type,
            notes=self.notes,
            lines=[
                OrderLineRequest(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    size=line.size,
                    color=line.color,
                )
                for line in self.lines
            ],
        )


class OrderStatusUpdate(BaseModel):
    status: str


class DeliveryRegionSchema(CamelModel):
    name: str = Field(..., min_length=1)
    home_price: float = Field(default=0, ge=0)
    office_price: float = Field(default=0, ge=0)

    def to_region(self) -> DeliveryRegion:
        return DeliveryRegion(
            name=self.name, home_price=self.home_price, office_price=self.office_price
        )


class SettingsUpdate(CamelModel):
    """Settings merge body. Unknown fields are stored as given."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    store_name: Optional[str] = None
    store_phone: Optional[str] = None
    delivery_regions: Optional[list[DeliveryRegionSchema]] = Field(
        default=None, validation_alias=AliasChoices(REGIONS_FIELD, LEGACY_REGIONS_FIELD)
    )


# --- Helper Functions ---


def get_services(request: Request) -> Services:
    """Get the Services container of the running app."""
    return request.app.state.services


def _parse_product_payload(raw: str, sizes: Optional[str] = None) -> ProductPayload:
    """Validate the ``product`` JSON field; a separate ``sizes`` JSON field is merged in."""
    try:
        data = json.loads(raw or "{}")
        if sizes and isinstance(data, dict):
            data["sizes"] = json.loads(sizes)
        return ProductPayload.model_validate(data)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid product data: {e}")
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(f"Invalid product data: {location} {first['msg']}".strip())


def _parse_existing_images(raw: Optional[str]) -> Optional[list[ProductImage]]:
    if raw is None:
        return None
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"existingImages is not valid JSON: {e}", field="existingImages")
    if not isinstance(items, list):
        raise ValidationError("existingImages must be a list", field="existingImages")
    return [ProductImage.from_dict(item) for item in items]


def _read_uploads(files: list[UploadFile]) -> list[ImageUpload]:
    if len(files) > MAX_PRODUCT_IMAGES:
        raise ValidationError(
            f"At most {MAX_PRODUCT_IMAGES} images per request", field="images"
        )
    return [ImageUpload(filename=f.filename or "image", data=f.file.read()) for f in files]


# --- Global Exception Handlers ---


# Map exception types to HTTP status codes (subclasses inherit their parent's code)
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    MissingFieldError: 400,
    InvalidPhoneError: 400,
    SizeRequiredError: 400,
    InvalidStatusError: 400,
    OutOfStockError: 400,
    ProductNotFoundError: 404,
    OrderNotFoundError: 404,
    RegionNotFoundError: 404,
    InvalidStatusTransitionError: 409,
    PersistenceError: 500,
    UnsupportedBackendError: 500,
    UpstreamUnavailableError: 503,
}


def _status_for(exc: StorefrontError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


def _error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "error_type": error_type},
    )


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Map StorefrontError subclasses to appropriate HTTP responses."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
    return _error_response(status_code, str(exc), type(exc).__name__)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 in the common error shape."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "")
    else:
        message = "Invalid request"
    logger.warning(f"{request.method} {request.url.path} invalid request: {message}")
    return _error_response(400, message, "ValidationError")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error_response(500, str(exc) or type(exc).__name__, type(exc).__name__)


# --- Endpoints ---


router = APIRouter(prefix="/api")
health_router = APIRouter()


@health_router.get("/ping", response_class=PlainTextResponse)
def ping():
    return "OK"


@health_router.get("/health")
@router.get("/health")
def health_check(services: Services = Depends(get_services)):
    """Liveness check. Reports backend reachability, never fails."""
    try:
        services.backend.ping()
        database = "connected"
    except StorefrontError as e:
        logger.warning(f"Health check: backend unavailable: {e}")
        database = "unavailable"
    return {
        "status": "ok",
        "timestamp": _utc_now(),
        "backend": services.backend.name,
        "database": database,
        "version": __version__,
    }


# --- Product Endpoints ---


@router.get("/products")
def list_products(
    status: Optional[str] = Query(default=None),
    services: Services = Depends(get_services),
):
    """List products, optionally by status."""
    return [p.to_dict() for p in services.catalog.list_products(status=status)]


@router.get("/products/{product_id}")
def get_product(product_id: str, services: Services = Depends(get_services)):
    return services.catalog.get_product(product_id).to_dict()


@router.post("/products", status_code=201)
def create_product(
    product: str = Form(default="{}"),
    sizes: Optional[str] = Form(default=None),
    images: list[UploadFile] = File(default=[]),
    services: Services = Depends(get_services),
):
    """Create a product from the ``product`` JSON field and up to 4 images."""
    payload = _parse_product_payload(product, sizes)
    if payload.name is None:
        raise MissingFieldError("name")
    if payload.price is None:
        raise MissingFieldError("price")
    uploads = _read_uploads(images)
    created = services.catalog.create_product(
        payload.model_dump(by_alias=True, exclude_unset=True), uploads
    )
    return created.to_dict()


@router.put("/products/{product_id}")
def update_product(
    product_id: str,
    product: str = Form(default="{}"),
    sizes: Optional[str] = Form(default=None),
    existing_images: Optional[str] = Form(default=None, alias="existingImages"),
    images: list[UploadFile] = File(default=[]),
    services: Services = Depends(get_services),
):
    """
    Update a product.

    New uploads are appended to ``existingImages`` when given, otherwise to
    the images already stored.
    """
    payload = _parse_product_payload(product, sizes)
    uploads = _read_uploads(images)
    updated = services.catalog.update_product(
        product_id,
        payload.model_dump(by_alias=True, exclude_unset=True),
        uploads,
        existing_images=_parse_existing_images(existing_images),
    )
    return updated.to_dict()


@router.delete("/products/{product_id}")
def delete_product(product_id: str, services: Services = Depends(get_services)):
    services.catalog.delete_product(product_id)
    return {"success": True}


@router.post("/upload")
def upload_image(
    image: Optional[UploadFile] = File(default=None),
    services: Services = Depends(get_services),
):
    """Store a single image outside of any product."""
    if image is None:
        raise MissingFieldError("image")
    stored = services.images.upload(image.file.read(), image.filename or "image", UPLOAD_FOLDER)
    return stored.to_dict()


@router.get("/categories")
def list_categories(services: Services = Depends(get_services)):
    return [c.to_dict() for c in services.catalog.list_categories()]


# --- Settings / Delivery Endpoints ---


@router.get("/settings")
def get_settings(services: Services = Depends(get_services)):
    """Settings document; empty when the store is unreachable."""
    try:
        settings = services.backend.get_settings()
    except UpstreamUnavailableError as e:
        logger.warning(f"Settings unavailable, returning empty settings: {e}")
        return {}
    result = {k: v for k, v in settings.items() if k != LEGACY_REGIONS_FIELD}
    result[REGIONS_FIELD] = [r.to_dict() for r in regions_from_settings(settings)]
    return result


@router.put("/settings")
def update_settings(request: SettingsUpdate, services: Services = Depends(get_services)):
    """Merge fields into the settings document. The region list is replaced wholesale."""
    fields = request.model_dump(
        by_alias=True, exclude_unset=True, exclude_none=True, exclude={"delivery_regions"}
    )
    if request.delivery_regions is not None:
        fields[REGIONS_FIELD] = [r.to_region().to_dict() for r in request.delivery_regions]
    if fields:
        services.backend.set_settings_fields(fields)
    return {"success": True}


@router.get("/delivery/regions")
def list_regions(services: Services = Depends(get_services)):
    return [r.to_dict() for r in services.delivery.list_regions()]


@router.put("/delivery/regions")
def upsert_region(request: DeliveryRegionSchema, services: Services = Depends(get_services)):
    """Add a region, or update the prices of an existing one."""
    return services.delivery.upsert_region(request.to_region()).to_dict()


@router.post("/delivery/regions/seed")
def seed_regions(services: Services = Depends(get_services)):
    """Add every missing default region with zero prices."""
    added = services.delivery.seed_defaults()
    return {"success": True, "added": added}


@router.delete("/delivery/regions/{index}")
def delete_region(index: int, services: Services = Depends(get_services)):
    """Remove a region by its position in the current list."""
    removed = services.delivery.remove_region(index)
    return {"success": True, "removed": removed.to_dict()}


@router.get("/delivery/price")
def delivery_price(
    region: str = Query(default=""),
    delivery_type: str = Query(default="home", alias="type"),
    services: Services = Depends(get_services),
):
    """Delivery price preview for the cart."""
    services.delivery.check_delivery_type(delivery_type)
    return {
        "region": region,
        "deliveryType": delivery_type,
        "price": services.delivery.get_price(region, delivery_type),
    }


# --- Order Endpoints ---


@router.get("/orders")
def list_orders(
    status: Optional[str] = Query(default=None),
    services: Services = Depends(get_services),
):
    """List orders, newest first."""
    return [o.to_dict() for o in services.orders.list_orders(status=status)]


@router.get("/orders/export/zrexpress")
def export_zrexpress(
    ids: Optional[str] = Query(default=None, description="Comma-separated order ids"),
    services: Services = Depends(get_services),
):
    """Download non-cancelled orders as a ZR Express CSV."""
    order_ids = {i.strip() for i in ids.split(",") if i.strip()} if ids else None
    content = export_csv(services.orders.list_orders(), order_ids)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.get("/orders/{order_id}")
def get_order(order_id: str, services: Services = Depends(get_services)):
    return services.orders.get_order(order_id).to_dict()


@router.post("/orders", status_code=201)
def create_order(request: OrderCreateRequest, services: Services = Depends(get_services)):
    """Place an order."""
    order = services.orders.submit_order(request.to_request())
    return order.to_dict()


@router.put("/orders/{order_id}/status")
def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    services: Services = Depends(get_services),
):
    services.orders.update_status(order_id, request.status)
    return {"success": True}


# --- Admin Endpoints ---


@router.delete("/admin/cleanup")
def cleanup_orders(services: Services = Depends(get_services)):
    """Apply the retention policy."""
    deleted = services.retention.prune_orders()
    return {"success": True, "deleted": deleted}


@router.get("/admin/stats")
def admin_stats(services: Services = Depends(get_services)):
    return services.orders.stats()


# --- FastAPI App ---


def create_app(services: Services | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        services: Pre-built services (for testing). Built from the environment
            when omitted.
    """
    if services is None:
        services = Services.build(StoreConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.services.close()

    app = FastAPI(
        title="storefront API",
        description="Catalog, checkout and order fulfillment API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)
    app.include_router(health_router)
    if services.config.upload_url.startswith("/"):
        app.mount(
            services.config.upload_url,
            StaticFiles(directory=services.config.images_dir, check_dir=False),
            name="uploads",
        )
    return app


app = create_app()
