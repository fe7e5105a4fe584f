"""Wiring of storage, image store and the workflow components."""

from __future__ import annotations

from dataclasses import dataclass

from .catalog import CatalogStore
from .config import StoreConfig
from .delivery import DeliveryPricingTable
from .images import ImageStore, LocalImageStore
from .orders import OrderWorkflow
from .retention import RetentionPolicy
from .storage import StorageBackend, create_backend


@dataclass
class Services:
    """Everything a request handler needs, built once per process."""

    config: StoreConfig
    backend: StorageBackend
    images: ImageStore
    catalog: CatalogStore
    delivery: DeliveryPricingTable
    orders: OrderWorkflow
    retention: RetentionPolicy

    @classmethod
    def build(
        cls,
        config: StoreConfig,
        backend: StorageBackend | None = None,
        images: ImageStore | None = None,
    ) -> "Services":
        backend = backend or create_backend(config)
        images = images or LocalImageStore(config.images_dir, config.upload_url)
        catalog = CatalogStore(backend, images)
        delivery = DeliveryPricingTable(backend)
        return cls(
            config=config,
            backend=backend,
            images=images,
            catalog=catalog,
            delivery=delivery,
            orders=OrderWorkflow(backend, catalog, delivery),
            retention=RetentionPolicy(backend),
        )

    def close(self) -> None:
        self.backend.close()
