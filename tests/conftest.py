"""Pytest fixtures for storefront tests."""

import tempfile
from pathlib import Path

import pytest

from storefront.config import StoreConfig
from storefront.models import _utc_now
from storefront.services import Services
from storefront.storage import FileBackend


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_dir):
    """File-backed configuration rooted in the temp directory."""
    return StoreConfig(backend="file", data_dir=temp_dir / "data")


@pytest.fixture
def backend(config):
    return FileBackend(config.data_dir)


@pytest.fixture
def services(config, backend):
    return Services.build(config, backend=backend)


@pytest.fixture
def add_product(backend):
    """Insert a product document directly and return its id."""
    counter = {"n": 0}

    def _add(name="Bague Or", price=5000, stock=10, **fields):
        counter["n"] += 1
        now = _utc_now()
        doc = {
            "id": fields.pop("id", f"p{counter['n']}"),
            "name": name,
            "price": price,
            "stock": stock,
            "category": "Bague",
            "sizeVariants": [],
            "colors": [],
            "images": [],
            "status": "active",
            "createdAt": now,
            "updatedAt": now,
        }
        doc.update(fields)
        backend.insert_document("products", doc)
        return doc["id"]

    return _add


@pytest.fixture
def alger(services):
    """Delivery region Alger: 350 home, 300 office."""
    from storefront.models import DeliveryRegion

    return services.delivery.upsert_region(
        DeliveryRegion(name="Alger", home_price=350, office_price=300)
    )


@pytest.fixture
def api_client(services):
    """Test client bound to the temp-directory services."""
    from fastapi.testclient import TestClient

    from storefront.api import create_app

    return TestClient(create_app(services))
