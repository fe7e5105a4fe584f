"""Tests for configuration and backend selection."""

from pathlib import Path

import pytest

from storefront.config import StoreConfig
from storefront.errors import UnsupportedBackendError
from storefront.storage import FileBackend, MongoBackend, create_backend, supported_backends


class TestStoreConfig:
    def test_defaults(self):
        config = StoreConfig.from_env({})
        assert config.backend == "file"
        assert config.mongodb_db == "windyluxury"
        assert config.timeout_ms == 10000
        assert config.upload_url == "/uploads"
        assert config.images_dir == config.data_dir / "uploads"

    def test_from_env(self, temp_dir):
        config = StoreConfig.from_env(
            {
                "STOREFRONT_BACKEND": "mongo",
                "STOREFRONT_DATA_DIR": str(temp_dir),
                "STOREFRONT_UPLOAD_DIR": str(temp_dir / "img"),
                "MONGODB_URI": "mongodb://db:27017",
                "MONGODB_DB": "shop",
                "STOREFRONT_DB_TIMEOUT_MS": "2500",
                "STOREFRONT_LOG_LEVEL": "debug",
            }
        )
        assert config.backend == "mongo"
        assert config.data_dir == temp_dir
        assert config.images_dir == Path(temp_dir / "img")
        assert config.mongodb_uri == "mongodb://db:27017"
        assert config.mongodb_db == "shop"
        assert config.timeout_ms == 2500
        assert config.log_level == "DEBUG"


class TestBackendRegistry:
    def test_supported(self):
        assert supported_backends() == ["file", "mongo"]

    def test_file_backend(self, temp_dir):
        backend = create_backend(StoreConfig(backend="file", data_dir=temp_dir))
        assert isinstance(backend, FileBackend)
        assert backend.data_dir == temp_dir

    def test_mongo_backend_is_lazy(self):
        backend = create_backend(
            StoreConfig(backend="MONGO", mongodb_uri="mongodb://nowhere:1", timeout_ms=50)
        )
        assert isinstance(backend, MongoBackend)
        assert backend.timeout_ms == 50
        assert backend._client is None

    def test_unknown_backend(self):
        with pytest.raises(UnsupportedBackendError) as exc_info:
            create_backend(StoreConfig(backend="cassandra"))
        assert exc_info.value.supported == ["file", "mongo"]
