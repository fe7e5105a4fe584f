"""Storage backends for storefront."""

from .file_backend import FileBackend
from .mongo_backend import MongoBackend
from .protocol import StorageBackend
from .registry import create_backend, register_backend, supported_backends

# Register built-in backends
register_backend("file", lambda config: FileBackend(config.data_dir))
register_backend(
    "mongo",
    lambda config: MongoBackend(
        config.mongodb_uri, config.mongodb_db, timeout_ms=config.timeout_ms
    ),
)

__all__ = [
    "StorageBackend",
    "FileBackend",
    "MongoBackend",
    "register_backend",
    "create_backend",
    "supported_backends",
]
