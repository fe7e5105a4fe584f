"""Registry for storage backends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from ..errors import UnsupportedBackendError

if TYPE_CHECKING:
    from ..config import StoreConfig
    from .protocol import StorageBackend

# Global registry state
_backend_factories: dict[str, Callable[[StoreConfig], StorageBackend]] = {}


def register_backend(name: str, factory: Callable[[StoreConfig], StorageBackend]) -> None:
    """Register a backend factory.

    Args:
        name: Backend identifier used in configuration (e.g., "file", "mongo").
        factory: Callable taking the StoreConfig and returning a StorageBackend.
    """
    _backend_factories[name] = factory


def create_backend(config: StoreConfig) -> StorageBackend:
    """Create the backend selected by ``config.backend``.

    Raises:
        UnsupportedBackendError: If the backend name is not registered.
    """
    name = config.backend.lower()
    if name not in _backend_factories:
        raise UnsupportedBackendError(name, supported_backends())
    return _backend_factories[name](config)


def supported_backends() -> list[str]:
    """Get sorted list of registered backend names."""
    return sorted(_backend_factories.keys())
