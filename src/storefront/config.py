"""Runtime configuration for storefront."""

import os
from dataclasses import dataclass
from pathlib import Path

# Can be overridden via STOREFRONT_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"

DEFAULT_BACKEND = "file"
DEFAULT_MONGODB_DB = "windyluxury"
DEFAULT_TIMEOUT_MS = 10000
DEFAULT_UPLOAD_URL = "/uploads"


@dataclass
class StoreConfig:
    """Settings that select and configure the storage backend and image store."""

    backend: str = DEFAULT_BACKEND
    data_dir: Path = _default_data_dir
    upload_dir: Path | None = None
    upload_url: str = DEFAULT_UPLOAD_URL
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = DEFAULT_MONGODB_DB
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    log_level: str = "INFO"

    @property
    def images_dir(self) -> Path:
        """Directory the local image store writes to."""
        return self.upload_dir or self.data_dir / "uploads"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "StoreConfig":
        """Build configuration from STOREFRONT_* and MONGODB_* variables."""
        env = os.environ if environ is None else environ
        upload_dir = env.get("STOREFRONT_UPLOAD_DIR")
        return cls(
            backend=env.get("STOREFRONT_BACKEND", DEFAULT_BACKEND),
            data_dir=Path(env.get("STOREFRONT_DATA_DIR", _default_data_dir)),
            upload_dir=Path(upload_dir) if upload_dir else None,
            upload_url=env.get("STOREFRONT_UPLOAD_URL", DEFAULT_UPLOAD_URL),
            mongodb_uri=env.get("MONGODB_URI", "mongodb://localhost:27017"),
            mongodb_db=env.get("MONGODB_DB", DEFAULT_MONGODB_DB),
            timeout_ms=int(env.get("STOREFRONT_DB_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)),
            log_level=env.get("STOREFRONT_LOG_LEVEL", "INFO").upper(),
        )
