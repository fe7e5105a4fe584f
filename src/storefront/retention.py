"""Retention policy for old orders."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .models import _parse_timestamp
from .orders import ORDERS
from .storage import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_KEEP = 100
DEFAULT_MAX_AGE = timedelta(hours=24)

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def _created_at(doc: dict) -> datetime:
    # Orders without a usable timestamp sort as the oldest
    try:
        return _parse_timestamp(doc["createdAt"])
    except (KeyError, TypeError, ValueError, AttributeError):
        return _UNDATED


@dataclass
class RetentionPolicy:
    """Keeps the newest ``keep`` orders, and anything younger than ``max_age``."""

    backend: StorageBackend
    keep: int = DEFAULT_KEEP
    max_age: timedelta = DEFAULT_MAX_AGE

    def select_expired(self, orders: list[dict], now: datetime) -> list[str]:
        """Ids of orders outside the newest ``keep`` and older than ``now - max_age``."""
        cutoff = now - self.max_age
        newest_first = sorted(orders, key=_created_at, reverse=True)
        # Documents without an id cannot be deleted by id; leave them alone
        return [
            str(doc["id"]) for doc in newest_first[self.keep:]
            if doc.get("id") is not None and _created_at(doc) < cutoff
        ]

    def prune_orders(self, now: datetime | None = None) -> int:
        """
        Delete expired orders.

        Returns:
            Number of orders deleted.
        """
        now = now or datetime.now(timezone.utc)
        expired = self.select_expired(self.backend.list_documents(ORDERS), now)
        deleted = self.backend.delete_documents(ORDERS, expired) if expired else 0
        logger.info(f"Pruned {deleted} order(s) older than {self.max_age}, kept newest {self.keep}")
        return deleted
