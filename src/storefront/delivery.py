"""Delivery pricing per region (wilaya)."""

from __future__ import annotations

import logging

from .errors import RegionNotFoundError, ValidationError
from .models import DELIVERY_TYPES, DeliveryRegion
from .storage import StorageBackend

logger = logging.getLogger(__name__)

REGIONS_FIELD = "deliveryRegions"
LEGACY_REGIONS_FIELD = "deliveryWilayas"

# The 58 Algerian wilayas, in official order
DEFAULT_REGION_NAMES: list[str] = [
    "Adrar", "Chlef", "Laghouat", "Oum El Bouaghi", "Batna", "Béjaïa",
    "Biskra", "Béchar", "Blida", "Bouïra", "Tamanrasset", "Tébessa",
    "Tlemcen", "Tiaret", "Tizi Ouzou", "Alger", "Djelfa", "Jijel", "Sétif",
    "Saïda", "Skikda", "Sidi Bel Abbès", "Annaba", "Guelma", "Constantine",
    "Médéa", "Mostaganem", "M'Sila", "Mascara", "Ouargla", "Oran",
    "El Bayadh", "Illizi", "Bordj Bou Arréridj", "Boumerdès", "El Tarf",
    "Tindouf", "Tissemsilt", "El Oued", "Khenchela", "Souk Ahras", "Tipaza",
    "Mila", "Aïn Defla", "Naâma", "Aïn Témouchent", "Ghardaïa", "Relizane",
    "Timimoun", "Bordj Badji Mokhtar", "Ouled Djellal", "Béni Abbès",
    "In Salah", "In Guezzam", "Touggourt", "Djanet", "El M'Ghair", "Meniaa",
]


def _key(name: str) -> str:
    return name.strip().casefold()


def regions_from_settings(settings: dict) -> list[DeliveryRegion]:
    """Read the region list from a settings document (either field name)."""
    raw = settings.get(REGIONS_FIELD)
    if raw is None:
        raw = settings.get(LEGACY_REGIONS_FIELD) or []
    return [DeliveryRegion.from_dict(r) for r in raw if r.get("name")]


class DeliveryPricingTable:
    """Region name -> home/office delivery price, stored in the settings document.

    Only the ``deliveryRegions`` field is written back, so edits here do not
    clobber other settings fields. Two admins editing the region list at the
    same time can still lose one of the edits: the list is read, modified and
    written as a whole.
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    def list_regions(self) -> list[DeliveryRegion]:
        return regions_from_settings(self.backend.get_settings())

    def _save(self, regions: list[DeliveryRegion]) -> None:
        self.backend.set_settings_fields({REGIONS_FIELD: [r.to_dict() for r in regions]})

    def find_region(self, name: str) -> DeliveryRegion | None:
        if not name or not name.strip():
            return None
        key = _key(name)
        for region in self.list_regions():
            if _key(region.name) == key:
                return region
        return None

    def get_price(self, region_name: str, delivery_type: str) -> float:
        """
        Look up the delivery price for a region.

        Matching is case-insensitive. An empty or unknown region prices
        delivery at 0 rather than failing.
        """
        region = self.find_region(region_name)
        if region is None:
            if region_name:
                logger.warning(f"No delivery price for region {region_name!r}, using 0")
            return 0
        return region.price_for(delivery_type)

    def upsert_region(self, region: DeliveryRegion) -> DeliveryRegion:
        """Insert a region, or overwrite the prices of an existing one in place."""
        name = region.name.strip() if region.name else ""
        if not name:
            raise ValidationError("Region name is required", field="name")
        if region.home_price < 0 or region.office_price < 0:
            raise ValidationError("Delivery prices must be non-negative", field="price")

        regions = self.list_regions()
        key = _key(name)
        for existing in regions:
            if _key(existing.name) == key:
                existing.home_price = region.home_price
                existing.office_price = region.office_price
                self._save(regions)
                logger.info(f"Updated delivery region {existing.name}")
                return existing

        created = DeliveryRegion(
            name=name, home_price=region.home_price, office_price=region.office_price
        )
        regions.append(created)
        self._save(regions)
        logger.info(f"Added delivery region {name}")
        return created

    def remove_region(self, index: int) -> DeliveryRegion:
        """Remove the region at a position of the currently stored list."""
        regions = self.list_regions()
        if index < 0 or index >= len(regions):
            raise RegionNotFoundError(index)
        removed = regions.pop(index)
        self._save(regions)
        logger.info(f"Removed delivery region {removed.name} (index {index})")
        return removed

    def remove_region_by_name(self, name: str) -> DeliveryRegion:
        regions = self.list_regions()
        key = _key(name)
        for i, region in enumerate(regions):
            if _key(region.name) == key:
                return self.remove_region(i)
        raise RegionNotFoundError(name)

    def seed_defaults(self) -> int:
        """
        Add every default region that is missing, with zero prices.

        Existing entries keep their prices. Returns the number of regions added.
        """
        regions = self.list_regions()
        known = {_key(r.name) for r in regions}
        added = [
            DeliveryRegion(name=name) for name in DEFAULT_REGION_NAMES
            if _key(name) not in known
        ]
        if added:
            regions.extend(added)
            self._save(regions)
        logger.info(f"Seeded {len(added)} delivery regions")
        return len(added)

    @staticmethod
    def check_delivery_type(delivery_type: str) -> str:
        if delivery_type not in DELIVERY_TYPES:
            raise ValidationError(
                f"Invalid delivery type {delivery_type!r}. Allowed: {', '.join(DELIVERY_TYPES)}",
                field="deliveryType",
            )
        return delivery_type
