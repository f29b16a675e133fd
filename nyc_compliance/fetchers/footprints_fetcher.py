"""
Building footprints lookup.

Resolves BIN and BBL for a coordinate pair; used when the directory has no
stored identifiers for a building.
"""

import logging
from typing import Callable, Optional

import aiohttp

from nyc_compliance.config import DEFAULT_SETTINGS, FOOTPRINTS_DATASET_ID, SyncSettings
from nyc_compliance.errors import SourceError
from nyc_compliance.fetchers.base import BaseFetcher
from nyc_compliance.identifiers import normalize_permit_registry_id, normalize_tax_parcel
from nyc_compliance.models.building import CanonicalIdentifiers

logger = logging.getLogger(__name__)

# Search radius in meters around the building coordinate
DEFAULT_RADIUS = 25


class FootprintsFetcher(BaseFetcher):
    """Coordinate to BIN/BBL lookup against the building footprints dataset."""

    def __init__(self, settings: SyncSettings = DEFAULT_SETTINGS, sleep: Optional[Callable] = None):
        url = f"{settings.api_base.rstrip('/')}/{FOOTPRINTS_DATASET_ID}.json"
        kwargs = {"sleep": sleep} if sleep is not None else {}
        super().__init__(url, "building_footprints", settings, **kwargs)

    async def lookup_identifiers(
        self,
        session: aiohttp.ClientSession,
        lat: float,
        lon: float,
        radius: int = DEFAULT_RADIUS,
    ) -> CanonicalIdentifiers:
        """
        Find the footprint nearest to a coordinate.

        Args:
            session: aiohttp session
            lat: Latitude
            lon: Longitude
            radius: Search radius in meters

        Returns:
            CanonicalIdentifiers, empty on failure or no match
        """
        params = {
            "$where": f"within_circle(the_geom, {lat}, {lon}, {radius})",
            "$select": "bin, base_bbl, mappluto_bbl",
            "$limit": "1",
        }
        try:
            rows = await self.fetch_rows(session, params)
        except SourceError as e:
            logger.warning(f"Footprint lookup failed for ({lat}, {lon}): {e.message}")
            return CanonicalIdentifiers()

        if not rows:
            return CanonicalIdentifiers()

        row = rows[0]
        bbl = normalize_tax_parcel(str(row.get("base_bbl") or row.get("mappluto_bbl") or ""))
        return CanonicalIdentifiers(
            permit_registry_id=normalize_permit_registry_id(str(row.get("bin") or "")),
            tax_parcel_id=bbl if len(bbl) == 10 else "",
        )
