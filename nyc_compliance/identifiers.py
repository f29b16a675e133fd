"""
Building identifier normalization and resolution.

NYC registries key buildings by BIN (7-digit building identification number)
or BBL (10-digit borough-block-lot tax parcel). Portfolio data arrives in
several loose formats; everything here is total and never raises on bad input.
"""

import logging
import re
from typing import Optional, Tuple

from nyc_compliance.models.building import BuildingRef, CanonicalIdentifiers

logger = logging.getLogger(__name__)

VALID_BOROUGHS = range(1, 6)
BIN_LENGTH = 7


def _digits(raw: str) -> str:
    return re.sub(r"\D", "", raw or "")


def _format_parcel(borough: int, block: int, lot: int) -> Optional[str]:
    if borough not in VALID_BOROUGHS or block > 99999 or lot > 9999:
        return None
    return f"{borough}{block:05d}{lot:04d}"


def normalize_tax_parcel(raw: Optional[str]) -> str:
    """
    Normalize a BBL-like string to the 10-digit canonical form.

    Accepted inputs:
        - "1008490017" (already canonical)
        - "1-849-17" (borough-block-lot)
        - "10849 0017" (7 or more loose digits: first digit borough,
          last four lot, the rest block)

    Anything else returns the bare digit string, possibly empty.

    Args:
        raw: Raw tax parcel string

    Returns:
        Canonical 10-digit BBL or best-effort digit string
    """
    digits = _digits(raw)
    if len(digits) == 10:
        return digits

    parts = (raw or "").replace(" ", "").split("-")
    if len(parts) == 3 and all(p.isdigit() for p in parts):
        formatted = _format_parcel(int(parts[0]), int(parts[1]), int(parts[2]))
        if formatted:
            return formatted

    if len(digits) >= 7:
        formatted = _format_parcel(int(digits[0]), int(digits[1:-4]), int(digits[-4:]))
        if formatted:
            return formatted

    return digits


def split_tax_parcel(bbl: str) -> Optional[Tuple[str, str, str]]:
    """
    Split a BBL into (borough, block, lot) strings.

    Returns:
        Tuple of zero-padded parts, or None if the input does not normalize
        to a canonical parcel
    """
    canonical = normalize_tax_parcel(bbl)
    if len(canonical) != 10 or int(canonical[0]) not in VALID_BOROUGHS:
        return None
    return canonical[0], canonical[1:6], canonical[6:]


def normalize_permit_registry_id(raw: Optional[str]) -> str:
    """Strip a BIN to digits; returns empty unless exactly 7 digits remain."""
    digits = _digits(raw)
    return digits if len(digits) == BIN_LENGTH else ""


def is_canonical_tax_parcel(value: str) -> bool:
    return len(value) == 10 and value.isdigit() and int(value[0]) in VALID_BOROUGHS


def extract_identifiers(*raw_values: Optional[str]) -> CanonicalIdentifiers:
    """
    Heuristically pull a BIN and BBL out of arbitrary raw strings.

    A value that normalizes to a canonical parcel is taken as the BBL; a
    7-digit value is taken as the BIN. First match wins for each.
    """
    bin_value = ""
    bbl_value = ""
    for raw in raw_values:
        if not raw:
            continue
        if not bbl_value:
            candidate = normalize_tax_parcel(raw)
            if is_canonical_tax_parcel(candidate) and len(_digits(raw)) != BIN_LENGTH:
                bbl_value = candidate
                continue
        if not bin_value:
            bin_value = normalize_permit_registry_id(raw)
    return CanonicalIdentifiers(permit_registry_id=bin_value, tax_parcel_id=bbl_value)


class IdentifierResolver:
    """
    Resolves canonical identifiers for a building.

    Order: persisted directory record, heuristic extraction from the
    building's own fields, then an optional coordinate lookup against the
    building footprints dataset. Nothing is written back.
    """

    def __init__(self, directory, footprints=None):
        """
        Args:
            directory: Building directory exposing get_identifiers(building_id)
            footprints: Optional FootprintsFetcher for coordinate lookups
        """
        self.directory = directory
        self.footprints = footprints

    def resolve_persisted(self, building: BuildingRef) -> CanonicalIdentifiers:
        stored = self.directory.get_identifiers(building.id)
        if stored is None:
            return CanonicalIdentifiers()
        return CanonicalIdentifiers(
            permit_registry_id=normalize_permit_registry_id(stored.permit_registry_id),
            tax_parcel_id=normalize_tax_parcel(stored.tax_parcel_id),
        )

    async def resolve(self, building: BuildingRef, session=None) -> CanonicalIdentifiers:
        """
        Resolve identifiers for a building.

        Args:
            building: Building to resolve
            session: aiohttp session, required for the footprints lookup

        Returns:
            CanonicalIdentifiers with empty strings for anything unresolved
        """
        identifiers = self.resolve_persisted(building)
        if identifiers.is_complete:
            return identifiers

        identifiers = identifiers.merge(extract_identifiers(building.id))
        if identifiers.is_complete:
            return identifiers

        if (
            self.footprints is not None
            and session is not None
            and building.lat is not None
            and building.lon is not None
        ):
            looked_up = await self.footprints.lookup_identifiers(session, building.lat, building.lon)
            identifiers = identifiers.merge(looked_up)

        if not identifiers.is_complete:
            logger.debug(
                f"Partial identifiers for {building.id}: "
                f"BIN={identifiers.permit_registry_id or '-'} BBL={identifiers.tax_parcel_id or '-'}"
            )
        return identifiers
