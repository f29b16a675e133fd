"""
Building portfolio models.
"""

from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class BuildingRef:
    """A building in the managed portfolio."""

    id: str
    name: str
    address: str
    lat: Optional[float] = None
    lon: Optional[float] = None

    @property
    def name_and_address(self) -> str:
        """Composite search string used by address fallbacks."""
        if self.name and self.address:
            return f"{self.name}, {self.address}"
        return self.name or self.address

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CanonicalIdentifiers:
    """
    Registry identifiers for one building.

    Empty strings mean "unresolved"; callers skip the source paths that
    need the missing identifier.
    """

    permit_registry_id: str = ""  # BIN
    tax_parcel_id: str = ""       # BBL

    @property
    def is_complete(self) -> bool:
        return bool(self.permit_registry_id and self.tax_parcel_id)

    def merge(self, other: "CanonicalIdentifiers") -> "CanonicalIdentifiers":
        """Fill empty fields from ``other``; existing values win."""
        return CanonicalIdentifiers(
            permit_registry_id=self.permit_registry_id or other.permit_registry_id,
            tax_parcel_id=self.tax_parcel_id or other.tax_parcel_id,
        )

    def to_dict(self) -> dict:
        return asdict(self)
