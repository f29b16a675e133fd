"""
Building directory implementations.

The directory is the read-only source of the portfolio and of any manually
corrected BIN/BBL values.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from nyc_compliance.errors import ConfigError
from nyc_compliance.models.building import BuildingRef, CanonicalIdentifiers


class StaticBuildingDirectory:
    """In-memory directory."""

    def __init__(
        self,
        buildings: Iterable[BuildingRef],
        identifiers: Optional[Dict[str, CanonicalIdentifiers]] = None,
    ):
        self._buildings = list(buildings)
        self._identifiers = dict(identifiers or {})

    def get_all_buildings(self) -> List[BuildingRef]:
        return list(self._buildings)

    def get_building(self, building_id: str) -> Optional[BuildingRef]:
        for building in self._buildings:
            if building.id == building_id:
                return building
        return None

    def get_identifiers(self, building_id: str) -> Optional[CanonicalIdentifiers]:
        return self._identifiers.get(building_id)


class JsonBuildingDirectory(StaticBuildingDirectory):
    """
    Directory loaded from a portfolio JSON file.

    Expected shape: either a list of building objects or ``{"buildings": [...]}``.
    Each object needs ``id``, ``name`` and ``address``; ``lat``, ``lon``,
    ``bin`` and ``bbl`` are optional.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        buildings, identifiers = self._load(self.path)
        super().__init__(buildings, identifiers)

    @staticmethod
    def _load(path: Path):
        if not path.exists():
            raise ConfigError(f"Building directory not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read building directory {path}: {e}") from e

        rows = data.get("buildings", []) if isinstance(data, dict) else data
        if not isinstance(rows, list):
            raise ConfigError(f"Building directory {path} must contain a list of buildings")

        buildings = []
        identifiers = {}
        for row in rows:
            try:
                building = BuildingRef(
                    id=str(row["id"]),
                    name=row.get("name", ""),
                    address=row.get("address", ""),
                    lat=row.get("lat"),
                    lon=row.get("lon"),
                )
            except (KeyError, TypeError, AttributeError) as e:
                raise ConfigError(f"Invalid building entry in {path}: {row!r}") from e

            buildings.append(building)
            if row.get("bin") or row.get("bbl"):
                identifiers[building.id] = CanonicalIdentifiers(
                    permit_registry_id=str(row.get("bin") or ""),
                    tax_parcel_id=str(row.get("bbl") or ""),
                )

        return buildings, identifiers
