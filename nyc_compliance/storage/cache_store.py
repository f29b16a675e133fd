"""
Per-building aggregate cache.

One JSON file per building holds the last successfully synced aggregate.
Writes fully replace the previous file; there is no merging.
"""

import asyncio
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote

from nyc_compliance.errors import PersistenceError
from nyc_compliance.models.compliance import BuildingComplianceAggregate
from nyc_compliance.utils.logging import get_logger

logger = get_logger()


class ComplianceCacheStore:
    """Durable last-known aggregate per building."""

    def __init__(self, cache_dir: Path):
        """
        Initialize cache store.

        Args:
            cache_dir: Directory for aggregate files (created if missing)
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.meta_file = self.cache_dir / "sync_meta.json"
        self._locks: Dict[str, asyncio.Lock] = {}

    def _path_for(self, building_id: str) -> Path:
        # Percent-encoding keeps distinct ids on distinct files
        safe_id = quote(building_id, safe="")
        return self.cache_dir / f"building_{safe_id}.json"

    def lock_for(self, building_id: str) -> asyncio.Lock:
        """Lock serializing writes for one building id."""
        if building_id not in self._locks:
            self._locks[building_id] = asyncio.Lock()
        return self._locks[building_id]

    async def put(self, building_id: str, aggregate: BuildingComplianceAggregate) -> Path:
        """
        Overwrite the cached aggregate for a building.

        Raises:
            PersistenceError: If the file cannot be written
        """
        path = self._path_for(building_id)
        async with self.lock_for(building_id):
            try:
                self._write_json(path, {
                    "building_id": building_id,
                    "saved_at": datetime.now().isoformat(),
                    "aggregate": aggregate.to_dict(),
                })
            except (OSError, TypeError, ValueError) as e:
                raise PersistenceError(f"Failed to persist {building_id}: {e}") from e
        return path

    def get(self, building_id: str) -> Optional[BuildingComplianceAggregate]:
        """Last synced aggregate, or None if never synced or unreadable."""
        path = self._path_for(building_id)
        if not path.exists():
            return None

        try:
            data = self._read_json(path)
            if data.get("building_id") != building_id:
                logger.warning(f"Cache file {path.name} belongs to {data.get('building_id')!r}, not {building_id!r}")
                return None
            return BuildingComplianceAggregate.from_dict(data["aggregate"])
        except Exception as e:
            logger.warning(f"Failed to load cached aggregate for {building_id}: {e}")
            return None

    def list_building_ids(self) -> List[str]:
        ids = []
        for path in sorted(self.cache_dir.glob("building_*.json")):
            try:
                ids.append(self._read_json(path)["building_id"])
            except Exception as e:
                logger.warning(f"Skipping unreadable cache file {path.name}: {e}")
        return ids

    def load_all(self) -> Dict[str, BuildingComplianceAggregate]:
        aggregates = {}
        for building_id in self.list_building_ids():
            aggregate = self.get(building_id)
            if aggregate is not None:
                aggregates[building_id] = aggregate
        return aggregates

    def save_sync_metadata(self, last_update_time: datetime, stats: Optional[Dict] = None) -> None:
        """Record when the last full sweep finished."""
        self._write_json(self.meta_file, {
            "last_update_time": last_update_time.isoformat(),
            "stats": stats or {},
        })

    def load_last_update_time(self) -> Optional[datetime]:
        if not self.meta_file.exists():
            return None
        try:
            return datetime.fromisoformat(self._read_json(self.meta_file)["last_update_time"])
        except Exception as e:
            logger.warning(f"Failed to load sync metadata: {e}")
            return None

    def _write_json(self, path: Path, data: Dict) -> None:
        """Write data to JSON file via a temp file so readers never see a partial write."""
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)

    def _read_json(self, path: Path) -> Dict:
        """Read data from JSON file."""
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
