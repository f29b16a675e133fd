"""
Data export utilities for the compliance sync engine.

Handles exporting derived issues and portfolio summaries to CSV and JSON.
"""

import csv
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping

from nyc_compliance.issues import derive_issues
from nyc_compliance.models.building import BuildingRef
from nyc_compliance.models.compliance import BuildingComplianceAggregate
from nyc_compliance.utils.logging import get_logger

logger = get_logger()

ISSUE_COLUMNS = [
    "building_id",
    "building_name",
    "id",
    "source",
    "type",
    "severity",
    "title",
    "description",
    "status",
    "due_date",
]


class ComplianceExporter:
    """Exports portfolio compliance data to various formats."""

    def __init__(self, output_dir: Path):
        """
        Initialize exporter.

        Args:
            output_dir: Directory for output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export_summary(
        self,
        buildings: List[BuildingRef],
        aggregates: Mapping[str, BuildingComplianceAggregate],
    ) -> Path:
        """Export per-building score and active counts to JSON."""
        rows = []
        for building in buildings:
            aggregate = aggregates.get(building.id)
            if aggregate is None:
                rows.append({"building_id": building.id, "name": building.name, "synced": False})
                continue
            rows.append({
                "building_id": building.id,
                "name": building.name,
                "address": building.address,
                "synced": True,
                "bin": aggregate.permit_registry_id,
                "bbl": aggregate.tax_parcel_id,
                "last_updated": aggregate.last_updated.isoformat() if aggregate.last_updated else None,
                "compliance_score": aggregate.compliance_score,
                "total_active_issues": aggregate.total_active_issues,
                "active_by_source": aggregate.active_counts(),
            })

        scores = [r["compliance_score"] for r in rows if r.get("synced")]
        output = {
            "exported_at": datetime.now().isoformat(),
            "total_buildings": len(buildings),
            "synced_buildings": len(scores),
            "average_score": round(sum(scores) / len(scores), 4) if scores else None,
            "buildings": rows,
        }

        summary_file = self.output_dir / "compliance_summary.json"
        self._write_json(summary_file, output)
        return summary_file

    def export_issues_csv(
        self,
        buildings: List[BuildingRef],
        aggregates: Mapping[str, BuildingComplianceAggregate],
    ) -> Path:
        """Export every derived issue across the portfolio to one CSV."""
        issues_file = self.output_dir / "compliance_issues.csv"
        count = 0
        with open(issues_file, 'w', newline='', encoding='utf-8-sig') as f:
            writer = csv.DictWriter(f, fieldnames=ISSUE_COLUMNS)
            writer.writeheader()
            for building in buildings:
                aggregate = aggregates.get(building.id)
                if aggregate is None:
                    continue
                for issue in derive_issues(aggregate, building.id):
                    row = issue.to_dict()
                    writer.writerow({
                        "building_name": building.name,
                        **{k: row.get(k, "") for k in ISSUE_COLUMNS if k != "building_name"},
                    })
                    count += 1

        logger.info(f"Exported {count} issues to {issues_file}")
        return issues_file

    def _write_json(self, path: Path, data: Dict) -> None:
        """Write data to JSON file."""
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
