"""
Compliance aggregate and derived issue models.

``BuildingComplianceAggregate`` is the only thing persisted per building.
Issues, actions and scores are recomputed from it on demand.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from enum import Enum
from typing import Any, Dict, List, Optional

from nyc_compliance.models.records import (
    EmissionsRecord,
    HousingViolation,
    PermitRecord,
    SanitationViolation,
    ServiceComplaint,
    Severity,
    SourceKind,
    SourceRecord,
    record_from_dict,
)


# Number of active issues at which the score bottoms out
SCORE_SCALE = 100


class IssueType(str, Enum):
    REGULATORY = "regulatory"
    ENVIRONMENTAL = "environmental"
    PERMIT = "permit"
    OPERATIONAL = "operational"
    SANITATION = "sanitation"


class LawKind(str, Enum):
    """Local laws with a computable next deadline."""

    LL97 = "ll97"  # emissions limits
    LL11 = "ll11"  # facade inspection (FISP)
    HPD = "hpd"    # housing violation correction


class SyncState(str, Enum):
    IDLE = "idle"
    BATCH_FETCHING = "batch_fetching"
    PER_BUILDING_FALLBACK = "per_building_fallback"
    PERSISTING = "persisting"


@dataclass
class BuildingComplianceAggregate:
    """Consolidated per-building compliance record from one sync."""

    building_id: str
    permit_registry_id: str = ""
    tax_parcel_id: str = ""
    last_updated: Optional[datetime] = None

    housing_violations: List[HousingViolation] = field(default_factory=list)
    permits: List[PermitRecord] = field(default_factory=list)
    sanitation_violations: List[SanitationViolation] = field(default_factory=list)
    emissions: List[EmissionsRecord] = field(default_factory=list)
    complaints: List[ServiceComplaint] = field(default_factory=list)

    _FIELDS = {
        SourceKind.HOUSING: "housing_violations",
        SourceKind.PERMIT: "permits",
        SourceKind.SANITATION: "sanitation_violations",
        SourceKind.EMISSIONS: "emissions",
        SourceKind.COMPLAINT: "complaints",
    }

    def records_for(self, kind: SourceKind) -> List[SourceRecord]:
        return getattr(self, self._FIELDS[kind])

    def set_records(self, kind: SourceKind, records: List[SourceRecord]) -> None:
        setattr(self, self._FIELDS[kind], list(records))

    @property
    def total_active_issues(self) -> int:
        """Active housing violations, active complaints and permits in violation."""
        return (
            sum(1 for v in self.housing_violations if v.is_active)
            + sum(1 for c in self.complaints if c.is_active)
            + sum(1 for p in self.permits if p.has_violation)
        )

    @property
    def compliance_score(self) -> float:
        """
        Linear health proxy in [0, 1].

        Emissions non-compliance does not count toward the score even though
        it produces critical issues.
        """
        return max(0.0, (SCORE_SCALE - self.total_active_issues) / SCORE_SCALE)

    def active_counts(self) -> Dict[str, int]:
        return {
            kind.value: sum(1 for r in self.records_for(kind) if r.is_active)
            for kind in SourceKind
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {
            "building_id": self.building_id,
            "permit_registry_id": self.permit_registry_id,
            "tax_parcel_id": self.tax_parcel_id,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }
        records = []
        for kind in SourceKind:
            records.extend(r.to_dict() for r in self.records_for(kind))
        data["records"] = records
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BuildingComplianceAggregate":
        last_updated = data.get("last_updated")
        aggregate = cls(
            building_id=data["building_id"],
            permit_registry_id=data.get("permit_registry_id", ""),
            tax_parcel_id=data.get("tax_parcel_id", ""),
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        )
        for raw in data.get("records", []):
            record = record_from_dict(raw)
            aggregate.records_for(record.kind).append(record)
        return aggregate


@dataclass
class ComplianceIssue:
    """A normalized, actionable issue derived from one source record."""

    id: str
    title: str
    description: str
    severity: Severity
    building_id: str
    type: IssueType
    source: SourceKind
    status: str = "open"
    due_date: Optional[date] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "building_id": self.building_id,
            "type": self.type.value,
            "source": self.source.value,
            "status": self.status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "metadata": self.metadata,
        }


@dataclass
class RequiredAction:
    """Next thing building staff has to do, with an optional deadline."""

    title: str
    description: str
    priority: Severity
    due_date: Optional[date] = None
    source: Optional[SourceKind] = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "source": self.source.value if self.source else None,
        }


@dataclass
class SyncProgress:
    """Progress snapshot emitted during a sweep."""

    completed: int
    total: int
    building_id: str = ""
    state: SyncState = SyncState.IDLE

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return self.completed / self.total
