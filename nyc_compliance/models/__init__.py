"""Data models for the compliance sync engine."""

from nyc_compliance.models.building import BuildingRef, CanonicalIdentifiers
from nyc_compliance.models.records import (
    SourceKind,
    Severity,
    HousingViolation,
    PermitRecord,
    SanitationViolation,
    EmissionsRecord,
    ServiceComplaint,
    SourceRecord,
    parse_date,
    record_from_dict,
)
from nyc_compliance.models.compliance import (
    BuildingComplianceAggregate,
    ComplianceIssue,
    IssueType,
    LawKind,
    RequiredAction,
    SyncProgress,
    SyncState,
)
from nyc_compliance.models.results import SourceQueryResult

__all__ = [
    "BuildingRef",
    "CanonicalIdentifiers",
    "SourceKind",
    "Severity",
    "HousingViolation",
    "PermitRecord",
    "SanitationViolation",
    "EmissionsRecord",
    "ServiceComplaint",
    "SourceRecord",
    "parse_date",
    "record_from_dict",
    "BuildingComplianceAggregate",
    "ComplianceIssue",
    "IssueType",
    "LawKind",
    "RequiredAction",
    "SyncProgress",
    "SyncState",
    "SourceQueryResult",
]
