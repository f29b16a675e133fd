"""
Source record models.

One dataclass per registry, tagged with a ``SourceKind``. Field values are
kept as the strings the registries return; dates are parsed on demand so the
cached JSON round-trips exactly what was fetched.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union


class SourceKind(str, Enum):
    """Registry a record came from."""

    HOUSING = "housing_violation"
    PERMIT = "permit"
    SANITATION = "sanitation_violation"
    EMISSIONS = "emissions"
    COMPLAINT = "service_complaint"


class Severity(str, Enum):
    """Issue severity, ordered by ``rank``."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

# Accepted registry date formats, most specific first
DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
    "%m/%d/%Y",
)

FACADE_KEYWORDS = ("FACADE", "FISP", "LOCAL LAW 11", "LL11")


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a registry date string.

    Args:
        value: Raw date string (ISO timestamp, ISO date or MM/DD/YYYY)

    Returns:
        Naive datetime or None if empty/unparseable
    """
    if not value:
        return None
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _contains_any(text: str, keywords) -> bool:
    lowered = text.lower()
    return any(k in lowered for k in keywords)


@dataclass
class HousingViolation:
    """Housing maintenance code violation (HPD)."""

    kind: ClassVar[SourceKind] = SourceKind.HOUSING

    violation_id: str
    permit_registry_id: str = ""
    apartment: str = ""
    story: str = ""
    inspection_date: Optional[str] = None
    nov_issued_date: Optional[str] = None
    nov_description: str = ""
    violation_class: str = ""
    current_status: str = ""
    current_status_date: Optional[str] = None
    violation_status: str = ""
    original_correct_by_date: Optional[str] = None
    new_correct_by_date: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return not self.current_status_date and self.violation_status.lower() != "close"

    @property
    def severity(self) -> Severity:
        description = self.nov_description.lower()
        if "immediately hazardous" in description or "lead" in description:
            return Severity.CRITICAL
        if "hazardous" in description:
            return Severity.HIGH
        return Severity.MEDIUM

    @property
    def correction_deadline(self) -> Optional[datetime]:
        return parse_date(self.new_correct_by_date) or parse_date(self.original_correct_by_date)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, **asdict(self)}


@dataclass
class PermitRecord:
    """Building permit issuance record (DOB)."""

    kind: ClassVar[SourceKind] = SourceKind.PERMIT

    job_number: str
    doc_number: str = ""
    permit_registry_id: str = ""
    borough: str = ""
    job_type: str = ""
    work_type: str = ""
    permit_type: str = ""
    permit_status: str = ""
    filing_date: Optional[str] = None
    issuance_date: Optional[str] = None
    expiration_date: Optional[str] = None
    job_start_date: Optional[str] = None
    job_description: str = ""
    owner_name: str = ""

    # Statuses that mean the permit itself is in violation
    VIOLATION_STATUSES: ClassVar[tuple] = ("revoked", "suspended", "stop work", "violation")

    @property
    def expires_at(self) -> Optional[datetime]:
        return parse_date(self.expiration_date)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expires = self.expires_at
        if expires is None:
            return False
        return expires < (now or datetime.now())

    @property
    def has_violation(self) -> bool:
        return _contains_any(self.permit_status, self.VIOLATION_STATUSES)

    @property
    def is_active(self) -> bool:
        return not self.is_expired() and not self.has_violation

    @property
    def severity(self) -> Severity:
        if self.is_expired() or self.has_violation:
            return Severity.HIGH
        return Severity.LOW

    @property
    def is_facade_filing(self) -> bool:
        text = f"{self.job_description} {self.work_type} {self.permit_type}".upper()
        return any(k in text for k in FACADE_KEYWORDS)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, **asdict(self)}


@dataclass
class SanitationViolation:
    """
    Sanitation violation (DSNY / OATH).

    Records synthesized from 311 complaints have ``is_proxy`` set and carry
    no hearing, fine or disposition values.
    """

    kind: ClassVar[SourceKind] = SourceKind.SANITATION

    violation_id: str
    permit_registry_id: str = ""
    tax_parcel_id: str = ""
    issue_date: Optional[str] = None
    hearing_date: Optional[str] = None
    violation_type: str = ""
    fine_amount: Optional[float] = None
    status: str = ""
    borough: str = ""
    address: str = ""
    violation_details: str = ""
    disposition_code: Optional[str] = None
    disposition_date: Optional[str] = None
    is_proxy: bool = False

    @property
    def is_active(self) -> bool:
        return not self.disposition_date and self.status.lower() != "closed"

    @property
    def is_paid(self) -> bool:
        return "paid" in (self.disposition_code or "").lower()

    @property
    def severity(self) -> Severity:
        if _contains_any(f"{self.violation_type} {self.violation_details}", ("illegal dumping", "hazard")):
            return Severity.HIGH
        return Severity.MEDIUM

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, **asdict(self)}


@dataclass
class EmissionsRecord:
    """Local Law 97 emissions benchmarking row for one reporting year."""

    kind: ClassVar[SourceKind] = SourceKind.EMISSIONS

    tax_parcel_id: str
    reporting_year: Optional[int] = None
    property_name: str = ""
    primary_property_type: str = ""
    reported_address: str = ""
    borough: str = ""
    total_ghg_emissions: Optional[float] = None
    emissions_intensity: Optional[float] = None
    emissions_limit: Optional[float] = None
    emissions_over_limit: Optional[float] = None
    potential_fine: Optional[float] = None
    energy_use_intensity: Optional[float] = None

    @property
    def is_compliant(self) -> bool:
        return (self.emissions_over_limit or 0.0) <= 0

    @property
    def is_active(self) -> bool:
        return not self.is_compliant

    @property
    def severity(self) -> Severity:
        return Severity.LOW if self.is_compliant else Severity.CRITICAL

    @property
    def compliance_status(self) -> str:
        if self.is_compliant:
            return "Compliant"
        return f"Over Limit by {self.emissions_over_limit:.1f} tons"

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, **asdict(self)}


@dataclass
class ServiceComplaint:
    """311 service request."""

    kind: ClassVar[SourceKind] = SourceKind.COMPLAINT

    unique_key: str
    tax_parcel_id: str = ""
    created_date: Optional[str] = None
    closed_date: Optional[str] = None
    agency: str = ""
    complaint_type: str = ""
    descriptor: str = ""
    incident_address: str = ""
    borough: str = ""
    status: str = ""
    resolution_description: str = ""

    @property
    def is_active(self) -> bool:
        return not self.closed_date and self.status.lower() != "closed"

    @property
    def severity(self) -> Severity:
        complaint_type = self.complaint_type.lower()
        if any(k in complaint_type for k in ("heat", "hot water", "emergency")):
            return Severity.CRITICAL
        if any(k in complaint_type for k in ("plumbing", "electric")):
            return Severity.HIGH
        return Severity.MEDIUM

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, **asdict(self)}


SourceRecord = Union[HousingViolation, PermitRecord, SanitationViolation, EmissionsRecord, ServiceComplaint]

RECORD_TYPES = {
    SourceKind.HOUSING: HousingViolation,
    SourceKind.PERMIT: PermitRecord,
    SourceKind.SANITATION: SanitationViolation,
    SourceKind.EMISSIONS: EmissionsRecord,
    SourceKind.COMPLAINT: ServiceComplaint,
}


def record_from_dict(data: dict) -> SourceRecord:
    """
    Rebuild a record from its ``to_dict`` form.

    Raises:
        ValueError: If the kind tag is missing or unknown
    """
    payload = dict(data)
    kind = SourceKind(payload.pop("kind", None))
    return RECORD_TYPES[kind](**payload)
