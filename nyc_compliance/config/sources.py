"""
Configuration for NYC Open Data registries.

Each source maps to a Socrata dataset and names the columns used for batch
lookups, direct identifier lookups, address search and date filtering.
"""

from dataclasses import dataclass
from typing import Optional

from nyc_compliance.models.records import SourceKind


@dataclass(frozen=True)
class SourceConfig:
    """Configuration for one Socrata dataset."""

    kind: SourceKind
    name: str
    dataset_id: str
    description: str = ""

    # Column holding the BIN, used for batch queries. None if unsupported.
    batch_field: Optional[str] = None
    # Column used by fetch_by_identifier
    identifier_field: Optional[str] = None
    # "bin" or "bbl": which canonical identifier the direct query takes
    identifier_kind: str = "bin"
    # Column for address search; None means full-text $q search
    address_field: Optional[str] = None
    # Column used for months-back filtering and ordering
    date_field: Optional[str] = None

    @property
    def supports_batch(self) -> bool:
        return self.batch_field is not None

    def resource_url(self, api_base: str) -> str:
        return f"{api_base.rstrip('/')}/{self.dataset_id}.json"


HOUSING_SOURCE = SourceConfig(
    kind=SourceKind.HOUSING,
    name="hpd_violations",
    dataset_id="wvxf-dwi5",
    description="HPD housing maintenance code violations",
    batch_field="bin",
    identifier_field="bin",
    identifier_kind="bin",
    date_field="inspectiondate",
)

PERMIT_SOURCE = SourceConfig(
    kind=SourceKind.PERMIT,
    name="dob_permits",
    dataset_id="ipu4-2q9a",
    description="DOB permit issuance",
    batch_field="bin__",
    identifier_field="bin__",
    identifier_kind="bin",
    # issuance_date is MM/DD/YYYY text here, so it cannot be range-filtered
    date_field=None,
)

SANITATION_SOURCE = SourceConfig(
    kind=SourceKind.SANITATION,
    name="dsny_violations",
    dataset_id="weg2-hvnf",
    description="DSNY sanitation violations",
    batch_field="bin",
    identifier_field="bin",
    identifier_kind="bbl",
    date_field="issue_date",
)

# OATH hearings; sanitation tickets are looked up by borough/block/lot
OATH_SOURCE = SourceConfig(
    kind=SourceKind.SANITATION,
    name="oath_hearings",
    dataset_id="jz4z-kudi",
    description="OATH hearings division case status (DSNY tickets)",
    identifier_kind="bbl",
    date_field="violation_date",
)

EMISSIONS_SOURCE = SourceConfig(
    kind=SourceKind.EMISSIONS,
    name="ll97_emissions",
    dataset_id="8vys-2eex",
    description="Local Law 97 building emissions",
    identifier_field="bbl",
    identifier_kind="bbl",
    date_field="reporting_year",
)

COMPLAINT_SOURCE = SourceConfig(
    kind=SourceKind.COMPLAINT,
    name="311_service_requests",
    dataset_id="erm2-nwe9",
    description="311 service requests",
    identifier_field="bbl",
    identifier_kind="bbl",
    address_field="incident_address",
    date_field="created_date",
)

FOOTPRINTS_DATASET_ID = "nqwf-w8eh"


# Registry of all source configurations
SOURCES: dict[SourceKind, SourceConfig] = {
    SourceKind.HOUSING: HOUSING_SOURCE,
    SourceKind.PERMIT: PERMIT_SOURCE,
    SourceKind.SANITATION: SANITATION_SOURCE,
    SourceKind.EMISSIONS: EMISSIONS_SOURCE,
    SourceKind.COMPLAINT: COMPLAINT_SOURCE,
}


def get_source_config(kind: SourceKind) -> SourceConfig:
    """
    Get configuration for a source kind.

    Raises:
        ValueError: If no source is configured for the kind
    """
    if kind not in SOURCES:
        raise ValueError(f"No source configured for: {kind}")
    return SOURCES[kind]


def list_sources() -> list[dict]:
    """List all configured sources with their dataset ids."""
    return [
        {
            "kind": kind.value,
            "name": config.name,
            "dataset_id": config.dataset_id,
            "description": config.description,
            "batch": config.supports_batch,
        }
        for kind, config in SOURCES.items()
    ]
