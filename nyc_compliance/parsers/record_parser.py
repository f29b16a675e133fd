"""
Parsers turning registry JSON rows into source records.

Rows that lack the record's key column are dropped; every other column is
optional.
"""

import logging
from typing import Callable, Dict, List, Optional

from nyc_compliance.identifiers import normalize_tax_parcel
from nyc_compliance.models.records import (
    EmissionsRecord,
    HousingViolation,
    PermitRecord,
    SanitationViolation,
    ServiceComplaint,
    SourceKind,
    SourceRecord,
)
from nyc_compliance.parsers.base import BaseParser

logger = logging.getLogger(__name__)


class RecordParser(BaseParser):
    """Row parsers for each registry."""

    @classmethod
    def parse_housing_violation(cls, row: dict) -> Optional[HousingViolation]:
        violation_id = cls.get_text(row, "violationid")
        if not violation_id:
            return None
        return HousingViolation(
            violation_id=violation_id,
            permit_registry_id=cls.get_text(row, "bin"),
            apartment=cls.get_text(row, "apartment"),
            story=cls.get_text(row, "story"),
            inspection_date=cls.get_optional(row, "inspectiondate"),
            nov_issued_date=cls.get_optional(row, "novissueddate", "novissuedate"),
            nov_description=cls.get_text(row, "novdescription"),
            violation_class=cls.get_text(row, "class"),
            current_status=cls.get_text(row, "currentstatus"),
            current_status_date=cls.get_optional(row, "currentstatusdate"),
            violation_status=cls.get_text(row, "violationstatus"),
            original_correct_by_date=cls.get_optional(row, "originalcorrectbydate"),
            new_correct_by_date=cls.get_optional(row, "newcorrectbydate"),
        )

    @classmethod
    def parse_permit(cls, row: dict) -> Optional[PermitRecord]:
        job_number = cls.get_text(row, "job__", "job_number")
        if not job_number:
            return None
        return PermitRecord(
            job_number=job_number,
            doc_number=cls.get_text(row, "job_doc___", "doc__"),
            permit_registry_id=cls.get_text(row, "bin__", "bin"),
            borough=cls.get_text(row, "borough"),
            job_type=cls.get_text(row, "job_type"),
            work_type=cls.get_text(row, "work_type"),
            permit_type=cls.get_text(row, "permit_type"),
            permit_status=cls.get_text(row, "permit_status"),
            filing_date=cls.get_optional(row, "filing_date"),
            issuance_date=cls.get_optional(row, "issuance_date"),
            expiration_date=cls.get_optional(row, "expiration_date"),
            job_start_date=cls.get_optional(row, "job_start_date"),
            job_description=cls.get_text(row, "job_description"),
            owner_name=cls.get_text(row, "owner_s_business_name", "owner_name"),
        )

    @classmethod
    def parse_sanitation_violation(cls, row: dict) -> Optional[SanitationViolation]:
        """Parse either a DSNY violation row or an OATH hearing row."""
        violation_id = cls.get_text(row, "violation_id", "ticket_number")
        if not violation_id:
            return None
        return SanitationViolation(
            violation_id=violation_id,
            permit_registry_id=cls.get_text(row, "bin"),
            tax_parcel_id=normalize_tax_parcel(cls.get_text(row, "bbl")) if row.get("bbl") else "",
            issue_date=cls.get_optional(row, "issue_date", "violation_date"),
            hearing_date=cls.get_optional(row, "hearing_date"),
            violation_type=cls.get_text(row, "violation_type", "charge_1_code_description"),
            fine_amount=cls.get_float(row, "fine_amount", "penalty_imposed"),
            status=cls.get_text(row, "status", "hearing_status"),
            borough=cls.get_text(row, "borough", "violation_location_borough"),
            address=cls.get_text(row, "address", "violation_location_street_name"),
            violation_details=cls.get_text(row, "violation_details", "charge_1_code_section"),
            disposition_code=cls.get_optional(row, "disposition_code", "hearing_result"),
            disposition_date=cls.get_optional(row, "disposition_date", "decision_date"),
        )

    @classmethod
    def parse_emissions(cls, row: dict) -> Optional[EmissionsRecord]:
        bbl = cls.get_text(row, "bbl", "nyc_borough_block_and_lot")
        if not bbl:
            return None
        return EmissionsRecord(
            tax_parcel_id=normalize_tax_parcel(bbl),
            reporting_year=cls.get_int(row, "reporting_year"),
            property_name=cls.get_text(row, "property_name"),
            primary_property_type=cls.get_text(row, "primary_property_type"),
            reported_address=cls.get_text(row, "reported_address", "address_1"),
            borough=cls.get_text(row, "borough"),
            total_ghg_emissions=cls.get_float(row, "total_ghg_emissions_metric_tons_co2e"),
            emissions_intensity=cls.get_float(row, "total_ghg_emissions_intensity_kgco2e_ft2"),
            emissions_limit=cls.get_float(row, "emissions_limit_metric_tons_co2e"),
            emissions_over_limit=cls.get_float(row, "emissions_over_limit_metric_tons_co2e"),
            potential_fine=cls.get_float(row, "potential_fine"),
            energy_use_intensity=cls.get_float(row, "site_energy_use_intensity_kbtu_ft2"),
        )

    @classmethod
    def parse_service_complaint(cls, row: dict) -> Optional[ServiceComplaint]:
        unique_key = cls.get_text(row, "unique_key")
        if not unique_key:
            return None
        return ServiceComplaint(
            unique_key=unique_key,
            tax_parcel_id=normalize_tax_parcel(cls.get_text(row, "bbl")) if row.get("bbl") else "",
            created_date=cls.get_optional(row, "created_date"),
            closed_date=cls.get_optional(row, "closed_date"),
            agency=cls.get_text(row, "agency"),
            complaint_type=cls.get_text(row, "complaint_type"),
            descriptor=cls.get_text(row, "descriptor"),
            incident_address=cls.get_text(row, "incident_address"),
            borough=cls.get_text(row, "borough"),
            status=cls.get_text(row, "status"),
            resolution_description=cls.get_text(row, "resolution_description"),
        )


PARSERS: Dict[SourceKind, Callable[[dict], Optional[SourceRecord]]] = {
    SourceKind.HOUSING: RecordParser.parse_housing_violation,
    SourceKind.PERMIT: RecordParser.parse_permit,
    SourceKind.SANITATION: RecordParser.parse_sanitation_violation,
    SourceKind.EMISSIONS: RecordParser.parse_emissions,
    SourceKind.COMPLAINT: RecordParser.parse_service_complaint,
}


def parse_rows(kind: SourceKind, rows: List[dict]) -> List[SourceRecord]:
    """
    Parse a list of JSON rows for one registry.

    Args:
        kind: Registry the rows came from
        rows: Decoded JSON array

    Returns:
        Parsed records; rows without a key column are skipped
    """
    parser = PARSERS[kind]
    records = []
    skipped = 0
    for row in rows:
        if not isinstance(row, dict):
            skipped += 1
            continue
        record = parser(row)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.debug(f"Skipped {skipped} unusable {kind.value} rows")
    return records
