from __future__ import annotations

from datetime import datetime

import pytest

from nyc_compliance.models import (
    BuildingComplianceAggregate,
    HousingViolation,
    Severity,
    SourceKind,
    parse_date,
    record_from_dict,
)
from tests.fakes import complaint, emissions, housing, permit, sanitation


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-05T10:11:12.000", datetime(2024, 3, 5, 10, 11, 12)),
        ("2024-03-05T10:11:12", datetime(2024, 3, 5, 10, 11, 12)),
        ("2024-03-05", datetime(2024, 3, 5)),
        ("03/05/2024", datetime(2024, 3, 5)),
        ("not a date", None),
        (None, None),
    ],
)
def test_parse_date_formats(value, expected):
    assert parse_date(value) == expected


def test_housing_violation_activity_and_severity():
    assert housing("1", nov_description="IMMEDIATELY HAZARDOUS condition").severity == Severity.CRITICAL
    assert housing("2", nov_description="Lead paint hazard").severity == Severity.CRITICAL
    assert housing("3", nov_description="hazardous wiring").severity == Severity.HIGH
    assert housing("4").severity == Severity.MEDIUM

    assert housing("5").is_active
    assert not housing("6", violation_status="Close").is_active
    assert not housing("7", current_status_date="2024-01-01T00:00:00").is_active


def test_housing_correction_deadline_prefers_new_date():
    violation = housing("1", original_correct_by_date="2024-01-01", new_correct_by_date="2024-02-01")
    assert violation.correction_deadline == datetime(2024, 2, 1)


def test_permit_expiry_and_violation_flags():
    now = datetime(2024, 6, 1)
    expired = permit("J1", expiration_date="05/01/2024")
    current = permit("J2", expiration_date="07/01/2024")

    assert expired.is_expired(now)
    assert not current.is_expired(now)
    assert permit("J3").is_expired(now) is False
    assert permit("J4", permit_status="REVOKED").has_violation
    assert not permit("J5", permit_status="ISSUED").has_violation


def test_permit_facade_detection():
    assert permit("J1", job_description="FISP cycle 9 facade repairs").is_facade_filing
    assert permit("J2", work_type="Local Law 11 inspection").is_facade_filing
    assert not permit("J3", job_description="Kitchen renovation").is_facade_filing


def test_sanitation_activity_and_payment():
    assert sanitation("1").is_active
    assert not sanitation("2", disposition_date="2024-01-01").is_active
    assert not sanitation("3", status="Closed").is_active
    assert sanitation("4", disposition_code="PAID IN FULL").is_paid
    assert sanitation("5", violation_type="Illegal Dumping").severity == Severity.HIGH


def test_emissions_compliance():
    over = emissions("1008490017", 2024, over_limit=12.34)
    under = emissions("1008490017", 2023, over_limit=-5)

    assert not over.is_compliant
    assert over.severity == Severity.CRITICAL
    assert over.compliance_status == "Over Limit by 12.3 tons"
    assert under.is_compliant
    assert emissions("1008490017", 2022, over_limit=None).is_compliant


@pytest.mark.parametrize(
    "complaint_type, expected",
    [
        ("HEAT/HOT WATER", Severity.CRITICAL),
        ("Emergency Response Team", Severity.CRITICAL),
        ("PLUMBING", Severity.HIGH),
        ("ELECTRIC", Severity.HIGH),
        ("Noise - Residential", Severity.MEDIUM),
    ],
)
def test_complaint_severity_triage(complaint_type, expected):
    assert complaint("1", complaint_type).severity == expected


def test_complaint_activity():
    assert complaint("1").is_active
    assert not complaint("2", closed_date="2024-01-01T00:00:00.000").is_active
    assert not complaint("3", status="Closed").is_active


def test_record_from_dict_restores_variant():
    record = record_from_dict(housing("42").to_dict())
    assert isinstance(record, HousingViolation)
    assert record.kind == SourceKind.HOUSING
    assert record.violation_id == "42"

    with pytest.raises(ValueError):
        record_from_dict({"violation_id": "1"})


def test_aggregate_serialization_keeps_every_source():
    aggregate = BuildingComplianceAggregate(
        building_id="7",
        permit_registry_id="1000001",
        tax_parcel_id="1008490017",
        last_updated=datetime(2024, 5, 1, 12, 0),
        housing_violations=[housing("1")],
        permits=[permit("J1")],
        sanitation_violations=[sanitation("S1", is_proxy=True)],
        emissions=[emissions("1008490017", 2024, 3.0, potential_fine=804.0)],
        complaints=[complaint("C1")],
    )

    restored = BuildingComplianceAggregate.from_dict(aggregate.to_dict())

    assert restored == aggregate
