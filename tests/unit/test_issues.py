from __future__ import annotations

from datetime import date, datetime

import pytest

from nyc_compliance.issues import (
    critical_issues,
    derive_issues,
    next_due_date,
    next_required_actions,
    recent_violations,
    score,
)
from nyc_compliance.models import BuildingComplianceAggregate, LawKind, Severity, SourceKind
from tests.fakes import complaint, emissions, housing, permit, sanitation

NOW = datetime(2024, 6, 1, 12, 0)


def make_aggregate(**records) -> BuildingComplianceAggregate:
    return BuildingComplianceAggregate(
        building_id="7",
        permit_registry_id="1000001",
        tax_parcel_id="1008490017",
        last_updated=NOW,
        **records,
    )


def test_derive_issues_covers_each_source_and_sorts_by_severity():
    aggregate = make_aggregate(
        housing_violations=[
            housing("1", nov_description="Lead based paint"),
            housing("2", violation_status="Close"),
        ],
        permits=[permit("J1", expiration_date="01/01/2024"), permit("J2", expiration_date="01/01/2030")],
        sanitation_violations=[sanitation("S1")],
        emissions=[emissions("1008490017", 2023, over_limit=4.0)],
        complaints=[complaint("C1", "Noise"), complaint("C2", "Noise", status="Closed")],
    )

    issues = derive_issues(aggregate, now=NOW)

    assert sorted(i.id for i in issues) == [
        "311_C1",
        "dob_J1_01",
        "dsny_S1",
        "hpd_1",
        "ll97_1008490017_2023",
    ]
    ranks = [i.severity.rank for i in issues]
    assert ranks == sorted(ranks, reverse=True)
    assert issues[0].severity == Severity.CRITICAL
    assert all(i.building_id == "7" for i in issues)


def test_derive_issues_uses_supplied_building_id():
    aggregate = make_aggregate(complaints=[complaint("C1")])

    issues = derive_issues(aggregate, building_id="portfolio-7", now=NOW)

    assert issues[0].building_id == "portfolio-7"


@pytest.mark.parametrize(
    "active, expected",
    [(0, 1.0), (25, 0.75), (100, 0.0), (150, 0.0)],
)
def test_score_is_linear_and_clamped(active, expected):
    aggregate = make_aggregate(housing_violations=[housing(str(i)) for i in range(active)])

    assert score(aggregate) == pytest.approx(expected)


def test_score_counts_permits_in_violation_and_complaints():
    aggregate = make_aggregate(
        permits=[permit("J1", permit_status="REVOKED"), permit("J2", permit_status="ISSUED")],
        complaints=[complaint("C1")],
    )

    assert aggregate.total_active_issues == 2
    assert score(aggregate) == pytest.approx(0.98)


def test_emissions_and_sanitation_do_not_affect_score():
    aggregate = make_aggregate(
        emissions=[emissions("1008490017", 2023, over_limit=50.0)],
        sanitation_violations=[sanitation("S1"), sanitation("S2")],
    )

    assert score(aggregate) == 1.0
    assert any(i.source == SourceKind.EMISSIONS for i in derive_issues(aggregate, now=NOW))


def test_critical_issues_filter():
    aggregate = make_aggregate(
        housing_violations=[housing("1", nov_description="IMMEDIATELY HAZARDOUS"), housing("2")],
        permits=[permit("J1", expiration_date="01/01/2024")],
        emissions=[emissions("1008490017", 2023, over_limit=1.0)],
        complaints=[complaint("C1", "HEAT/HOT WATER")],
    )

    ids = {i.id for i in critical_issues(aggregate, now=NOW)}

    assert ids == {"hpd_1", "dob_J1_01", "ll97_1008490017_2023"}


def test_next_required_actions_ordered_by_priority_then_due_date():
    aggregate = make_aggregate(
        housing_violations=[
            housing("1", new_correct_by_date="2024-08-01"),
            housing("2", nov_description="lead paint", new_correct_by_date="2024-09-01"),
            housing("3", new_correct_by_date="2024-07-01"),
            housing("4"),
        ],
        permits=[permit("J1", work_type="PL", expiration_date="01/01/2024")],
        sanitation_violations=[sanitation("S1", hearing_date="2024-07-15")],
    )

    actions = next_required_actions(aggregate, now=NOW)

    assert [a.title for a in actions] == [
        "Correct HPD Violation",
        "Renew Expired Permit",
        "Correct HPD Violation",
        "Attend DSNY Hearing",
        "Correct HPD Violation",
    ]
    assert actions[0].priority == Severity.CRITICAL
    assert actions[1].description == "Job J1: PL"
    assert [a.due_date for a in actions[2:]] == [date(2024, 7, 1), date(2024, 7, 15), date(2024, 8, 1)]


def test_next_due_date_emissions_report():
    aggregate = make_aggregate(emissions=[
        emissions("1008490017", 2022),
        emissions("1008490017", 2023),
    ])

    assert next_due_date(aggregate, LawKind.LL97) == date(2024, 5, 1)
    assert next_due_date(make_aggregate(), LawKind.LL97) is None


def test_next_due_date_facade_cycle_uses_latest_filing():
    aggregate = make_aggregate(permits=[
        permit("J1", job_description="FISP facade inspection", issuance_date="06/15/2019"),
        permit("J2", job_description="FACADE repair", issuance_date="03/10/2021"),
        permit("J3", job_description="Boiler replacement", issuance_date="01/01/2023"),
    ])

    assert next_due_date(aggregate, LawKind.LL11) == date(2026, 3, 10)


def test_next_due_date_facade_leap_day_filing():
    aggregate = make_aggregate(permits=[permit("J1", work_type="FACADE", issuance_date="02/29/2020")])

    assert next_due_date(aggregate, LawKind.LL11) == date(2025, 3, 1)


def test_next_due_date_housing_picks_earliest_active_deadline():
    aggregate = make_aggregate(housing_violations=[
        housing("1", new_correct_by_date="2024-09-01"),
        housing("2", new_correct_by_date="2024-07-01"),
        housing("3", violation_status="Close", new_correct_by_date="2024-01-01"),
    ])

    assert next_due_date(aggregate, LawKind.HPD) == date(2024, 7, 1)


def test_next_due_date_rejects_unknown_law():
    with pytest.raises(ValueError):
        next_due_date(make_aggregate(), "ll84")


def test_recent_violations_across_buildings():
    first = make_aggregate(
        housing_violations=[
            housing("1", nov_issued_date="2024-05-20T00:00:00.000"),
            housing("2", nov_issued_date="2023-01-01T00:00:00.000"),
        ],
    )
    second = BuildingComplianceAggregate(
        building_id="9",
        sanitation_violations=[sanitation("S1", issue_date="2024-05-25T00:00:00.000")],
    )

    found = recent_violations([first, second], since=datetime(2024, 5, 1))

    assert [(f["building_id"], f["violation_id"]) for f in found] == [("9", "S1"), ("7", "1")]
    assert found[0]["source"] == SourceKind.SANITATION.value
