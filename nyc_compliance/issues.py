"""
Issue and deadline derivation.

Everything here is a pure function of a ``BuildingComplianceAggregate``.
Nothing is cached: issues are recomputed from the stored aggregate on every
read so they cannot drift from it.
"""

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from nyc_compliance.models.compliance import (
    BuildingComplianceAggregate,
    ComplianceIssue,
    IssueType,
    LawKind,
    RequiredAction,
)
from nyc_compliance.models.records import (
    HousingViolation,
    PermitRecord,
    Severity,
    SourceKind,
    parse_date,
)

# Facade inspections (FISP) run on a five-year cycle
FACADE_CYCLE_YEARS = 5
# LL97 reports for year N are due May 1 of N + 1
EMISSIONS_REPORT_MONTH = 5
EMISSIONS_REPORT_DAY = 1


def _as_date(value: Optional[datetime]) -> Optional[date]:
    return value.date() if value else None


def _housing_issues(aggregate: BuildingComplianceAggregate, building_id: str) -> List[ComplianceIssue]:
    issues = []
    for violation in aggregate.housing_violations:
        if not violation.is_active:
            continue
        issues.append(ComplianceIssue(
            id=f"hpd_{violation.violation_id}",
            title=f"HPD Violation - {violation.current_status or 'Open'}",
            description=violation.nov_description,
            severity=violation.severity,
            building_id=building_id,
            type=IssueType.REGULATORY,
            source=SourceKind.HOUSING,
            due_date=_as_date(violation.correction_deadline),
            metadata={"violation_class": violation.violation_class, "apartment": violation.apartment},
        ))
    return issues


def _emissions_issues(aggregate: BuildingComplianceAggregate, building_id: str) -> List[ComplianceIssue]:
    issues = []
    for record in aggregate.emissions:
        if record.is_compliant:
            continue
        issues.append(ComplianceIssue(
            id=f"ll97_{record.tax_parcel_id}_{record.reporting_year}",
            title="LL97 Emissions Over Limit",
            description=(
                f"Building exceeds emissions limit by {record.emissions_over_limit:.1f} tons CO2e "
                f"for {record.reporting_year}"
            ),
            severity=Severity.CRITICAL,
            building_id=building_id,
            type=IssueType.ENVIRONMENTAL,
            source=SourceKind.EMISSIONS,
            metadata={
                "potential_fine": record.potential_fine,
                "reporting_year": record.reporting_year,
                "emissions_over_limit": record.emissions_over_limit,
            },
        ))
    return issues


def _permit_issues(
    aggregate: BuildingComplianceAggregate,
    building_id: str,
    now: datetime,
) -> List[ComplianceIssue]:
    issues = []
    for permit in aggregate.permits:
        if not permit.is_expired(now):
            continue
        issues.append(ComplianceIssue(
            id=f"dob_{permit.job_number}_{permit.doc_number or '01'}",
            title="Expired DOB Permit",
            description=f"{permit.work_type or permit.job_type} permit expired {permit.expiration_date}",
            severity=Severity.HIGH,
            building_id=building_id,
            type=IssueType.PERMIT,
            source=SourceKind.PERMIT,
            metadata={"job_number": permit.job_number, "permit_status": permit.permit_status},
        ))
    return issues


def _complaint_issues(aggregate: BuildingComplianceAggregate, building_id: str) -> List[ComplianceIssue]:
    issues = []
    for complaint in aggregate.complaints:
        if not complaint.is_active:
            continue
        issues.append(ComplianceIssue(
            id=f"311_{complaint.unique_key}",
            title=f"{complaint.complaint_type} Complaint",
            description=complaint.descriptor,
            severity=complaint.severity,
            building_id=building_id,
            type=IssueType.OPERATIONAL,
            source=SourceKind.COMPLAINT,
            metadata={"agency": complaint.agency},
        ))
    return issues


def _sanitation_issues(aggregate: BuildingComplianceAggregate, building_id: str) -> List[ComplianceIssue]:
    issues = []
    for violation in aggregate.sanitation_violations:
        if not violation.is_active:
            continue
        issues.append(ComplianceIssue(
            id=f"dsny_{violation.violation_id}",
            title=f"DSNY Violation - {violation.violation_type or 'Sanitation'}",
            description=violation.violation_details or violation.violation_type,
            severity=violation.severity,
            building_id=building_id,
            type=IssueType.SANITATION,
            source=SourceKind.SANITATION,
            due_date=_as_date(parse_date(violation.hearing_date)),
            metadata={"fine_amount": violation.fine_amount, "proxy": violation.is_proxy},
        ))
    return issues


def derive_issues(
    aggregate: BuildingComplianceAggregate,
    building_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[ComplianceIssue]:
    """
    Turn an aggregate into a prioritized issue list.

    Args:
        aggregate: Stored compliance aggregate
        building_id: Portfolio id to stamp on issues (defaults to the aggregate's)
        now: Reference time for permit expiry

    Returns:
        Issues sorted by severity, most severe first
    """
    building_id = building_id or aggregate.building_id
    now = now or datetime.now()

    derivers = {
        SourceKind.HOUSING: lambda: _housing_issues(aggregate, building_id),
        SourceKind.EMISSIONS: lambda: _emissions_issues(aggregate, building_id),
        SourceKind.PERMIT: lambda: _permit_issues(aggregate, building_id, now),
        SourceKind.COMPLAINT: lambda: _complaint_issues(aggregate, building_id),
        SourceKind.SANITATION: lambda: _sanitation_issues(aggregate, building_id),
    }
    issues: List[ComplianceIssue] = []
    for kind in SourceKind:
        issues.extend(derivers[kind]())

    return sorted(issues, key=lambda issue: issue.severity.rank, reverse=True)


def score(aggregate: BuildingComplianceAggregate) -> float:
    """Compliance score in [0, 1]; see BuildingComplianceAggregate.compliance_score."""
    return aggregate.compliance_score


def critical_issues(aggregate: BuildingComplianceAggregate, now: Optional[datetime] = None) -> List[ComplianceIssue]:
    """Critical housing violations, emissions overages and expired permits."""
    issues = derive_issues(aggregate, now=now)
    return [
        issue for issue in issues
        if (issue.severity == Severity.CRITICAL and issue.source in (SourceKind.HOUSING, SourceKind.EMISSIONS))
        or issue.source == SourceKind.PERMIT
    ]


def next_required_actions(
    aggregate: BuildingComplianceAggregate,
    now: Optional[datetime] = None,
) -> List[RequiredAction]:
    """
    Concrete follow-ups ordered by priority, then due date.

    Active housing violations with a correction deadline, expired permits
    and sanitation tickets awaiting a hearing each produce one action.
    """
    now = now or datetime.now()
    actions: List[RequiredAction] = []

    for violation in aggregate.housing_violations:
        deadline = violation.correction_deadline
        if violation.is_active and deadline is not None:
            actions.append(RequiredAction(
                title="Correct HPD Violation",
                description=violation.nov_description,
                priority=violation.severity,
                due_date=deadline.date(),
                source=SourceKind.HOUSING,
            ))

    for permit in aggregate.permits:
        if permit.is_expired(now):
            actions.append(RequiredAction(
                title="Renew Expired Permit",
                description=f"Job {permit.job_number}: {permit.work_type or permit.job_type}".rstrip(": "),
                priority=Severity.HIGH,
                source=SourceKind.PERMIT,
            ))

    for violation in aggregate.sanitation_violations:
        hearing = parse_date(violation.hearing_date)
        if violation.is_active and hearing is not None:
            actions.append(RequiredAction(
                title="Attend DSNY Hearing",
                description=violation.violation_type,
                priority=Severity.MEDIUM,
                due_date=hearing.date(),
                source=SourceKind.SANITATION,
            ))

    return sorted(actions, key=lambda a: (-a.priority.rank, a.due_date or date.max))


def facade_filings(aggregate: BuildingComplianceAggregate) -> List[PermitRecord]:
    """LL11/FISP related permits, newest first."""
    filings = [p for p in aggregate.permits if p.is_facade_filing]
    return sorted(
        filings,
        key=lambda p: parse_date(p.issuance_date) or parse_date(p.filing_date) or datetime.min,
        reverse=True,
    )


def next_due_date(aggregate: BuildingComplianceAggregate, law_kind: LawKind) -> Optional[date]:
    """
    Next statutory deadline for a building.

    LL97: May 1 after the latest reporting year.
    LL11: five years after the latest facade filing.
    HPD: earliest correction deadline among active violations.

    Returns:
        The date, or None when the aggregate has no relevant records
    """
    if law_kind == LawKind.LL97:
        years = [r.reporting_year for r in aggregate.emissions if r.reporting_year]
        if not years:
            return None
        return date(max(years) + 1, EMISSIONS_REPORT_MONTH, EMISSIONS_REPORT_DAY)

    if law_kind == LawKind.LL11:
        for filing in facade_filings(aggregate):
            filed = parse_date(filing.issuance_date) or parse_date(filing.filing_date)
            if filed is not None:
                try:
                    return filed.date().replace(year=filed.year + FACADE_CYCLE_YEARS)
                except ValueError:
                    # Feb 29 filing
                    return date(filed.year + FACADE_CYCLE_YEARS, 3, 1)
        return None

    if law_kind == LawKind.HPD:
        deadlines = [
            v.correction_deadline.date()
            for v in aggregate.housing_violations
            if v.is_active and v.correction_deadline is not None
        ]
        return min(deadlines) if deadlines else None

    raise ValueError(f"Unsupported law kind: {law_kind}")


def recent_violations(
    aggregates: Iterable[BuildingComplianceAggregate],
    since: datetime,
) -> List[Dict]:
    """
    Housing and sanitation violations issued at or after ``since``.

    Returns:
        Dicts with building_id, source, violation_id, issued and description,
        newest first
    """
    found = []
    for aggregate in aggregates:
        for violation in aggregate.housing_violations:
            issued = parse_date(violation.nov_issued_date) or parse_date(violation.inspection_date)
            if issued is not None and issued >= since:
                found.append(_recent_entry(aggregate, violation, issued))
        for violation in aggregate.sanitation_violations:
            issued = parse_date(violation.issue_date)
            if issued is not None and issued >= since:
                found.append(_recent_entry(aggregate, violation, issued))
    return sorted(found, key=lambda entry: entry["issued"], reverse=True)


def _recent_entry(aggregate: BuildingComplianceAggregate, violation, issued: datetime) -> Dict:
    if isinstance(violation, HousingViolation):
        description = violation.nov_description
    else:
        description = violation.violation_details or violation.violation_type
    return {
        "building_id": aggregate.building_id,
        "source": violation.kind.value,
        "violation_id": violation.violation_id,
        "issued": issued,
        "severity": violation.severity.value,
        "description": description,
    }
