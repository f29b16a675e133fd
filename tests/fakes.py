from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from nyc_compliance.errors import SourceError
from nyc_compliance.fetchers import SourceClientSet
from nyc_compliance.models import (
    EmissionsRecord,
    HousingViolation,
    PermitRecord,
    SanitationViolation,
    ServiceComplaint,
    SourceKind,
    SourceQueryResult,
)


class FakeRegistryClient:
    """Registry client stand-in that records every call."""

    def __init__(
        self,
        kind: SourceKind,
        batch: Optional[Dict[str, list]] = None,
        by_identifier: Optional[Dict[str, list]] = None,
        by_address: Optional[Dict[str, list]] = None,
        failing: Optional[set] = None,
        error_results: Optional[set] = None,
    ):
        self.kind = kind
        self.batch = batch or {}
        self.by_identifier = by_identifier or {}
        self.by_address = by_address or {}
        self.failing = failing or set()
        self.error_results = error_results or set()
        self.calls: List[tuple] = []

    def _respond(self, key: str, records: list) -> SourceQueryResult:
        if key in self.failing:
            raise RuntimeError(f"{self.kind.value} unavailable for {key}")
        if key in self.error_results:
            return SourceQueryResult.failure(self.kind, SourceError(self.kind.value, "HTTP 503", 503, True))
        return SourceQueryResult(source=self.kind, records=list(records))

    async def fetch_by_identifiers(self, session, identifiers, months_back=None):
        self.calls.append(("batch", tuple(identifiers)))
        grouped = {i: list(self.batch[i]) for i in identifiers if i in self.batch}
        return SourceQueryResult(
            source=self.kind,
            records=[r for records in grouped.values() for r in records],
            records_by_id=grouped,
        )

    async def fetch_by_identifier(self, session, identifier):
        self.calls.append(("identifier", identifier))
        return self._respond(identifier, self.by_identifier.get(identifier, []))

    async def fetch_by_address(self, session, address):
        self.calls.append(("address", address))
        return self._respond(address, self.by_address.get(address, []))

    def calls_of(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]


def make_client_set(**overrides) -> SourceClientSet:
    clients = {
        "housing": FakeRegistryClient(SourceKind.HOUSING),
        "permits": FakeRegistryClient(SourceKind.PERMIT),
        "sanitation": FakeRegistryClient(SourceKind.SANITATION),
        "emissions": FakeRegistryClient(SourceKind.EMISSIONS),
        "complaints": FakeRegistryClient(SourceKind.COMPLAINT),
    }
    clients.update(overrides)
    return SourceClientSet(**clients)


class NullSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def null_session_factory():
    return NullSession()


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        await asyncio.sleep(0)


# Record builders

def housing(violation_id: str, bin_: str = "1000001", **kwargs) -> HousingViolation:
    defaults = {"nov_description": "Repair the broken plaster", "violation_status": "Open"}
    defaults.update(kwargs)
    return HousingViolation(violation_id=violation_id, permit_registry_id=bin_, **defaults)


def permit(job_number: str, bin_: str = "1000001", **kwargs) -> PermitRecord:
    return PermitRecord(job_number=job_number, permit_registry_id=bin_, **kwargs)


def sanitation(violation_id: str, **kwargs) -> SanitationViolation:
    defaults = {"status": "Open", "violation_type": "Dirty Sidewalk"}
    defaults.update(kwargs)
    return SanitationViolation(violation_id=violation_id, **defaults)


def emissions(bbl: str, year: int, over_limit: float = 0.0, **kwargs) -> EmissionsRecord:
    return EmissionsRecord(tax_parcel_id=bbl, reporting_year=year, emissions_over_limit=over_limit, **kwargs)


def complaint(unique_key: str, complaint_type: str = "Noise", **kwargs) -> ServiceComplaint:
    defaults = {"status": "Open"}
    defaults.update(kwargs)
    return ServiceComplaint(unique_key=unique_key, complaint_type=complaint_type, **defaults)
