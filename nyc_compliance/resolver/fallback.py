"""
Per-building fallback resolution.

For each source the resolver walks a fixed chain of query strategies and
stops at the first one that returns records:

    batch map -> identifier -> "name, address" -> address -> (311 proxies)

Emissions skip the chain and are always queried directly by BBL.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

import aiohttp

from nyc_compliance.config import DEFAULT_SETTINGS, SyncSettings
from nyc_compliance.errors import SourceError
from nyc_compliance.models.building import BuildingRef, CanonicalIdentifiers
from nyc_compliance.models.compliance import BuildingComplianceAggregate
from nyc_compliance.models.records import (
    SanitationViolation,
    ServiceComplaint,
    SourceKind,
    SourceRecord,
)
from nyc_compliance.models.results import SourceQueryResult

logger = logging.getLogger(__name__)


class MatchStrategy(str, Enum):
    """How a source's records for a building were obtained."""

    BATCH = "batch"
    IDENTIFIER = "identifier"
    NAME_AND_ADDRESS = "name_and_address"
    ADDRESS = "address"
    COMPLAINT_PROXY = "complaint_proxy"
    DIRECT = "direct"
    NONE = "none"


# Sources that go through the full fallback chain, in resolution order
CHAIN_KINDS = (
    SourceKind.HOUSING,
    SourceKind.PERMIT,
    SourceKind.SANITATION,
    SourceKind.COMPLAINT,
)

# Which canonical identifier each source's direct query takes
DIRECT_IDENTIFIER = {
    SourceKind.HOUSING: "permit_registry_id",
    SourceKind.PERMIT: "permit_registry_id",
    SourceKind.SANITATION: "tax_parcel_id",
    SourceKind.COMPLAINT: "tax_parcel_id",
}

PROXY_STATUS = "OPEN"


@dataclass
class ResolvedSource:
    """Records for one source and the strategy that produced them."""

    kind: SourceKind
    records: List[SourceRecord] = field(default_factory=list)
    strategy: MatchStrategy = MatchStrategy.NONE
    errors: List[SourceError] = field(default_factory=list)


class FallbackResolver:
    """
    Resolves every source for a building using the fallback chain.

    Each strategy runs only when all earlier strategies came back empty.
    Client failures, returned or raised, count as empty.
    """

    def __init__(self, clients, settings: SyncSettings = DEFAULT_SETTINGS):
        """
        Args:
            clients: SourceClientSet (or compatible) with one client per kind
            settings: Engine settings (exclusions, keywords)
        """
        self.clients = clients
        self.settings = settings
        self.stats: Dict[str, int] = {s.value: 0 for s in MatchStrategy}
        self.stats["errors"] = 0

    def is_non_building_location(self, building: BuildingRef) -> bool:
        """Parks, piers and greenways have no building registry entries."""
        if building.id in self.settings.non_building_ids:
            return True
        name = building.name.lower()
        if any(k in name for k in self.settings.non_building_name_keywords):
            return True
        address = building.address.lower()
        return any(k in address for k in self.settings.non_building_address_keywords)

    async def _attempt(
        self,
        kind: SourceKind,
        strategy: MatchStrategy,
        call: Callable[[], Awaitable[SourceQueryResult]],
        resolved: ResolvedSource,
    ) -> List[SourceRecord]:
        """Await one client call; any failure becomes an empty list."""
        try:
            result = await call()
        except Exception as e:
            logger.warning(f"{kind.value} {strategy.value} query raised: {e}")
            self.stats["errors"] += 1
            resolved.errors.append(SourceError(kind.value, str(e)))
            return []

        if not result.success:
            self.stats["errors"] += 1
            if result.error is not None:
                resolved.errors.append(result.error)
            return []
        return result.records_or_empty()

    async def resolve_source(
        self,
        session: Optional[aiohttp.ClientSession],
        kind: SourceKind,
        building: BuildingRef,
        identifiers: CanonicalIdentifiers,
        batch_map: Optional[Dict[str, List[SourceRecord]]] = None,
    ) -> ResolvedSource:
        """
        Walk the fallback chain for one source.

        Args:
            session: aiohttp session passed through to clients
            kind: Source to resolve (one of CHAIN_KINDS)
            building: Building being resolved
            identifiers: Canonical BIN/BBL; empty values skip the identifier step
            batch_map: Sweep batch results keyed by BIN, if any

        Returns:
            ResolvedSource with the first non-empty result
        """
        resolved = ResolvedSource(kind=kind)

        # 1. Batch map from the portfolio sweep
        if batch_map and identifiers.permit_registry_id:
            records = batch_map.get(identifiers.permit_registry_id, [])
            if records:
                return self._finish(resolved, records, MatchStrategy.BATCH, building)

        if self.is_non_building_location(building):
            logger.debug(f"{building.id}: non-building location, skipping {kind.value} fallbacks")
            return self._finish(resolved, [], MatchStrategy.NONE, building)

        client = self.clients.for_kind(kind)

        # 2. Direct identifier query
        identifier = getattr(identifiers, DIRECT_IDENTIFIER[kind])
        if identifier:
            records = await self._attempt(
                kind, MatchStrategy.IDENTIFIER, lambda: client.fetch_by_identifier(session, identifier), resolved
            )
            if records:
                return self._finish(resolved, records, MatchStrategy.IDENTIFIER, building)

        # 3. "name, address"
        if building.name and building.address:
            records = await self._attempt(
                kind,
                MatchStrategy.NAME_AND_ADDRESS,
                lambda: client.fetch_by_address(session, building.name_and_address),
                resolved,
            )
            if records:
                return self._finish(resolved, records, MatchStrategy.NAME_AND_ADDRESS, building)

        # 4. Address alone
        if building.address:
            records = await self._attempt(
                kind, MatchStrategy.ADDRESS, lambda: client.fetch_by_address(session, building.address), resolved
            )
            if records:
                return self._finish(resolved, records, MatchStrategy.ADDRESS, building)

        # 5. Sanitation only: 311 complaint proxies
        if kind == SourceKind.SANITATION and building.address:
            complaints = await self._attempt(
                SourceKind.COMPLAINT,
                MatchStrategy.COMPLAINT_PROXY,
                lambda: self.clients.complaints.fetch_by_address(session, building.address),
                resolved,
            )
            proxies = self.synthesize_sanitation_proxies(complaints, identifiers)
            if proxies:
                return self._finish(resolved, proxies, MatchStrategy.COMPLAINT_PROXY, building)

        return self._finish(resolved, [], MatchStrategy.NONE, building)

    async def resolve_emissions(
        self,
        session: Optional[aiohttp.ClientSession],
        building: BuildingRef,
        identifiers: CanonicalIdentifiers,
    ) -> ResolvedSource:
        """One direct emissions query by BBL; no chain."""
        resolved = ResolvedSource(kind=SourceKind.EMISSIONS)
        if not identifiers.tax_parcel_id:
            return self._finish(resolved, [], MatchStrategy.NONE, building)
        records = await self._attempt(
            SourceKind.EMISSIONS,
            MatchStrategy.DIRECT,
            lambda: self.clients.emissions.fetch_by_identifier(session, identifiers.tax_parcel_id),
            resolved,
        )
        strategy = MatchStrategy.DIRECT if records else MatchStrategy.NONE
        return self._finish(resolved, records, strategy, building)

    def synthesize_sanitation_proxies(
        self,
        complaints: List[ServiceComplaint],
        identifiers: CanonicalIdentifiers,
    ) -> List[SanitationViolation]:
        """
        Build sanitation-shaped records from matching 311 complaints.

        Proxies carry no hearing, fine or disposition values so they read as
        active.
        """
        keywords = self.settings.sanitation_complaint_keywords
        proxies = []
        for complaint in complaints:
            complaint_type = complaint.complaint_type.lower()
            if not any(k in complaint_type for k in keywords):
                continue
            proxies.append(SanitationViolation(
                violation_id=f"311-{complaint.unique_key}",
                permit_registry_id=identifiers.permit_registry_id,
                tax_parcel_id=complaint.tax_parcel_id or identifiers.tax_parcel_id,
                issue_date=complaint.created_date,
                violation_type=complaint.complaint_type,
                status=PROXY_STATUS,
                borough=complaint.borough,
                address=complaint.incident_address,
                violation_details=complaint.descriptor,
                is_proxy=True,
            ))
        return proxies

    def _finish(
        self,
        resolved: ResolvedSource,
        records: List[SourceRecord],
        strategy: MatchStrategy,
        building: BuildingRef,
    ) -> ResolvedSource:
        resolved.records = list(records)
        resolved.strategy = strategy
        self.stats[strategy.value] += 1
        if records:
            logger.debug(f"{building.id}: {len(records)} {resolved.kind.value} records via {strategy.value}")
        return resolved

    async def resolve_building(
        self,
        session: Optional[aiohttp.ClientSession],
        building: BuildingRef,
        identifiers: CanonicalIdentifiers,
        batch_maps: Optional[Dict[SourceKind, Dict[str, List[SourceRecord]]]] = None,
    ) -> BuildingComplianceAggregate:
        """
        Resolve every source for one building into a fresh aggregate.

        Sources are resolved one after another; the aggregate is only
        returned once all of them are done.
        """
        batch_maps = batch_maps or {}
        aggregate = BuildingComplianceAggregate(
            building_id=building.id,
            permit_registry_id=identifiers.permit_registry_id,
            tax_parcel_id=identifiers.tax_parcel_id,
        )

        for kind in CHAIN_KINDS:
            resolved = await self.resolve_source(session, kind, building, identifiers, batch_maps.get(kind))
            aggregate.set_records(kind, resolved.records)

        emissions = await self.resolve_emissions(session, building, identifiers)
        aggregate.set_records(SourceKind.EMISSIONS, emissions.records)

        return aggregate

    def get_stats(self) -> Dict[str, int]:
        """Get resolution statistics."""
        return dict(self.stats)
