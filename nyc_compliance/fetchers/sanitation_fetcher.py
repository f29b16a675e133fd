"""
Sanitation violation client.

Batch and address queries go to the DSNY violations dataset. Direct lookups
take a BBL and search OATH hearings for sanitation tickets issued at that
borough/block/lot, since DSNY rows are not reliably keyed by parcel.
"""

import logging
from typing import Callable, Optional

import aiohttp

from nyc_compliance.config import DEFAULT_SETTINGS, OATH_SOURCE, SourceConfig, SyncSettings
from nyc_compliance.fetchers.base import soql_quote
from nyc_compliance.fetchers.cache import ResponseCache
from nyc_compliance.fetchers.registry_fetcher import RegistryFetcher
from nyc_compliance.identifiers import split_tax_parcel
from nyc_compliance.models.results import SourceQueryResult

logger = logging.getLogger(__name__)

# OATH spells out the borough
BOROUGH_NAMES = {
    "1": "MANHATTAN",
    "2": "BRONX",
    "3": "BROOKLYN",
    "4": "QUEENS",
    "5": "STATEN IS",
}


class SanitationFetcher(RegistryFetcher):
    """DSNY violations with an OATH-by-parcel direct lookup."""

    def __init__(
        self,
        source: SourceConfig,
        settings: SyncSettings = DEFAULT_SETTINGS,
        cache: Optional[ResponseCache] = None,
        sleep: Optional[Callable] = None,
    ):
        super().__init__(source, settings, cache, sleep)
        self.hearings = RegistryFetcher(OATH_SOURCE, settings, sleep=sleep)

    @staticmethod
    def build_parcel_clause(bbl: str) -> Optional[str]:
        parts = split_tax_parcel(bbl)
        if parts is None:
            return None
        borough, block, lot = parts
        return " AND ".join([
            f"violation_location_borough = {soql_quote(BOROUGH_NAMES[borough])}",
            f"violation_location_block_no = {soql_quote(block)}",
            f"violation_location_lot_no = {soql_quote(lot)}",
            "upper(issuing_agency) like '%SANITATION%'",
        ])

    async def fetch_by_identifier(self, session: aiohttp.ClientSession, identifier: str) -> SourceQueryResult:
        """Fetch sanitation tickets for one BBL from OATH hearings."""
        where = self.build_parcel_clause(identifier or "")
        if where is None:
            return SourceQueryResult(source=self.kind, query="identifier unavailable")
        return await self.hearings.query(session, where=where)
