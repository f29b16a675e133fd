"""
Generic registry client.

Implements the three query forms every source exposes (batch by BIN, single
identifier, address search) on top of ``BaseFetcher``. Results are always
``SourceQueryResult`` objects; failures are returned, not raised.
"""

import logging
from typing import Callable, Dict, List, Optional

import aiohttp

from nyc_compliance.config import DEFAULT_SETTINGS, SourceConfig, SyncSettings
from nyc_compliance.errors import SourceError
from nyc_compliance.fetchers.base import (
    BaseFetcher,
    build_in_clause,
    build_since_clause,
    chunked,
    soql_quote,
)
from nyc_compliance.fetchers.cache import ResponseCache
from nyc_compliance.identifiers import normalize_permit_registry_id, normalize_tax_parcel
from nyc_compliance.models.records import SourceRecord
from nyc_compliance.models.results import SourceQueryResult
from nyc_compliance.parsers import parse_rows

logger = logging.getLogger(__name__)


class RegistryFetcher(BaseFetcher):
    """Client for one NYC Open Data registry."""

    def __init__(
        self,
        source: SourceConfig,
        settings: SyncSettings = DEFAULT_SETTINGS,
        cache: Optional[ResponseCache] = None,
        sleep: Optional[Callable] = None,
    ):
        kwargs = {"sleep": sleep} if sleep is not None else {}
        super().__init__(source.resource_url(settings.api_base), source.name, settings, cache, **kwargs)
        self.source = source

    @property
    def kind(self):
        return self.source.kind

    def _base_params(self) -> Dict[str, str]:
        params = {"$limit": str(self.settings.page_limit)}
        if self.source.date_field:
            params["$order"] = f"{self.source.date_field} DESC"
        return params

    def normalize_identifier(self, identifier: str) -> str:
        if self.source.identifier_kind == "bbl":
            return normalize_tax_parcel(identifier)
        return normalize_permit_registry_id(identifier) or identifier.strip()

    async def query(
        self,
        session: aiohttp.ClientSession,
        where: Optional[str] = None,
        search: Optional[str] = None,
    ) -> SourceQueryResult:
        """
        Run one SoQL query and parse the rows.

        Args:
            session: aiohttp session
            where: $where clause
            search: $q full-text search term

        Returns:
            SourceQueryResult with parsed records, or a failure result
        """
        params = self._base_params()
        if where:
            params["$where"] = where
        if search:
            params["$q"] = search
        description = where or f"q={search}"

        try:
            rows = await self.fetch_rows(session, params)
        except SourceError as e:
            logger.warning(f"{self.name} query failed ({description}): {e.message}")
            return SourceQueryResult.failure(self.kind, e, query=description)

        records = parse_rows(self.kind, rows)
        return SourceQueryResult(source=self.kind, records=records, query=description)

    async def fetch_by_identifiers(
        self,
        session: aiohttp.ClientSession,
        identifiers: List[str],
        months_back: Optional[int] = None,
    ) -> SourceQueryResult:
        """
        Batch-fetch records for many BINs, grouped by BIN.

        Chunks that fail are skipped; the result only reports failure when
        every chunk failed.

        Args:
            session: aiohttp session
            identifiers: BINs to query
            months_back: Only records from the last N months (by date_field)

        Returns:
            SourceQueryResult with ``records_by_id`` filled
        """
        result = SourceQueryResult(source=self.kind, query="batch")
        if not self.source.supports_batch:
            return result

        ids = sorted({i for i in (normalize_permit_registry_id(x) for x in identifiers) if i})
        if not ids:
            return result

        chunks = chunked(ids, self.settings.batch_chunk_size)
        failures = 0
        for chunk in chunks:
            clauses = [build_in_clause(self.source.batch_field, chunk)]
            if months_back and self.source.date_field:
                clauses.append(build_since_clause(self.source.date_field, months_back))
            chunk_result = await self.query(session, where=" AND ".join(clauses))
            if not chunk_result.success:
                failures += 1
                result.error = chunk_result.error
                continue
            result.records.extend(chunk_result.records)

        result.success = failures < len(chunks)
        result.records_by_id = self.group_by_identifier(result.records)
        logger.info(
            f"{self.name}: batch fetched {len(result.records)} records "
            f"for {len(result.records_by_id)}/{len(ids)} buildings"
        )
        return result

    @staticmethod
    def group_by_identifier(records: List[SourceRecord]) -> Dict[str, List[SourceRecord]]:
        grouped: Dict[str, List[SourceRecord]] = {}
        for record in records:
            key = normalize_permit_registry_id(getattr(record, "permit_registry_id", ""))
            if key:
                grouped.setdefault(key, []).append(record)
        return grouped

    async def fetch_by_identifier(self, session: aiohttp.ClientSession, identifier: str) -> SourceQueryResult:
        """Fetch records for one BIN or BBL (per the source's identifier_kind)."""
        value = self.normalize_identifier(identifier or "")
        if not value or not self.source.identifier_field:
            return SourceQueryResult(source=self.kind, query="identifier unavailable")
        return await self.query(session, where=f"{self.source.identifier_field} = {soql_quote(value)}")

    async def fetch_by_address(self, session: aiohttp.ClientSession, address: str) -> SourceQueryResult:
        """Fetch records matching a free-text address (or "name, address")."""
        text = (address or "").strip()
        if not text:
            return SourceQueryResult(source=self.kind, query="address unavailable")
        if self.source.address_field:
            pattern = soql_quote(f"%{text.upper()}%")
            return await self.query(session, where=f"upper({self.source.address_field}) like {pattern}")
        return await self.query(session, search=text)
