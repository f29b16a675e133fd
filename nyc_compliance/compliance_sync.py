#!/usr/bin/env python3
"""
Portfolio compliance sync for NYC buildings.

Pulls HPD violations, DOB permits, DSNY violations, LL97 emissions and 311
complaints for every building in a portfolio, resolves each source through
the fallback chain and caches one aggregate per building.

Usage:
    python main.py <portfolio.json> [options]

Examples:
    python main.py buildings.json
    python main.py buildings.json --building 14
    python main.py buildings.json --offline --export
    python main.py buildings.json --watch
"""

import argparse
import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, List, Optional

import aiohttp
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from nyc_compliance.config import DEFAULT_SETTINGS, SyncSettings, list_sources
from nyc_compliance.directory import JsonBuildingDirectory
from nyc_compliance.errors import BuildingNotFoundError, ConfigError, PersistenceError
from nyc_compliance.fetchers import BaseFetcher, SourceClientSet, create_client_set
from nyc_compliance.identifiers import IdentifierResolver
from nyc_compliance.issues import (
    critical_issues,
    derive_issues,
    next_due_date,
    next_required_actions,
    recent_violations,
)
from nyc_compliance.models import (
    BuildingComplianceAggregate,
    BuildingRef,
    CanonicalIdentifiers,
    ComplianceIssue,
    LawKind,
    RequiredAction,
    SourceKind,
    SourceRecord,
    SyncProgress,
    SyncState,
)
from nyc_compliance.resolver import CHAIN_KINDS, FallbackResolver
from nyc_compliance.scheduler import ChangeNotificationBus, RefreshScheduler
from nyc_compliance.storage import ComplianceCacheStore, ComplianceExporter
from nyc_compliance.utils.logging import get_logger, log_banner, setup_logging

# Rich console for phase headers
console = Console()

logger = get_logger()


def create_progress() -> Progress:
    """Create a Rich progress bar with consistent styling"""
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=40),
        MofNCompleteColumn(),
        TextColumn("•"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )


class ComplianceSyncService:
    """
    Aggregation orchestrator and consumer API.

    A full sweep resolves identifiers, batch-prefetches every batchable
    source concurrently, then walks the portfolio one building at a time
    with a pacing delay. Aggregates are persisted only after the whole
    portfolio is resolved, each under its building's write lock.
    """

    def __init__(
        self,
        directory,
        clients: SourceClientSet,
        store: ComplianceCacheStore,
        settings: SyncSettings = DEFAULT_SETTINGS,
        identifier_resolver: Optional[IdentifierResolver] = None,
        resolver: Optional[FallbackResolver] = None,
        session_factory: Optional[Callable] = None,
        sleep: Callable = asyncio.sleep,
    ):
        """
        Args:
            directory: Building directory (get_all_buildings / get_identifiers)
            clients: One client per registry
            store: Aggregate cache
            settings: Engine settings
            identifier_resolver: Defaults to directory + footprints lookup
            resolver: Defaults to a FallbackResolver over ``clients``
            session_factory: Returns an async context manager yielding an
                HTTP session; defaults to an aiohttp.ClientSession
            sleep: Awaitable used for pacing between buildings

        Raises:
            ConfigError: If no directory is given
        """
        if directory is None:
            raise ConfigError("No building directory configured")

        self.directory = directory
        self.clients = clients
        self.store = store
        self.settings = settings
        self.identifier_resolver = identifier_resolver or IdentifierResolver(
            directory, getattr(clients, "footprints", None)
        )
        self.resolver = resolver or FallbackResolver(clients, settings)
        self.session_factory = session_factory or self._default_session
        self._sleep = sleep

        self.state = SyncState.IDLE
        self.progress = 0.0
        self.last_update_time: Optional[datetime] = store.load_last_update_time()
        self.aggregates: Dict[str, BuildingComplianceAggregate] = {}
        self._subscribers: List[Callable[[SyncProgress], None]] = []

    def _default_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(connector=BaseFetcher.create_connector(self.settings.max_concurrent))

    @asynccontextmanager
    async def _session(self):
        async with self.session_factory() as session:
            yield session

    # Progress reporting

    def subscribe(self, callback: Callable[[SyncProgress], None]) -> Callable[[], None]:
        """Register a progress callback; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, snapshot: SyncProgress) -> None:
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.warning(f"Progress subscriber failed: {e}")

    def _set_state(self, state: SyncState) -> None:
        if state != self.state:
            logger.debug(f"Sync state: {self.state.value} -> {state.value}")
        self.state = state

    # Portfolio helpers

    def _load_portfolio(self) -> List[BuildingRef]:
        try:
            return list(self.directory.get_all_buildings())
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Building directory unavailable: {e}") from e

    def _find_building(self, building_id: str) -> BuildingRef:
        for building in self._load_portfolio():
            if building.id == building_id:
                return building
        raise BuildingNotFoundError(building_id)

    async def _resolve_identifiers(self, session, building: BuildingRef) -> CanonicalIdentifiers:
        try:
            return await self.identifier_resolver.resolve(building, session)
        except Exception as e:
            logger.warning(f"Identifier resolution failed for {building.id}: {e}")
            return CanonicalIdentifiers()

    async def _batch_prefetch(
        self,
        session,
        identifiers: Dict[str, CanonicalIdentifiers],
    ) -> Dict[SourceKind, Dict[str, List[SourceRecord]]]:
        """Run one batch query per source kind, concurrently across kinds."""
        bins = sorted({ids.permit_registry_id for ids in identifiers.values() if ids.permit_registry_id})
        if not bins:
            logger.info("No BINs resolved; skipping batch prefetch")
            return {}

        async def fetch(kind: SourceKind) -> Dict[str, List[SourceRecord]]:
            client = self.clients.for_kind(kind)
            try:
                result = await client.fetch_by_identifiers(session, bins, self.settings.months_back)
            except Exception as e:
                logger.warning(f"Batch prefetch for {kind.value} raised: {e}")
                return {}
            if not result.success:
                logger.warning(f"Batch prefetch for {kind.value} failed: {result.error}")
            return result.records_by_id

        maps = await asyncio.gather(*(fetch(kind) for kind in CHAIN_KINDS))
        return dict(zip(CHAIN_KINDS, maps))

    async def _resolve_building_safely(
        self,
        session,
        building: BuildingRef,
        identifiers: CanonicalIdentifiers,
        batch_maps: Optional[Dict[SourceKind, Dict[str, List[SourceRecord]]]],
    ) -> BuildingComplianceAggregate:
        try:
            return await self.resolver.resolve_building(session, building, identifiers, batch_maps)
        except Exception as e:
            logger.error(f"Resolution failed for {building.id}, keeping empty aggregate: {e}")
            return BuildingComplianceAggregate(
                building_id=building.id,
                permit_registry_id=identifiers.permit_registry_id,
                tax_parcel_id=identifiers.tax_parcel_id,
            )

    async def _persist(self, building_id: str, aggregate: BuildingComplianceAggregate) -> None:
        self.aggregates[building_id] = aggregate
        try:
            await self.store.put(building_id, aggregate)
        except PersistenceError as e:
            logger.error(str(e))

    # Entry points

    async def sync_all(self) -> AsyncIterator[SyncProgress]:
        """
        Run a full portfolio sweep, yielding progress after each building.

        The last snapshot (state IDLE) is yielded after persisting. Stopping
        iteration early discards the sweep without writing anything.

        Raises:
            ConfigError: If the directory cannot be read
        """
        buildings = self._load_portfolio()
        total = len(buildings)
        self.progress = 0.0

        log_banner(f"COMPLIANCE SWEEP: {total} buildings")

        try:
            self._set_state(SyncState.BATCH_FETCHING)
            results: Dict[str, BuildingComplianceAggregate] = {}

            async with self._session() as session:
                identifiers = {}
                for building in buildings:
                    identifiers[building.id] = await self._resolve_identifiers(session, building)
                batch_maps = await self._batch_prefetch(session, identifiers)

                self._set_state(SyncState.PER_BUILDING_FALLBACK)
                for index, building in enumerate(buildings):
                    if index > 0:
                        await self._sleep(self.settings.building_pacing_delay)

                    results[building.id] = await self._resolve_building_safely(
                        session, building, identifiers[building.id], batch_maps
                    )

                    self.progress = (index + 1) / total
                    snapshot = SyncProgress(index + 1, total, building.id, self.state)
                    self._publish(snapshot)
                    yield snapshot

            self._set_state(SyncState.PERSISTING)
            sweep_time = datetime.now()
            for building_id, aggregate in results.items():
                aggregate.last_updated = sweep_time
                await self._persist(building_id, aggregate)

            self.last_update_time = sweep_time
            self.progress = 1.0
            try:
                self.store.save_sync_metadata(sweep_time, self.resolver.get_stats())
            except OSError as e:
                logger.error(f"Failed to save sync metadata: {e}")

            logger.info(f"Sweep complete: {len(results)} aggregates at {sweep_time.isoformat()}")
        finally:
            self._set_state(SyncState.IDLE)

        snapshot = SyncProgress(total, total, "", SyncState.IDLE)
        self._publish(snapshot)
        yield snapshot

    async def run_full_sweep(self, progress: Optional[Progress] = None) -> Dict[str, BuildingComplianceAggregate]:
        """
        Drain ``sync_all`` and return this sweep's aggregates.

        Args:
            progress: Optional Rich progress to advance per building
        """
        task_id = None
        async for snapshot in self.sync_all():
            if progress is not None:
                if task_id is None:
                    task_id = progress.add_task("Syncing buildings", total=snapshot.total)
                progress.update(task_id, completed=snapshot.completed)
        return dict(self.aggregates)

    async def sync_one(self, building_id: str) -> BuildingComplianceAggregate:
        """
        Targeted refresh of one building; no batch prefetch.

        Raises:
            BuildingNotFoundError: If the id is not in the directory
            ConfigError: If the directory cannot be read
        """
        building = self._find_building(building_id)
        async with self._session() as session:
            identifiers = await self._resolve_identifiers(session, building)
            aggregate = await self._resolve_building_safely(session, building, identifiers, None)

        aggregate.last_updated = datetime.now()
        await self._persist(building_id, aggregate)
        logger.info(
            f"Synced {building_id}: {aggregate.total_active_issues} active issues, "
            f"score {aggregate.compliance_score:.2f}"
        )
        return aggregate

    # Consumer API

    def get_aggregate(self, building_id: str) -> Optional[BuildingComplianceAggregate]:
        """In-memory aggregate, else the cached one (cold start / offline)."""
        aggregate = self.aggregates.get(building_id)
        if aggregate is None:
            aggregate = self.store.get(building_id)
            if aggregate is not None:
                self.aggregates[building_id] = aggregate
        return aggregate

    def get_issues(self, building_id: str) -> List[ComplianceIssue]:
        aggregate = self.get_aggregate(building_id)
        if aggregate is None:
            return []
        return derive_issues(aggregate, building_id)

    def get_score(self, building_id: str) -> Optional[float]:
        """Compliance score, or None if the building was never synced."""
        aggregate = self.get_aggregate(building_id)
        return aggregate.compliance_score if aggregate is not None else None

    def get_next_due_date(self, building_id: str, law_kind: LawKind) -> Optional[date]:
        aggregate = self.get_aggregate(building_id)
        if aggregate is None:
            return None
        return next_due_date(aggregate, law_kind)

    def get_required_actions(self, building_id: str) -> List[RequiredAction]:
        aggregate = self.get_aggregate(building_id)
        return next_required_actions(aggregate) if aggregate is not None else []

    def get_critical_issues(self, building_id: str) -> List[ComplianceIssue]:
        aggregate = self.get_aggregate(building_id)
        return critical_issues(aggregate) if aggregate is not None else []

    def get_recent_violations(self, since: datetime) -> List[dict]:
        """Housing and sanitation violations issued since ``since`` across the portfolio."""
        aggregates = []
        for building in self._load_portfolio():
            aggregate = self.get_aggregate(building.id)
            if aggregate is not None:
                aggregates.append(aggregate)
        return recent_violations(aggregates, since)

    def load_cached_portfolio(self) -> Dict[str, BuildingComplianceAggregate]:
        """Load every cached aggregate for buildings in the directory."""
        loaded = {}
        for building in self._load_portfolio():
            aggregate = self.get_aggregate(building.id)
            if aggregate is not None:
                loaded[building.id] = aggregate
        return loaded


def print_portfolio_table(buildings: List[BuildingRef], aggregates: Dict[str, BuildingComplianceAggregate]) -> None:
    """Render score and issue counts per building."""
    table = Table(title="Portfolio Compliance")
    table.add_column("ID")
    table.add_column("Building")
    table.add_column("Score", justify="right")
    table.add_column("Active", justify="right")
    table.add_column("Critical", justify="right")
    table.add_column("Last Updated")

    for building in buildings:
        aggregate = aggregates.get(building.id)
        if aggregate is None:
            table.add_row(building.id, building.name, "-", "-", "-", "never")
            continue
        table.add_row(
            building.id,
            building.name,
            f"{aggregate.compliance_score:.2f}",
            str(aggregate.total_active_issues),
            str(len(critical_issues(aggregate))),
            aggregate.last_updated.strftime("%Y-%m-%d %H:%M") if aggregate.last_updated else "-",
        )
    console.print(table)


def print_building_issues(service: ComplianceSyncService, building_id: str) -> None:
    issues = service.get_issues(building_id)
    console.rule(f"[bold]Issues for {building_id}")
    if not issues:
        console.print("No open issues.")
    for issue in issues:
        due = f" (due {issue.due_date.isoformat()})" if issue.due_date else ""
        console.print(f"[{issue.severity.value.upper()}] {issue.title}{due}")

    for law_kind in LawKind:
        due_date = service.get_next_due_date(building_id, law_kind)
        if due_date:
            console.print(f"Next {law_kind.value.upper()} deadline: {due_date.isoformat()}")


async def run_cli(args: argparse.Namespace) -> None:
    """Run the CLI command selected by ``args``."""
    settings = SyncSettings.from_env()
    if args.cache_dir:
        settings.cache_dir = Path(args.cache_dir)
    if args.months_back:
        settings.months_back = args.months_back

    output_dir = Path(args.output_dir)
    setup_logging(output_dir, verbose=args.verbose)

    directory = JsonBuildingDirectory(Path(args.portfolio))
    store = ComplianceCacheStore(settings.cache_dir)
    service = ComplianceSyncService(directory, create_client_set(settings), store, settings)
    buildings = directory.get_all_buildings()

    log_banner("NYC COMPLIANCE SYNC", char="#")
    logger.info(f"Portfolio: {args.portfolio} ({len(buildings)} buildings)")
    logger.info(f"Cache Directory: {settings.cache_dir}")
    logger.info(f"Months Back: {settings.months_back}")

    if args.watch:
        console.rule("[bold magenta]Watching for refresh triggers")
        scheduler = RefreshScheduler(service, settings, bus=ChangeNotificationBus())
        await scheduler.run()
        return

    if args.building:
        console.rule(f"[bold green]Syncing building {args.building}")
        if not args.offline:
            await service.sync_one(args.building)
        print_building_issues(service, args.building)
        return

    if args.offline:
        console.rule("[bold yellow]Cached Portfolio")
        aggregates = service.load_cached_portfolio()
    else:
        console.rule("[bold cyan]Phase 1: Full Portfolio Sweep")
        with create_progress() as progress:
            aggregates = await service.run_full_sweep(progress)

    print_portfolio_table(buildings, aggregates)

    recent = service.get_recent_violations(datetime.now() - timedelta(days=30))
    if recent:
        console.print(f"{len(recent)} violations issued in the last 30 days")

    if args.export:
        console.rule("[bold]Export")
        exporter = ComplianceExporter(output_dir)
        exporter.export_summary(buildings, aggregates)
        exporter.export_issues_csv(buildings, aggregates)

    log_banner("SYNC COMPLETE", char="#")


def main():
    parser = argparse.ArgumentParser(
        description="Aggregate NYC open-data compliance records for a building portfolio",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py buildings.json
  python main.py buildings.json --building 14
  python main.py buildings.json --offline --export
  python main.py --list-sources
        """
    )

    parser.add_argument("portfolio", nargs="?", help="Portfolio JSON file (list of buildings)")
    parser.add_argument("--list-sources", action="store_true", help="List configured registries")
    parser.add_argument("--building", help="Sync a single building id")
    parser.add_argument("--cache-dir", help="Aggregate cache directory (default: data/compliance_cache)")
    parser.add_argument("--output-dir", default="data", help="Directory for logs and exports (default: data/)")
    parser.add_argument("--months-back", type=int, help="Batch query window in months (default: 12)")
    parser.add_argument("--offline", action="store_true", help="Use cached aggregates only, no network")
    parser.add_argument("--export", action="store_true", help="Export summary JSON and issues CSV")
    parser.add_argument("--watch", action="store_true", help="Run the business-hours refresh scheduler")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging (debug level)")

    args = parser.parse_args()

    if args.list_sources:
        print("\nConfigured sources:")
        print("-" * 70)
        print(f"{'Kind':22} | {'Dataset':10} | {'Batch':5} | Description")
        print("-" * 70)
        for source in list_sources():
            print(f"{source['kind']:22} | {source['dataset_id']:10} | {str(source['batch']):5} | {source['description']}")
        print("-" * 70)
        return

    if not args.portfolio:
        parser.print_help()
        return

    try:
        asyncio.run(run_cli(args))
    except ConfigError as e:
        print(f"Error: {e}")


if __name__ == "__main__":
    main()
