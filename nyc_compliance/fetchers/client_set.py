"""
Source client set.

Bundles one client per registry so the resolver and orchestrator receive
their dependencies explicitly.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from nyc_compliance.config import DEFAULT_SETTINGS, SOURCES, SyncSettings
from nyc_compliance.fetchers.footprints_fetcher import FootprintsFetcher
from nyc_compliance.fetchers.registry_fetcher import RegistryFetcher
from nyc_compliance.fetchers.sanitation_fetcher import SanitationFetcher
from nyc_compliance.models.records import SourceKind


@dataclass
class SourceClientSet:
    """
    One client per source kind.

    Any object with fetch_by_identifiers / fetch_by_identifier /
    fetch_by_address coroutines returning SourceQueryResult can stand in.
    """

    housing: Any
    permits: Any
    sanitation: Any
    emissions: Any
    complaints: Any
    footprints: Optional[Any] = None

    def for_kind(self, kind: SourceKind) -> Any:
        return {
            SourceKind.HOUSING: self.housing,
            SourceKind.PERMIT: self.permits,
            SourceKind.SANITATION: self.sanitation,
            SourceKind.EMISSIONS: self.emissions,
            SourceKind.COMPLAINT: self.complaints,
        }[kind]


def create_client_set(settings: SyncSettings = DEFAULT_SETTINGS, sleep: Optional[Callable] = None) -> SourceClientSet:
    """Build the production client set for NYC Open Data."""
    return SourceClientSet(
        housing=RegistryFetcher(SOURCES[SourceKind.HOUSING], settings, sleep=sleep),
        permits=RegistryFetcher(SOURCES[SourceKind.PERMIT], settings, sleep=sleep),
        sanitation=SanitationFetcher(SOURCES[SourceKind.SANITATION], settings, sleep=sleep),
        emissions=RegistryFetcher(SOURCES[SourceKind.EMISSIONS], settings, sleep=sleep),
        complaints=RegistryFetcher(SOURCES[SourceKind.COMPLAINT], settings, sleep=sleep),
        footprints=FootprintsFetcher(settings, sleep=sleep),
    )
