"""Async clients for NYC Open Data registries."""

from nyc_compliance.fetchers.base import BaseFetcher, soql_quote, build_in_clause, build_since_clause
from nyc_compliance.fetchers.cache import ResponseCache
from nyc_compliance.fetchers.registry_fetcher import RegistryFetcher
from nyc_compliance.fetchers.sanitation_fetcher import SanitationFetcher
from nyc_compliance.fetchers.footprints_fetcher import FootprintsFetcher
from nyc_compliance.fetchers.client_set import SourceClientSet, create_client_set

__all__ = [
    "BaseFetcher",
    "soql_quote",
    "build_in_clause",
    "build_since_clause",
    "ResponseCache",
    "RegistryFetcher",
    "SanitationFetcher",
    "FootprintsFetcher",
    "SourceClientSet",
    "create_client_set",
]
