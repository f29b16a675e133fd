"""Storage utilities for the compliance sync engine."""

from nyc_compliance.storage.cache_store import ComplianceCacheStore
from nyc_compliance.storage.exporter import ComplianceExporter

__all__ = [
    "ComplianceCacheStore",
    "ComplianceExporter",
]
