"""Configuration module for the compliance sync engine."""

from nyc_compliance.config.settings import SyncSettings, DEFAULT_SETTINGS
from nyc_compliance.config.sources import (
    SourceConfig,
    SOURCES,
    OATH_SOURCE,
    FOOTPRINTS_DATASET_ID,
    get_source_config,
    list_sources,
)

__all__ = [
    "SyncSettings",
    "DEFAULT_SETTINGS",
    "SourceConfig",
    "SOURCES",
    "OATH_SOURCE",
    "FOOTPRINTS_DATASET_ID",
    "get_source_config",
    "list_sources",
]
