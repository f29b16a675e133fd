"""
Sync engine settings and configuration constants.

This module centralizes all configurable parameters for the engine,
making it easy to adjust behavior without modifying core logic.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path


@dataclass
class SyncSettings:
    """Configuration settings for the compliance sync engine."""

    # API configuration
    api_base: str = "https://data.cityofnewyork.us/resource"
    app_token: str = ""

    # Concurrency settings
    max_concurrent: int = 10

    # Timeout and retry settings
    request_timeout: int = 30
    max_retries: int = 3
    retry_delay: float = 0.5  # Base delay for exponential backoff

    # Per-source pacing and response caching
    rate_limit_delay: float = 0.25  # Minimum seconds between requests to one registry
    cache_ttl: int = 3600
    max_cache_entries: int = 500

    # Query shaping
    batch_chunk_size: int = 50
    page_limit: int = 5000
    months_back: int = 12

    # Sweep pacing
    building_pacing_delay: float = 0.3

    # Refresh scheduling
    refresh_interval: int = 14400  # 4 hours
    business_hours: tuple[int, int] = (9, 18)  # Inclusive local hours
    debounce_seconds: float = 2.0

    # Non-building locations (parks, piers) skip identifier and address fallbacks
    non_building_ids: tuple[str, ...] = ("16",)
    non_building_name_keywords: tuple[str, ...] = ("park",)
    non_building_address_keywords: tuple[str, ...] = ("greenway", "pier")

    # 311 complaint types that stand in for missing sanitation violations
    sanitation_complaint_keywords: tuple[str, ...] = (
        "sanitation",
        "dirty",
        "missed",
        "encampment",
        "illegal dumping",
    )

    # Storage
    cache_dir: Path = Path("data/compliance_cache")

    @classmethod
    def from_env(cls, base: "SyncSettings" = None) -> "SyncSettings":
        """
        Overlay environment variables on top of ``base`` (or the defaults).

        Reads NYC_APP_TOKEN, NYC_COMPLIANCE_CACHE_DIR and
        NYC_COMPLIANCE_MONTHS_BACK.
        """
        settings = base or cls()
        overrides = {}
        token = os.environ.get("NYC_APP_TOKEN")
        if token:
            overrides["app_token"] = token
        cache_dir = os.environ.get("NYC_COMPLIANCE_CACHE_DIR")
        if cache_dir:
            overrides["cache_dir"] = Path(cache_dir)
        months_back = os.environ.get("NYC_COMPLIANCE_MONTHS_BACK")
        if months_back and months_back.isdigit():
            overrides["months_back"] = int(months_back)
        return replace(settings, **overrides)


# Default settings instance
DEFAULT_SETTINGS = SyncSettings()
