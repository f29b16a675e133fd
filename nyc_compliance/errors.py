"""
Error types for the compliance sync engine.

Only configuration problems are raised to callers. Source failures travel
inside ``SourceQueryResult`` objects and persistence failures are logged by
the orchestrator.
"""

from typing import Optional


class ComplianceError(Exception):
    """Base error for the engine."""

    error_code = "compliance_error"


class ConfigError(ComplianceError):
    """Fatal configuration problem, raised before any network call."""

    error_code = "config_error"


class BuildingNotFoundError(ConfigError):
    """Requested building id is not in the directory."""

    error_code = "building_not_found"

    def __init__(self, building_id: str):
        super().__init__(f"Building not found in directory: {building_id}")
        self.building_id = building_id


class PersistenceError(ComplianceError):
    """Writing an aggregate to the cache store failed."""

    error_code = "persistence_error"


class SourceError(ComplianceError):
    """
    Failure of a single registry query.

    Clients never raise this; it is attached to the returned result so the
    caller can log it and fall back to an empty record list.
    """

    error_code = "source_error"

    def __init__(
        self,
        source: str,
        message: str,
        status: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message
        self.status = status
        self.retryable = retryable
