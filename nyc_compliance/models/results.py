"""
Query result container returned by every source client.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from nyc_compliance.errors import SourceError
from nyc_compliance.models.records import SourceKind, SourceRecord


@dataclass
class SourceQueryResult:
    """
    Result of a registry query.

    Failures set ``success`` to False and carry a ``SourceError``; they never
    raise. ``records_by_id`` is only filled by batch queries.
    """

    source: SourceKind
    records: List[SourceRecord] = field(default_factory=list)
    records_by_id: Dict[str, List[SourceRecord]] = field(default_factory=dict)
    success: bool = True
    error: Optional[SourceError] = None

    # Query metadata
    query: str = ""

    @classmethod
    def failure(cls, source: SourceKind, error: SourceError, query: str = "") -> "SourceQueryResult":
        return cls(source=source, success=False, error=error, query=query)

    def records_or_empty(self) -> List[SourceRecord]:
        """Records on success, empty list on failure."""
        return self.records if self.success else []
