"""Per-building source resolution."""

from nyc_compliance.resolver.fallback import (
    FallbackResolver,
    MatchStrategy,
    ResolvedSource,
    CHAIN_KINDS,
)

__all__ = [
    "FallbackResolver",
    "MatchStrategy",
    "ResolvedSource",
    "CHAIN_KINDS",
]
