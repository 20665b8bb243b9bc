"""Pool data model, registry and persistent classification cache."""

from dexrouter.pools.types import (
    ConcentratedState,
    Pool,
    PoolClass,
    StableParams,
    Tick,
    Token,
    Venue,
    WeightedParams,
    routing_vertex,
)

__all__ = [
    "ConcentratedState",
    "Pool",
    "PoolClass",
    "StableParams",
    "Tick",
    "Token",
    "Venue",
    "WeightedParams",
    "routing_vertex",
]
