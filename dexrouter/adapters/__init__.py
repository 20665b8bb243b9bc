"""Adapters for external collaborators: indexers, chain reads, prices, storage."""

from dexrouter.adapters.base import CacheStore, Chain, Indexer, PoolFilters, PriceFeed, RawPool
from dexrouter.adapters.chain import BatchChain, MockChain, Web3Chain
from dexrouter.adapters.indexer import (
    ConcentratedPoolIndexer,
    GraphQLIndexer,
    StaticIndexer,
    WeightedPoolIndexer,
)
from dexrouter.adapters.price import ChainlinkPriceFeed, StaticPriceFeed
from dexrouter.adapters.rate_limit import is_rate_limit_error
from dexrouter.adapters.store import InMemoryStore, JsonFileStore

__all__ = [
    "CacheStore",
    "Chain",
    "Indexer",
    "PoolFilters",
    "PriceFeed",
    "RawPool",
    "BatchChain",
    "MockChain",
    "Web3Chain",
    "ConcentratedPoolIndexer",
    "GraphQLIndexer",
    "StaticIndexer",
    "WeightedPoolIndexer",
    "ChainlinkPriceFeed",
    "StaticPriceFeed",
    "is_rate_limit_error",
    "InMemoryStore",
    "JsonFileStore",
]
