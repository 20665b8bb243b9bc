"""Pytest configuration and fixtures."""

from decimal import Decimal

import pytest

from dexrouter.adapters import InMemoryStore, MockChain, StaticIndexer
from dexrouter.config import RouterConfig
from dexrouter.constants import DAI, USDC, WETH
from dexrouter.pools.cache import PoolCache
from dexrouter.pools.registry import PoolRegistry
from dexrouter.pools.types import Pool, Venue
from dexrouter.routing.router import DexRouter
from tests.helpers.factories import (
    make_concentrated_pool,
    make_raw_concentrated_pool,
    make_raw_weighted_pool,
    make_stable_pool,
    make_weighted_pool,
    sqrt_price_x96_for,
)


@pytest.fixture
def config() -> RouterConfig:
    """Default router configuration."""
    return RouterConfig()


@pytest.fixture
def weth_usdc_weighted() -> Pool:
    """50/50 WETH/USDC weighted pool at 2000 USDC per WETH."""
    return make_weighted_pool(1, [WETH, USDC], ["1000", "2000000"], fee="0.003")


@pytest.fixture
def usdc_dai_stable() -> Pool:
    """Balanced USDC/DAI stable pool."""
    return make_stable_pool(2, [USDC, DAI], ["1000000", "1000000"], amplification=100)


@pytest.fixture
def weth_dai_weighted() -> Pool:
    """80/20 WETH/DAI weighted pool at 2000 DAI per WETH."""
    return make_weighted_pool(3, [WETH, DAI], ["800", "400000"], weights=(80, 20), fee="0.003")


@pytest.fixture
def weth_usdc_concentrated() -> Pool:
    """Full-range WETH/USDC concentrated pool at 2000 USDC per WETH (raw price 2000e-12)."""
    price = Decimal(2000) * Decimal(10**6) / Decimal(10**18)
    return make_concentrated_pool(
        4, WETH, USDC, liquidity=10**17, sqrt_price_x96=sqrt_price_x96_for(price)
    )


@pytest.fixture
def mock_chain() -> MockChain:
    """Chain on which every call reverts unless configured."""
    return MockChain()


@pytest.fixture
def raw_b_pools() -> list[dict]:
    """Venue B indexer records named so classification works without probes."""
    return [
        make_raw_weighted_pool(
            11, [WETH, USDC], ["1000", "2000000"], fee="0.003", name="50WETH-50USDC Weighted"
        ),
        make_raw_weighted_pool(
            12, [USDC, DAI], ["1000000", "1000000"], fee="0.0001", name="USDC-DAI Stable"
        ),
    ]


@pytest.fixture
def raw_u_pools() -> list[dict]:
    """Venue U indexer records."""
    price = Decimal(2000) * Decimal(10**6) / Decimal(10**18)
    return [make_raw_concentrated_pool(21, WETH, USDC, 10**17, sqrt_price_x96_for(price))]


@pytest.fixture
def static_router(raw_b_pools, raw_u_pools) -> DexRouter:
    """Router over static indexers, an in-memory cache and no chain."""
    registry = PoolRegistry(
        {Venue.B: StaticIndexer(raw_b_pools), Venue.U: StaticIndexer(raw_u_pools)},
        cache=PoolCache(InMemoryStore()),
    )
    return DexRouter(registry)
