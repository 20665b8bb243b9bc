"""Tests for PoolRegistry discovery and classification."""

import asyncio
import dataclasses
from decimal import Decimal

import pytest

from dexrouter.adapters import Chain, InMemoryStore, MockChain, PoolFilters, StaticIndexer
from dexrouter.config import RouterConfig
from dexrouter.constants import DAI, NATIVE, USDC, WETH
from dexrouter.encoding import GET_NORMALIZED_WEIGHTS
from dexrouter.errors import ChainUnavailable, IndexerUnavailable, RateLimited
from dexrouter.pools.cache import CachedPoolMeta, PoolCache
from dexrouter.pools.registry import PoolRegistry, passes_liquidity_floor
from dexrouter.pools.types import (
    ConcentratedState,
    PoolClass,
    StableParams,
    Venue,
    WeightedParams,
)
from tests.helpers import (
    UNI,
    make_concentrated_pool,
    make_raw_weighted_pool,
    make_weighted_pool,
    pool_id,
)


class SlowIndexer:
    """Indexer that never answers within the deadline."""

    async def pools(self, token_set: frozenset[str], filters: PoolFilters) -> list:
        await asyncio.sleep(10)
        return []


class UnreachableChain:
    """Chain whose RPC endpoint refuses every connection."""

    async def view(self, address: str, selector: bytes, calldata: bytes = b"") -> bytes:
        raise ChainUnavailable("eth_call failed: Connection refused")


def make_registry(
    u_pools: list | None = None,
    b_pools: list | None = None,
    cache: PoolCache | None = None,
    chain: Chain | None = None,
) -> PoolRegistry:
    return PoolRegistry(
        {Venue.U: StaticIndexer(u_pools or []), Venue.B: StaticIndexer(b_pools or [])},
        chain=chain,
        cache=cache,
    )


class TestSearchTokens:
    """Tests for the indexer token set."""

    def test_includes_bridges(self, config: RouterConfig) -> None:
        """Bridge tokens are always searched."""
        registry = make_registry()
        tokens = registry.search_tokens([UNI], config)
        assert UNI in tokens
        assert set(config.bridge_tokens) <= tokens

    def test_native_expands_to_wrapped(self) -> None:
        """Native and wrapped native are searched together."""
        registry = make_registry()
        config = RouterConfig(bridge_tokens=())
        assert registry.search_tokens([NATIVE, UNI], config) == {NATIVE, WETH, UNI}

    def test_addresses_are_lowercased(self) -> None:
        """Search tokens are normalized."""
        registry = make_registry()
        config = RouterConfig(bridge_tokens=())
        assert registry.search_tokens([DAI.upper().replace("0X", "0x")], config) == {DAI}


class TestLiquidityFloor:
    """Tests for the liquidity filter."""

    def test_weighted_pool_below_floor(self) -> None:
        """Pools with less normalized liquidity than the floor are dropped."""
        pool = make_weighted_pool(1, [WETH, DAI], ["0.001", "0.002"])
        assert not passes_liquidity_floor(pool, Decimal("0.01"))
        assert passes_liquidity_floor(pool, Decimal("0.003"))

    def test_concentrated_pool_without_balances(self) -> None:
        """Concentrated pools pass on liquidity when balances are not reported."""
        pool = make_concentrated_pool(2, WETH, USDC)
        assert passes_liquidity_floor(pool, Decimal("1000000"))

    def test_concentrated_pool_without_liquidity(self) -> None:
        """No active or ticked liquidity fails regardless of the floor."""
        pool = make_concentrated_pool(3, WETH, USDC)
        empty = pool.with_class(
            PoolClass.CONCENTRATED,
            ConcentratedState(
                sqrt_price_x96=pool.params.sqrt_price_x96,
                liquidity=0,
                tick=0,
                tick_spacing=60,
                fee_pips=3000,
            ),
        )
        assert not passes_liquidity_floor(empty, Decimal(0))


class TestDiscover:
    """Tests for pool discovery."""

    @pytest.mark.asyncio
    async def test_fetches_both_venues(self, raw_u_pools: list, raw_b_pools: list) -> None:
        """Pools from both indexers are parsed; venue B comes back unclassified."""
        registry = make_registry(raw_u_pools, raw_b_pools)
        pools = await registry.discover([WETH, USDC])

        by_venue = {p.venue for p in pools}
        assert by_venue == {Venue.U, Venue.B}
        assert all(p.pool_class is PoolClass.UNKNOWN for p in pools if p.venue is Venue.B)
        assert len(pools) == 3

    @pytest.mark.asyncio
    async def test_disabled_venue_is_not_queried(
        self, raw_u_pools: list, raw_b_pools: list
    ) -> None:
        """Disabling venue U skips its indexer entirely."""
        registry = make_registry(raw_u_pools, raw_b_pools)
        pools = await registry.discover([WETH, USDC], RouterConfig(use_venue_u=False))

        assert {p.venue for p in pools} == {Venue.B}
        assert registry.indexers[Venue.U].calls == []

    @pytest.mark.asyncio
    async def test_duplicate_records_are_dropped(self, raw_b_pools: list) -> None:
        """The same pool id is kept once."""
        registry = make_registry(b_pools=raw_b_pools + raw_b_pools)
        pools = await registry.discover([WETH, USDC])
        assert len(pools) == len(raw_b_pools)

    @pytest.mark.asyncio
    async def test_malformed_token_entries_are_dropped(self, raw_b_pools: list) -> None:
        """A record with a null token is skipped and the rest are kept."""
        broken = make_raw_weighted_pool(16, [WETH, DAI], ["1", "1"], name="Weighted")
        broken["tokens"][1] = None
        registry = make_registry(b_pools=raw_b_pools + [broken])

        pools = await registry.discover([WETH, USDC])

        assert {p.id for p in pools} == {pool_id(11), pool_id(12)}

    @pytest.mark.asyncio
    async def test_floor_applies(self) -> None:
        """Dust pools are filtered out."""
        dust = make_raw_weighted_pool(40, [WETH, DAI], ["0.000001", "0.000001"])
        registry = make_registry(b_pools=[dust])
        assert await registry.discover([WETH, DAI]) == []

    @pytest.mark.asyncio
    async def test_rate_limit_propagates(self, raw_u_pools: list) -> None:
        """A rate-limited indexer fails the request."""
        registry = PoolRegistry(
            {
                Venue.U: StaticIndexer(raw_u_pools),
                Venue.B: StaticIndexer(error=RateLimited(retry_after=5)),
            }
        )
        with pytest.raises(RateLimited) as exc_info:
            await registry.discover([WETH, USDC])
        assert exc_info.value.retry_after == 5

    @pytest.mark.asyncio
    async def test_one_unavailable_indexer_is_tolerated(self, raw_u_pools: list) -> None:
        """Discovery continues with the indexers that answered."""
        registry = PoolRegistry(
            {
                Venue.U: StaticIndexer(raw_u_pools),
                Venue.B: StaticIndexer(error=IndexerUnavailable("down")),
            }
        )
        pools = await registry.discover([WETH, USDC])
        assert [p.venue for p in pools] == [Venue.U]

    @pytest.mark.asyncio
    async def test_all_indexers_unavailable(self) -> None:
        """With no indexer answering, discovery fails."""
        registry = PoolRegistry(
            {
                Venue.U: StaticIndexer(error=IndexerUnavailable("down")),
                Venue.B: StaticIndexer(error=IndexerUnavailable("down")),
            }
        )
        with pytest.raises(IndexerUnavailable):
            await registry.discover([WETH, USDC])

    @pytest.mark.asyncio
    async def test_deadline_contributes_nothing(self, raw_b_pools: list) -> None:
        """An indexer missing its deadline yields no pools instead of an error."""
        registry = PoolRegistry({Venue.U: SlowIndexer(), Venue.B: StaticIndexer(raw_b_pools)})
        pools = await registry.discover([WETH, USDC], RouterConfig(io_timeout=0.05))
        assert {p.venue for p in pools} == {Venue.B}


class TestClassify:
    """Tests for classification and caching."""

    @pytest.mark.asyncio
    async def test_concentrated_pools_pass_through(self) -> None:
        """Concentrated pools need no probing."""
        pool = make_concentrated_pool(5, WETH, USDC)
        registry = make_registry()
        assert await registry.classify(pool) is pool

    @pytest.mark.asyncio
    async def test_cache_hit_skips_probes(self) -> None:
        """A cached class is applied without any chain call."""
        cache = PoolCache()
        cache.put(
            pool_id(6),
            CachedPoolMeta(
                pool_class=PoolClass.STABLE, venue=Venue.B, amplification=Decimal(500)
            ),
        )
        chain = MockChain()
        registry = make_registry(cache=cache, chain=chain)
        pool = make_weighted_pool(6, [USDC, DAI], ["1", "1"]).with_class(PoolClass.UNKNOWN, None)

        classified = await registry.classify(pool)

        assert classified.pool_class is PoolClass.STABLE
        assert classified.params == StableParams(Decimal(500))
        assert chain.calls == []

    @pytest.mark.asyncio
    async def test_miss_is_cached(self) -> None:
        """Probe results, Unknown included, are remembered."""
        registry = make_registry()
        pool = make_weighted_pool(7, [USDC, DAI], ["1", "1"])
        mystery = dataclasses.replace(
            pool, pool_class=PoolClass.UNKNOWN, params=None, name="mystery"
        )

        classified = await registry.classify(mystery)

        assert classified.pool_class is PoolClass.UNKNOWN
        assert registry.cache.get(pool_id(7)).pool_class is PoolClass.UNKNOWN


    @pytest.mark.asyncio
    async def test_stale_cached_weights_are_replaced(self) -> None:
        """A cached weight list that does not cover every token is classified again."""
        cache = PoolCache()
        cache.put(
            pool_id(14),
            CachedPoolMeta(pool_class=PoolClass.WEIGHTED, venue=Venue.B, weights=(50, 50)),
        )
        registry = make_registry(cache=cache)
        pool = make_weighted_pool(14, [WETH, USDC, DAI], ["1000", "2000000", "2000000"])
        unclassified = dataclasses.replace(
            pool, pool_class=PoolClass.UNKNOWN, params=None, name="WETH-USDC-DAI Weighted"
        )

        classified = await registry.classify(unclassified)

        assert classified.params == WeightedParams((34, 33, 33))
        assert registry.cache.get(pool_id(14)).weights == (34, 33, 33)

    @pytest.mark.asyncio
    async def test_unreachable_chain_is_not_cached(self) -> None:
        """An RPC outage leaves the pool unclassified instead of caching Unknown."""
        registry = make_registry(chain=UnreachableChain())
        pool = make_weighted_pool(15, [USDC, DAI], ["1", "1"]).with_class(PoolClass.UNKNOWN, None)

        assert await registry.classify(pool) is None
        assert registry.cache.get(pool_id(15)) is None

class TestLoadPools:
    """Tests for the full discovery and classification pass."""

    @pytest.mark.asyncio
    async def test_returns_only_routable_pools(
        self, raw_u_pools: list, raw_b_pools: list
    ) -> None:
        """Named pools classify without a chain; unnamed ones are dropped."""
        unnamed = make_raw_weighted_pool(13, [WETH, DAI], ["100", "200000"], name="")
        registry = make_registry(raw_u_pools, raw_b_pools + [unnamed])

        pools = await registry.load_pools([WETH, USDC])

        classes = {p.id: p.pool_class for p in pools}
        assert classes == {
            pool_id(21): PoolClass.CONCENTRATED,
            pool_id(11): PoolClass.WEIGHTED,
            pool_id(12): PoolClass.STABLE,
        }
        assert registry.cache.get(pool_id(13)).pool_class is PoolClass.UNKNOWN

    @pytest.mark.asyncio
    async def test_saves_cache_only_when_it_grows(
        self, raw_u_pools: list, raw_b_pools: list
    ) -> None:
        """A second identical request hits the cache and writes nothing."""
        store = InMemoryStore()
        registry = make_registry(raw_u_pools, raw_b_pools, cache=PoolCache(store))

        await registry.load_pools([WETH, USDC])
        assert store.saves == 1

        await registry.load_pools([WETH, USDC])
        assert store.saves == 1

    @pytest.mark.asyncio
    async def test_probe_rate_limit_propagates(self, raw_b_pools: list) -> None:
        """A rate-limited probe fails the whole load."""
        chain = MockChain()
        chain.set_response(raw_b_pools[0]["address"], GET_NORMALIZED_WEIGHTS, RateLimited())
        registry = make_registry(b_pools=raw_b_pools, chain=chain)
        with pytest.raises(RateLimited):
            await registry.load_pools([WETH, USDC])

    @pytest.mark.asyncio
    async def test_rate_limit_stops_the_batch(self, raw_b_pools: list) -> None:
        """After a rate limit no other pool reaches the chain."""
        chain = MockChain()
        limited = (raw_b_pools[0]["address"].lower(), GET_NORMALIZED_WEIGHTS)
        chain.set_response(*limited, RateLimited())
        registry = make_registry(b_pools=raw_b_pools, chain=chain)

        with pytest.raises(RateLimited):
            await registry.load_pools([WETH, USDC])

        assert limited in chain.calls
        assert chain.calls[chain.calls.index(limited) + 1 :] == []

    @pytest.mark.asyncio
    async def test_unreachable_chain_caches_nothing(self, raw_b_pools: list) -> None:
        """An RPC outage drops venue B pools for this request only."""
        store = InMemoryStore()
        registry = make_registry(
            b_pools=raw_b_pools, cache=PoolCache(store), chain=UnreachableChain()
        )

        pools = await registry.load_pools([WETH, USDC])

        assert pools == []
        assert registry.cache.get(pool_id(11)) is None
        assert registry.cache.get(pool_id(12)) is None
        assert store.saves == 0

    @pytest.mark.asyncio
    async def test_replaced_stale_entry_is_saved(self) -> None:
        """Reclassifying a stale entry writes the corrected cache."""
        store = InMemoryStore()
        cache = PoolCache(store)
        cache.put(
            pool_id(17),
            CachedPoolMeta(pool_class=PoolClass.WEIGHTED, venue=Venue.B, weights=(50, 50)),
        )
        record = make_raw_weighted_pool(
            17, [WETH, USDC, DAI], ["1000", "2000000", "2000000"], name="Weighted"
        )
        registry = make_registry(b_pools=[record], cache=cache)

        pools = await registry.load_pools([WETH, USDC])

        assert [p.params for p in pools] == [WeightedParams((34, 33, 33))]
        assert store.saves == 1
