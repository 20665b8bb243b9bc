"""Pool registry: discovery and classification.

PoolRegistry fetches candidate pools from the venue indexers, classifies
venue B pools (cache first, then on-chain probes) and returns immutable
snapshots ready for routing. Indexer and chain reads run concurrently, each
under its own deadline; a read that misses its deadline contributes nothing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from dexrouter.adapters.base import Chain, Indexer, PoolFilters, RawPool
from dexrouter.adapters.chain import BatchChain
from dexrouter.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from dexrouter.constants import NATIVE
from dexrouter.errors import ChainUnavailable, IndexerUnavailable, RateLimited, RouterError
from dexrouter.models.types import normalize_address

from .cache import CachedPoolMeta, PoolCache, utc_now_iso
from .classify import probe_pool_class
from .parsing import parse_concentrated_pool, parse_weighted_venue_pool
from .types import ConcentratedState, Pool, PoolClass, Venue

logger = structlog.get_logger()

_PARSERS = {
    Venue.U: parse_concentrated_pool,
    Venue.B: parse_weighted_venue_pool,
}


def passes_liquidity_floor(pool: Pool, floor: Any) -> bool:
    """Check a pool against the liquidity floor (normalized units).

    Concentrated pools must have active or ticked liquidity; their balances
    are checked only when the indexer reports them.
    """
    if pool.pool_class is PoolClass.CONCENTRATED:
        state = pool.params
        if not isinstance(state, ConcentratedState):
            return False
        if state.liquidity <= 0 and not any(t.liquidity_gross > 0 for t in state.ticks):
            return False
        if not any(pool.balances):
            return True
    return pool.normalized_liquidity() >= floor


class PoolRegistry:
    """Discovers and classifies pools for a request.

    Holds no pool state between requests apart from the shared PoolCache.
    """

    def __init__(
        self,
        indexers: Mapping[Venue, Indexer],
        chain: Chain | None = None,
        cache: PoolCache | None = None,
        config: RouterConfig = DEFAULT_ROUTER_CONFIG,
    ) -> None:
        """Initialize the registry.

        Args:
            indexers: One indexer per venue
            chain: Chain reader for classification probes (optional)
            cache: Classification cache; a private in-memory cache if None
            config: Default configuration
        """
        self.indexers = dict(indexers)
        self.chain = chain
        self.cache = cache if cache is not None else PoolCache()
        self.config = config

    def search_tokens(self, token_set: Iterable[str], config: RouterConfig) -> frozenset[str]:
        """Tokens to query: the request tokens plus bridges, with native expanded."""
        tokens = {normalize_address(t) for t in token_set}
        tokens.update(normalize_address(b) for b in config.bridge_tokens)
        wrapped = normalize_address(config.wrapped_native)
        if NATIVE in tokens or wrapped in tokens:
            tokens.update((NATIVE, wrapped))
        return frozenset(tokens)

    def _enabled_venues(self, config: RouterConfig) -> list[Venue]:
        venues = []
        if config.use_venue_u:
            venues.append(Venue.U)
        if config.use_venue_b:
            venues.append(Venue.B)
        return [v for v in venues if v in self.indexers]

    async def _fetch(
        self, venue: Venue, tokens: frozenset[str], config: RouterConfig
    ) -> list[RawPool] | None:
        filters = PoolFilters(first=config.pool_page_size)
        try:
            return await asyncio.wait_for(
                self.indexers[venue].pools(tokens, filters), timeout=config.io_timeout
            )
        except TimeoutError:
            logger.warning(
                "indexer_deadline_exceeded", venue=venue.value, timeout=config.io_timeout
            )
            return None

    async def discover(
        self, token_set: Iterable[str], config: RouterConfig | None = None
    ) -> list[Pool]:
        """Fetch pools touching the request tokens or the bridge set.

        Pools below the liquidity floor or with malformed records are
        dropped. Venue B pools come back unclassified.

        Raises:
            RateLimited: If any indexer signals a rate limit
            IndexerUnavailable: If every enabled indexer failed
        """
        config = config or self.config
        tokens = self.search_tokens(token_set, config)
        venues = self._enabled_venues(config)

        results = await asyncio.gather(
            *(self._fetch(venue, tokens, config) for venue in venues),
            return_exceptions=True,
        )

        pools: list[Pool] = []
        seen: set[str] = set()
        failures: list[IndexerUnavailable] = []
        answered = 0
        for venue, result in zip(venues, results, strict=True):
            if isinstance(result, RateLimited):
                raise result
            if isinstance(result, IndexerUnavailable):
                logger.warning("indexer_unavailable", venue=venue.value, error=str(result))
                failures.append(result)
                continue
            if isinstance(result, BaseException):
                raise result
            if result is None:
                continue
            answered += 1

            parser = _PARSERS[venue]
            for raw in result:
                pool = parser(raw) if isinstance(raw, dict) else None
                if pool is None or pool.id in seen:
                    continue
                if not passes_liquidity_floor(pool, config.liquidity_floor):
                    logger.debug("pool_below_liquidity_floor", pool_id=pool.id, venue=venue.value)
                    continue
                seen.add(pool.id)
                pools.append(pool)

        if failures and answered == 0:
            raise IndexerUnavailable(f"all indexers failed: {failures[0]}") from failures[0]

        logger.info("pools_discovered", count=len(pools), venues=[v.value for v in venues])
        return pools

    async def classify(self, pool: Pool, config: RouterConfig | None = None) -> Pool | None:
        """Attach class and static parameters to a pool.

        Concentrated pools are returned as-is. Venue B pools are looked up in
        the cache and probed on a miss; the result is cached, Unknown included.
        A cached entry whose weights do not match the pool's tokens is stale
        and probed again.

        Returns:
            The classified pool, or None if probing missed its deadline or the
            chain was unreachable (neither outcome is cached)

        Raises:
            RateLimited: If a probe signals a rate limit
        """
        return await self._classify(pool, config or self.config, self.chain)

    async def _classify(
        self, pool: Pool, config: RouterConfig, chain: Chain | None
    ) -> Pool | None:
        if pool.pool_class is PoolClass.CONCENTRATED:
            return pool

        cached = self.cache.get(pool.id)
        if cached is not None and cached.matches(pool):
            return pool.with_class(cached.pool_class, cached.params())
        if cached is not None:
            logger.debug(
                "cached_pool_meta_stale",
                pool_id=pool.id,
                weights=cached.weights,
                tokens=len(pool.tokens),
            )

        try:
            pool_class, params = await asyncio.wait_for(
                probe_pool_class(pool, chain), timeout=config.io_timeout
            )
        except TimeoutError:
            logger.warning("pool_probe_deadline_exceeded", pool_id=pool.id)
            return None
        except ChainUnavailable as e:
            logger.warning("pool_probe_chain_unavailable", pool_id=pool.id, error=str(e))
            return None

        meta = CachedPoolMeta(
            pool_class=pool_class,
            venue=pool.venue,
            weights=getattr(params, "weights", None),
            amplification=getattr(params, "amplification", None),
            queried_at=utc_now_iso(),
        )
        self.cache.put(pool.id, meta)
        logger.debug("pool_classified", pool_id=pool.id, pool_class=pool_class.value)
        return pool.with_class(pool_class, params)

    async def _classify_or_skip(
        self, pool: Pool, config: RouterConfig, chain: Chain | None
    ) -> Pool | None:
        try:
            return await self._classify(pool, config, chain)
        except RateLimited:
            raise
        except RouterError as e:
            logger.debug("pool_classification_failed", pool_id=pool.id, error=str(e))
            return None

    async def load_pools(
        self, token_set: Iterable[str], config: RouterConfig | None = None
    ) -> list[Pool]:
        """Discover and classify pools; return only routable snapshots.

        The cache is saved when classification added or replaced an entry.

        Pools are classified concurrently. The first rate limit stops the
        batch: pending classifications are cancelled and no further chain
        calls are issued for this request.

        Raises:
            RateLimited: If the indexer or a probe signals a rate limit
            IndexerUnavailable: If every enabled indexer failed
        """
        config = config or self.config
        discovered = await self.discover(token_set, config)
        writes = self.cache.writes
        chain = BatchChain(self.chain) if self.chain is not None else None

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(self._classify_or_skip(pool, config, chain))
                    for pool in discovered
                ]
        except* RateLimited as rate_limited:
            logger.warning("pool_classification_rate_limited", discovered=len(discovered))
            raise rate_limited.exceptions[0] from None

        pools: list[Pool] = []
        for pool, task in zip(discovered, tasks, strict=True):
            result = task.result()
            if result is None:
                continue
            if not result.is_routable:
                logger.debug(
                    "pool_not_routable", pool_id=pool.id, pool_class=result.pool_class.value
                )
                continue
            pools.append(result)

        if self.cache.writes != writes:
            await self.cache.save()

        logger.info("pools_loaded", discovered=len(discovered), routable=len(pools))
        return pools


__all__ = ["PoolRegistry", "passes_liquidity_floor"]
