"""Router entry point.

DexRouter.optimize runs one request end to end: discovery and
classification (I/O), then enumeration, simulation, split search, selection
and plan building, all synchronous over an immutable pool snapshot.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from decimal import Decimal

import structlog

from dexrouter.adapters.base import Indexer, PriceFeed
from dexrouter.adapters.chain import Web3Chain
from dexrouter.adapters.indexer import ConcentratedPoolIndexer, WeightedPoolIndexer
from dexrouter.adapters.price import ChainlinkPriceFeed
from dexrouter.adapters.store import JsonFileStore
from dexrouter.config import DEFAULT_ROUTER_CONFIG, OptimizeOptions, RouterConfig
from dexrouter.constants import NATIVE, NATIVE_DECIMALS
from dexrouter.errors import InvalidConfig, NoLiquidity
from dexrouter.math.fixed_point import MAX_TOKEN_DECIMALS
from dexrouter.models.types import is_valid_address, normalize_address
from dexrouter.pools.cache import PoolCache
from dexrouter.pools.registry import PoolRegistry
from dexrouter.pools.types import Pool, Venue, routing_vertex
from dexrouter.routing.optimizer import SplitOptimizer
from dexrouter.routing.pathfinding import PathEnumerator
from dexrouter.routing.plan import ExecutionPlan, PlanBuilder
from dexrouter.routing.selection import candidate_allocations, score_candidate, select_best
from dexrouter.routing.simulator import RouteSimulator

logger = structlog.get_logger()


def validate_request(
    token_in: str, token_out: str, amount_in: int, config: RouterConfig
) -> tuple[str, str]:
    """Check a request and return normalized token addresses.

    Raises:
        InvalidConfig: On malformed addresses, a same-token swap or a
            non-positive input
    """
    for address in (token_in, token_out):
        if not is_valid_address(address):
            raise InvalidConfig(f"Invalid token address: {address}")
    token_in = normalize_address(token_in)
    token_out = normalize_address(token_out)
    wrapped = config.wrapped_native
    if routing_vertex(token_in, wrapped) == routing_vertex(token_out, wrapped):
        raise InvalidConfig("tokenIn and tokenOut must differ")
    if isinstance(amount_in, bool) or not isinstance(amount_in, int) or amount_in <= 0:
        raise InvalidConfig(f"amountIn must be a positive integer, got {amount_in!r}")
    return token_in, token_out


def resolve_decimals(
    token: str, pools: Iterable[Pool], known: Mapping[str, int] | None = None
) -> int:
    """Decimals of a token, from explicit metadata or pool snapshots.

    Raises:
        InvalidConfig: If no source knows the token or its decimals are out of range
    """
    decimals: int | None = None
    if known and token in known:
        decimals = known[token]
    elif token == NATIVE:
        decimals = NATIVE_DECIMALS
    else:
        for pool in pools:
            for pool_token in pool.tokens:
                if pool_token.address == token:
                    decimals = pool_token.decimals
                    break
            if decimals is not None:
                break
    if decimals is None:
        raise InvalidConfig(f"Unknown decimals for token {token}")
    if not 0 <= decimals <= MAX_TOKEN_DECIMALS:
        raise InvalidConfig(f"Token {token} has unsupported decimals {decimals}")
    return decimals


def plan_from_pools(
    pools: Iterable[Pool],
    token_in: str,
    token_out: str,
    amount_in: int,
    config: RouterConfig = DEFAULT_ROUTER_CONFIG,
    eth_price: Decimal | None = None,
    token_out_price: Decimal | None = None,
    token_out_decimals: int = NATIVE_DECIMALS,
) -> ExecutionPlan:
    """Route over a fixed pool snapshot. Pure and deterministic.

    Args:
        pools: Classified pool snapshots
        token_in: Input token (normalized)
        token_out: Output token (normalized)
        amount_in: Raw input amount
        config: Effective configuration
        eth_price: ETH/USD price for gas valuation, if known
        token_out_price: Output token USD price, if known
        token_out_decimals: Output token decimals

    Returns:
        The execution plan

    Raises:
        NoLiquidity: If no route produces output
    """
    snapshot = {pool.id: pool for pool in pools}
    enumerator = PathEnumerator(snapshot.values(), config)
    routes = enumerator.enumerate(token_in, token_out)
    if not routes:
        raise NoLiquidity(f"No paths between {token_in} and {token_out}")

    simulator = RouteSimulator(snapshot)
    outputs = [simulator.simulate(route, amount_in) for route in routes]
    ranked = sorted(
        (i for i, y in enumerate(outputs) if y > 0), key=lambda i: (-outputs[i], i)
    )[: config.max_candidates]
    if not ranked:
        raise NoLiquidity(f"All {len(routes)} paths simulate to zero output")

    candidates = [routes[i] for i in ranked]
    single_outputs = [outputs[i] for i in ranked]
    logger.info(
        "candidates_ranked",
        paths=len(routes),
        candidates=len(candidates),
        best_single=single_outputs[0],
    )

    result = SplitOptimizer(simulator, config).optimize(candidates, amount_in, single_outputs)
    scored = [
        score_candidate(allocations, config, eth_price, token_out_price, token_out_decimals)
        for allocations in candidate_allocations(result, candidates, single_outputs, amount_in)
    ]
    winner = select_best(scored, config)

    plan = PlanBuilder(simulator, config.slippage).build(
        token_in,
        token_out,
        amount_in,
        winner.allocations,
        total_gas_estimate=winner.gas_estimate,
        gas_cost=winner.gas_cost,
        balance_score=winner.balance_score,
    )
    logger.info(
        "plan_selected",
        legs=len(plan.splits),
        steps=len(plan.steps),
        expected_output=plan.expected_output,
        min_output=plan.min_output,
        gas=plan.total_gas_estimate,
    )
    return plan


class DexRouter:
    """Off-chain router over venues U and B.

    Holds the registry (and through it the shared pool cache) and an optional
    price feed. Every request works on its own snapshot of pool state.
    """

    def __init__(
        self,
        registry: PoolRegistry,
        price_feed: PriceFeed | None = None,
        config: RouterConfig = DEFAULT_ROUTER_CONFIG,
    ) -> None:
        self.registry = registry
        self.price_feed = price_feed
        self.config = config
        self._cache_loaded = False

    async def warm_up(self) -> None:
        """Load the persistent pool cache once per process."""
        if not self._cache_loaded:
            self._cache_loaded = True
            await self.registry.cache.load()

    async def _prices(
        self, token_out: str, config: RouterConfig
    ) -> tuple[Decimal | None, Decimal | None]:
        if self.price_feed is None:
            return None, None
        try:
            eth_price, token_price = await asyncio.wait_for(
                asyncio.gather(self.price_feed.eth_usd(), self.price_feed.token_usd(token_out)),
                timeout=config.io_timeout,
            )
        except TimeoutError:
            logger.warning("price_feed_deadline_exceeded", timeout=config.io_timeout)
            return None, None
        return eth_price, token_price

    async def optimize(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        opts: OptimizeOptions | None = None,
        decimals: Mapping[str, int] | None = None,
    ) -> ExecutionPlan:
        """Find the best execution plan for an exact-input swap.

        Args:
            token_in: Input token address (0x0...0 for native)
            token_out: Output token address
            amount_in: Raw input amount
            opts: Per-request options
            decimals: Known token decimals by address, optional

        Returns:
            The execution plan

        Raises:
            InvalidConfig: On invalid options or request
            NoLiquidity: If no route produces output
            RateLimited: If the indexer or chain signals a rate limit
            IndexerUnavailable: If every enabled indexer failed
        """
        config = self.config.with_options(opts)
        token_in, token_out = validate_request(token_in, token_out, amount_in, config)
        known = {normalize_address(k): v for k, v in (decimals or {}).items()}

        logger.info(
            "optimize_request",
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            max_hops=config.max_hops,
        )
        await self.warm_up()
        pools = await self.registry.load_pools((token_in, token_out), config)
        resolve_decimals(token_in, pools, known)
        out_decimals = resolve_decimals(token_out, pools, known)

        eth_price, token_out_price = await self._prices(token_out, config)
        return plan_from_pools(
            pools,
            token_in,
            token_out,
            amount_in,
            config,
            eth_price=eth_price,
            token_out_price=token_out_price,
            token_out_decimals=out_decimals,
        )


def build_router(
    indexer_u_url: str | None = None,
    indexer_b_url: str | None = None,
    rpc_url: str | None = None,
    cache_path: str | None = None,
    config: RouterConfig = DEFAULT_ROUTER_CONFIG,
) -> DexRouter:
    """Wire a router from endpoint URLs.

    Venues without an indexer URL are not discovered. Without an RPC URL,
    venue B pools can only be classified from the cache or their name, and
    gas is not valued.

    Args:
        indexer_u_url: GraphQL endpoint for venue U pools
        indexer_b_url: GraphQL endpoint for venue B pools
        rpc_url: JSON-RPC endpoint for probes and the price feed
        cache_path: JSON file backing the pool cache
        config: Router configuration
    """
    indexers: dict[Venue, Indexer] = {}
    if indexer_u_url:
        indexers[Venue.U] = ConcentratedPoolIndexer(indexer_u_url, timeout=config.io_timeout)
    if indexer_b_url:
        indexers[Venue.B] = WeightedPoolIndexer(indexer_b_url, timeout=config.io_timeout)
    chain = Web3Chain(rpc_url, timeout=config.io_timeout) if rpc_url else None
    cache = PoolCache(JsonFileStore(cache_path) if cache_path else None)
    registry = PoolRegistry(indexers, chain=chain, cache=cache, config=config)
    price_feed = ChainlinkPriceFeed(chain) if chain is not None else None
    return DexRouter(registry, price_feed=price_feed, config=config)


__all__ = ["DexRouter", "build_router", "plan_from_pools", "resolve_decimals", "validate_request"]
