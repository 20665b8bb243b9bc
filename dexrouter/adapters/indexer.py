"""GraphQL pool indexers.

One indexer per venue. Both POST a single query and return the raw pool
records; parsing into Pool snapshots happens in dexrouter.pools.parsing.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from dexrouter.errors import IndexerUnavailable, RateLimited

from .base import PoolFilters, RawPool
from .rate_limit import is_rate_limit_error

logger = structlog.get_logger()

WEIGHTED_POOLS_QUERY = """
query Pools($tokens: [Bytes!]!, $first: Int!) {
  pools(first: $first, where: {%(where)s tokens_: {address_in: $tokens}}) {
    id
    address
    name
    symbol
    swapFee
    isInitialized
    isPaused
    isInRecoveryMode
    tokens {
      address
      balance
      decimals
      symbol
    }
  }
}
"""

CONCENTRATED_POOLS_QUERY = """
query Pools($tokens: [String!]!, $first: Int!) {
  pools(first: $first, where: {or: [{token0_in: $tokens}, {token1_in: $tokens}]}) {
    id
    feeTier
    hooks
    liquidity
    sqrtPrice
    tick
    tickSpacing
    totalValueLockedToken0
    totalValueLockedToken1
    token0 {
      id
      symbol
      decimals
    }
    token1 {
      id
      symbol
      decimals
    }
    ticks(first: 1000, where: {liquidityGross_not: "0"}) {
      tickIdx
      liquidityNet
      liquidityGross
    }
  }
}
"""


def _where_flags(filters: PoolFilters) -> str:
    clauses = []
    if filters.require_initialized:
        clauses.append("isInitialized: true,")
    if filters.exclude_paused:
        clauses.append("isPaused: false,")
    if filters.exclude_recovery:
        clauses.append("isInRecoveryMode: false,")
    return " ".join(clauses)


class GraphQLIndexer:
    """Base GraphQL indexer client using httpx.

    Performs no retries. HTTP 429 and rate-limit GraphQL errors raise
    RateLimited; timeouts, transport failures, other non-2xx statuses and
    other GraphQL errors raise IndexerUnavailable.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the indexer.

        Args:
            url: GraphQL endpoint URL
            timeout: Request timeout in seconds
            client: Optional shared client (tests inject one with a mock transport)
        """
        self.url = url
        self.timeout = timeout
        self._client = client

    def build_query(self, filters: PoolFilters) -> str:
        raise NotImplementedError

    async def pools(self, token_set: frozenset[str], filters: PoolFilters) -> list[RawPool]:
        """Fetch pools containing any token in token_set."""
        payload = {
            "query": self.build_query(filters),
            "variables": {"tokens": sorted(token_set), "first": filters.first},
        }
        data = await self._post(payload)
        pools = data.get("pools")
        if not isinstance(pools, list):
            raise IndexerUnavailable(f"indexer response has no pool list: {self.url}")
        logger.debug("indexer_pools_fetched", url=self.url, count=len(pools))
        return pools

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(self.url, json=payload, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise IndexerUnavailable(f"indexer timed out: {self.url}") from e
        except httpx.HTTPError as e:
            raise IndexerUnavailable(f"indexer request failed: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            raise RateLimited(
                f"indexer rate limited: {self.url}",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if not response.is_success:
            raise IndexerUnavailable(f"indexer returned HTTP {response.status_code}: {self.url}")

        try:
            body = response.json()
        except ValueError as e:
            raise IndexerUnavailable(f"indexer returned invalid JSON: {self.url}") from e

        errors = body.get("errors")
        if errors:
            if any(is_rate_limit_error(err) for err in errors):
                raise RateLimited(f"indexer rate limited: {self.url}")
            raise IndexerUnavailable(f"indexer query failed: {errors}")

        data = body.get("data")
        if not isinstance(data, dict):
            raise IndexerUnavailable(f"indexer response has no data: {self.url}")
        return data


class WeightedPoolIndexer(GraphQLIndexer):
    """Indexer for venue B (weighted/stable pools)."""

    def build_query(self, filters: PoolFilters) -> str:
        return WEIGHTED_POOLS_QUERY % {"where": _where_flags(filters)}


class ConcentratedPoolIndexer(GraphQLIndexer):
    """Indexer for venue U (concentrated-liquidity pools)."""

    def build_query(self, filters: PoolFilters) -> str:
        return CONCENTRATED_POOLS_QUERY


class StaticIndexer:
    """In-memory indexer for testing without network calls.

    Returns the configured pools whose token list intersects the query set,
    and records every call for assertions.
    """

    def __init__(self, pools: list[RawPool] | None = None, error: Exception | None = None):
        self._pools = list(pools or [])
        self._error = error
        self.calls: list[tuple[frozenset[str], PoolFilters]] = []

    async def pools(self, token_set: frozenset[str], filters: PoolFilters) -> list[RawPool]:
        self.calls.append((token_set, filters))
        if self._error is not None:
            raise self._error
        wanted = {t.lower() for t in token_set}
        return [p for p in self._pools if wanted & set(_raw_token_addresses(p))][: filters.first]


def _raw_token_addresses(raw: RawPool) -> list[str]:
    if "tokens" in raw:
        return [str(t.get("address", "")).lower() for t in raw["tokens"] if isinstance(t, dict)]
    return [
        str(raw.get(key, {}).get("id", "")).lower()
        for key in ("token0", "token1")
        if isinstance(raw.get(key), dict)
    ]


__all__ = [
    "GraphQLIndexer",
    "WeightedPoolIndexer",
    "ConcentratedPoolIndexer",
    "StaticIndexer",
    "WEIGHTED_POOLS_QUERY",
    "CONCENTRATED_POOLS_QUERY",
]
