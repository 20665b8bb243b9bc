"""Interfaces for external collaborators.

The router talks to the outside world only through these protocols, which
keeps discovery testable with in-memory fakes and lets deployments swap
transports freely. All methods are coroutines; they are the router's only
suspension points.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

# Indexer pool record, as returned by the GraphQL endpoint
RawPool = dict[str, Any]


@dataclass(frozen=True)
class PoolFilters:
    """Server-side filters for indexer pool queries.

    Attributes:
        first: Page size
        require_initialized: Only initialized pools
        exclude_paused: Skip paused pools
        exclude_recovery: Skip pools in recovery mode
    """

    first: int = 200
    require_initialized: bool = True
    exclude_paused: bool = True
    exclude_recovery: bool = True


class Indexer(Protocol):
    """GraphQL pool indexer for one venue.

    Implementations perform no retries; a rate limit raises RateLimited and
    the caller decides whether to back off.
    """

    async def pools(self, token_set: frozenset[str], filters: PoolFilters) -> list[RawPool]:
        """Fetch pools containing any token in token_set.

        Raises:
            RateLimited: If the indexer signals a rate limit
            IndexerUnavailable: On timeout or non-2xx response
        """
        ...


class Chain(Protocol):
    """Read-only contract access."""

    async def view(self, address: str, selector: bytes, calldata: bytes = b"") -> bytes:
        """Execute an eth_call and return the raw return data.

        Args:
            address: Contract address
            selector: 4-byte function selector
            calldata: ABI-encoded arguments (without selector)

        Raises:
            RateLimited: If the node signals a rate limit
            ChainCallError: If the call reverts or returns undecodable data
            ChainUnavailable: If the node cannot be reached or fails otherwise
        """
        ...


class CacheStore(Protocol):
    """Persistent key-value storage for the pool cache document."""

    async def load(self) -> dict[str, Any] | None:
        """Load the cache document, or None if nothing was saved yet.

        Raises:
            CacheIOError: If the stored document cannot be read
        """
        ...

    async def save(self, state: dict[str, Any]) -> None:
        """Persist the cache document atomically.

        Raises:
            CacheIOError: If the document cannot be written
        """
        ...


class PriceFeed(Protocol):
    """Best-effort USD prices, used only for gas accounting."""

    async def eth_usd(self) -> Decimal | None:
        """ETH price in USD, or None if unavailable."""
        ...

    async def token_usd(self, token: str) -> Decimal | None:
        """Token price in USD, or None if unavailable."""
        ...


__all__ = ["RawPool", "PoolFilters", "Indexer", "Chain", "CacheStore", "PriceFeed"]
