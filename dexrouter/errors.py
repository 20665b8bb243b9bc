"""Router error classes.

Request-level errors surface to the caller. Per-pool and per-route errors
(AMM preconditions, diverged simulations) are absorbed where they occur and
the offending pool or route is dropped.
"""

from __future__ import annotations


class RouterError(Exception):
    """Base error for router operations."""

    pass


class InvalidConfig(RouterError):
    """Request or configuration is unusable (no venue, same token, zero input)."""

    pass


class NoLiquidity(RouterError):
    """No viable route remains after discovery and simulation."""

    pass


class RateLimited(RouterError):
    """Indexer or chain signaled a rate limit. Retriable by the caller."""

    def __init__(self, message: str = "rate limited", *, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class IndexerUnavailable(RouterError):
    """Indexer timed out or returned a non-2xx status other than 429."""

    pass


class CacheIOError(RouterError):
    """Persistent pool cache could not be read or written."""

    pass


class ChainCallError(RouterError):
    """A contract view call reverted or returned unusable data."""

    pass


class ChainUnavailable(RouterError):
    """The chain RPC could not be reached or failed for a reason other than a revert."""

    pass


class SimulationDiverged(RouterError):
    """An iterative AMM solver did not converge."""

    pass


class StableInvariantDidNotConverge(SimulationDiverged):
    """Newton-Raphson iteration for stable invariant D did not converge."""

    pass


class StableBalanceDidNotConverge(SimulationDiverged):
    """Newton-Raphson iteration for stable balance Y did not converge."""

    pass


class AmmError(RouterError):
    """Base error for AMM precondition failures."""

    pass


class ZeroBalanceError(AmmError):
    """Token balance must be positive for swaps."""

    pass


class ZeroWeightError(AmmError):
    """Token weight must be positive."""

    pass


class InvalidFeeError(AmmError):
    """Swap fee must be in range [0, 1)."""

    pass


class PriceLimitError(AmmError):
    """Concentrated-liquidity swap hit the price boundary before consuming its input."""

    pass


__all__ = [
    "RouterError",
    "InvalidConfig",
    "NoLiquidity",
    "RateLimited",
    "IndexerUnavailable",
    "CacheIOError",
    "ChainCallError",
    "ChainUnavailable",
    "SimulationDiverged",
    "StableInvariantDidNotConverge",
    "StableBalanceDidNotConverge",
    "AmmError",
    "ZeroBalanceError",
    "ZeroWeightError",
    "InvalidFeeError",
    "PriceLimitError",
]
